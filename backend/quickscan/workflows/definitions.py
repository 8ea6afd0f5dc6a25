# /quickscan/workflows/definitions.py

"""
Bundled quickscan flow definition.

This module defines the default structural quickscan as pure data (no logic),
in the same document shape as a YAML flow file. It is used when no flow file
is configured.

Each step defines:
- id: unique step name
- type: answer kind (string, int, float, choice, boolean, file, address)
- required / required_when: unconditional or conditional requiredness
- next: a step id, or a list of {condition, goto} rules ending in {default: <id>}
- terminate / result: terminal steps and the message shown when reached
"""

from typing import Dict, Any

# Type definition for a flow document
FlowDocument = Dict[str, Any]

DOCUMENT_EXTENSIONS = [".pdf", ".jpg", ".jpeg", ".png", ".dwg"]

QUICKSCAN_FLOW: FlowDocument = {
    "flow_version": "1.0",
    "steps": [
        {
            "id": "project_address",
            "type": "address",
            "question": "Wat is het adres van het project?",
            "required": True,
            "next": "project_bouwjaar",
        },
        {
            "id": "project_bouwjaar",
            "type": "int",
            "question": "Wat is het bouwjaar van het pand?",
            "help_text": "Het bouwjaar wordt opgezocht in de BAG wanneer een adres is gekozen.",
            "required": True,
            "next": "showstopper_archief_start",
        },
        {
            "id": "showstopper_archief_start",
            "type": "choice",
            "question": "Zijn de originele bouwtekeningen uit het archief beschikbaar?",
            "options": ["ja", "nee", "weet ik niet"],
            "required": True,
            "next": [
                {"condition": "value == 'ja'", "goto": "upload_archief"},
                {"condition": "value == 'nee' && project_bouwjaar.value < 1950", "goto": "stop_geen_archief"},
                {"default": "vraag_andere_archieftekeningen"},
            ],
        },
        {
            "id": "upload_archief",
            "type": "file",
            "question": "Upload de archieftekeningen.",
            "allowed_extensions": DOCUMENT_EXTENSIONS,
            "max_mb": 25,
            "multiple": True,
            "required": True,
            "next": "vraag_palenplan",
        },
        {
            "id": "vraag_andere_archieftekeningen",
            "type": "choice",
            "question": "Zijn er andere tekeningen of foto's van de constructie beschikbaar?",
            "options": ["ja", "nee"],
            "required": True,
            "next": [
                {"condition": "value == 'ja'", "goto": "upload_archieffotos"},
                {"default": "vraag_palenplan"},
            ],
        },
        {
            "id": "upload_archieffotos",
            "type": "file",
            "question": "Upload de beschikbare tekeningen of foto's.",
            "allowed_extensions": DOCUMENT_EXTENSIONS,
            "max_mb": 25,
            "multiple": True,
            "required_when": "vraag_andere_archieftekeningen.value == 'ja'",
            "next": "vraag_palenplan",
        },
        {
            "id": "vraag_palenplan",
            "type": "choice",
            "question": "Is er een palenplan beschikbaar?",
            "options": ["ja", "nee"],
            "required": True,
            "next": [
                {"condition": "value == 'ja'", "goto": "upload_palenplan"},
                {"default": "vraag_sondering"},
            ],
        },
        {
            "id": "upload_palenplan",
            "type": "file",
            "question": "Upload het palenplan.",
            "allowed_extensions": DOCUMENT_EXTENSIONS,
            "max_mb": 25,
            "multiple": True,
            "required": True,
            "next": "vraag_sondering",
        },
        {
            "id": "vraag_sondering",
            "type": "choice",
            "question": "Zijn er sonderingen beschikbaar?",
            "options": ["ja", "nee"],
            "required": True,
            "next": [
                {"condition": "value == 'ja'", "goto": "upload_sondering"},
                {"default": "vraag_schade"},
            ],
        },
        {
            "id": "upload_sondering",
            "type": "file",
            "question": "Upload de sonderingen.",
            "allowed_extensions": [".pdf", ".gef"],
            "max_mb": 25,
            "multiple": True,
            "required": True,
            "next": "vraag_schade",
        },
        {
            "id": "vraag_schade",
            "type": "choice",
            "question": "Zijn er zichtbare constructieve schades?",
            "options": ["geen", "scheuren", "verzakking", "anders"],
            "required": True,
            "next": [
                {"condition": "value == 'geen'", "goto": "organisatie_naam"},
                {"default": "upload_schadefotos"},
            ],
        },
        {
            "id": "upload_schadefotos",
            "type": "file",
            "question": "Upload foto's van de schade.",
            "allowed_extensions": [".jpg", ".jpeg", ".png", ".heic"],
            "max_mb": 10,
            "multiple": True,
            "required_when": "vraag_schade.value != 'geen'",
            "next": "organisatie_naam",
        },
        {
            "id": "organisatie_naam",
            "type": "string",
            "question": "Namens welke organisatie vraagt u de quickscan aan?",
            "next": "keuze_constructeur",
        },
        {
            "id": "keuze_constructeur",
            "type": "choice",
            "question": "Welke constructeur wilt u inschakelen?",
            "options": ["Automatische selectie", "Eigen constructeur"],
            "required": True,
            "next": "wrapup_confirm",
        },
        {
            "id": "wrapup_confirm",
            "type": "boolean",
            "question": "Bevestigt u dat de gegevens naar waarheid zijn ingevuld?",
            "required": True,
            "next": [
                {"condition": "value == true", "goto": "digital_signature"},
                {"default": "stop_niet_bevestigd"},
            ],
        },
        {
            "id": "digital_signature",
            "type": "string",
            "question": "Onderteken met uw volledige naam.",
            "required": True,
            "next": "einde",
        },
        {
            "id": "stop_geen_archief",
            "terminate": True,
            "result": "Zonder archieftekeningen kan voor panden van voor 1950 geen quickscan worden uitgevoerd.",
        },
        {
            "id": "stop_niet_bevestigd",
            "terminate": True,
            "result": "De quickscan is niet bevestigd en wordt niet verstuurd.",
        },
        {
            "id": "einde",
            "terminate": True,
            "result": "Bedankt, de quickscan is compleet.",
        },
    ],
}
