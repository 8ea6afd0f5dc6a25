# /quickscan/services/package_service.py

import io
import json
import logging
import re
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from quickscan.config.settings import Settings
from quickscan.models.flow import FileDescriptor, FlowStep
from quickscan.utils.metrics import packages_built_counter
from quickscan.workflows.engine import FlowEngine

logger = logging.getLogger(__name__)

SUMMARY_JSON_NAME = "01_Overzicht_Quickscan.json"
SUMMARY_TEXT_NAME = "02_Samenvatting_Quickscan.txt"
NOT_GIVEN = "Niet opgegeven"


def _jsonable(value: Any) -> Any:
    if isinstance(value, FileDescriptor):
        return value.model_dump()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _display(value: Any) -> str:
    if value is None or value == "":
        return "Niet beantwoord"
    if isinstance(value, bool):
        return "ja" if value else "nee"
    if isinstance(value, FileDescriptor):
        return value.original_name
    if isinstance(value, list):
        return ", ".join(_display(v) for v in value)
    return str(value)


class PackageService:
    """Builds the final quickscan package: summary record, readable report and zip archive."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_summary(
        self,
        answers: Dict[str, Any],
        files: List[FileDescriptor],
        timestamp: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        timestamp = timestamp or datetime.now(timezone.utc)
        return {
            "timestamp": timestamp.isoformat(),
            "projectAddress": answers.get(self.settings.address_step_id),
            "buildingYear": answers.get(self.settings.building_year_step_id),
            "formData": _jsonable(answers),
            "uploadedFiles": [
                {"name": f.original_name, "size": f.size_bytes, "type": f.mime_type, "stepId": f.owner_step_id}
                for f in files
            ],
        }

    def build_readable_summary(
        self,
        answers: Dict[str, Any],
        files: List[FileDescriptor],
        steps: Optional[List[FlowStep]] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        timestamp = timestamp or datetime.now(timezone.utc)
        address = answers.get(self.settings.address_step_id) or NOT_GIVEN
        year = answers.get(self.settings.building_year_step_id) or NOT_GIVEN

        lines = [
            "CONSTRUCTIEVE QUICKSCAN - SAMENVATTING",
            "======================================",
            "",
            f"Gegenereerd op: {timestamp.strftime('%d-%m-%Y %H:%M:%S')}",
            f"Project: {address}",
            f"Bouwjaar: {year}",
            "",
            "ANTWOORDEN",
            "----------",
        ]

        questions = {step.id: (step.question or step.title or step.id) for step in steps or []}
        # declared steps first, then answers for ids the flow does not know
        ordered_ids = [step.id for step in steps or [] if step.id in answers]
        ordered_ids += [step_id for step_id in answers if step_id not in questions]
        for step_id in ordered_ids:
            lines.append(f"{questions.get(step_id, step_id)}: {_display(answers[step_id])}")

        lines += ["", "GEUPLOADE BESTANDEN", "-------------------"]
        if files:
            for index, f in enumerate(files, start=1):
                lines.append(f"{index}. {f.original_name} ({f.size_bytes / 1024 / 1024:.2f} MB) - {f.owner_step_id}")
        else:
            lines.append("Geen bestanden geupload")

        return "\n".join(lines) + "\n"

    def archive_file_names(self, files: List[FileDescriptor]) -> List[str]:
        """Name every file `<category>_<n>.<ext>`, numbered per category."""
        counts: Dict[str, int] = {}
        names = []
        for f in files:
            category = self.settings.package_file_categories.get(f.owner_step_id, f.owner_step_id)
            counts[category] = counts.get(category, 0) + 1
            name = f"{category}_{counts[category]}"
            if f.extension:
                name = f"{name}.{f.extension}"
            names.append(name)
        return names

    def package_name(self, answers: Dict[str, Any], timestamp: datetime) -> str:
        """`Quickscan_<address>_<building year>_<timestamp>`, safe to use as a file name."""
        address = str(answers.get(self.settings.address_step_id) or "Onbekend Adres")
        clean_address = re.sub(r"\s+", "_", re.sub(r"[^a-zA-Z0-9\s]", "", address).strip())
        year = answers.get(self.settings.building_year_step_id)
        clean_year = re.sub(r"[^a-zA-Z0-9]", "", str(year)) if year not in (None, "") else ""
        clean_timestamp = re.sub(r"[:.+]", "-", timestamp.isoformat())
        return f"Quickscan_{clean_address or 'Onbekend_Adres'}_{clean_year or 'Onbekend_Jaar'}_{clean_timestamp}"

    def build_archive(
        self,
        answers: Dict[str, Any],
        files: List[FileDescriptor],
        steps: Optional[List[FlowStep]] = None,
        timestamp: Optional[datetime] = None,
    ) -> bytes:
        timestamp = timestamp or datetime.now(timezone.utc)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            summary = self.build_summary(answers, files, timestamp)
            archive.writestr(SUMMARY_JSON_NAME, json.dumps(summary, indent=2, ensure_ascii=False, default=str))
            archive.writestr(SUMMARY_TEXT_NAME, self.build_readable_summary(answers, files, steps, timestamp))

            for f, name in zip(files, self.archive_file_names(files)):
                if f.content is None:
                    logger.warning(f"File '{f.original_name}' from step '{f.owner_step_id}' has no content, skipping.")
                    continue
                archive.writestr(name, f.content)

        packages_built_counter.inc()
        return buffer.getvalue()

    def write_archive(self, engine: FlowEngine, output_dir: Optional[Path] = None) -> Path:
        """Build the package for a finished session and write it as a zip file."""
        timestamp = datetime.now(timezone.utc)
        answers = engine.get_answers()
        data = self.build_archive(answers, engine.get_uploaded_files(), engine.get_all_steps(), timestamp)

        target_dir = Path(output_dir or self.settings.package_output_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{self.package_name(answers, timestamp)}.zip"
        path.write_bytes(data)
        logger.info(f"Wrote quickscan package {path} ({len(data)} bytes).")
        return path
