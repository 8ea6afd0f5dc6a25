# /quickscan/workflows/loader.py

"""Load quickscan flow definitions from YAML (or JSON) documents."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from quickscan.config.settings import Settings
from quickscan.models.flow import FlowDefinition
from quickscan.workflows.definitions import QUICKSCAN_FLOW
from quickscan.utils.metrics import definitions_loaded_counter
from quickscan.workflows.errors import DefinitionParseError

logger = logging.getLogger(__name__)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(parts)


def build_flow_definition(data: Any, source: str | None = None) -> FlowDefinition:
    """
    Build a FlowDefinition from an already decoded document.

    Accepts either a mapping with a `steps` list or a bare list of steps.
    Raises DefinitionParseError for anything that is not a valid flow.
    """
    if isinstance(data, list):
        data = {"steps": data}
    if not isinstance(data, dict):
        definitions_loaded_counter.labels(status="error").inc()
        raise DefinitionParseError(
            f"Flow document must be a mapping with a 'steps' list, got {type(data).__name__}", source
        )
    if "steps" not in data:
        definitions_loaded_counter.labels(status="error").inc()
        raise DefinitionParseError("Flow document has no 'steps' list", source)

    try:
        definition = FlowDefinition.model_validate(data)
    except ValidationError as e:
        definitions_loaded_counter.labels(status="error").inc()
        raise DefinitionParseError(f"Invalid flow definition: {_format_validation_error(e)}", source) from e

    definitions_loaded_counter.labels(status="success").inc()
    logger.info(
        f"Loaded flow definition version={definition.flow_version} with {len(definition.steps)} steps."
    )
    return definition


def parse_flow_document(text: str, source: str | None = None) -> FlowDefinition:
    """Parse flow definition text. JSON documents are valid YAML and parse too."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        definitions_loaded_counter.labels(status="error").inc()
        raise DefinitionParseError(f"Invalid flow YAML: {e}", source) from e
    return build_flow_definition(data, source)


def load_flow_file(path: str | Path) -> FlowDefinition:
    """Read a flow definition file from disk."""
    path = Path(path)
    if not path.is_file():
        definitions_loaded_counter.labels(status="error").inc()
        raise DefinitionParseError(f"Flow definition file not found: {path}")

    logger.info(f"Loading flow definition from {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        definitions_loaded_counter.labels(status="error").inc()
        raise DefinitionParseError(f"Could not read flow definition: {e}", str(path)) from e
    return parse_flow_document(text, source=str(path))


def load_configured_flow(settings: Settings) -> FlowDefinition:
    """Load the flow named by settings, or the bundled quickscan flow when none is configured."""
    if settings.flow_definition_path:
        return load_flow_file(settings.flow_definition_path)
    logger.info("No flow definition path configured, using the bundled quickscan flow.")
    return build_flow_definition(QUICKSCAN_FLOW, source="bundled")


def unreachable_step_ids(definition: FlowDefinition) -> list[str]:
    """Steps that no navigation path from the initial step can reach, in declaration order."""
    reachable = set()
    pending = [definition.initial_step_id]
    while pending:
        step_id = pending.pop()
        if step_id in reachable:
            continue
        reachable.add(step_id)
        step = definition.get_step(step_id)
        if step is not None:
            pending.extend(step.successor_ids())
    return [step.id for step in definition.steps if step.id not in reachable]
