#!/usr/bin/env python3
"""
Checks a quickscan flow definition file before it is deployed.

Reports:
- number of steps and answerable steps
- terminal steps and their result messages
- steps that cannot be reached from the initial step

Usage:
    python scripts/validate_flow.py [path/to/flow.yml]

Without a path the configured FLOW_DEFINITION_PATH (or the bundled flow) is checked.
"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

# Add parent directory to path to import quickscan modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from quickscan.config.settings import get_settings  # noqa: E402
from quickscan.utils.logging import setup_logging  # noqa: E402
from quickscan.workflows.errors import DefinitionParseError  # noqa: E402
from quickscan.workflows.loader import load_configured_flow, load_flow_file, unreachable_step_ids  # noqa: E402

logger = logging.getLogger(__name__)


def validate_flow(path: str | None = None) -> int:
    settings = get_settings()
    setup_logging(settings)

    try:
        definition = load_flow_file(path) if path else load_configured_flow(settings)
    except DefinitionParseError as e:
        logger.error(f"Flow definition is invalid: {e}")
        return 1

    answerable = [step for step in definition.steps if step.is_answerable]
    logger.info(f"Flow version {definition.flow_version}: {len(definition.steps)} steps, {len(answerable)} answerable.")

    for step in definition.steps:
        if step.is_terminal:
            logger.info(f"  terminal '{step.id}': {step.result_message or '(no result message)'}")

    unreachable = unreachable_step_ids(definition)
    if unreachable:
        logger.warning(f"Unreachable steps: {', '.join(unreachable)}")
    else:
        logger.info("All steps are reachable from the initial step.")
    return 0


if __name__ == "__main__":
    sys.exit(validate_flow(sys.argv[1] if len(sys.argv) > 1 else None))
