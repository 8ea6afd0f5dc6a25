# /quickscan/workflows/validator.py

"""
Pure validation functions for step answers.

The flow engine stores answers without checking their shape; the
presentation layer calls these helpers before recording an answer so it can
show an inline message.

All functions are:
- Pure (no side effects)
- Deterministic (same input = same output)
- No logging
- No state mutation
"""

from typing import Any, Optional, TypedDict

from quickscan.models.flow import FileDescriptor, FlowStep, StepKind
from quickscan.workflows.engine import FlowEngine

TRUE_WORDS = {"true", "ja", "yes", "1"}
FALSE_WORDS = {"false", "nee", "no", "0"}


class ValidationResult(TypedDict):
    """Result of a validation check."""
    is_valid: bool
    error_code: Optional[str]
    message: Optional[str]


def _valid() -> ValidationResult:
    return {"is_valid": True, "error_code": None, "message": None}


def _invalid(error_code: str, message: str) -> ValidationResult:
    return {"is_valid": False, "error_code": error_code, "message": message}


def _normalize_extension(extension: str) -> str:
    return extension.strip().lower().lstrip(".")


def validate_file(step: FlowStep, descriptor: FileDescriptor) -> ValidationResult:
    """
    Validate one uploaded file against the step's extension and size limits.

    Args:
        step: The file step the upload belongs to
        descriptor: Metadata of the uploaded file

    Returns:
        ValidationResult with is_valid=True if the file is acceptable
    """
    if step.allowed_extensions:
        allowed = {_normalize_extension(ext) for ext in step.allowed_extensions}
        if descriptor.extension not in allowed:
            return _invalid(
                "EXTENSION_NOT_ALLOWED",
                f"File '{descriptor.original_name}' has an unsupported extension. "
                f"Allowed extensions: {', '.join(step.allowed_extensions)}",
            )

    if step.max_size_bytes is not None and descriptor.size_bytes > step.max_size_bytes:
        max_mb = step.max_size_bytes / (1024 * 1024)
        return _invalid(
            "FILE_TOO_LARGE",
            f"File '{descriptor.original_name}' is larger than {max_mb:g} MB",
        )

    return _valid()


def validate_answer(step: FlowStep, value: Any) -> ValidationResult:
    """
    Validate that an answer value fits the step's kind.

    Missing values (None or "") are valid here: requiredness is decided by
    the engine.

    Args:
        step: The step being answered
        value: The answer value

    Returns:
        ValidationResult with is_valid=True if the value fits the step
    """
    if value is None or value == "":
        return _valid()

    kind = step.kind
    if kind is None or kind == StepKind.TERMINAL:
        return _invalid("STEP_NOT_ANSWERABLE", f"Step '{step.id}' does not take an answer")

    if kind in (StepKind.TEXT, StepKind.ADDRESS):
        if not isinstance(value, str):
            return _invalid("INVALID_TEXT", f"Answer for '{step.id}' must be text")

    elif kind == StepKind.INTEGER:
        if isinstance(value, bool) or not isinstance(value, int):
            return _invalid("INVALID_INTEGER", f"Answer for '{step.id}' must be a whole number")

    elif kind == StepKind.DECIMAL:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _invalid("INVALID_DECIMAL", f"Answer for '{step.id}' must be a number")

    elif kind == StepKind.BOOLEAN:
        if not isinstance(value, bool):
            return _invalid("INVALID_BOOLEAN", f"Answer for '{step.id}' must be yes or no")

    elif kind == StepKind.SINGLE_CHOICE:
        if step.options and value not in step.options:
            return _invalid(
                "INVALID_CHOICE",
                f"Answer for '{step.id}' must be one of: {', '.join(str(o) for o in step.options)}",
            )

    elif kind == StepKind.FILE:
        files = value if isinstance(value, list) else [value]
        if not all(isinstance(f, FileDescriptor) for f in files):
            return _invalid("INVALID_FILE", f"Answer for '{step.id}' must be uploaded files")
        if len(files) > 1 and not step.allow_multiple:
            return _invalid("MULTIPLE_FILES_NOT_ALLOWED", f"Step '{step.id}' accepts a single file")
        for descriptor in files:
            result = validate_file(step, descriptor)
            if not result["is_valid"]:
                return result

    return _valid()


def validate_required_answer(engine: FlowEngine) -> ValidationResult:
    """
    Validate that the current step can be left, i.e. a required answer is present.

    Args:
        engine: The flow engine of the running session

    Returns:
        ValidationResult with error_code MISSING_REQUIRED_ANSWER when blocked
    """
    if engine.can_advance():
        return _valid()
    step_id = engine.get_current_step_id()
    return _invalid("MISSING_REQUIRED_ANSWER", f"Step '{step_id}' requires an answer")


def coerce_answer(step: FlowStep, raw: Any) -> Any:
    """
    Convert raw form input to the value type of the step.

    Returns the raw value unchanged when it cannot be converted, so that
    validate_answer reports the problem.
    """
    if not isinstance(raw, str):
        return raw
    text = raw.strip()

    if step.kind == StepKind.INTEGER:
        try:
            return int(text)
        except ValueError:
            return raw
    if step.kind == StepKind.DECIMAL:
        try:
            return float(text.replace(",", "."))
        except ValueError:
            return raw
    if step.kind == StepKind.BOOLEAN:
        lowered = text.lower()
        if lowered in TRUE_WORDS:
            return True
        if lowered in FALSE_WORDS:
            return False
        return raw
    if step.kind == StepKind.SINGLE_CHOICE:
        # options may be numbers in the flow document
        for option in step.options:
            if str(option) == text:
                return option
        return raw
    return raw
