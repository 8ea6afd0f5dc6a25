# /quickscan/workflows/errors.py

# Exceptions raised by the flow loader and engine. Runtime navigation
# conditions (blocked advance, completed flow, broken condition expressions)
# are reported as return values, never raised.


class QuickscanError(Exception):
    """Base class for quickscan errors."""


class DefinitionParseError(QuickscanError, ValueError):
    """A flow definition document could not be parsed or is structurally invalid."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        if source:
            message = f"{message} (source: {source})"
        super().__init__(message)


class UnknownStepError(QuickscanError, KeyError):
    """A step id was used that does not exist in the flow definition."""

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(step_id)

    def __str__(self) -> str:
        return f"Step '{self.step_id}' is not defined in this flow"


class ConditionSyntaxError(QuickscanError):
    """A condition expression could not be tokenized or parsed."""

    def __init__(self, message: str, expression: str, position: int | None = None):
        self.expression = expression
        self.position = position
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(f"{message} in condition {expression!r}")


class ConditionEvaluationWarning(UserWarning):
    """
    Diagnostic record for a condition that failed to evaluate.

    Never raised by the engine: instances are stored on the engine's warning
    list and logged, and the condition is treated as false.
    """

    def __init__(self, expression: str, reason: str, step_id: str | None = None):
        self.expression = expression
        self.reason = reason
        self.step_id = step_id
        super().__init__(f"Failed to evaluate condition {expression!r} on step '{step_id}': {reason}")
