# /quickscan/models/flow.py

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, field_validator, model_validator

# Pydantic models describing a quickscan flow definition and the engine's
# session state. Flow documents written for the original quickscan front-end
# use short keys (type, required, terminate, max_mb ...); the before-validators
# below translate them to the canonical field names.


class StepKind(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    SINGLE_CHOICE = "single-choice"
    BOOLEAN = "boolean"
    FILE = "file"
    ADDRESS = "address"
    TERMINAL = "terminal"


# Kind names used by older flow documents
KIND_ALIASES = {
    "string": StepKind.TEXT.value,
    "int": StepKind.INTEGER.value,
    "float": StepKind.DECIMAL.value,
    "choice": StepKind.SINGLE_CHOICE.value,
}

# document key -> canonical field name
STEP_KEY_ALIASES = {
    "type": "kind",
    "required": "required_always",
    "requiredAlways": "required_always",
    "required_when": "required_when_expr",
    "requiredWhenExpr": "required_when_expr",
    "allowedExtensions": "allowed_extensions",
    "maxSizeBytes": "max_size_bytes",
    "multiple": "allow_multiple",
    "allowMultiple": "allow_multiple",
    "terminate": "is_terminal",
    "isTerminal": "is_terminal",
    "result": "result_message",
    "resultMessage": "result_message",
}


class NextRule(BaseModel):
    """
    One entry of a conditional `next` list.

    A rule either carries a condition expression or is marked as default.
    The original document shape `{default: <step_id>}` is accepted and becomes
    a default rule pointing at that step.
    """
    model_config = ConfigDict(populate_by_name=True)

    condition_expr: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("condition_expr", "conditionExpr", "condition"),
    )
    goto_id: str = Field(..., validation_alias=AliasChoices("goto_id", "gotoId", "goto"))
    is_default: bool = Field(default=False, validation_alias=AliasChoices("is_default", "isDefault"))

    @model_validator(mode="before")
    @classmethod
    def expand_default_target(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("default"), str):
            data = dict(data)
            target = data.pop("default")
            data.setdefault("goto", target)
            data["is_default"] = True
        elif isinstance(data, dict) and isinstance(data.get("default"), bool):
            data = dict(data)
            data["is_default"] = data.pop("default")
        return data


CONDITION_KEYS = ("condition", "conditionExpr", "condition_expr")


def _split_fallback_rules(rules: List[Any]) -> List[Any]:
    """
    Expand `{condition, goto, default: <id>}` into a conditional rule followed
    by a default rule, so the fallback target is taken when the condition fails.
    """
    expanded = []
    for rule in rules:
        if (
            isinstance(rule, dict)
            and isinstance(rule.get("default"), str)
            and any(rule.get(key) for key in CONDITION_KEYS)
        ):
            conditional = dict(rule)
            fallback = conditional.pop("default")
            expanded.append(conditional)
            expanded.append({"default": fallback})
        else:
            expanded.append(rule)
    return expanded


class FlowStep(BaseModel):
    """A single node of the quickscan flow: one question or a terminal outcome."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., min_length=1, description="Unique step identifier")
    kind: Optional[StepKind] = Field(default=None, description="Type of answer collected by this step")
    question: Optional[str] = None
    title: Optional[str] = None
    options: List[Any] = Field(default_factory=list, description="Selectable values for single-choice steps")
    required_always: Optional[bool] = None
    required_when_expr: Optional[str] = None
    allowed_extensions: List[str] = Field(default_factory=list)
    max_size_bytes: Optional[int] = Field(default=None, ge=0)
    allow_multiple: bool = False
    next: Union[str, List[NextRule], None] = None
    is_terminal: bool = False
    result_message: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_document_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, canonical in STEP_KEY_ALIASES.items():
            if key in data and canonical not in data:
                data[canonical] = data.pop(key)
        if "max_mb" in data:
            max_mb = data.pop("max_mb")
            if max_mb is not None and "max_size_bytes" not in data:
                try:
                    data["max_size_bytes"] = int(float(max_mb) * 1024 * 1024)
                except (TypeError, ValueError, OverflowError):
                    raise ValueError(f"max_mb must be a number, got {max_mb!r}")
        kind = data.get("kind")
        if isinstance(kind, str):
            data["kind"] = KIND_ALIASES.get(kind, kind)
        if isinstance(data.get("next"), list):
            data["next"] = _split_fallback_rules(data["next"])
        return data

    @field_validator("id")
    @classmethod
    def strip_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Step id cannot be empty")
        return v

    @model_validator(mode="after")
    def terminal_kind_marks_terminal(self):
        if self.kind == StepKind.TERMINAL:
            self.is_terminal = True
        return self

    @property
    def is_answerable(self) -> bool:
        """True for steps that collect an answer (have a kind and are not terminal)."""
        return self.kind is not None and self.kind != StepKind.TERMINAL and not self.is_terminal

    def successor_ids(self) -> List[str]:
        """All step ids this step can navigate to, in declaration order."""
        if self.next is None:
            return []
        if isinstance(self.next, str):
            return [self.next]
        return [rule.goto_id for rule in self.next]


class FlowDefinition(BaseModel):
    """
    A complete flow: version metadata plus the ordered list of steps.

    Declaration order matters: the first step is the initial step.
    """
    model_config = ConfigDict(extra="allow")

    flow_version: Optional[str] = None
    steps: List[FlowStep] = Field(..., min_length=1)

    @field_validator("flow_version", mode="before")
    @classmethod
    def version_as_string(cls, v):
        return str(v) if v is not None else v

    @model_validator(mode="after")
    def validate_flow_structure(self):
        """
        Validates that the flow graph is consistent.

        Checks:
        1. Step ids are unique
        2. Every step referenced in a `next` rule exists
        """
        seen = set()
        duplicates = []
        for step in self.steps:
            if step.id in seen:
                duplicates.append(step.id)
            seen.add(step.id)
        if duplicates:
            raise ValueError(f"Duplicate step ids: {', '.join(sorted(set(duplicates)))}")

        for step in self.steps:
            for target in step.successor_ids():
                if target not in seen:
                    raise ValueError(f"Step '{step.id}' references non-existent step '{target}'")
        return self

    @property
    def initial_step_id(self) -> str:
        return self.steps[0].id

    def get_step(self, step_id: str) -> Optional[FlowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


class FileDescriptor(BaseModel):
    """
    Metadata of one uploaded file, recorded as (part of) a `file` step answer.

    The engine treats it as an opaque value; `content` is only read when a
    package archive is built.
    """
    model_config = ConfigDict(populate_by_name=True)

    original_name: str = Field(..., validation_alias=AliasChoices("original_name", "originalName", "name"))
    size_bytes: int = Field(default=0, ge=0, validation_alias=AliasChoices("size_bytes", "sizeBytes", "size"))
    mime_type: str = Field(
        default="application/octet-stream",
        validation_alias=AliasChoices("mime_type", "mimeType", "type"),
    )
    owner_step_id: str = Field(..., validation_alias=AliasChoices("owner_step_id", "ownerStepId", "stepId"))
    content: Optional[bytes] = Field(default=None, exclude=True, repr=False)

    @property
    def extension(self) -> str:
        if "." not in self.original_name:
            return ""
        return self.original_name.rsplit(".", 1)[-1].lower()


class FlowState(BaseModel):
    """
    Mutable session state of a flow engine.

    PURE DATA: the engine owns all transitions.
    """
    current_step_id: str = Field(..., description="Step the user is currently on")
    answers: Dict[str, Any] = Field(default_factory=dict, description="Answers keyed by step id")
    history: List[str] = Field(default_factory=list, description="Visited steps, most recent last")
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
