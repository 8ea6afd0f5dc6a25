# /quickscan/workflows/engine.py

"""
Quickscan flow execution engine.

The engine owns one questionnaire session:
- Tracks the current step and the recorded answers
- Decides whether the current step is required
- Resolves the next step from `next` ids and conditional rules
- Computes overall progress

All operations are synchronous. Navigation outcomes (blocked by a missing
required answer, flow completed) are returned as values; the engine never
raises during normal operation. Broken condition expressions are treated as
false and collected on the engine's warning list.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from quickscan.models.flow import FileDescriptor, FlowDefinition, FlowState, FlowStep, StepKind
from quickscan.utils.metrics import flow_advance_counter
from quickscan.workflows.conditions import ConditionEvaluator
from quickscan.workflows.errors import ConditionEvaluationWarning, UnknownStepError

logger = logging.getLogger(__name__)


class AdvanceOutcome(str, Enum):
    ADVANCED = "advanced"
    BLOCKED = "blocked"
    COMPLETED = "completed"


@dataclass(frozen=True)
class AdvanceResult:
    """
    Result of FlowEngine.advance().

    `step_id` is the new current step when ADVANCED and the unchanged current
    step otherwise. Truthy only when the engine actually moved.
    """
    outcome: AdvanceOutcome
    step_id: str

    def __bool__(self) -> bool:
        return self.outcome == AdvanceOutcome.ADVANCED

    @property
    def blocked(self) -> bool:
        return self.outcome == AdvanceOutcome.BLOCKED

    @property
    def completed(self) -> bool:
        return self.outcome == AdvanceOutcome.COMPLETED


def _has_value(value: Any) -> bool:
    return value is not None and value != ""


class FlowEngine:
    def __init__(self, definition: FlowDefinition, evaluator: Optional[ConditionEvaluator] = None):
        self.definition = definition
        self._steps: Dict[str, FlowStep] = {step.id: step for step in definition.steps}
        self._warnings: List[ConditionEvaluationWarning] = []
        self.evaluator = evaluator or ConditionEvaluator()
        self.state = FlowState(current_step_id=definition.initial_step_id)

    # ---------------- Step access ---------------- #

    def get_current_step(self) -> FlowStep:
        return self._steps[self.state.current_step_id]

    def get_current_step_id(self) -> str:
        return self.state.current_step_id

    def get_step(self, step_id: str) -> Optional[FlowStep]:
        return self._steps.get(step_id)

    def get_all_steps(self) -> List[FlowStep]:
        return list(self.definition.steps)

    def set_current_step(self, step_id: str) -> None:
        """Reposition the session on any step. Does not touch the visited history."""
        if step_id not in self._steps:
            raise UnknownStepError(step_id)
        self.state.current_step_id = step_id
        self._touch()

    # ---------------- Answers ---------------- #

    def record_answer(self, step_id: str, value: Any) -> None:
        """Store an answer, overwriting any previous one. Values are not validated here."""
        self.state.answers[step_id] = value
        self._touch()

    def clear_answer(self, step_id: str) -> None:
        if self.state.answers.pop(step_id, None) is not None:
            self._touch()

    def get_answers(self) -> Dict[str, Any]:
        return dict(self.state.answers)

    def get_answer(self, step_id: str) -> Any:
        return self.state.answers.get(step_id)

    def get_uploaded_files(self) -> List[FileDescriptor]:
        """FileDescriptors recorded on file steps, in declaration order."""
        files: List[FileDescriptor] = []
        for step in self.definition.steps:
            if step.kind != StepKind.FILE:
                continue
            answer = self.state.answers.get(step.id)
            items = answer if isinstance(answer, list) else [answer]
            files.extend(item for item in items if isinstance(item, FileDescriptor))
        return files

    # ---------------- Requiredness ---------------- #

    def is_current_step_required(self) -> bool:
        step = self.get_current_step()
        if step.required_always is not None:
            return step.required_always
        if step.required_when_expr:
            return self._evaluate(step.required_when_expr)
        return False

    def can_advance(self) -> bool:
        if not self.is_current_step_required():
            return True
        return _has_value(self.state.answers.get(self.state.current_step_id))

    # ---------------- Navigation ---------------- #

    def resolve_next_step_id(self) -> Optional[str]:
        """
        Successor of the current step, or None for a dead end.

        A plain `next` id wins unconditionally. Rule lists are scanned in
        declaration order: the first rule whose condition holds, or the first
        default rule, decides.
        """
        step = self.get_current_step()
        if step.is_terminal or not step.next:
            return None
        if isinstance(step.next, str):
            return step.next
        for rule in step.next:
            if rule.condition_expr and self._evaluate(rule.condition_expr):
                return rule.goto_id
            if rule.is_default:
                return rule.goto_id
        return None

    def advance(self) -> AdvanceResult:
        current_id = self.state.current_step_id
        if not self.can_advance():
            logger.info(f"Advance blocked on step '{current_id}': required answer missing.")
            flow_advance_counter.labels(outcome=AdvanceOutcome.BLOCKED.value).inc()
            return AdvanceResult(AdvanceOutcome.BLOCKED, current_id)

        next_id = self.resolve_next_step_id()
        if next_id is None:
            logger.info(f"Flow completed on step '{current_id}': no successor.")
            flow_advance_counter.labels(outcome=AdvanceOutcome.COMPLETED.value).inc()
            return AdvanceResult(AdvanceOutcome.COMPLETED, current_id)

        self.state.history.append(current_id)
        self.state.current_step_id = next_id
        self._touch()
        logger.debug(f"Advanced from '{current_id}' to '{next_id}'.")
        flow_advance_counter.labels(outcome=AdvanceOutcome.ADVANCED.value).inc()
        return AdvanceResult(AdvanceOutcome.ADVANCED, next_id)

    def go_to_previous(self) -> bool:
        """
        Step back to the previously visited step.

        Without recorded history (e.g. after set_current_step) this falls back
        to the step declared immediately before the current one.
        """
        if self.state.history:
            self.state.current_step_id = self.state.history.pop()
            self._touch()
            return True

        ids = [step.id for step in self.definition.steps]
        index = ids.index(self.state.current_step_id)
        if index == 0:
            return False
        self.state.current_step_id = ids[index - 1]
        self._touch()
        return True

    def is_complete(self) -> bool:
        return self.get_current_step().is_terminal

    # ---------------- Progress & lifecycle ---------------- #

    def get_progress(self) -> float:
        """Percentage of answerable steps covered by recorded answers, clamped to 100."""
        answerable = sum(1 for step in self.definition.steps if step.is_answerable)
        if answerable == 0:
            return 0.0
        return min(100.0, 100.0 * len(self.state.answers) / answerable)

    def reset(self) -> None:
        self.state = FlowState(current_step_id=self.definition.initial_step_id)
        logger.info("Flow session reset.")

    def get_warnings(self) -> List[ConditionEvaluationWarning]:
        return list(self._warnings)

    # ---------------- Internals ---------------- #

    def _evaluate(self, expression: str) -> bool:
        return self.evaluator.evaluate(
            expression, self.state.answers, self.state.current_step_id, on_warning=self._warnings.append
        )

    def _touch(self) -> None:
        self.state.last_updated = datetime.now(timezone.utc)
