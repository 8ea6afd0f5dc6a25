# backend/tests/unit/test_engine.py
import pytest

from quickscan.models.flow import FileDescriptor
from quickscan.workflows.conditions import ConditionEvaluator
from quickscan.workflows.engine import AdvanceOutcome, AdvanceResult, FlowEngine
from quickscan.workflows.errors import UnknownStepError
from quickscan.workflows.loader import build_flow_definition


class TestExampleScenario:

    def test_true_answer_branches_to_text_step(self, engine):
        engine.record_answer("a", True)
        result = engine.advance()

        assert result.outcome == AdvanceOutcome.ADVANCED
        assert result.step_id == "b"
        assert engine.get_current_step().id == "b"

    def test_false_answer_falls_through_to_default(self, engine):
        engine.record_answer("a", False)
        engine.advance()

        step = engine.get_current_step()
        assert step.id == "c"
        assert step.is_terminal is True
        assert step.result_message == "Stopped"
        assert engine.is_complete() is True

    def test_walk_to_end(self, engine):
        engine.record_answer("a", True)
        engine.advance()
        # b is optional
        assert engine.advance().step_id == "end"
        assert engine.get_current_step().result_message == "Done"

        result = engine.advance()
        assert result.outcome == AdvanceOutcome.COMPLETED
        assert engine.get_current_step_id() == "end"


class TestRequiredness:

    def test_required_always_ignores_answers(self, make_engine):
        engine = make_engine([{"id": "q", "type": "string", "required": True}])
        assert engine.is_current_step_required() is True
        engine.record_answer("q", "filled")
        engine.record_answer("other", "x")
        assert engine.is_current_step_required() is True

    def test_explicit_not_required_wins_over_expression(self, make_engine):
        engine = make_engine([{"id": "q", "type": "string", "required": False, "required_when": "true"}])
        assert engine.is_current_step_required() is False

    def test_required_when_is_reevaluated_on_every_call(self, make_engine):
        engine = make_engine([
            {"id": "q", "type": "file", "required_when": "schade.value == 'ja'"},
            {"id": "schade", "type": "choice", "options": ["ja", "nee"]},
        ])
        assert engine.is_current_step_required() is False
        engine.record_answer("schade", "ja")
        assert engine.is_current_step_required() is True
        engine.record_answer("schade", "nee")
        assert engine.is_current_step_required() is False

    def test_not_required_by_default(self, make_engine):
        engine = make_engine([{"id": "q", "type": "string"}])
        assert engine.is_current_step_required() is False

    def test_malformed_required_when_falls_back_to_false(self, make_engine):
        engine = make_engine([{"id": "q", "type": "string", "required_when": "value ==="}])

        assert engine.is_current_step_required() is False
        warnings = engine.get_warnings()
        assert len(warnings) == 1
        assert warnings[0].expression == "value ==="
        assert warnings[0].step_id == "q"

    @pytest.mark.parametrize("value, expected", [
        (None, False),
        ("", False),
        ("tekst", True),
        (0, True),
        (False, True),
        ([], True),
    ])
    def test_can_advance_on_required_step(self, make_engine, value, expected):
        engine = make_engine([{"id": "q", "type": "string", "required": True}])
        if value is not None:
            engine.record_answer("q", value)
        assert engine.can_advance() is expected

    def test_optional_step_can_always_advance(self, make_engine):
        engine = make_engine([{"id": "q", "type": "string"}])
        assert engine.can_advance() is True


class TestAdvance:

    def test_blocked_advance_does_not_mutate_state(self, engine):
        before = engine.get_current_step_id()

        first = engine.advance()
        second = engine.advance()

        assert first.outcome == AdvanceOutcome.BLOCKED
        assert second.blocked is True
        assert not first
        assert engine.get_current_step_id() == before
        assert engine.state.history == []

    def test_dead_end_reports_completion(self, make_engine):
        engine = make_engine([{"id": "q", "type": "string"}])
        result = engine.advance()

        assert result.completed is True
        assert result.step_id == "q"
        assert engine.get_current_step_id() == "q"

    def test_no_matching_rule_and_no_default_is_completion(self, make_engine):
        engine = make_engine([
            {"id": "q", "type": "choice", "options": ["ja", "nee"],
             "next": [{"condition": "value == 'ja'", "goto": "r"}]},
            {"id": "r", "type": "string"},
        ])
        engine.record_answer("q", "nee")
        assert engine.advance().outcome == AdvanceOutcome.COMPLETED

    def test_rule_order_is_preserved_and_default_short_circuits(self, make_engine):
        engine = make_engine([
            {"id": "q", "type": "choice", "options": ["ja", "nee"],
             "next": [
                 {"default": "early"},
                 {"condition": "value == 'ja'", "goto": "late"},
             ]},
            {"id": "early", "type": "string"},
            {"id": "late", "type": "string"},
        ])
        engine.record_answer("q", "ja")
        assert engine.advance().step_id == "early"

    def test_first_true_condition_wins(self, make_engine):
        engine = make_engine([
            {"id": "q", "type": "int",
             "next": [
                 {"condition": "value > 10", "goto": "big"},
                 {"condition": "value > 5", "goto": "medium"},
                 {"default": "small"},
             ]},
            {"id": "big"}, {"id": "medium"}, {"id": "small"},
        ])
        engine.record_answer("q", 7)
        assert engine.advance().step_id == "medium"

    @pytest.mark.parametrize("answer, expected", [("ja", "a"), ("nee", "b")])
    def test_rule_with_inline_fallback(self, make_engine, answer, expected):
        engine = make_engine([
            {"id": "q", "type": "choice", "options": ["ja", "nee"],
             "next": [{"condition": "value == 'ja'", "goto": "a", "default": "b"}]},
            {"id": "a"}, {"id": "b"},
        ])
        engine.record_answer("q", answer)
        assert engine.advance().step_id == expected

    def test_broken_branch_condition_is_skipped(self, make_engine):
        engine = make_engine([
            {"id": "q", "type": "string",
             "next": [{"condition": "value ==", "goto": "x"}, {"default": "y"}]},
            {"id": "x"}, {"id": "y"},
        ])
        engine.record_answer("q", "anything")
        assert engine.advance().step_id == "y"
        assert len(engine.get_warnings()) == 1

    def test_terminal_step_has_no_successor(self, make_engine):
        engine = make_engine([
            {"id": "stop", "terminate": True, "next": "more"},
            {"id": "more", "type": "string"},
        ])
        assert engine.advance().completed is True

    def test_advance_result_truthiness(self):
        assert AdvanceResult(AdvanceOutcome.ADVANCED, "b")
        assert not AdvanceResult(AdvanceOutcome.COMPLETED, "b")

    def test_advance_counts_outcomes(self, engine, mocker):
        counter = mocker.patch("quickscan.workflows.engine.flow_advance_counter")
        engine.advance()
        counter.labels.assert_called_with(outcome="blocked")
        counter.labels.return_value.inc.assert_called_once()


class TestNavigation:

    def test_go_to_previous_follows_visited_path(self, make_engine):
        engine = make_engine([
            {"id": "a", "type": "choice", "options": ["ja", "nee"],
             "next": [{"condition": "value == 'ja'", "goto": "c"}, {"default": "b"}]},
            {"id": "b", "type": "string", "next": "c"},
            {"id": "c", "type": "string"},
        ])
        engine.record_answer("a", "ja")
        engine.advance()
        assert engine.get_current_step_id() == "c"

        assert engine.go_to_previous() is True
        assert engine.get_current_step_id() == "a"

    def test_go_to_previous_without_history_uses_declaration_order(self, engine):
        engine.set_current_step("end")
        assert engine.go_to_previous() is True
        assert engine.get_current_step_id() == "c"

    def test_go_to_previous_on_first_step(self, engine):
        assert engine.go_to_previous() is False
        assert engine.get_current_step_id() == "a"

    def test_set_current_step_rejects_unknown_id(self, engine):
        with pytest.raises(UnknownStepError, match="nope"):
            engine.set_current_step("nope")
        assert engine.get_current_step_id() == "a"

    def test_step_lookup(self, engine):
        assert engine.get_step("b").kind.value == "text"
        assert engine.get_step("missing") is None
        assert [s.id for s in engine.get_all_steps()] == ["a", "b", "c", "end"]


class TestAnswers:

    def test_record_answer_overwrites(self, engine):
        engine.record_answer("a", True)
        engine.record_answer("a", False)
        assert engine.get_answer("a") is False
        assert engine.get_answers() == {"a": False}

    def test_get_answers_returns_copy(self, engine):
        engine.get_answers()["a"] = True
        assert engine.get_answer("a") is None

    def test_clear_answer(self, engine):
        engine.record_answer("a", True)
        engine.clear_answer("a")
        engine.clear_answer("never")
        assert engine.get_answers() == {}

    def test_uploaded_files_are_collected_from_file_steps(self, make_engine):
        engine = make_engine([
            {"id": "plan", "type": "file", "multiple": True, "next": "foto"},
            {"id": "foto", "type": "file"},
            {"id": "naam", "type": "string"},
        ])
        plan = [
            FileDescriptor(original_name="a.pdf", size_bytes=10, owner_step_id="plan"),
            FileDescriptor(original_name="b.pdf", size_bytes=20, owner_step_id="plan"),
        ]
        foto = FileDescriptor(original_name="c.jpg", size_bytes=30, owner_step_id="foto")
        engine.record_answer("foto", foto)
        engine.record_answer("plan", plan)
        engine.record_answer("naam", "not a file")

        assert [f.original_name for f in engine.get_uploaded_files()] == ["a.pdf", "b.pdf", "c.jpg"]


class TestProgressAndReset:

    def test_progress_is_zero_on_fresh_engine(self, engine):
        assert engine.get_progress() == 0

    def test_progress_ratio(self, make_engine):
        engine = make_engine([
            {"id": "a", "type": "string"},
            {"id": "b", "type": "string"},
            {"id": "c", "type": "string"},
            {"id": "d", "type": "string"},
            {"id": "info"},
            {"id": "stop", "type": "string", "terminate": True},
        ])
        engine.record_answer("a", "x")
        assert engine.get_progress() == 25

    def test_progress_counts_any_answer_and_clamps(self, engine):
        # answerable steps: a, b
        engine.record_answer("a", True)
        engine.record_answer("stray", 1)
        assert engine.get_progress() == 100
        engine.record_answer("another", 2)
        assert engine.get_progress() == 100

    def test_progress_without_answerable_steps(self, make_engine):
        engine = make_engine([{"id": "stop", "terminate": True}])
        engine.record_answer("x", 1)
        assert engine.get_progress() == 0

    def test_reset_restores_initial_state(self, engine):
        initial = engine.get_current_step()
        engine.record_answer("a", True)
        engine.advance()

        engine.reset()

        assert engine.get_current_step() == initial
        assert engine.get_answers() == {}
        assert engine.go_to_previous() is False


class TestWarningChannel:

    def test_external_handler_still_receives_warnings(self):
        received = []
        definition = build_flow_definition([{"id": "q", "type": "string", "required_when": "value ==="}])
        engine = FlowEngine(definition, evaluator=ConditionEvaluator(on_warning=received.append))

        engine.is_current_step_required()

        assert len(received) == 1
        assert len(engine.get_warnings()) == 1

    def test_shared_evaluator_keeps_warnings_per_engine(self):
        evaluator = ConditionEvaluator()
        definition = build_flow_definition([{"id": "q", "type": "string", "required_when": "value ==="}])
        first = FlowEngine(definition, evaluator=evaluator)
        second = FlowEngine(definition, evaluator=evaluator)

        first.is_current_step_required()

        assert len(first.get_warnings()) == 1
        assert second.get_warnings() == []
        assert evaluator.on_warning is None
