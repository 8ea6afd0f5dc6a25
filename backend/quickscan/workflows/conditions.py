# /quickscan/workflows/conditions.py

"""
Safe evaluator for flow condition expressions.

Condition expressions decide requiredness (`required_when`) and branching
(`next` rules). They are parsed by a small recursive-descent parser and
evaluated against the answers mapping; nothing is ever executed as code.

Supported grammar:

    expr       := and_expr ( ("||" | "or") and_expr )*
    and_expr   := not_expr ( ("&&" | "and") not_expr )*
    not_expr   := ("!" | "not") not_expr | comparison
    comparison := operand ( OP operand )?
    operand    := literal | reference | "(" expr ")"
    literal    := "string" | 'string' | number | true | false | null | undefined
    reference  := value | <step_id>.value

`value` resolves to the answer of the step being evaluated, `<step_id>.value`
to the answer of that step. Unanswered steps resolve to None.

Expressions that cannot be parsed evaluate to False and produce a
ConditionEvaluationWarning; evaluation never raises.
"""

import logging
import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple

from quickscan.utils.metrics import condition_failures_counter
from quickscan.workflows.errors import ConditionEvaluationWarning, ConditionSyntaxError

logger = logging.getLogger(__name__)

# Precompiled tokenizer; alternatives are tried in order so longer operators win
TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>-?\d+(?:\.\d+)?(?![\w.]))
      | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
      | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||<|>|!|\(|\))
      | (?P<name>\w+(?:\.\w+)?)
    )
    """,
    re.VERBOSE,
)

COMPARISON_OPS = {"==", "!=", "===", "!==", "<", "<=", ">", ">="}

KEYWORD_LITERALS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "None": None,
    "True": True,
    "False": False,
}

CURRENT_VALUE = "value"

Token = Tuple[str, Any, int]
Node = Tuple


def tokenize(expression: str) -> List[Token]:
    """Split an expression into (kind, text, position) tokens."""
    tokens: List[Token] = []
    pos = 0
    end = len(expression.rstrip())
    while pos < end:
        match = TOKEN_RE.match(expression, pos)
        if not match or match.end() == pos:
            raise ConditionSyntaxError("Unexpected character", expression, pos)
        kind = match.lastgroup
        tokens.append((kind, match.group(kind), match.start(kind)))
        pos = match.end()
    return tokens


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.pos = 0

    def parse(self) -> Node:
        if not self.tokens:
            raise ConditionSyntaxError("Empty expression", self.expression)
        node = self._or()
        if self.pos < len(self.tokens):
            _, text, position = self.tokens[self.pos]
            raise ConditionSyntaxError(f"Unexpected token {text!r}", self.expression, position)
        return node

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _accept(self, *texts: str) -> Optional[str]:
        token = self._peek()
        if token and token[0] in ("op", "name") and token[1] in texts:
            self.pos += 1
            return token[1]
        return None

    def _or(self) -> Node:
        node = self._and()
        while self._accept("||", "or"):
            node = ("or", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._accept("&&", "and"):
            node = ("and", node, self._not())
        return node

    def _not(self) -> Node:
        if self._accept("!", "not"):
            return ("not", self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._operand()
        token = self._peek()
        if token and token[0] == "op" and token[1] in COMPARISON_OPS:
            self.pos += 1
            op = token[1]
            # strict JS-style operators behave like plain equality here
            if op == "===":
                op = "=="
            elif op == "!==":
                op = "!="
            return ("cmp", op, left, self._operand())
        return left

    def _operand(self) -> Node:
        token = self._peek()
        if token is None:
            raise ConditionSyntaxError("Unexpected end of expression", self.expression, len(self.expression))
        kind, text, position = token
        self.pos += 1

        if kind == "number":
            return ("lit", float(text) if "." in text else int(text))
        if kind == "string":
            return ("lit", _unquote(text))
        if kind == "op" and text == "(":
            node = self._or()
            if not self._accept(")"):
                raise ConditionSyntaxError("Missing closing parenthesis", self.expression, position)
            return node
        if kind == "name":
            if text in KEYWORD_LITERALS:
                return ("lit", KEYWORD_LITERALS[text])
            if text == CURRENT_VALUE:
                return ("ref", None)
            if text.endswith(".value"):
                return ("ref", text[: -len(".value")])
        raise ConditionSyntaxError(f"Unexpected token {text!r}", self.expression, position)


@lru_cache(maxsize=256)
def parse_condition(expression: str) -> Node:
    """Parse an expression into a small tuple-based syntax tree."""
    return _Parser(expression).parse()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(left: Any, right: Any) -> bool:
    # True must not equal 1
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return _equals(left, right)
    if op == "!=":
        return not _equals(left, right)
    if not ((_is_number(left) and _is_number(right)) or (isinstance(left, str) and isinstance(right, str))):
        return False
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


WarningHandler = Callable[[ConditionEvaluationWarning], None]


class ConditionEvaluator:
    """
    Evaluates condition expressions against recorded answers.

    `on_warning` receives a ConditionEvaluationWarning for every expression
    that fails to parse. A handler passed to evaluate() receives it as well;
    the engine uses that per-call handler as its diagnostic channel, so one
    evaluator can be shared between engines.
    """

    def __init__(self, on_warning: Optional[WarningHandler] = None):
        self.on_warning = on_warning

    def evaluate(
        self,
        expression: str,
        answers: Dict[str, Any],
        current_step_id: Optional[str] = None,
        on_warning: Optional[WarningHandler] = None,
    ) -> bool:
        if not isinstance(expression, str):
            self._warn(repr(expression), "Condition must be a string", current_step_id, on_warning)
            return False
        try:
            tree = parse_condition(expression)
            return bool(self._eval(tree, answers, current_step_id))
        except (ConditionSyntaxError, RecursionError, TypeError) as e:
            self._warn(expression, str(e), current_step_id, on_warning)
            return False

    def _eval(self, node: Node, answers: Dict[str, Any], current_step_id: Optional[str]) -> Any:
        tag = node[0]
        if tag == "lit":
            return node[1]
        if tag == "ref":
            step_id = node[1] if node[1] is not None else current_step_id
            return answers.get(step_id) if step_id is not None else None
        if tag == "not":
            return not self._eval(node[1], answers, current_step_id)
        if tag == "and":
            return bool(self._eval(node[1], answers, current_step_id)) and bool(
                self._eval(node[2], answers, current_step_id)
            )
        if tag == "or":
            return bool(self._eval(node[1], answers, current_step_id)) or bool(
                self._eval(node[2], answers, current_step_id)
            )
        _, op, left, right = node
        return _compare(op, self._eval(left, answers, current_step_id), self._eval(right, answers, current_step_id))

    def _warn(
        self, expression: str, reason: str, step_id: Optional[str], on_warning: Optional[WarningHandler]
    ) -> None:
        warning = ConditionEvaluationWarning(expression, reason, step_id)
        logger.warning(str(warning))
        condition_failures_counter.inc()
        for handler in (self.on_warning, on_warning):
            if handler is not None:
                handler(warning)


def evaluate_condition(expression: str, answers: Dict[str, Any], current_step_id: Optional[str] = None) -> bool:
    """Evaluate a single expression with a throwaway evaluator (warnings are only logged)."""
    return ConditionEvaluator().evaluate(expression, answers, current_step_id)
