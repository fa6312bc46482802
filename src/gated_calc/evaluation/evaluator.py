"""Evaluate expressions in the arithmetic or boolean grammar.

``evaluate()`` is a pure function: the same input always yields the same
result and nothing outside the returned value is touched.
"""

import math
import operator
from dataclasses import dataclass
from typing import Callable, Dict, Union

from ..exceptions import ExpressionArithmeticError
from .grammar import OperationKind, process_expression
from .parser import BinaryOp, Literal, Node, UnaryOp, parse

Value = Union[float, bool]


def _divide(left: float, right: float) -> float:
    if right == 0:
        raise ZeroDivisionError
    return left / right


_BINARY: Dict[str, Callable[[Value, Value], Value]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
    "&&": lambda left, right: left and right,
    "||": lambda left, right: left or right,
}

_UNARY: Dict[str, Callable[[Value], Value]] = {
    "+": operator.pos,
    "-": operator.neg,
    "!": operator.not_,
}


@dataclass(frozen=True)
class Evaluation:
    """A successfully evaluated expression."""

    kind: OperationKind
    original_expression: str
    processed_expression: str
    value: Value

    @property
    def display(self) -> str:
        return format_value(self.value)


def format_value(value: Value) -> str:
    """Render a result the way it is shown to users and stored in history."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _finite(result: Value, expression: str) -> Value:
    if isinstance(result, float) and not math.isfinite(result):
        raise ExpressionArithmeticError(
            "Result is not a finite number", processed_expression=expression
        )
    return result


def _apply(operator_: str, left: Value, right: Value, expression: str) -> Value:
    try:
        result = _BINARY[operator_](left, right)
    except ZeroDivisionError:
        raise ExpressionArithmeticError(
            "Division by zero", processed_expression=expression
        ) from None
    return _finite(result, expression)


def _walk(node: Node, expression: str) -> Value:
    if isinstance(node, Literal):
        return _finite(node.value, expression)
    if isinstance(node, UnaryOp):
        return _finite(_UNARY[node.operator](_walk(node.operand, expression)), expression)

    # Left-associative chains grow to the left; fold them in a loop
    chain = []
    while isinstance(node, BinaryOp):
        chain.append(node)
        node = node.left
    result = _walk(node, expression)
    for binary in reversed(chain):
        result = _apply(binary.operator, result, _walk(binary.right, expression), expression)
    return result


def evaluate(kind: OperationKind, raw_expression: str) -> Evaluation:
    """Evaluate *raw_expression* in *kind*'s grammar.

    Raises:
        ExpressionSyntaxError: unknown token, unbalanced parentheses,
            dangling operator, empty input or nesting deeper than
            ``MAX_NESTING``.
        ExpressionArithmeticError: division by zero or a non-finite result.
    """
    kind = OperationKind(kind)
    processed = process_expression(kind, raw_expression or "")
    tree = parse(kind, processed)
    value = _walk(tree, processed)
    return Evaluation(
        kind=kind,
        original_expression=raw_expression,
        processed_expression=processed,
        value=value,
    )

