"""Arithmetic and boolean expression evaluation.

Usage:
    from gated_calc.evaluation import OperationKind, evaluate

    evaluation = evaluate(OperationKind.MATH, "3 SUMA 4 MULTIPLICA 2")
    # evaluation.processed_expression == "3 + 4 * 2"
    # evaluation.display == "11"
"""

from .evaluator import Evaluation, evaluate, format_value
from .grammar import OperationKind, process_expression
from .parser import parse, tokenize

__all__ = [
    "Evaluation",
    "OperationKind",
    "evaluate",
    "format_value",
    "parse",
    "process_expression",
    "tokenize",
]
