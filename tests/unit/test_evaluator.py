"""Unit tests for keyword processing, parsing and evaluation."""

import pytest

from gated_calc.evaluation import (
    Evaluation,
    OperationKind,
    evaluate,
    format_value,
    parse,
    process_expression,
    tokenize,
)
from gated_calc.evaluation.parser import MAX_NESTING
from gated_calc.exceptions import (
    ExpressionArithmeticError,
    ExpressionError,
    ExpressionSyntaxError,
)


class TestProcessExpression:
    def test_arithmetic_keywords_become_symbols(self):
        assert process_expression(OperationKind.MATH, "3 SUMA 4 MULTIPLICA 2") == "3 + 4 * 2"
        assert process_expression(OperationKind.MATH, "9 RESTA 3 DIVIDE 1") == "9 - 3 / 1"

    def test_boolean_keywords_become_symbols(self):
        assert (
            process_expression(OperationKind.BOOLEAN, "true OR false AND true")
            == "true || false && true"
        )
        assert process_expression(OperationKind.BOOLEAN, "NOT false") == "! false"

    def test_keywords_are_case_insensitive(self):
        assert process_expression(OperationKind.MATH, "3 suma 4 Multiplica 2") == "3 + 4 * 2"
        assert process_expression(OperationKind.BOOLEAN, "TRUE and False") == "true && false"

    def test_arithmetic_keywords_may_touch_operands(self):
        assert process_expression(OperationKind.MATH, "3SUMA4") == "3+4"
        assert process_expression(OperationKind.MATH, "2multiplica(3suma1)") == "2*(3+1)"
        assert process_expression(OperationKind.MATH, "3 SUMAR 4") == "3 +R 4"

    def test_boolean_keywords_are_whole_words(self):
        assert process_expression(OperationKind.BOOLEAN, "ANDROID") == "ANDROID"
        assert process_expression(OperationKind.BOOLEAN, "trueORfalse") == "trueORfalse"

    def test_keywords_next_to_parentheses(self):
        assert process_expression(OperationKind.BOOLEAN, "NOT(true)") == "!(true)"

    def test_surrounding_whitespace_is_stripped(self):
        assert process_expression(OperationKind.MATH, "   1 SUMA 1  ") == "1 + 1"

    def test_other_grammar_keywords_are_left_alone(self):
        assert process_expression(OperationKind.MATH, "true AND false") == "true AND false"
        assert process_expression(OperationKind.BOOLEAN, "1 SUMA 2") == "1 SUMA 2"


class TestTokenize:
    def test_positions_are_recorded(self):
        tokens = tokenize(OperationKind.MATH, "12 + 3.5")
        assert [(t.value, t.position) for t in tokens] == [("12", 0), ("+", 3), ("3.5", 5)]

    def test_unknown_token_reports_position(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            tokenize(OperationKind.MATH, "3 + x")
        assert exc_info.value.position == 4
        assert "'x'" in str(exc_info.value)

    def test_identifiers_are_reported_whole(self):
        with pytest.raises(ExpressionSyntaxError, match="'SUMAR'"):
            tokenize(OperationKind.MATH, "3 SUMAR 4")


class TestArithmetic:
    def test_precedence(self):
        evaluation = evaluate(OperationKind.MATH, "3 SUMA 4 MULTIPLICA 2")
        assert evaluation.processed_expression == "3 + 4 * 2"
        assert evaluation.value == 11
        assert evaluation.display == "11"

    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("10 RESTA 4 RESTA 3", "3"),
            ("8 DIVIDE 4 DIVIDE 2", "1"),
            ("(3 SUMA 4) MULTIPLICA 2", "14"),
            ("7 DIVIDE 2", "3.5"),
            ("0.5 SUMA .25", "0.75"),
            ("-3 SUMA 5", "2"),
            ("2 MULTIPLICA -(1 SUMA 2)", "-6"),
            ("((2))", "2"),
            ("1 RESTA 1", "0"),
        ],
    )
    def test_results(self, expression, expected):
        assert evaluate(OperationKind.MATH, expression).display == expected

    def test_keywords_without_spaces(self):
        assert evaluate(OperationKind.MATH, "3SUMA4").display == "7"
        assert evaluate(OperationKind.MATH, "2multiplica(3suma1)").display == "8"

    def test_float_results_use_shortest_repr(self):
        assert evaluate(OperationKind.MATH, "0.1 SUMA 0.2").display == "0.30000000000000004"

    def test_division_by_zero(self):
        with pytest.raises(ExpressionArithmeticError) as exc_info:
            evaluate(OperationKind.MATH, "5 DIVIDE 0")
        assert isinstance(exc_info.value, ArithmeticError)
        assert exc_info.value.processed_expression == "5 / 0"
        assert "Division by zero" in str(exc_info.value)

    def test_division_by_computed_zero(self):
        with pytest.raises(ExpressionArithmeticError):
            evaluate(OperationKind.MATH, "5 DIVIDE (2 RESTA 2)")

    def test_non_finite_result(self):
        with pytest.raises(ExpressionArithmeticError, match="finite"):
            evaluate(OperationKind.MATH, "9" * 400)

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "   ",
            "3 SUMA",
            "MULTIPLICA 3",
            "(3 SUMA 4",
            "3 SUMA 4)",
            "3 4",
            "3 x 4",
            "3 SUMAR 4",
            "true",
            "__import__('os')",
            "1; 2",
        ],
    )
    def test_syntax_errors(self, expression):
        with pytest.raises(ExpressionSyntaxError):
            evaluate(OperationKind.MATH, expression)

    def test_empty_expression_message(self):
        with pytest.raises(ExpressionSyntaxError, match="empty"):
            evaluate(OperationKind.MATH, "")

    def test_syntax_error_keeps_processed_expression(self):
        with pytest.raises(ExpressionError) as exc_info:
            evaluate(OperationKind.MATH, "3 SUMA")
        assert exc_info.value.processed_expression == "3 +"


class TestBoolean:
    def test_precedence(self):
        evaluation = evaluate(OperationKind.BOOLEAN, "true OR false AND true")
        assert evaluation.processed_expression == "true || false && true"
        assert evaluation.value is True
        assert evaluation.display == "true"

    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("NOT true OR true", "true"),
            ("NOT (true OR true)", "false"),
            ("TRUE and FALSE", "false"),
            ("NOT NOT false", "false"),
            ("false OR false OR true", "true"),
            ("(true OR false) AND false", "false"),
            ("true AND NOT false", "true"),
        ],
    )
    def test_results(self, expression, expected):
        assert evaluate(OperationKind.BOOLEAN, expression).display == expected

    @pytest.mark.parametrize(
        "expression",
        ["", "true AND", "NOT", "1 AND true", "true SUMA false", "(true", "true false", "yes"],
    )
    def test_syntax_errors(self, expression):
        with pytest.raises(ExpressionSyntaxError):
            evaluate(OperationKind.BOOLEAN, expression)


def test_evaluation_is_deterministic():
    first = evaluate(OperationKind.MATH, "(1 SUMA 2) DIVIDE 4")
    second = evaluate(OperationKind.MATH, "(1 SUMA 2) DIVIDE 4")
    assert first == second
    assert isinstance(first, Evaluation)
    assert first.original_expression == "(1 SUMA 2) DIVIDE 4"


def test_parse_accepts_string_kind():
    assert parse("boolean", "true && false") == parse(OperationKind.BOOLEAN, "true && false")


@pytest.mark.parametrize(
    "value, expected",
    [(True, "true"), (False, "false"), (11.0, "11"), (-0.0, "0"), (2.5, "2.5")],
)
def test_format_value(value, expected):
    assert format_value(value) == expected


class TestNesting:
    def test_nesting_up_to_the_limit(self):
        expression = "(" * MAX_NESTING + "1" + ")" * MAX_NESTING
        assert evaluate(OperationKind.MATH, expression).display == "1"

    def test_parentheses_beyond_the_limit(self):
        expression = "(" * (MAX_NESTING + 1) + "1" + ")" * (MAX_NESTING + 1)
        with pytest.raises(ExpressionSyntaxError, match="nested too deeply") as exc_info:
            evaluate(OperationKind.MATH, expression)
        assert exc_info.value.position == MAX_NESTING

    @pytest.mark.parametrize(
        "kind, expression",
        [
            (OperationKind.MATH, "(" * 2000 + "1" + ")" * 2000),
            (OperationKind.MATH, "RESTA " * 3000 + "1"),
            (OperationKind.BOOLEAN, "NOT " * 3000 + "true"),
            (OperationKind.BOOLEAN, "(" * 2000 + "true" + ")" * 2000),
        ],
    )
    def test_deep_nesting_is_a_syntax_error(self, kind, expression):
        with pytest.raises(ExpressionSyntaxError, match="nested too deeply"):
            evaluate(kind, expression)

    def test_long_flat_chains_evaluate(self):
        assert evaluate(OperationKind.MATH, "1 SUMA " * 5000 + "1").display == "5001"
        assert evaluate(OperationKind.MATH, "1 RESTA " * 5000 + "1").display == "-4999"
        assert evaluate(OperationKind.BOOLEAN, "true AND " * 5000 + "true").display == "true"
        assert evaluate(OperationKind.BOOLEAN, "false OR " * 5000 + "true").display == "true"
