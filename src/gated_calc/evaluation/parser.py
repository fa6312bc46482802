"""Tokenizer and recursive-descent parser for processed expressions.

Both grammars share one parser driven by a small per-grammar table:

    arithmetic:  expr := term (("+" | "-") term)*
                 term := unary (("*" | "/") unary)*
                 unary := ("+" | "-") unary | NUMBER | "(" expr ")"

    boolean:     expr := and ("||" and)*
                 and  := unary ("&&" unary)*
                 unary := "!" unary | "true" | "false" | "(" expr ")"

Binary operators are left-associative. The parser builds a small AST that
``evaluator`` walks; nothing here executes host-language code.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Pattern, Tuple, Union

from ..exceptions import ExpressionSyntaxError
from .grammar import OperationKind

NUMBER = "NUMBER"
LITERAL = "LITERAL"
OPERATOR = "OPERATOR"
LPAREN = "LPAREN"
RPAREN = "RPAREN"


class Token(NamedTuple):
    type: str
    value: str
    position: int


@dataclass(frozen=True)
class GrammarTable:
    """Vocabulary and precedence of one grammar."""

    token_pattern: Pattern[str]
    atom_type: str
    unary_operators: frozenset
    # Lowest precedence first
    binary_levels: Tuple[frozenset, ...]


_ARITHMETIC = GrammarTable(
    token_pattern=re.compile(
        r"\s*(?:(?P<NUMBER>\d+(?:\.\d*)?|\.\d+)"
        r"|(?P<OPERATOR>[-+*/])"
        r"|(?P<LPAREN>\()"
        r"|(?P<RPAREN>\)))"
    ),
    atom_type=NUMBER,
    unary_operators=frozenset({"+", "-"}),
    binary_levels=(frozenset({"+", "-"}), frozenset({"*", "/"})),
)

_BOOLEAN = GrammarTable(
    token_pattern=re.compile(
        r"\s*(?:(?P<LITERAL>true\b|false\b)"
        r"|(?P<OPERATOR>&&|\|\||!)"
        r"|(?P<LPAREN>\()"
        r"|(?P<RPAREN>\)))"
    ),
    atom_type=LITERAL,
    unary_operators=frozenset({"!"}),
    binary_levels=(frozenset({"||"}), frozenset({"&&"})),
)

GRAMMARS: Dict[OperationKind, GrammarTable] = {
    OperationKind.MATH: _ARITHMETIC,
    OperationKind.BOOLEAN: _BOOLEAN,
}


# --- AST ---

@dataclass(frozen=True)
class Literal:
    value: Union[float, bool]


@dataclass(frozen=True)
class UnaryOp:
    operator: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    operator: str
    left: "Node"
    right: "Node"


Node = Union[Literal, UnaryOp, BinaryOp]

_BAD_TOKEN = re.compile(r"[A-Za-z_]\w*|\S")

# Prefix operators plus open parentheses allowed on the path to any operand
MAX_NESTING = 100


def tokenize(kind: OperationKind, expression: str) -> List[Token]:
    """Split a processed expression into tokens of *kind*'s vocabulary."""
    table = GRAMMARS[OperationKind(kind)]
    tokens: List[Token] = []
    pos = 0
    end = len(expression.rstrip())
    while pos < end:
        match = table.token_pattern.match(expression, pos)
        if match is None:
            start = pos + len(expression[pos:]) - len(expression[pos:].lstrip())
            bad = _BAD_TOKEN.match(expression, start).group(0)
            raise ExpressionSyntaxError(
                f"Unexpected token '{bad}' at position {start}",
                processed_expression=expression,
                position=start,
            )
        token_type = match.lastgroup
        tokens.append(Token(token_type, match.group(token_type), match.start(token_type)))
        pos = match.end()
    return tokens


class Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, kind: OperationKind, tokens: List[Token], expression: str = ""):
        self._table = GRAMMARS[OperationKind(kind)]
        self._tokens = tokens
        self._expression = expression
        self._index = 0
        self._depth = 0

    def parse(self) -> Node:
        if not self._tokens:
            raise self._error("Expression is empty", None)
        node = self._binary(0)
        token = self._peek()
        if token is not None:
            if token.type == RPAREN:
                raise self._error(f"Unmatched ')' at position {token.position}", token)
            raise self._error(
                f"Unexpected token '{token.value}' at position {token.position}", token
            )
        return node

    def _peek(self) -> Optional[Token]:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _error(self, message: str, token: Optional[Token]) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(
            message,
            processed_expression=self._expression,
            position=token.position if token else None,
        )

    def _enter(self, token: Token) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise self._error(
                f"Expression is nested too deeply (more than {MAX_NESTING} levels)", token
            )

    def _binary(self, level: int) -> Node:
        if level == len(self._table.binary_levels):
            return self._unary()
        operators = self._table.binary_levels[level]
        left = self._binary(level + 1)
        while True:
            token = self._peek()
            if token is None or token.type != OPERATOR or token.value not in operators:
                return left
            self._advance()
            right = self._binary(level + 1)
            left = BinaryOp(token.value, left, right)

    def _unary(self) -> Node:
        token = self._peek()
        if token is None:
            raise self._error("Expression ends with a dangling operator", None)
        if token.type == OPERATOR and token.value in self._table.unary_operators:
            self._advance()
            self._enter(token)
            node = UnaryOp(token.value, self._unary())
            self._depth -= 1
            return node
        return self._primary()

    def _primary(self) -> Node:
        token = self._advance()
        if token.type == self._table.atom_type:
            if token.type == NUMBER:
                return Literal(float(token.value))
            return Literal(token.value == "true")
        if token.type == LPAREN:
            self._enter(token)
            node = self._binary(0)
            closing = self._peek()
            if closing is None or closing.type != RPAREN:
                raise self._error(f"Unmatched '(' at position {token.position}", token)
            self._advance()
            self._depth -= 1
            return node
        raise self._error(
            f"Unexpected token '{token.value}' at position {token.position}", token
        )


def parse(kind: OperationKind, expression: str) -> Node:
    """Tokenize and parse a processed expression into an AST."""
    return Parser(kind, tokenize(kind, expression), expression).parse()
