"""Keyword vocabularies for the two expression grammars.

Users type operators as words (``3 SUMA 4``, ``true AND NOT false``). Before
parsing, each recognised keyword is replaced by its symbolic operator; the
result is the *processed expression* that the parser actually reads.
"""

import enum
import re
from typing import Dict, Pattern


class OperationKind(str, enum.Enum):
    """Which grammar an expression is written in."""

    MATH = "math"
    BOOLEAN = "boolean"


ARITHMETIC_KEYWORDS: Dict[str, str] = {
    "SUMA": "+",
    "RESTA": "-",
    "MULTIPLICA": "*",
    "DIVIDE": "/",
}

BOOLEAN_KEYWORDS: Dict[str, str] = {
    "TRUE": "true",
    "FALSE": "false",
    "AND": "&&",
    "OR": "||",
    "NOT": "!",
}

KEYWORDS: Dict[OperationKind, Dict[str, str]] = {
    OperationKind.MATH: ARITHMETIC_KEYWORDS,
    OperationKind.BOOLEAN: BOOLEAN_KEYWORDS,
}


def _keyword_pattern(keywords: Dict[str, str], whole_words: bool) -> Pattern[str]:
    alternatives = "|".join(sorted(keywords, key=len, reverse=True))
    if whole_words:
        return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)
    return re.compile(rf"(?:{alternatives})", re.IGNORECASE)


# Arithmetic keywords may touch their operands ("3SUMA4"); no number token
# contains letters. Boolean keywords are whole words so "ANDROID" stays a word.
_PATTERNS: Dict[OperationKind, Pattern[str]] = {
    OperationKind.MATH: _keyword_pattern(ARITHMETIC_KEYWORDS, whole_words=False),
    OperationKind.BOOLEAN: _keyword_pattern(BOOLEAN_KEYWORDS, whole_words=True),
}


def process_expression(kind: OperationKind, raw_expression: str) -> str:
    """Replace the keywords of *kind*'s grammar with their symbols."""
    kind = OperationKind(kind)
    keywords = KEYWORDS[kind]
    processed = _PATTERNS[kind].sub(
        lambda match: keywords[match.group(0).upper()], raw_expression
    )
    return processed.strip()
