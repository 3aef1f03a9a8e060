"""
Token kinds for the PLC scanner and parser.

Shared between lexer and parser to avoid circular dependencies. Tokens
themselves are plain `lark.Token` objects whose `type` is a `TT` member name.
"""

from enum import Enum, auto
from typing import FrozenSet


class TT(Enum):
    """Token kinds"""

    KEYWORD = auto()
    IDENTIFIER = auto()
    INTEGER = auto()
    DECIMAL = auto()
    CHARACTER = auto()
    STRING = auto()
    OPERATOR = auto()


KEYWORDS: FrozenSet[str] = frozenset({
    'LET',
    'DEF',
    'DO',
    'END',
    'IF',
    'ELSE',
    'FOR',
    'IN',
    'WHILE',
    'RETURN',
    'NIL',
    'TRUE',
    'FALSE',
    'AND',
    'OR',
})

# Two-character operators; anything else is a single character.
MULTI_CHAR_OPERATORS = ('<=', '>=', '==', '!=')

# Keywords that can close an operand (a sign after them is an operator).
OPERAND_KEYWORDS: FrozenSet[str] = frozenset({'NIL', 'TRUE', 'FALSE'})

ESCAPES = {
    'b': '\b',
    'n': '\n',
    'r': '\r',
    't': '\t',
    "'": "'",
    '"': '"',
    '\\': '\\',
}
