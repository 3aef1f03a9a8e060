"""
Lexer for PLC source text.

Tokenizes source into a flat list of `lark.Token`s (kind + literal text +
offset). Whitespace separates tokens and is dropped; there are no comments.

Signed numeric literals: a '+'/'-' directly followed by a digit belongs to
the literal only where an operand may start, so `1-2` is a subtraction and
`-2` on its own is a literal.
"""

import logging
from typing import List, Optional

from lark import Token

from .token_types import ESCAPES, KEYWORDS, MULTI_CHAR_OPERATORS, OPERAND_KEYWORDS, TT
from .types import LexError

log = logging.getLogger(__name__)

_WHITESPACE = (' ', '\t', '\n', '\r', '\b')

# ASCII only: other letters and digits scan as single-character operators
def _is_digit(ch: str) -> bool:
    return '0' <= ch <= '9'

def _is_ident_start(ch: str) -> bool:
    return ('a' <= ch <= 'z') or ('A' <= ch <= 'Z') or ch == '_'

def _is_ident_char(ch: str) -> bool:
    return _is_ident_start(ch) or _is_digit(ch)

class Lexer:
    """Single-pass scanner with line/column tracking."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

        # start of the token being scanned
        self.start = 0
        self.start_line = 1
        self.start_column = 1

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Token]:
        """Tokenize entire source, return token list"""
        while self.pos < len(self.source):
            self.scan_token()

        log.debug("scanned %d tokens", len(self.tokens))
        return self.tokens

    def scan_token(self) -> None:
        """Scan next token"""
        if self.skip_whitespace():
            return

        self.mark()
        ch = self.peek()

        if _is_ident_start(ch):
            self.scan_identifier()
            return

        if _is_digit(ch) or (ch in '+-' and _is_digit(self.peek(1)) and self.sign_allowed()):
            self.scan_number()
            return

        if ch == "'":
            self.scan_character()
            return

        if ch == '"':
            self.scan_string()
            return

        self.scan_operator()

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_identifier(self) -> None:
        """Scan identifier or keyword"""
        value = ''

        while _is_ident_char(self.peek()):
            value += self.advance()

        self.emit(TT.KEYWORD if value in KEYWORDS else TT.IDENTIFIER, value)

    def scan_number(self) -> None:
        """Scan integer or decimal literal"""
        value = ''

        if self.peek() in '+-':
            value += self.advance()

        while _is_digit(self.peek()):
            value += self.advance()

        if self.peek() == '.' and _is_digit(self.peek(1)):
            value += self.advance()  # .
            while _is_digit(self.peek()):
                value += self.advance()
            self.emit(TT.DECIMAL, value)
            return

        self.emit(TT.INTEGER, value)

    def scan_character(self) -> None:
        """Scan character literal: 'c' or an escape"""
        value = self.advance()  # opening apostrophe

        if self.peek() in ("'", '\n', '\r', '\0'):
            raise LexError("Empty or unterminated character literal", self.start)

        value += self.scan_char_unit()

        if self.peek() != "'":
            raise LexError("Unterminated character literal", self.start)

        value += self.advance()
        self.emit(TT.CHARACTER, value)

    def scan_string(self) -> None:
        """Scan string literal on a single line"""
        value = self.advance()  # opening quote

        while self.peek() != '"':
            if self.peek() in ('\n', '\r', '\0'):
                raise LexError("Unterminated string literal", self.start)
            value += self.scan_char_unit()

        value += self.advance()  # closing quote
        self.emit(TT.STRING, value)

    def scan_char_unit(self) -> str:
        """One literal character, keeping escape sequences as written"""
        if self.peek() != '\\':
            return self.advance()

        if self.peek(1) not in ESCAPES:
            raise LexError(f"Invalid escape sequence '\\{self.peek(1)}'", self.pos)

        return self.advance(2)

    def scan_operator(self) -> None:
        """Scan two-character comparison operators or any single character"""
        for op_str in MULTI_CHAR_OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.emit(TT.OPERATOR, self.advance(len(op_str)))
                return

        self.emit(TT.OPERATOR, self.advance())

    # ========================================================================
    # Utilities
    # ========================================================================

    def sign_allowed(self) -> bool:
        """A sign starts a literal unless the previous token ends an operand"""
        if not self.tokens:
            return True

        prev = self.tokens[-1]

        if prev.type in (TT.IDENTIFIER.name, TT.INTEGER.name, TT.DECIMAL.name, TT.CHARACTER.name, TT.STRING.name):
            return False

        if prev.type == TT.KEYWORD.name:
            return prev.value not in OPERAND_KEYWORDS

        return prev.value != ')'

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume n characters and return them as a string"""
        result = ''
        for _ in range(n):
            ch = self.source[self.pos] if self.pos < len(self.source) else '\0'
            result += ch
            self.pos += 1

            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return result

    def skip_whitespace(self) -> bool:
        """Skip whitespace, return True if any skipped"""
        skipped = False
        while self.pos < len(self.source) and self.peek() in _WHITESPACE:
            self.advance()
            skipped = True
        return skipped

    def mark(self) -> None:
        self.start = self.pos
        self.start_line = self.line
        self.start_column = self.column

    def emit(self, token_type: TT, value: str) -> None:
        """Emit a token"""
        tok = Token(
            token_type.name,
            value,
            start_pos=self.start,
            line=self.start_line,
            column=self.start_column,
            end_pos=self.pos,
        )
        self.tokens.append(tok)


def tokenize(source: str) -> List[Token]:
    """Convenience function to tokenize source"""
    return Lexer(source).tokenize()


def token_end(tokens: List[Token]) -> Optional[int]:
    """Offset just past the last token, or None for an empty stream"""
    if not tokens:
        return None

    last = tokens[-1]
    end = getattr(last, 'end_pos', None)

    if end is not None:
        return end

    start = getattr(last, 'start_pos', None) or 0
    return start + len(last)
