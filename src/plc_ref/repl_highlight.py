"""prompt_toolkit lexer for live PLC syntax highlighting in the REPL."""

from __future__ import annotations

from typing import Callable, List

from lark import Token
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer import Lexer as PlcLexer
from .token_types import OPERAND_KEYWORDS, TT
from .types import LexError

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "constant": "ansicyan",
    "number": "ansimagenta",
    "string": "ansigreen",
    "identifier": "",
    "function": "bold ansiyellow",
    "operator": "",
    "punctuation": "",
    "type": "bold ansiblue",
}

_TT_GROUP = {
    TT.KEYWORD.name: "keyword",
    TT.IDENTIFIER.name: "identifier",
    TT.INTEGER.name: "number",
    TT.DECIMAL.name: "number",
    TT.CHARACTER.name: "string",
    TT.STRING.name: "string",
    TT.OPERATOR.name: "operator",
}

_PUNCTUATION = {'(', ')', ',', ';', '.', ':'}


def _token_group(tokens: List[Token], idx: int) -> str:
    tok = tokens[idx]

    if tok.type == TT.KEYWORD.name and tok.value in OPERAND_KEYWORDS:
        return "constant"

    if tok.type == TT.OPERATOR.name and tok.value in _PUNCTUATION:
        return "punctuation"

    if tok.type == TT.IDENTIFIER.name:
        nxt = tokens[idx + 1] if idx + 1 < len(tokens) else None
        prev = tokens[idx - 1] if idx > 0 else None

        if nxt is not None and nxt.value == '(':
            return "function"
        # name after ':' in an annotation
        if prev is not None and prev.value == ':':
            return "type"

    return _TT_GROUP.get(tok.type, "")


def _highlight_line(text: str) -> StyleAndTextTuples:
    """Tokenize a single line and return styled fragments."""
    if not text:
        return [("", "")]

    try:
        tokens = PlcLexer(text).tokenize()
    except LexError:
        return [("", text)]

    result: StyleAndTextTuples = []
    pos = 0

    for i, tok in enumerate(tokens):
        start = tok.start_pos
        end = start + len(tok.value)

        # Unstyled gap before token.
        if start > pos:
            result.append(("", text[pos:start]))

        style = GROUP_STYLE.get(_token_group(tokens, i), "")
        result.append((style, text[start:end]))
        pos = end

    # Trailing unstyled text.
    if pos < len(text):
        result.append(("", text[pos:]))

    return result if result else [("", text)]


class PlcHighlightLexer(Lexer):
    """prompt_toolkit Lexer that highlights PLC source using the scanner."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines

        # Pre-compute highlights for all lines.
        cache: dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines):
                    cache[lineno] = _highlight_line(lines[lineno])
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
