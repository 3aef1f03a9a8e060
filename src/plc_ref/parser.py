"""
Recursive Descent Parser for PLC

Builds the lark Tree shapes documented in `tree.py` from a token list.

Structure:
- Lexer: Token stream from source (`lexer.py`)
- Parser: recursive descent, one method per grammar rule; every binary
  precedence level is an iterative left fold
- AST: lark Trees, positions copied from the first token of each node

Fails fast: the first token the grammar cannot accept raises ParseError.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from lark import Token, Tree

from . import tree as ast
from .lexer import token_end, tokenize
from .token_types import ESCAPES, TT
from .types import ParseError

log = logging.getLogger(__name__)

# A pattern matches one token: a TT kind, an exact text, or any of a tuple.
Pattern = Union[TT, str, Tuple[Union[TT, str], ...]]

EQUALITY_OPS = ('<', '<=', '>', '>=', '==', '!=')
LOGICAL_OPS = ('AND', 'OR')
ADDITIVE_OPS = ('+', '-')
MULTIPLICATIVE_OPS = ('*', '/')

class Parser:
    """
    Recursive descent parser for PLC.

    Expression precedence (lowest to highest):
    1. logical (AND, OR)
    2. equality (<, <=, >, >=, ==, !=)
    3. additive (+, -)
    4. multiplicative (*, /)
    5. secondary (.name, .name(args))
    6. primary (literals, identifiers, calls, parens)
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    # ========================================================================
    # Token Navigation
    # ========================================================================

    @property
    def current(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self, *patterns: Pattern) -> bool:
        """Check that the next tokens match the patterns in order; never consumes"""
        for offset, pattern in enumerate(patterns):
            idx = self.pos + offset
            if idx >= len(self.tokens) or not _matches(self.tokens[idx], pattern):
                return False
        return True

    def match(self, *patterns: Pattern) -> bool:
        """Consume the matched tokens only if all patterns match"""
        if not self.peek(*patterns):
            return False

        self.pos += len(patterns)
        return True

    def advance(self) -> Token:
        """Consume current token"""
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def expect(self, pattern: Pattern, expected: str) -> Token:
        """Consume token matching pattern or raise error"""
        if not self.peek(pattern):
            raise self.error(expected)
        return self.advance()

    def error(self, expected: str) -> ParseError:
        tok = self.current

        if tok is None:
            return ParseError(f"Expected {expected}, reached end of input", token_end(self.tokens), expected)

        return ParseError(f"Expected {expected}, found '{tok}'", tok.start_pos, expected)

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Tree:
        """Parse entire program: fields, then methods, then end of input"""
        start = self.current
        fields = []
        methods = []

        while self.peek('LET'):
            fields.append(self.parse_field())

        while self.peek('DEF'):
            methods.append(self.parse_method())

        if not self.at_end():
            raise self.error("'DEF'" if fields or methods else "'LET' or 'DEF'")

        log.debug("parsed %d fields and %d methods", len(fields), len(methods))
        return ast.source_node(fields, methods, at=start)

    def parse_field(self) -> Tree:
        """LET name [: Type] [= expr] ;"""
        self.expect('LET', "'LET'")
        name, type_name, value = self.parse_binding()
        return ast.field_node(name, value, type_name)

    def parse_method(self) -> Tree:
        """DEF name(params) [: Type] DO statements END"""
        self.expect('DEF', "'DEF'")
        name = self.expect(TT.IDENTIFIER, "method name")
        self.expect('(', "'('")

        params = []
        if not self.peek(')'):
            params.append(self.parse_param())
            while self.match(','):
                params.append(self.parse_param())

        self.expect(')', "')'")
        return_type = self.parse_type_annotation()
        self.expect('DO', "'DO'")
        statements = self.parse_statements('END')
        self.expect('END', "'END'")
        return ast.method_node(name, params, statements, return_type)

    def parse_param(self) -> Tuple[Token, Optional[Token]]:
        name = self.expect(TT.IDENTIFIER, "parameter name")
        return name, self.parse_type_annotation()

    def parse_type_annotation(self) -> Optional[Token]:
        if not self.match(':'):
            return None
        return self.expect(TT.IDENTIFIER, "type name")

    def parse_binding(self) -> Tuple[Token, Optional[Token], Optional[Tree]]:
        """Shared tail of fields and declarations: name [: Type] [= expr] ;"""
        name = self.expect(TT.IDENTIFIER, "identifier")
        type_name = self.parse_type_annotation()

        value = None
        if self.match('='):
            value = self.parse_expression()

        self.expect(';', "';'")
        return name, type_name, value

    # ========================================================================
    # Statements
    # ========================================================================

    def parse_statements(self, *terminators: str) -> List[Tree]:
        """Statements up to (not including) one of the terminator keywords"""
        statements = []

        while not self.peek(terminators):
            if self.at_end():
                raise self.error(" or ".join(f"'{t}'" for t in terminators))
            statements.append(self.parse_statement())

        return statements

    def parse_statement(self) -> Tree:
        """
        Parse a single statement.

        LET, IF, FOR, WHILE and RETURN start their own forms; anything else
        is an expression statement, or an assignment when '=' follows.
        """
        if self.peek('LET'):
            return self.parse_declaration()
        if self.peek('IF'):
            return self.parse_if_stmt()
        if self.peek('FOR'):
            return self.parse_for_stmt()
        if self.peek('WHILE'):
            return self.parse_while_stmt()
        if self.peek('RETURN'):
            return self.parse_return_stmt()

        expr = self.parse_expression()

        if self.match('='):
            value = self.parse_expression()
            self.expect(';', "';'")
            return ast.assignment(expr, value)

        self.expect(';', "';'")
        return ast.expr_stmt(expr)

    def parse_declaration(self) -> Tree:
        let = self.expect('LET', "'LET'")
        name, type_name, value = self.parse_binding()
        return ast.declaration(name, value, type_name, at=let)

    def parse_if_stmt(self) -> Tree:
        """IF cond DO stmts [ELSE stmts] END"""
        head = self.expect('IF', "'IF'")
        condition = self.parse_expression()
        self.expect('DO', "'DO'")
        then = self.parse_statements('ELSE', 'END')

        otherwise: List[Tree] = []
        if self.match('ELSE'):
            otherwise = self.parse_statements('END')

        self.expect('END', "'END'")
        return ast.if_stmt(condition, then, otherwise, at=head)

    def parse_for_stmt(self) -> Tree:
        """FOR name IN iterable DO stmts END"""
        head = self.expect('FOR', "'FOR'")
        name = self.expect(TT.IDENTIFIER, "loop variable")
        self.expect('IN', "'IN'")
        iterable = self.parse_expression()
        self.expect('DO', "'DO'")
        # empty bodies are rejected by the analyzer, not here
        body = self.parse_statements('END')
        self.expect('END', "'END'")
        return ast.for_stmt(name, iterable, body, at=head)

    def parse_while_stmt(self) -> Tree:
        """WHILE cond DO stmts END"""
        head = self.expect('WHILE', "'WHILE'")
        condition = self.parse_expression()
        self.expect('DO', "'DO'")
        body = self.parse_statements('END')
        self.expect('END', "'END'")
        return ast.while_stmt(condition, body, at=head)

    def parse_return_stmt(self) -> Tree:
        head = self.expect('RETURN', "'RETURN'")
        value = self.parse_expression()
        self.expect(';', "';'")
        return ast.return_stmt(value, at=head)

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_expression(self) -> Tree:
        return self.parse_logical_expr()

    def parse_logical_expr(self) -> Tree:
        """Parse logical: expr (AND|OR) expr"""
        return self.fold_binary(LOGICAL_OPS, self.parse_equality_expr)

    def parse_equality_expr(self) -> Tree:
        """Parse comparison: expr (<|<=|>|>=|==|!=) expr"""
        return self.fold_binary(EQUALITY_OPS, self.parse_additive_expr)

    def parse_additive_expr(self) -> Tree:
        """Parse addition/subtraction: expr (+|-) expr"""
        return self.fold_binary(ADDITIVE_OPS, self.parse_multiplicative_expr)

    def parse_multiplicative_expr(self) -> Tree:
        """Parse multiplication/division: expr (*|/) expr"""
        return self.fold_binary(MULTIPLICATIVE_OPS, self.parse_secondary_expr)

    def fold_binary(self, operators: Tuple[str, ...], operand) -> Tree:
        """One precedence level: operand (op operand)*, folded to the left"""
        left = operand()

        while self.peek(operators):
            op = self.advance()
            right = operand()
            left = ast.binary(op, left, right)

        return left

    def parse_secondary_expr(self) -> Tree:
        """Parse receiver chains: primary (.name | .name(args))*"""
        expr = self.parse_primary_expr()

        while self.match('.'):
            name = self.expect(TT.IDENTIFIER, "field or method name after '.'")

            if self.match('('):
                expr = ast.call(name, self.parse_arguments(), receiver=expr)
            else:
                expr = ast.access(name, receiver=expr)

        return expr

    def parse_primary_expr(self) -> Tree:
        """Parse literals, groups, names and free calls"""
        tok = self.current

        if tok is None:
            raise self.error("expression")

        if self.match('NIL'):
            return ast.literal(None, at=tok)
        if self.match('TRUE'):
            return ast.literal(True, at=tok)
        if self.match('FALSE'):
            return ast.literal(False, at=tok)

        if self.match(TT.INTEGER):
            return ast.literal(int(tok.value), at=tok)
        if self.match(TT.DECIMAL):
            return ast.literal(Decimal(tok.value), at=tok)

        if self.match(TT.CHARACTER):
            value = self.unescape(tok)
            if len(value) != 1:
                raise ParseError(f"Character literal {tok} must hold exactly one character", tok.start_pos, "character")
            return ast.char_literal(value, at=tok)

        if self.match(TT.STRING):
            return ast.literal(self.unescape(tok), at=tok)

        if self.match('('):
            inner = self.parse_expression()
            self.expect(')', "')'")
            return ast.group(inner, at=tok)

        if self.match(TT.IDENTIFIER):
            if self.match('('):
                return ast.call(tok, self.parse_arguments())
            return ast.access(tok)

        raise self.error("expression")

    def parse_arguments(self) -> List[Tree]:
        """Arguments after an opening '(' through the closing ')'"""
        args: List[Tree] = []

        if self.match(')'):
            return args

        args.append(self.parse_expression())
        while self.match(','):
            args.append(self.parse_expression())

        self.expect(')', "')'")
        return args

    def unescape(self, tok: Token) -> str:
        """Strip the quotes and decode escape sequences"""
        body = tok.value[1:-1]
        out = []
        i = 0

        while i < len(body):
            ch = body[i]

            if ch == '\\':
                code = body[i + 1] if i + 1 < len(body) else ''
                if code not in ESCAPES:
                    raise ParseError(f"Invalid escape sequence '\\{code}'", tok.start_pos + 1 + i, "escape sequence")
                out.append(ESCAPES[code])
                i += 2
                continue

            out.append(ch)
            i += 1

        return ''.join(out)


def _matches(tok: Token, pattern: Pattern) -> bool:
    if isinstance(pattern, tuple):
        return any(_matches(tok, option) for option in pattern)

    if isinstance(pattern, TT):
        return tok.type == pattern.name

    return tok.value == pattern and tok.type in (TT.KEYWORD.name, TT.OPERATOR.name)

# ============================================================================
# Entry Points
# ============================================================================

def parse(tokens: List[Token]) -> Tree:
    """Parse a token list to a `source` tree."""
    return Parser(tokens).parse()


def parse_source(source: str) -> Tree:
    """
    Parse PLC source code to AST.

    Returns the `source` tree consumed by the analyzer and evaluator.
    """
    return parse(tokenize(source))


def parse_expression(source: str) -> Tree:
    """Parse text that must hold exactly one expression."""
    parser = Parser(tokenize(source))
    expr = parser.parse_expression()

    if not parser.at_end():
        raise parser.error("end of input")
    return expr


def parse_statement(source: str) -> Tree:
    """Parse text that must hold exactly one statement."""
    parser = Parser(tokenize(source))
    stmt = parser.parse_statement()

    if not parser.at_end():
        raise parser.error("end of input")
    return stmt
