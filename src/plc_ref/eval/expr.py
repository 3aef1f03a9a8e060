from __future__ import annotations

from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, Context, Decimal
from fractions import Fraction
from typing import Callable

from ..tree import Node, Tree
from ..types import (
    ErrorKind,
    PlcBool,
    PlcDecimal,
    PlcInteger,
    PlcRuntimeError,
    PlcString,
    PlcValue,
    Scope,
)
from ..utils import plc_equals, value_type_name
from .helpers import require_boolean

EvalFunc = Callable[[Tree, Scope], PlcValue]

# wide enough that + - * never round
EXACT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)

def eval_binary(node: Tree, scope: Scope, eval_func: EvalFunc) -> PlcValue:
    op, left, right = node.children
    op = str(op)

    if op in ('AND', 'OR'):
        return eval_logical(op, left, right, scope, eval_func)

    lhs = eval_func(left, scope)
    rhs = eval_func(right, scope)

    match op:
        case '==':
            return PlcBool(plc_equals(lhs, rhs))
        case '!=':
            return PlcBool(not plc_equals(lhs, rhs))
        case '<' | '<=' | '>' | '>=':
            return PlcBool(compare(op, lhs, rhs, node))
        case '+':
            return add(lhs, rhs, node)
        case '-' | '*':
            return arith(op, lhs, rhs, node)
        case '/':
            return divide(lhs, rhs, node)
        case _:
            raise PlcRuntimeError(ErrorKind.TYPE_MISMATCH, f"Unknown operator {op}", node)

def eval_logical(op: str, left: Tree, right: Tree, scope: Scope, eval_func: EvalFunc) -> PlcBool:
    """AND/OR; the right operand only runs when the left does not decide."""
    lhs = require_boolean(eval_func(left, scope), left)

    if op == 'AND' and not lhs:
        return PlcBool(False)

    if op == 'OR' and lhs:
        return PlcBool(True)

    return PlcBool(require_boolean(eval_func(right, scope), right))

def compare(op: str, lhs: PlcValue, rhs: PlcValue, node: Node) -> bool:
    match (lhs, rhs):
        case (PlcInteger(value=a), PlcInteger(value=b)) | (PlcDecimal(value=a), PlcDecimal(value=b)):
            pass
        case _:
            raise _mismatch(op, lhs, rhs, node)

    match op:
        case '<':
            return a < b
        case '<=':
            return a <= b
        case '>':
            return a > b
        case _:
            return a >= b

def add(lhs: PlcValue, rhs: PlcValue, node: Node) -> PlcValue:
    match (lhs, rhs):
        case (PlcString(value=a), PlcString(value=b)):
            return PlcString(a + b)
        case (PlcInteger(value=a), PlcInteger(value=b)):
            return PlcInteger(a + b)
        case (PlcDecimal(value=a), PlcDecimal(value=b)):
            return PlcDecimal(EXACT.add(a, b))
        case _:
            raise _mismatch('+', lhs, rhs, node)

def arith(op: str, lhs: PlcValue, rhs: PlcValue, node: Node) -> PlcValue:
    match (lhs, rhs):
        case (PlcInteger(value=a), PlcInteger(value=b)):
            return PlcInteger(a - b if op == '-' else a * b)
        case (PlcDecimal(value=a), PlcDecimal(value=b)):
            return PlcDecimal(EXACT.subtract(a, b) if op == '-' else EXACT.multiply(a, b))
        case _:
            raise _mismatch(op, lhs, rhs, node)

def divide(lhs: PlcValue, rhs: PlcValue, node: Node) -> PlcValue:
    match (lhs, rhs):
        case (PlcInteger(value=a), PlcInteger(value=b)):
            if b == 0:
                raise PlcRuntimeError(ErrorKind.DIVISION_BY_ZERO, "Integer division by zero", node)
            return PlcInteger(truncating_div(a, b))
        case (PlcDecimal(value=a), PlcDecimal(value=b)):
            if b == 0:
                raise PlcRuntimeError(ErrorKind.DIVISION_BY_ZERO, "Decimal division by zero", node)
            return PlcDecimal(decimal_div(a, b))
        case _:
            raise _mismatch('/', lhs, rhs, node)

def truncating_div(a: int, b: int) -> int:
    """Integer quotient rounded toward zero: -7 / 2 is -3."""
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q

def decimal_div(a: Decimal, b: Decimal) -> Decimal:
    """Quotient at the dividend's scale, ties rounded to even: 1.0 / 3.0 is 0.3."""
    exp = a.as_tuple().exponent
    # Fraction.__round__ rounds half to even
    digits = round(Fraction(a) / Fraction(b) / Fraction(10) ** exp)
    return Decimal(digits).scaleb(exp, EXACT)

def _mismatch(op: str, lhs: PlcValue, rhs: PlcValue, node: Node) -> PlcRuntimeError:
    return PlcRuntimeError(
        ErrorKind.TYPE_MISMATCH,
        f"Operator {op} is not defined for {value_type_name(lhs)} and {value_type_name(rhs)}",
        node,
    )
