"""Built-in functions (print, range) registered via plc_ref.runtime."""

from __future__ import annotations

from typing import List

from .runtime import register_builtin
from .types import (
    TYPE_ANY,
    TYPE_INTEGER,
    TYPE_INTEGER_ITERABLE,
    TYPE_NIL,
    ErrorKind,
    IntegerRange,
    PlcInteger,
    PlcIterable,
    PlcNil,
    PlcRuntimeError,
    PlcValue,
)
from .utils import stringify, value_type_name

@register_builtin("print", [TYPE_ANY], TYPE_NIL)
def std_print(args: List[PlcValue]) -> PlcNil:
    print(stringify(args[0]))
    return PlcNil()

@register_builtin("range", [TYPE_INTEGER, TYPE_INTEGER], TYPE_INTEGER_ITERABLE)
def std_range(args: List[PlcValue]) -> PlcIterable:
    start, stop = args

    if not isinstance(start, PlcInteger) or not isinstance(stop, PlcInteger):
        names = ", ".join(value_type_name(a) for a in args)
        raise PlcRuntimeError(ErrorKind.TYPE_MISMATCH, f"range expects (Integer, Integer), received ({names})")

    return PlcIterable(IntegerRange(start.value, stop.value))
