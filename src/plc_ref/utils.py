from __future__ import annotations

import logging
import os as _os
from typing import Optional

from .types import (
    PlcBool,
    PlcCharacter,
    PlcDecimal,
    PlcInteger,
    PlcIterable,
    PlcNil,
    PlcObject,
    PlcString,
    PlcValue,
)

DEBUG_PY_TRACE_ENV = "PLC_DEBUG_PY_TRACE"
LOG_LEVEL_ENV = "PLC_LOG_LEVEL"


def debug_py_trace_enabled() -> bool:
    """True when Python tracebacks should accompany reported PLC errors."""
    return _os.environ.get(DEBUG_PY_TRACE_ENV, "") not in ("", "0")


def log_level_from_env(default: str = "WARNING") -> int:
    """Logging level named by PLC_LOG_LEVEL, or `default` if unset/unknown."""
    name = _os.environ.get(LOG_LEVEL_ENV) or default
    level = logging.getLevelName(name.upper())

    if isinstance(level, int):
        return level

    return logging.getLevelName(default.upper())


def plc_equals(lhs: PlcValue, rhs: PlcValue) -> bool:
    match (lhs, rhs):
        case (PlcNil(), PlcNil()):
            return True
        case (PlcBool(value=a), PlcBool(value=b)):
            return a == b
        case (PlcInteger(value=a), PlcInteger(value=b)):
            return a == b
        case (PlcDecimal(), PlcDecimal()):
            return lhs == rhs
        case (PlcCharacter(value=a), PlcCharacter(value=b)):
            return a == b
        case (PlcString(value=a), PlcString(value=b)):
            return a == b
        case (PlcIterable(items=items_a), PlcIterable(items=items_b)):
            return len(items_a) == len(items_b) and all(
                plc_equals(a, b) for a, b in zip(items_a, items_b)
            )
        case (PlcObject(kind=kind_a, fields=fields_a), PlcObject(kind=kind_b, fields=fields_b)):
            return kind_a.name == kind_b.name and fields_a.keys() == fields_b.keys() and all(
                plc_equals(fields_a[k], fields_b[k]) for k in fields_a
            )
        case _:
            return False


def stringify(value: Optional[PlcValue]) -> str:
    """Text `print` writes for a value."""
    if isinstance(value, (PlcString, PlcCharacter)):
        return value.value

    if isinstance(value, (PlcInteger, PlcDecimal)):
        return str(value.value)

    if isinstance(value, PlcBool):
        return "TRUE" if value.value else "FALSE"

    if isinstance(value, PlcNil) or value is None:
        return "NIL"

    if isinstance(value, PlcIterable):
        return "[" + ", ".join(stringify(item) for item in value.items) + "]"

    if isinstance(value, PlcObject):
        pairs = ", ".join(f"{k}: {stringify(v)}" for k, v in value.fields.items())
        return f"{value.kind.name} {{ {pairs} }}"

    return str(value)


def value_type_name(value: PlcValue) -> str:
    """Language-level type name of a runtime value, for error messages."""
    match value:
        case PlcNil():
            return "Nil"
        case PlcBool():
            return "Boolean"
        case PlcInteger():
            return "Integer"
        case PlcDecimal():
            return "Decimal"
        case PlcCharacter():
            return "Character"
        case PlcString():
            return "String"
        case PlcIterable():
            return "IntegerIterable"
        case PlcObject(kind=kind):
            return kind.name
        case _:
            return type(value).__name__
