from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from ..tree import Node
from ..types import ErrorKind, PlcBool, PlcIterable, PlcRuntimeError, PlcValue
from ..utils import value_type_name

def require_boolean(val: PlcValue, node: Optional[Node]=None) -> bool:
    match val:
        case PlcBool(value=b):
            return b
        case _:
            raise PlcRuntimeError(ErrorKind.TYPE_MISMATCH, f"Expected Boolean, received {value_type_name(val)}", node)

def require_iterable(val: PlcValue, node: Optional[Node]=None) -> Sequence[PlcValue]:
    match val:
        case PlcIterable(items=items):
            return items
        case _:
            raise PlcRuntimeError(ErrorKind.TYPE_MISMATCH, f"Expected IntegerIterable, received {value_type_name(val)}", node)
