from __future__ import annotations

from ..tree import Tree
from ..types import (
    PlcBool,
    PlcCharacter,
    PlcDecimal,
    PlcInteger,
    PlcNil,
    PlcRuntimeError,
    PlcString,
    PlcValue,
    ErrorKind,
)

def eval_literal(node: Tree) -> PlcValue:
    tag, value = node.children

    match tag:
        case 'NIL':
            return PlcNil()
        case 'BOOLEAN':
            return PlcBool(value)
        case 'INTEGER':
            return PlcInteger(value)
        case 'DECIMAL':
            return PlcDecimal(value)
        case 'CHARACTER':
            return PlcCharacter(value)
        case 'STRING':
            return PlcString(value)

    raise PlcRuntimeError(ErrorKind.TYPE_MISMATCH, f"Unknown literal tag {tag!r}", node)
