from __future__ import annotations

from typing import Callable

from lark import Token

from ..tree import Node, Tree, tree_label
from ..types import COMPLETED, ErrorKind, Outcome, PlcObject, PlcRuntimeError, PlcValue, Scope
from ..utils import value_type_name

EvalFunc = Callable[[Tree, Scope], PlcValue]

def get_field_value(recv: PlcValue, name: Token, node: Node) -> PlcValue:
    match recv:
        case PlcObject(fields=fields) if str(name) in fields:
            return fields[str(name)]
        case _:
            raise PlcRuntimeError(ErrorKind.UNDEFINED_FIELD, f"{value_type_name(recv)} has no field '{name}'", node)

def set_field_value(recv: PlcValue, name: Token, value: PlcValue, node: Node) -> PlcValue:
    match recv:
        case PlcObject(fields=fields) if str(name) in fields:
            fields[str(name)] = value
            return value
        case _:
            raise PlcRuntimeError(ErrorKind.UNDEFINED_FIELD, f"{value_type_name(recv)} has no field '{name}'", node)

def exec_assignment(node: Tree, scope: Scope, eval_func: EvalFunc) -> Outcome:
    target, value_node = node.children

    if tree_label(target) != 'access':
        raise PlcRuntimeError(ErrorKind.INVALID_ASSIGNMENT, "Assignment target must be a variable or field", target)

    receiver, name = target.children

    if receiver is None:
        # never creates a binding
        if scope.lookup_variable(str(name)) is None:
            raise PlcRuntimeError(ErrorKind.UNDEFINED_VARIABLE, f"Variable '{name}' is not defined", target)

        scope.assign_variable(str(name), eval_func(value_node, scope))
        return COMPLETED

    recv = eval_func(receiver, scope)
    set_field_value(recv, name, eval_func(value_node, scope), target)
    return COMPLETED
