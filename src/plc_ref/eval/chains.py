from __future__ import annotations

from typing import Callable, List

from lark import Token

from ..tree import Node, Tree
from ..types import (
    ErrorKind,
    PlcFunction,
    PlcObject,
    PlcRuntimeError,
    PlcValue,
    Scope,
    is_plc_value,
)
from ..utils import value_type_name
from .mutation import get_field_value

EvalFunc = Callable[[Tree, Scope], PlcValue]

def eval_access(node: Tree, scope: Scope, eval_func: EvalFunc) -> PlcValue:
    receiver, name = node.children

    if receiver is None:
        value = scope.lookup_variable(str(name))

        if value is None:
            raise PlcRuntimeError(ErrorKind.UNDEFINED_VARIABLE, f"Variable '{name}' is not defined", node)
        return value

    # receiver evaluated exactly once
    return get_field_value(eval_func(receiver, scope), name, node)

def eval_function(node: Tree, scope: Scope, eval_func: EvalFunc) -> PlcValue:
    receiver, name, args_node = node.children
    arity = len(args_node.children)

    if receiver is None:
        fn = scope.lookup_function(str(name), arity)

        if fn is None:
            raise PlcRuntimeError(ErrorKind.UNDEFINED_FUNCTION, f"Function {name}/{arity} is not defined", node)

        return call_value(fn, eval_args_node(args_node, scope, eval_func))

    recv = eval_func(receiver, scope)
    method = resolve_method(recv, name, arity, node)
    return call_value(method, [recv, *eval_args_node(args_node, scope, eval_func)])

def eval_args_node(args_node: Tree, scope: Scope, eval_func: EvalFunc) -> List[PlcValue]:
    """Arguments, left to right."""
    return [eval_func(arg, scope) for arg in args_node.children]

def resolve_method(recv: PlcValue, name: Token, arity: int, node: Node) -> PlcFunction:
    match recv:
        case PlcObject(kind=kind) if (str(name), arity) in kind.methods:
            return kind.methods[(str(name), arity)]
        case _:
            raise PlcRuntimeError(
                ErrorKind.UNDEFINED_FUNCTION,
                f"{value_type_name(recv)} has no method {name}/{arity}",
                node,
            )

def call_value(fn: PlcFunction, args: List[PlcValue]) -> PlcValue:
    result = fn.invoke(args)

    if not is_plc_value(result):
        raise PlcRuntimeError(ErrorKind.TYPE_MISMATCH, f"{fn.name} returned a non-PLC value: {result!r}")

    return result
