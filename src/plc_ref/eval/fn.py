from __future__ import annotations

from typing import List

from ..tree import Tree
from ..types import ErrorKind, PlcFunction, PlcNil, PlcRuntimeError, PlcValue, Returned, Scope, child_scope
from .blocks import ExecFunc, execute_block

def extract_param_names(params_node: Tree) -> List[str]:
    names = [str(p.children[0]) for p in params_node.children]

    if len(set(names)) != len(names):
        raise PlcRuntimeError(ErrorKind.REDEFINITION, f"Duplicate parameter names in ({', '.join(names)})", params_node)

    return names

def eval_method_def(node: Tree, scope: Scope, exec_func: ExecFunc) -> PlcFunction:
    """Define a method as a closure over `scope`, keyed by name and arity."""
    name, params_node, _, body = node.children
    params = extract_param_names(params_node)

    if (str(name), len(params)) in scope.functions:
        raise PlcRuntimeError(ErrorKind.REDEFINITION, f"Method {name}/{len(params)} is already defined", node)

    def invoke(args: List[PlcValue]) -> PlcValue:
        return call_method_body(params, body, scope, args, exec_func)

    fn = PlcFunction(str(name), len(params), invoke)
    scope.define_function(fn.name, fn.arity, fn)
    return fn

def call_method_body(params: List[str], body: Tree, closure: Scope, args: List[PlcValue], exec_func: ExecFunc) -> PlcValue:
    """Run a method body; a RETURN becomes the result, falling off the end gives nil."""
    with child_scope(closure, 'method') as frame:
        for param, arg in zip(params, args):
            frame.define_variable(param, arg)

        outcome = execute_block(body.children, frame, exec_func)

    match outcome:
        case Returned(value=value):
            return value
        case _:
            return PlcNil()
