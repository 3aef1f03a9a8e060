from __future__ import annotations

from typing import Callable, Optional

from ..tree import Node, Tree
from ..types import COMPLETED, ErrorKind, Outcome, PlcNil, PlcRuntimeError, PlcValue, Scope

EvalFunc = Callable[[Tree, Scope], PlcValue]

def define_new_variable(name: str, value: PlcValue, scope: Scope, node: Optional[Node]=None) -> PlcValue:
    """Bind `name` in `scope` itself; shadowing outer scopes is allowed."""
    if scope.declares(name):
        raise PlcRuntimeError(ErrorKind.REDEFINITION, f"'{name}' is already defined in this scope", node)

    scope.define_variable(name, value)
    return value

def eval_initializer(value_node: Optional[Tree], scope: Scope, eval_func: EvalFunc) -> PlcValue:
    return eval_func(value_node, scope) if value_node is not None else PlcNil()

def exec_declaration(node: Tree, scope: Scope, eval_func: EvalFunc) -> Outcome:
    name, _, value_node = node.children
    define_new_variable(str(name), eval_initializer(value_node, scope, eval_func), scope, node)
    return COMPLETED
