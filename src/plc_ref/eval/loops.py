from __future__ import annotations

from typing import Callable

from ..tree import Tree
from ..types import COMPLETED, Outcome, PlcValue, Returned, Scope, child_scope
from .blocks import ExecFunc, execute_block, execute_scoped
from .helpers import require_boolean, require_iterable

EvalFunc = Callable[[Tree, Scope], PlcValue]

def exec_if_stmt(node: Tree, scope: Scope, eval_func: EvalFunc, exec_func: ExecFunc) -> Outcome:
    condition, then, otherwise = node.children

    if require_boolean(eval_func(condition, scope), condition):
        return execute_scoped(then.children, scope, 'then', exec_func)

    return execute_scoped(otherwise.children, scope, 'else', exec_func)

def exec_for_stmt(node: Tree, scope: Scope, eval_func: EvalFunc, exec_func: ExecFunc) -> Outcome:
    name, iterable, body = node.children
    # the iterable is evaluated once, up front
    items = require_iterable(eval_func(iterable, scope), iterable)

    for item in items:
        with child_scope(scope, 'for') as inner:
            inner.define_variable(str(name), item)
            outcome = execute_block(body.children, inner, exec_func)

        if isinstance(outcome, Returned):
            return outcome

    return COMPLETED

def exec_while_stmt(node: Tree, scope: Scope, eval_func: EvalFunc, exec_func: ExecFunc) -> Outcome:
    condition, body = node.children

    while require_boolean(eval_func(condition, scope), condition):
        outcome = execute_scoped(body.children, scope, 'while', exec_func)

        if isinstance(outcome, Returned):
            return outcome

    return COMPLETED
