from __future__ import annotations

from typing import Callable

from ..tree import Tree
from ..types import COMPLETED, Outcome, PlcValue, Returned, Scope

EvalFunc = Callable[[Tree, Scope], PlcValue]

def exec_expr_stmt(node: Tree, scope: Scope, eval_func: EvalFunc) -> Outcome:
    eval_func(node.children[0], scope)
    return COMPLETED

def exec_return_stmt(node: Tree, scope: Scope, eval_func: EvalFunc) -> Outcome:
    return Returned(eval_func(node.children[0], scope))
