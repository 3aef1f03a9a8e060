from __future__ import annotations

from typing import Callable, List

from ..tree import Tree
from ..types import COMPLETED, Outcome, Returned, Scope, child_scope

ExecFunc = Callable[[Tree, Scope], Outcome]

def execute_block(statements: List[Tree], scope: Scope, exec_func: ExecFunc) -> Outcome:
    """Run statements in `scope`, stopping at the first RETURN."""
    for stmt in statements:
        outcome = exec_func(stmt, scope)

        if isinstance(outcome, Returned):
            return outcome

    return COMPLETED

def execute_scoped(statements: List[Tree], scope: Scope, label: str, exec_func: ExecFunc) -> Outcome:
    """Run statements in a fresh child scope released on every exit path."""
    with child_scope(scope, label) as inner:
        return execute_block(statements, inner, exec_func)
