from __future__ import annotations

import logging
from typing import Callable, Dict

from .tree import Node, Tree, tree_label
from .types import Outcome, PlcRuntimeError, PlcValue, Scope

from .eval.chains import eval_access, eval_function
from .eval.control import exec_expr_stmt, exec_return_stmt
from .eval.expr import eval_binary
from .eval.let import exec_declaration
from .eval.literals import eval_literal
from .eval.loops import exec_for_stmt, exec_if_stmt, exec_while_stmt
from .eval.mutation import exec_assignment
from .eval.program import eval_source

log = logging.getLogger(__name__)

EvalFunc = Callable[[Tree, Scope], PlcValue]
ExecFunc = Callable[[Tree, Scope], Outcome]

def _maybe_attach_location(exc: PlcRuntimeError, node: Node) -> None:
    # the innermost node that knows its position wins
    if getattr(exc, "_augmented", False):
        return

    exc.attach(node)

    if exc.position is not None:
        exc._augmented = True  # type: ignore[attr-defined]

# ---------------- Public API ----------------

def evaluate(ast: Tree, scope: Scope) -> PlcValue:
    """Evaluate an expression, or run a `source` program and return main's result."""
    if tree_label(ast) == 'source':
        try:
            return eval_source(ast, scope, eval_node, execute)
        except PlcRuntimeError as e:
            _maybe_attach_location(e, ast)
            raise

    return eval_node(ast, scope)

def execute(stmt: Tree, scope: Scope) -> Outcome:
    """Run one statement; returns Completed or Returned(value)."""
    handler = _STATEMENT_DISPATCH.get(stmt.data)

    if handler is None:
        raise TypeError(f"Unknown statement node: {stmt.data}")

    try:
        return handler(stmt, scope)
    except PlcRuntimeError as e:
        _maybe_attach_location(e, stmt)
        raise

# ---------------- Core evaluator ----------------

def eval_node(n: Tree, scope: Scope) -> PlcValue:
    handler = _NODE_DISPATCH.get(n.data)

    if handler is None:
        raise TypeError(f"Unknown expression node: {n.data}")

    try:
        return handler(n, scope)
    except PlcRuntimeError as e:
        _maybe_attach_location(e, n)
        raise

def _eval_group(n: Tree, scope: Scope) -> PlcValue:
    return eval_node(n.children[0], scope)

_NODE_DISPATCH: Dict[str, EvalFunc] = {
    'literal': lambda n, _: eval_literal(n),
    'group': _eval_group,
    'binary': lambda n, scope: eval_binary(n, scope, eval_node),
    'access': lambda n, scope: eval_access(n, scope, eval_node),
    'function': lambda n, scope: eval_function(n, scope, eval_node),
}

_STATEMENT_DISPATCH: Dict[str, ExecFunc] = {
    'expr_stmt': lambda n, scope: exec_expr_stmt(n, scope, eval_node),
    'declaration': lambda n, scope: exec_declaration(n, scope, eval_node),
    'assignment': lambda n, scope: exec_assignment(n, scope, eval_node),
    'if_stmt': lambda n, scope: exec_if_stmt(n, scope, eval_node, execute),
    'for_stmt': lambda n, scope: exec_for_stmt(n, scope, eval_node, execute),
    'while_stmt': lambda n, scope: exec_while_stmt(n, scope, eval_node, execute),
    'return_stmt': lambda n, scope: exec_return_stmt(n, scope, eval_node),
}
