from __future__ import annotations

import logging
from typing import Callable

from ..tree import Tree, source_fields, source_methods
from ..types import ErrorKind, PlcRuntimeError, PlcValue, Scope, child_scope
from .blocks import ExecFunc
from .chains import call_value
from .fn import eval_method_def
from .let import define_new_variable, eval_initializer

log = logging.getLogger(__name__)

EvalFunc = Callable[[Tree, Scope], PlcValue]

def eval_source(node: Tree, scope: Scope, eval_func: EvalFunc, exec_func: ExecFunc) -> PlcValue:
    """Run a program: fields in order, then define methods, then call main()."""
    with child_scope(scope, 'source') as src:
        for f in source_fields(node):
            name, _, value_node = f.children
            define_new_variable(str(name), eval_initializer(value_node, src, eval_func), src, f)

        for m in source_methods(node):
            eval_method_def(m, src, exec_func)

        main = src.lookup_function('main', 0)

        if main is None:
            raise PlcRuntimeError(ErrorKind.UNDEFINED_FUNCTION, "Function main/0 is not defined", node)

        result = call_value(main, [])

    log.debug("main returned %r", result)
    return result
