from __future__ import annotations

import logging
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from lark import Tree

from .analyzer import analyze, analyze_method, analyze_statement
from .eval.fn import eval_method_def
from .evaluator import evaluate, execute
from .lexer import tokenize
from .parser import Parser, parse
from .runtime import runtime_globals, static_globals
from .types import PlcError, PlcNil, PlcRuntimeError, PlcValue, Scope, ScopeObserver
from .utils import debug_py_trace_enabled, log_level_from_env, stringify

log = logging.getLogger(__name__)

def run(src: str, analyze_first: bool=True, observer: Optional[ScopeObserver]=None) -> PlcValue:
    """Parse, check and interpret a program; return the value main() returned."""
    ast = parse(tokenize(src))

    if analyze_first:
        analyze(ast, static_globals())
    else:
        log.debug("skipping analysis; interpreting an unchecked tree")

    return evaluate(ast, runtime_globals(observer))

# ---------------- REPL sessions ----------------

@dataclass
class Session:
    """Persistent scopes for interactive input, one per pipeline stage."""
    static: Scope
    runtime: Scope
    analyze: bool = True

def new_session(analyze_first: bool=True) -> Session:
    return Session(
        Scope(static_globals(), label="session"),
        Scope(runtime_globals(), label="session"),
        analyze_first,
    )

def repl_eval(src: str, session: Session) -> Tuple[PlcValue, bool]:
    """Run one REPL input.

    `DEF` input (re)defines a method in the session. Anything else is a
    statement sequence; if it ends in an expression statement, that
    expression's value is returned with `False` so the caller echoes it.
    """
    parser = Parser(tokenize(src))

    if parser.peek('DEF'):
        methods = []
        while parser.peek('DEF'):
            methods.append(parser.parse_method())
        if not parser.at_end():
            raise parser.error("'DEF'")

        for method in methods:
            _define_session_method(method, session)
        return PlcNil(), True

    statements = [parser.parse_statement()]
    while not parser.at_end():
        statements.append(parser.parse_statement())

    saved = dict(session.static.variables)

    try:
        if session.analyze:
            for stmt in statements:
                analyze_statement(stmt, session.static, None)

        return _execute_session(statements, session)
    except PlcRuntimeError:
        # keep the static scope in step with what actually got declared
        for name in list(session.static.variables):
            if name not in session.runtime.variables:
                del session.static.variables[name]
        raise
    except PlcError:
        session.static.variables = saved
        raise

def _execute_session(statements: List[Tree], session: Session) -> Tuple[PlcValue, bool]:
    *head, last = statements

    for stmt in head:
        execute(stmt, session.runtime)

    if last.data == 'expr_stmt':
        return evaluate(last.children[0], session.runtime), False

    execute(last, session.runtime)
    return PlcNil(), True

def _define_session_method(node: Tree, session: Session) -> None:
    name, params, _, _ = node.children
    key = (str(name), len(params.children))
    # later definitions replace earlier ones
    session.static.functions.pop(key, None)
    session.runtime.functions.pop(key, None)

    if session.analyze:
        try:
            analyze_method(node, session.static)
        except PlcError:
            session.static.functions.pop(key, None)
            raise

    eval_method_def(node, session.runtime, execute)

# ---------------- CLI ----------------

def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as literal source.
    """

    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data

    candidate = Path(arg)
    if candidate.exists():
        return candidate.read_text(encoding="utf-8")

    return arg

def configure_logging(level_name: Optional[str]) -> None:
    if level_name is None:
        level = log_level_from_env()
    else:
        level = logging.getLevelName(level_name.upper())
        if not isinstance(level, int):
            raise SystemExit(f"Unknown log level: {level_name}")

    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

def report_error(exc: PlcError) -> None:
    print(f"Error: {exc}", file=sys.stderr)

    if debug_py_trace_enabled():
        print("\nPython traceback:", file=sys.stderr)
        print("".join(traceback.format_tb(exc.__traceback__)), file=sys.stderr, end="")

def main(argv: Optional[List[str]]=None) -> int:
    analyze_first = True
    dump_ast = False
    log_level = None
    arg = None
    it = iter(sys.argv[1:] if argv is None else argv)

    for token in it:
        if token == "--no-analyze":
            analyze_first = False
            continue

        if token == "--dump-ast":
            dump_ast = True
            continue

        if token.startswith("--log-level="):
            log_level = token.split("=", 1)[1]
            continue

        if token == "--log-level":
            try:
                log_level = next(it)
            except StopIteration:
                raise SystemExit("--log-level flag requires a level") from None
            continue

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    configure_logging(log_level)
    source = _load_source(arg or "-")

    try:
        ast = parse(tokenize(source))

        if analyze_first:
            analyze(ast, static_globals())

        if dump_ast:
            print(ast.pretty())

        result = evaluate(ast, runtime_globals())
    except PlcError as exc:
        report_error(exc)
        return 1

    print(stringify(result))
    return 0

if __name__ == "__main__":
    sys.exit(main())
