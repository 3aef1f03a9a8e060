from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import (
    AnalysisError,
    ErrorKind,
    PlcRuntimeError,
    ScopeRecorder,
    run_program,
    run_runtime_case,
    scope_events,
)
from plc_ref.evaluator import execute
from plc_ref.parser import parse_statement
from plc_ref.runtime import runtime_globals
from plc_ref.types import PlcInteger, Scope, child_scope

SCENARIOS = [
    pytest.param(
        "DEF main() DO FOR i IN range(0, 3) DO LET x = i; END RETURN x; END",
        None,
        ErrorKind.UNDEFINED_VARIABLE,
        id="loop-local-gone-after-loop",
    ),
    pytest.param(
        "DEF main() DO FOR i IN range(0, 3) DO print(i); END RETURN i; END",
        None,
        ErrorKind.UNDEFINED_VARIABLE,
        id="loop-variable-gone-after-loop",
    ),
    pytest.param(
        "DEF main() DO IF TRUE DO LET x = 1; END RETURN x; END",
        None,
        ErrorKind.UNDEFINED_VARIABLE,
        id="branch-local-gone-after-if",
    ),
    pytest.param(
        "DEF main() DO LET n = 0; WHILE n < 1 DO LET w = 1; n = n + 1; END RETURN w; END",
        None,
        ErrorKind.UNDEFINED_VARIABLE,
        id="while-local-gone-after-loop",
    ),
    pytest.param(
        "DEF main() DO y = 1; RETURN 0; END",
        None,
        ErrorKind.UNDEFINED_VARIABLE,
        id="assignment-never-creates",
    ),
    pytest.param(
        "DEF peek() DO RETURN secret; END DEF main() DO LET secret = 1; RETURN peek(); END",
        None,
        ErrorKind.UNDEFINED_VARIABLE,
        id="lexical-not-dynamic",
    ),
    pytest.param(
        "DEF main() DO LET x = 1; LET x = 2; RETURN x; END",
        None,
        ErrorKind.REDEFINITION,
        id="redeclare-in-same-scope",
    ),
    pytest.param(
        "DEF f(a: Integer) DO LET a = 1; RETURN a; END DEF main() DO RETURN f(0); END",
        None,
        ErrorKind.REDEFINITION,
        id="local-redeclares-parameter",
    ),
    pytest.param(
        "LET x = 1; DEF main() DO LET x = 2; IF TRUE DO LET x = 3; END RETURN x; END",
        ("integer", 2),
        None,
        id="shadowing-is-allowed",
    ),
    pytest.param(
        "LET x = 1; DEF main() DO IF TRUE DO x = 5; END RETURN x; END",
        ("integer", 5),
        None,
        id="assignment-reaches-outer-binding",
    ),
    pytest.param(
        dedent(
            """\
            DEF main() DO
                LET total = 0;
                FOR i IN range(0, 3) DO
                    LET sq = i * i;
                    total = total + sq;
                END
                RETURN total;
            END
            """
        ),
        ("integer", 5),
        None,
        id="fresh-scope-per-iteration",
    ),
    pytest.param(
        dedent(
            """\
            DEF main() DO
                LET n = 0;
                WHILE n < 3 DO
                    LET step = 1;
                    n = n + step;
                END
                RETURN n;
            END
            """
        ),
        ("integer", 3),
        None,
        id="fresh-scope-per-while-pass",
    ),
    pytest.param(
        "DEF f(n: Integer) DO RETURN n; END DEF main() DO LET n = 7; RETURN f(1) + n; END",
        ("integer", 8),
        None,
        id="parameters-are-call-local",
    ),
]


@pytest.mark.parametrize("source, expectation, kind", SCENARIOS)
@pytest.mark.parametrize("analyze_first", [True, False], ids=["analyzed", "unchecked"])
def test_scoping(source: str, expectation, kind, analyze_first: bool) -> None:
    if kind is None:
        run_runtime_case(source, expectation, None, analyze_first)
        return

    error = AnalysisError if analyze_first else PlcRuntimeError
    run_runtime_case(source, None, (error, kind), analyze_first)


AGREEMENT_PROGRAM = dedent(
    """\
    DEF main() DO
        LET total = 0;
        IF total == 0 DO
            total = 1;
        END
        FOR i IN range(0, 1) DO
            total = total + i;
        END
        WHILE total < 2 DO
            total = total + 1;
        END
        RETURN total;
    END
    """
)


def test_analyzer_and_interpreter_open_the_same_scopes() -> None:
    static_events, runtime_events = scope_events(AGREEMENT_PROGRAM)

    # the analyzer checks both branches; this run only takes the then-branch
    checked = [event for event in static_events if event[1] != "else"]
    assert checked == runtime_events
    assert runtime_events == [
        ("enter", "source", 1),
        ("enter", "method", 2),
        ("enter", "then", 3),
        ("exit", "then", 3),
        ("enter", "for", 3),
        ("exit", "for", 3),
        ("enter", "while", 3),
        ("exit", "while", 3),
        ("exit", "method", 2),
        ("exit", "source", 1),
    ]


def test_scopes_released_when_error_propagates() -> None:
    recorder = ScopeRecorder()
    source = "DEF main() DO FOR i IN range(0, 3) DO LET x = 10 / i; END RETURN 0; END"

    with pytest.raises(PlcRuntimeError) as exc_info:
        run_program(source, True, recorder)

    assert exc_info.value.kind is ErrorKind.DIVISION_BY_ZERO
    assert recorder.events == [
        ("enter", "source", 1),
        ("enter", "method", 2),
        ("enter", "for", 3),
        ("exit", "for", 3),
        ("exit", "method", 2),
        ("exit", "source", 1),
    ]


def test_scopes_released_when_return_unwinds() -> None:
    recorder = ScopeRecorder()
    source = dedent(
        """\
        DEF main() DO
            FOR i IN range(0, 5) DO
                WHILE TRUE DO
                    IF i == 0 DO
                        RETURN 4;
                    END
                END
            END
            RETURN 0;
        END
        """
    )

    assert run_program(source, True, recorder).value == 4

    events = recorder.events
    assert [e for e in events if e[0] == "enter"] == [
        ("enter", "source", 1),
        ("enter", "method", 2),
        ("enter", "for", 3),
        ("enter", "while", 4),
        ("enter", "then", 5),
    ]
    assert [e[1:] for e in events if e[0] == "exit"] == [
        ("then", 5),
        ("while", 4),
        ("for", 3),
        ("method", 2),
        ("source", 1),
    ]


def test_child_scope_guard_releases_on_error() -> None:
    root = Scope()

    with pytest.raises(RuntimeError):
        with child_scope(root, "block") as inner:
            inner.define_variable("x", PlcInteger(1))
            raise RuntimeError("boom")

    assert inner.released
    assert inner.parent is root
    assert inner.depth == 1
    assert root.lookup_variable("x") is None


def test_single_statement_runs_against_any_scope() -> None:
    scope = Scope(runtime_globals(), label="session")
    scope.define_variable("n", PlcInteger(1))

    execute(parse_statement("n = n + 41;"), scope)
    execute(parse_statement("LET m = n;"), scope)

    assert scope.variables["n"] == PlcInteger(42)
    assert scope.variables["m"] == PlcInteger(42)


def test_scope_lookup_walks_parents() -> None:
    root = Scope()
    root.define_variable("a", PlcInteger(1))
    child = Scope(root, "inner")

    assert child.lookup_variable("a") == PlcInteger(1)
    assert not child.declares("a")
    assert child.assign_variable("a", PlcInteger(2))
    assert root.variables["a"] == PlcInteger(2)
    assert not child.assign_variable("b", PlcInteger(0))
