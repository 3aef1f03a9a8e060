from __future__ import annotations

import pytest

from tests.support.harness import (
    AnalysisError,
    ErrorKind,
    PlcRuntimeError,
    eval_expression,
    run_expression_case,
)

SCENARIOS = [
    pytest.param("1 - 2 - 3", ("integer", -4), None, id="subtraction-left-assoc"),
    pytest.param("1 + 2 * 3", ("integer", 7), None, id="precedence"),
    pytest.param("(1 + 2) * 3", ("integer", 9), None, id="grouping"),
    pytest.param("1-2", ("integer", -1), None, id="subtraction-without-spaces"),
    pytest.param("1 - -2", ("integer", 3), None, id="subtract-negative-literal"),
    pytest.param("100 / 10 / 5", ("integer", 2), None, id="division-left-assoc"),
    pytest.param("123456789012345678901234567890 * 10", ("integer", 1234567890123456789012345678900), None, id="big-integers"),
    pytest.param("7 / 2", ("integer", 3), None, id="int-div-truncates"),
    pytest.param("-7 / 2", ("integer", -3), None, id="int-div-negative-dividend"),
    pytest.param("7 / -2", ("integer", -3), None, id="int-div-negative-divisor"),
    pytest.param("-7 / -2", ("integer", 3), None, id="int-div-both-negative"),
    pytest.param("-8 / 2", ("integer", -4), None, id="int-div-exact"),
    pytest.param("10 / 0", None, (PlcRuntimeError, ErrorKind.DIVISION_BY_ZERO), id="int-div-zero"),
    pytest.param("1.0 / 0.0", None, (PlcRuntimeError, ErrorKind.DIVISION_BY_ZERO), id="decimal-div-zero"),
    pytest.param("1.0 / 0.00", None, (PlcRuntimeError, ErrorKind.DIVISION_BY_ZERO), id="decimal-div-zero-scaled"),
    pytest.param("0.1 + 0.2", ("decimal", "0.3"), None, id="decimal-add-exact"),
    pytest.param("1.50 - 0.5", ("decimal", "1.00"), None, id="decimal-sub-keeps-scale"),
    pytest.param("1.5 * 2.0", ("decimal", "3.00"), None, id="decimal-mul-exact"),
    pytest.param("1.0 / 3.0", ("decimal", "0.3"), None, id="decimal-div-dividend-scale"),
    pytest.param("1.00 / 3.0", ("decimal", "0.33"), None, id="decimal-div-two-places"),
    pytest.param("2.0 / 3.0", ("decimal", "0.7"), None, id="decimal-div-rounds"),
    pytest.param("5.0 / 2.0", ("decimal", "2.5"), None, id="decimal-div-exact"),
    pytest.param("0.5 / 2.0", ("decimal", "0.2"), None, id="decimal-div-half-even-down"),
    pytest.param("0.7 / 2.0", ("decimal", "0.4"), None, id="decimal-div-half-even-up"),
    pytest.param("-0.5 / 2.0", ("decimal", "-0.2"), None, id="decimal-div-negative-half-even"),
    pytest.param('"ab" + "cd"', ("string", "abcd"), None, id="string-concat"),
    pytest.param('"" + ""', ("string", ""), None, id="empty-concat"),
    pytest.param("1 < 2", ("bool", True), None, id="lt"),
    pytest.param("2 <= 2", ("bool", True), None, id="le"),
    pytest.param("1 > 2", ("bool", False), None, id="gt"),
    pytest.param("2.5 >= 2.50", ("bool", True), None, id="ge-decimal-scale"),
    pytest.param("-1.5 < -1.25", ("bool", True), None, id="lt-negative-decimals"),
    pytest.param("1 == 1", ("bool", True), None, id="eq-int"),
    pytest.param("1.0 == 1.00", ("bool", False), None, id="eq-decimal-scale-sensitive"),
    pytest.param("1.0 != 1.00", ("bool", True), None, id="ne-decimal-scale-sensitive"),
    pytest.param("2.50 == 2.50", ("bool", True), None, id="eq-decimal-same-scale"),
    pytest.param("-0.0 == 0.0", ("bool", True), None, id="eq-decimal-signed-zero"),
    pytest.param("1 == 1.0", ("bool", False), None, id="eq-cross-representation"),
    pytest.param('"a" == "a"', ("bool", True), None, id="eq-string"),
    pytest.param("'a' == \"a\"", ("bool", False), None, id="eq-char-vs-string"),
    pytest.param("NIL == NIL", ("bool", True), None, id="eq-nil"),
    pytest.param("NIL == FALSE", ("bool", False), None, id="eq-nil-vs-false"),
    pytest.param("1 != 2", ("bool", True), None, id="ne"),
    pytest.param("range(0, 2) == range(0, 2)", ("bool", True), None, id="eq-iterables"),
    pytest.param("TRUE AND FALSE", ("bool", False), None, id="and"),
    pytest.param("FALSE OR TRUE", ("bool", True), None, id="or"),
    pytest.param("1 < 2 AND 2 < 3", ("bool", True), None, id="comparison-under-logical"),
    pytest.param("range(1, 4)", ("iterable", [1, 2, 3]), None, id="range-half-open"),
    pytest.param("range(3, 1)", ("iterable", []), None, id="range-empty"),
    pytest.param("NIL", ("nil", None), None, id="nil-literal"),
    pytest.param("'x'", ("character", "x"), None, id="character-literal"),
    pytest.param('1 + "a"', None, (AnalysisError, ErrorKind.TYPE_MISMATCH), id="add-mismatch-static"),
    pytest.param("1 < 2.0", None, (AnalysisError, ErrorKind.TYPE_MISMATCH), id="compare-mismatch-static"),
    pytest.param("TRUE + TRUE", None, (AnalysisError, ErrorKind.TYPE_MISMATCH), id="add-booleans-static"),
    pytest.param("1 AND TRUE", None, (AnalysisError, ErrorKind.TYPE_MISMATCH), id="logical-static"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_operators(source: str, expectation, expected_exc) -> None:
    run_expression_case(source, expectation, expected_exc)


UNCHECKED_SCENARIOS = [
    pytest.param('1 + "a"', None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="add-mismatch"),
    pytest.param("1 - 1.0", None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="sub-mismatch"),
    pytest.param('"a" * 2', None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="mul-string"),
    pytest.param("'a' + 'b'", None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="add-characters"),
    pytest.param('"a" < "b"', None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="compare-strings"),
    pytest.param("1 < 2.0", None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="compare-mixed"),
    pytest.param("1.0 / 2", None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="div-mixed"),
    pytest.param("1 AND TRUE", None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="and-non-boolean-left"),
    pytest.param("TRUE OR 1", ("bool", True), None, id="or-skips-right-type"),
    pytest.param("FALSE AND 1", ("bool", False), None, id="and-skips-right-type"),
    pytest.param("TRUE AND 1", None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="and-non-boolean-right"),
    pytest.param("missing + 1", None, (PlcRuntimeError, ErrorKind.UNDEFINED_VARIABLE), id="undefined-variable"),
    pytest.param("nope(1)", None, (PlcRuntimeError, ErrorKind.UNDEFINED_FUNCTION), id="undefined-function"),
    pytest.param('range(0, "3")', None, (PlcRuntimeError, ErrorKind.TYPE_MISMATCH), id="range-argument"),
    pytest.param("(1).x", None, (PlcRuntimeError, ErrorKind.UNDEFINED_FIELD), id="field-of-integer"),
    pytest.param('"s".size()', None, (PlcRuntimeError, ErrorKind.UNDEFINED_FUNCTION), id="method-of-string"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", UNCHECKED_SCENARIOS)
def test_operators_without_analysis(source: str, expectation, expected_exc) -> None:
    run_expression_case(source, expectation, expected_exc, analyze_first=False)


def test_runtime_error_points_at_failing_operator() -> None:
    with pytest.raises(PlcRuntimeError) as exc_info:
        eval_expression("1 + (2 / 0)")

    err = exc_info.value
    assert err.kind is ErrorKind.DIVISION_BY_ZERO
    assert err.position == 5
    assert str(err).endswith("(at offset 5)")


def test_short_circuit_skips_print(capsys) -> None:
    assert eval_expression('FALSE AND print("boom")', analyze_first=False).value is False
    assert eval_expression('TRUE OR print("boom")', analyze_first=False).value is True

    assert capsys.readouterr().out == ""


def test_right_operand_runs_when_needed(capsys) -> None:
    with pytest.raises(PlcRuntimeError) as exc_info:
        eval_expression('TRUE AND print("ran")', analyze_first=False)

    assert exc_info.value.kind is ErrorKind.TYPE_MISMATCH
    assert capsys.readouterr().out == "ran\n"
