from __future__ import annotations

import io
from textwrap import dedent

import pytest

from tests.support.harness import (
    ArgumentCountError,
    DivisionByZero,
    IndexNotFound,
    Interpreter,
    ParseError,
    PhpArithmeticError,
    PhpRuntimeError,
    PhpTypeError,
    RequireError,
    ReservedNameError,
    UnboundVariable,
    UnknownConstant,
    UnsupportedOperand,
    run_runtime_case,
    run_until_error,
)

SCENARIOS = [
    pytest.param("$this = 1;", None, ReservedNameError, id="assign-this"),
    pytest.param("$this[0] = 1;", None, ReservedNameError, id="index-assign-this"),
    pytest.param("$this .= 'x';", None, ReservedNameError, id="compound-assign-this"),
    pytest.param("foreach ([1] as $k => $this) {}", None, ReservedNameError, id="foreach-this"),
    pytest.param("echo $this;", None, UnboundVariable, id="read-this-unbound"),
    pytest.param("echo FOO;", None, UnknownConstant, id="unknown-constant"),
    pytest.param("echo $nope;", None, UnboundVariable, id="unbound-variable"),
    pytest.param("$x = $x + 1;", None, UnboundVariable, id="self-reference-unbound"),
    pytest.param("echo 1 / 0;", None, DivisionByZero, id="division-by-zero"),
    pytest.param("echo [] - 1;", None, UnsupportedOperand, id="unsupported-operand"),
    pytest.param("foreach (null as $v) {}", None, PhpTypeError, id="foreach-null"),
    pytest.param("echo 1", None, ParseError, id="missing-semicolon"),
    pytest.param("echo @;", None, ParseError, id="unexpected-character"),
    pytest.param("1 = 2;", None, ParseError, id="assign-to-literal"),
    pytest.param("f() = 2;", None, ParseError, id="assign-to-call"),
    pytest.param("echo 08;", None, ParseError, id="invalid-octal"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_error_handling(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_error_messages() -> None:
    cases = {
        "$this = 1;": "Cannot re-assign $this",
        "echo FOO;": 'Undefined constant "FOO"',
        "echo $nope;": "Undefined variable $nope",
        "echo 1 % 0;": "Modulo by zero",
        "echo 'abc' * 2;": "Unsupported operand types: string * int",
        "echo -[];": "Unsupported operand types: -array",
        "echo 1 << -1;": "Bit shift by negative number",
    }

    for source, message in cases.items():
        _, err = run_until_error(source)
        assert err.message == message, source


def test_error_carries_offending_name() -> None:
    _, err = run_until_error("echo $missing;")
    assert isinstance(err, UnboundVariable)
    assert err.name == "missing"

    _, err = run_until_error("echo Nope;")
    assert isinstance(err, UnknownConstant)
    assert err.name == "Nope"

    _, err = run_until_error("echo 5 % 0;")
    assert isinstance(err, DivisionByZero)
    assert err.operator == "%"


def test_error_line_is_attached() -> None:
    _, err = run_until_error("echo 1;\necho $nope;")

    assert err.line == 2
    assert str(err) == "Undefined variable $nope (line 2)"


def test_innermost_line_wins() -> None:
    source = dedent(
        """\
        function f() {
            return $missing;
        }
        f();
    """
    )
    _, err = run_until_error(source)

    assert err.line == 2


def test_output_before_error_is_kept() -> None:
    output, err = run_until_error("echo 'a';\necho 'b', $nope;\necho 'c';")

    assert output == "a"
    assert isinstance(err, UnboundVariable)


def test_parse_error_location() -> None:
    with pytest.raises(ParseError) as exc_info:
        run_runtime_case("echo 1;\necho (;", None, None)

    err = exc_info.value
    assert err.line == 2
    assert err.column is not None
    assert err.message.startswith("syntax error")
    assert str(err).endswith("(line 2)")


def test_parse_error_at_end_of_file() -> None:
    with pytest.raises(ParseError, match="unexpected end of file"):
        run_runtime_case("echo 1", None, None)


def test_parse_error_stops_before_running() -> None:
    out = io.StringIO()

    with pytest.raises(ParseError):
        Interpreter(out=out).run("echo 'ran';\necho (;")
    assert out.getvalue() == ""


def test_error_hierarchy() -> None:
    assert issubclass(DivisionByZero, PhpArithmeticError)
    assert issubclass(UnsupportedOperand, PhpArithmeticError)
    assert issubclass(PhpArithmeticError, PhpRuntimeError)
    assert issubclass(ArgumentCountError, UnboundVariable)
    for kind in (ReservedNameError, UnknownConstant, IndexNotFound, PhpTypeError, RequireError):
        assert issubclass(kind, PhpRuntimeError)
    assert not issubclass(ParseError, PhpRuntimeError)
