from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import (
    ArgumentCountError,
    ReservedNameError,
    UnboundVariable,
    run_runtime_case,
    run_until_error,
)

SCENARIOS = [
    pytest.param(
        dedent(
            """\
            function add($a, $b) { return $a + $b; }
            echo add(2, 3);
        """
        ),
        "5",
        None,
        id="call-returns-value",
    ),
    pytest.param(
        dedent(
            """\
            function add($a, $b) { return $a + $b; }
            echo add(add(1, 2), 3);
        """
        ),
        "6",
        None,
        id="nested-calls",
    ),
    pytest.param(
        dedent(
            """\
            function f($a, $b = 10) { return $a + $b; }
            echo f(1), ' ', f(1, 2);
        """
        ),
        "11 3",
        None,
        id="param-default",
    ),
    pytest.param(
        dedent(
            """\
            function f($a) { return $a; }
            echo f(1, 2, 3);
        """
        ),
        "1",
        None,
        id="extra-args-dropped",
    ),
    pytest.param(
        dedent(
            """\
            function f($a) { return $a; }
            echo f();
        """
        ),
        None,
        ArgumentCountError,
        id="missing-arg",
    ),
    pytest.param(
        dedent(
            """\
            function f($a) { return $a; }
            f();
        """
        ),
        None,
        UnboundVariable,
        id="missing-arg-is-unbound",
    ),
    pytest.param(
        dedent(
            """\
            function fact($n) {
                if ($n <= 1) {
                    return 1;
                }
                return $n * fact($n - 1);
            }
            echo fact(10);
        """
        ),
        "3628800",
        None,
        id="recursion",
    ),
    pytest.param(
        dedent(
            """\
            function fib($n) {
                if ($n < 2) { return $n; }
                return fib($n - 1) + fib($n - 2);
            }
            echo fib(15);
        """
        ),
        "610",
        None,
        id="double-recursion",
    ),
    pytest.param(
        dedent(
            """\
            function Hello() { echo 'hi'; }
            HELLO();
        """
        ),
        "hi",
        None,
        id="names-case-insensitive",
    ),
    pytest.param(
        dedent(
            """\
            function f() { return 1; }
            function f() { return 2; }
            echo f();
        """
        ),
        "2",
        None,
        id="redeclare-last-wins",
    ),
    pytest.param("undefined_fn(); echo 'ok';", "ok", None, id="undeclared-call-noop"),
    pytest.param("nope($undefined); echo 'ok';", "ok", None, id="undeclared-call-skips-args"),
    pytest.param(
        dedent(
            """\
            echo f();
            function f() { return 'late'; }
            echo f();
        """
        ),
        "late",
        None,
        id="no-hoisting",
    ),
    pytest.param(
        dedent(
            """\
            function f() { return; }
            echo f() === null;
        """
        ),
        "1",
        None,
        id="bare-return-null",
    ),
    pytest.param(
        dedent(
            """\
            function f() { $x = 1; }
            echo f() === null;
        """
        ),
        "1",
        None,
        id="fall-off-end-null",
    ),
    pytest.param(
        dedent(
            """\
            $x = 1;
            function f() { return $x; }
            f();
        """
        ),
        None,
        UnboundVariable,
        id="globals-not-visible",
    ),
    pytest.param(
        dedent(
            """\
            function f() { $y = 2; }
            f();
            echo $y;
        """
        ),
        None,
        UnboundVariable,
        id="locals-do-not-leak",
    ),
    pytest.param(
        dedent(
            """\
            $a = 3;
            function sq($n) { return $n * $n; }
            echo sq($a + 1), $a;
        """
        ),
        "163",
        None,
        id="args-evaluated-in-caller",
    ),
    pytest.param(
        dedent(
            """\
            function first($xs) {
                foreach ($xs as $x) {
                    return $x;
                }
                return null;
            }
            echo first([4, 5]);
        """
        ),
        "4",
        None,
        id="return-from-foreach",
    ),
    pytest.param(
        dedent(
            """\
            function inc($a) { $a[] = 9; return $a; }
            $orig = [1];
            $copy = inc($orig);
            echo $orig[0], $copy[1];
        """
        ),
        "19",
        None,
        id="arrays-passed-by-value",
    ),
    pytest.param(
        dedent(
            """\
            function f($this) { return 1; }
            f(2);
        """
        ),
        None,
        ReservedNameError,
        id="this-parameter",
    ),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_functions(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_argument_count_message() -> None:
    _, err = run_until_error("function f($a, $b = 1) { return $a; }\nf();")

    assert isinstance(err, ArgumentCountError)
    assert err.message == "Too few arguments to function f(), 0 passed and at least 1 expected"
    assert err.name == "a"


def test_caller_scope_restored_after_call() -> None:
    source = dedent(
        """\
        function f() { $x = 'inner'; return 1; }
        $x = 'outer';
        f();
        echo $x;
    """
    )
    run_runtime_case(source, "outer", None)
