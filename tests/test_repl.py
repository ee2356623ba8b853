from __future__ import annotations

import os

import pytest

from strictphp.repl import ReplSession, _handle_slash, _normalize, _toggle, _unclosed
from strictphp.utils import DEBUG_PY_TRACE_ENV
from tests.support.harness import ParseError, UnboundVariable


def test_session_keeps_state_between_inputs(capsys: pytest.CaptureFixture[str]) -> None:
    session = ReplSession()

    session.eval("$x = 2;")
    session.eval("function sq($n) { return $n * $n; }")
    session.eval("echo sq($x);")

    assert capsys.readouterr().out == "4"


def test_session_errors_leave_state_intact(capsys: pytest.CaptureFixture[str]) -> None:
    session = ReplSession()
    session.eval("$x = 'kept';")

    with pytest.raises(UnboundVariable):
        session.eval("echo $missing;")
    with pytest.raises(ParseError):
        session.eval("echo (;")

    session.eval("echo $x;")
    assert capsys.readouterr().out == "kept"


def test_reset_clears_state(capsys: pytest.CaptureFixture[str]) -> None:
    session = ReplSession()
    session.eval("$x = 1;")

    assert _handle_slash("/reset", session)
    assert "Environment reset." in capsys.readouterr().out

    with pytest.raises(UnboundVariable):
        session.eval("echo $x;")


def test_debug_command(capsys: pytest.CaptureFixture[str]) -> None:
    session = ReplSession()

    assert _handle_slash("/debug on", session)
    assert session.config.debug
    assert session.ctx.config.debug

    session.eval("echo 1;")
    out = capsys.readouterr().out
    assert "Node dump: on" in out
    assert "Stmt_Echo" in out

    _handle_slash("/debug", session)
    assert not session.config.debug


def test_debug_command_rejects_bad_argument(capsys: pytest.CaptureFixture[str]) -> None:
    session = ReplSession()

    assert _handle_slash("/debug maybe", session)
    assert "Usage: /debug" in capsys.readouterr().err
    assert not session.config.debug


def test_py_traceback_command(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DEBUG_PY_TRACE_ENV, raising=False)
    session = ReplSession()

    _handle_slash("/py-traceback on", session)
    assert os.environ.get(DEBUG_PY_TRACE_ENV) == "1"

    _handle_slash("/py-traceback off", session)
    assert DEBUG_PY_TRACE_ENV not in os.environ


def test_unknown_and_non_commands(capsys: pytest.CaptureFixture[str]) -> None:
    session = ReplSession()

    assert _handle_slash("/nope", session)
    assert "Unknown command: /nope" in capsys.readouterr().err
    assert not _handle_slash("echo 1;", session)


@pytest.mark.parametrize(
    "text, expected",
    [
        pytest.param("echo 1;", False, id="complete"),
        pytest.param("function f() {", True, id="open-brace"),
        pytest.param("function f() { return 1; }", False, id="closed-brace"),
        pytest.param("echo '{';", False, id="brace-in-string"),
        pytest.param("echo 'abc", True, id="open-string"),
        pytest.param("$a = [1,", True, id="open-bracket"),
        pytest.param("echo 'it\\'s {';", False, id="escaped-quote"),
    ],
)
def test_unclosed(text: str, expected: bool) -> None:
    assert _unclosed(text) is expected


def test_toggle() -> None:
    assert _toggle("on", False) is True
    assert _toggle("OFF", True) is False
    assert _toggle("", True) is False
    assert _toggle("sideways", True) is None


def test_normalize_strips_invisible_characters() -> None:
    assert _normalize("echo\u200b 1;\r") == "echo 1;"
