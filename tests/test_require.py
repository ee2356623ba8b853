from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from strictphp.evaluator import eval_program
from strictphp.loader import FileLoader
from strictphp.nodes import Echo, String
from strictphp.types import Context
from tests.support.harness import (
    Interpreter,
    ParseError,
    RequireError,
    UnboundVariable,
    parse,
    run_program,
    run_with_value,
    verify_result,
)


def _write(directory: Path, name: str, body: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    return path


def test_required_file_shares_scope(tmp_path: Path) -> None:
    _write(tmp_path, "lib.php", "<?php\n$greeting = 'hi';\nfunction shout($s) { return $s . '!'; }\n")

    output = run_program("$name = 'x'; require 'lib.php'; echo shout($greeting);", base_dir=tmp_path)

    assert output == "hi!"


def test_required_file_sees_caller_variables(tmp_path: Path) -> None:
    _write(tmp_path, "show.php", "<?php echo $name;")

    assert run_program("$name = 'caller'; include 'show.php';", base_dir=tmp_path) == "caller"


def test_inline_text_in_required_file(tmp_path: Path) -> None:
    _write(tmp_path, "page.php", "<b><?php echo $n; ?></b>\n")

    assert run_program("$n = 3; require 'page.php';", base_dir=tmp_path) == "<b>3</b>\n"


def test_plain_require_runs_every_time(tmp_path: Path) -> None:
    _write(tmp_path, "tick.php", "<?php echo 'x';")

    assert run_program("require 'tick.php'; require 'tick.php';", base_dir=tmp_path) == "xx"


def test_once_forms_skip_repeat_loads(tmp_path: Path) -> None:
    _write(tmp_path, "tick.php", "<?php echo 'x';")

    source = "require_once 'tick.php'; include_once 'tick.php'; echo require_once 'tick.php';"
    assert run_program(source, base_dir=tmp_path) == "x1"


def test_once_after_plain_require(tmp_path: Path) -> None:
    _write(tmp_path, "tick.php", "<?php echo 'x';")

    assert run_program("require 'tick.php'; require_once 'tick.php';", base_dir=tmp_path) == "x"


def test_once_state_is_per_run(tmp_path: Path) -> None:
    _write(tmp_path, "tick.php", "<?php echo 'x';")
    interpreter = Interpreter(out=io.StringIO(), base_dir=tmp_path)

    interpreter.run("require_once 'tick.php';")
    interpreter.run("require_once 'tick.php';")

    assert interpreter.out.getvalue() == "xx"


def test_main_file_counts_as_included(tmp_path: Path) -> None:
    main = _write(tmp_path, "main.php", "<?php echo 'm'; require_once 'main.php';")
    out = io.StringIO()

    Interpreter(out=out, base_dir=tmp_path).run(main.read_text(), path=main)

    assert out.getvalue() == "m"


def test_nested_paths(tmp_path: Path) -> None:
    _write(tmp_path, "inc/a.php", "<?php require 'inc/b.php'; echo 'a';")
    _write(tmp_path, "inc/b.php", "<?php echo 'b';")

    assert run_program("require 'inc/a.php';", base_dir=tmp_path) == "ba"


def test_path_expression(tmp_path: Path) -> None:
    _write(tmp_path, "part1.php", "<?php echo 'one';")

    assert run_program("$n = 1; require 'part' . $n . '.php';", base_dir=tmp_path) == "one"


def test_missing_require_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(RequireError) as exc_info:
        run_program("echo 'a'; require 'missing.php'; echo 'b';", base_dir=tmp_path)

    err = exc_info.value
    assert err.path == "missing.php"
    assert err.keyword == "require"
    assert err.message == "Failed opening required 'missing.php'"
    assert err.line == 1


def test_missing_require_once_keyword(tmp_path: Path) -> None:
    with pytest.raises(RequireError) as exc_info:
        run_program("require_once 'gone.php';", base_dir=tmp_path)

    assert exc_info.value.keyword == "require_once"


def test_missing_include_yields_false(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="strictphp"):
        output = run_program("$r = include 'nope.php'; echo $r === false, '|after';", base_dir=tmp_path)

    assert output == "1|after"
    assert "Failed to open stream" in caplog.text


def test_successful_include_yields_one(tmp_path: Path) -> None:
    _write(tmp_path, "empty.php", "<?php\n")

    _, value = run_with_value("return include 'empty.php';", base_dir=tmp_path)

    verify_result(value, "int", 1)


def test_required_file_return_value(tmp_path: Path) -> None:
    _write(tmp_path, "config.php", "<?php return ['debug' => true, 'level' => 3]; echo 'unreached';")

    output, value = run_with_value("$cfg = require 'config.php'; return $cfg['level'];", base_dir=tmp_path)

    assert output == ""
    verify_result(value, "int", 3)


def test_return_in_required_file_only_leaves_that_file(tmp_path: Path) -> None:
    _write(tmp_path, "early.php", "<?php echo 'in'; return; echo 'never';")

    assert run_program("require 'early.php'; echo '|out';", base_dir=tmp_path) == "in|out"


def test_errors_inside_required_file_propagate(tmp_path: Path) -> None:
    _write(tmp_path, "bad.php", "<?php\n\necho $undefined;")

    with pytest.raises(UnboundVariable) as exc_info:
        run_program("require 'bad.php';", base_dir=tmp_path)

    assert exc_info.value.line == 3


def test_require_without_loader() -> None:
    ctx = Context(out=io.StringIO())

    with pytest.raises(RequireError):
        eval_program(parse("require 'x.php';"), ctx)


def test_parse_error_in_required_file(tmp_path: Path) -> None:
    _write(tmp_path, "broken.php", "<?php echo (;")

    with pytest.raises(ParseError):
        run_program("require 'broken.php';", base_dir=tmp_path)


# ---------------- FileLoader ----------------


def test_loader_resolves_against_base_dir(tmp_path: Path) -> None:
    loader = FileLoader(parse, tmp_path)

    assert loader.resolve("a.php") == (tmp_path / "a.php").resolve()
    assert loader.resolve(str(tmp_path / "b.php")) == (tmp_path / "b.php").resolve()


def test_loader_defaults_to_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    loader = FileLoader(parse)

    assert loader.resolve("x.php") == (tmp_path / "x.php").resolve()


def test_loader_load_and_once(tmp_path: Path) -> None:
    _write(tmp_path, "hello.php", "<?php echo 'hello';")
    loader = FileLoader(parse, tmp_path)

    assert loader.load("hello.php") == (Echo((String("hello"),)),)
    assert (tmp_path / "hello.php").resolve() in loader.included
    assert loader.load("hello.php", once=True) is None
    assert loader.load("hello.php") == (Echo((String("hello"),)),)


def test_loader_missing_file(tmp_path: Path) -> None:
    loader = FileLoader(parse, tmp_path)

    with pytest.raises(FileNotFoundError):
        loader.load("missing.php")
    with pytest.raises(FileNotFoundError):
        loader.load("missing.php", once=True)
    assert not loader.included


def test_loader_mark_included(tmp_path: Path) -> None:
    path = _write(tmp_path, "main.php", "<?php echo 1;")
    loader = FileLoader(parse, tmp_path)

    loader.mark_included(path)

    assert loader.load("main.php", once=True) is None
