from __future__ import annotations

import io
import logging
import sys
import traceback
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from .config import EvalConfig
from .dump import dump
from .evaluator import eval_program
from .loader import FileLoader
from .nodes import Node
from .parser import ParseError, parse
from .types import Context, OutputSink, PhpRuntimeError, PhpValue, SourceLoader, StackOverflow
from .utils import debug_py_trace_enabled

logger = logging.getLogger(__name__)

ParseFunc = Callable[[str], Tuple[Node, ...]]

# each PHP call level costs about fifteen Python frames
RECURSION_LIMIT = 50000

USAGE = "usage: strictphp [--debug] [--reference] [--verbose] [FILE | -]"


class Interpreter:
    """Parses and evaluates programs.

    Every `run` starts from an empty global scope and an empty function table.
    Without an explicit loader each run also gets its own `FileLoader`, so the
    `*_once` bookkeeping does not leak between runs.
    """

    def __init__(
        self,
        parser: ParseFunc = parse,
        config: Optional[EvalConfig] = None,
        out: Optional[OutputSink] = None,
        loader: Optional[SourceLoader] = None,
        base_dir: Union[str, Path, None] = None,
    ):
        self.parser = parser
        self.config = config if config is not None else EvalConfig()
        self.out: OutputSink = out if out is not None else sys.stdout
        self.loader = loader
        self.base_dir = base_dir

    def new_context(self, path: Union[str, Path, None] = None) -> Context:
        loader = self.loader
        if loader is None:
            file_loader = FileLoader(self.parser, self.base_dir)
            if path is not None:
                file_loader.mark_included(path)
            loader = file_loader
        return Context(out=self.out, config=self.config, loader=loader)

    def run(self, code: str, path: Union[str, Path, None] = None) -> Optional[PhpValue]:
        """Parse `code` and evaluate it; returns the value of a top-level `return`, if any."""
        stmts = self.parser(code)
        return self.execute(stmts, self.new_context(path))

    def execute(self, stmts: Tuple[Node, ...], ctx: Context) -> Optional[PhpValue]:
        if ctx.config.debug:
            ctx.write(dump(stmts) + "\n")

        if sys.getrecursionlimit() < RECURSION_LIMIT:
            sys.setrecursionlimit(RECURSION_LIMIT)

        try:
            return eval_program(stmts, ctx)
        except RecursionError:
            # nesting too deep outside any function call
            raise StackOverflow(ctx.call_depth) from None


def run(src: str, config: Optional[EvalConfig] = None, base_dir: Union[str, Path, None] = None) -> str:
    """Run a program and return everything it wrote."""
    out = io.StringIO()
    Interpreter(config=config, out=out, base_dir=base_dir).run(src)
    return out.getvalue()

def _load_source(arg: str) -> str:
    """
    Resolve CLI input into source text.
    - "-" => read stdin.
    - Existing path => read file contents.
    """

    if arg == "-":
        return sys.stdin.read()

    candidate = Path(arg)
    if not candidate.is_file():
        raise SystemExit(f"Could not open input file: {arg}")

    return candidate.read_text(encoding="utf-8")

def _report(exc: Exception) -> None:
    print(f"Error: {exc}", file=sys.stderr)

    if debug_py_trace_enabled():
        print("\nPython traceback:", file=sys.stderr)
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)

def main(argv: Optional[list[str]] = None) -> int:
    config = EvalConfig.from_env()
    verbose = False
    arg = None

    for token in sys.argv[1:] if argv is None else argv:
        if token == "--debug":
            config = config.with_debug(True)
            continue

        if token == "--reference":
            config = EvalConfig.reference(debug=config.debug)
            continue

        if token in ("-v", "--verbose"):
            verbose = True
            continue

        if token in ("-h", "--help"):
            print(USAGE)
            return 0

        if token.startswith("--"):
            raise SystemExit(f"Unknown option: {token}\n{USAGE}")

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}\n{USAGE}")

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if arg is None and sys.stdin.isatty():
        from .repl import repl

        repl(config)
        return 0

    arg = arg or "-"
    source = _load_source(arg)
    interpreter = Interpreter(config=config)

    try:
        interpreter.run(source, path=None if arg == "-" else arg)
    except (ParseError, PhpRuntimeError) as exc:
        sys.stdout.flush()
        _report(exc)
        return 1
    finally:
        sys.stdout.flush()

    return 0

if __name__ == "__main__":
    sys.exit(main())
