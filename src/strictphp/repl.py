"""Interactive REPL for StrictPHP, powered by prompt_toolkit."""

from __future__ import annotations

import os
import re
import sys
import traceback
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .config import EvalConfig
from .parser import ParseError, parse
from .runner import Interpreter
from .types import Context, PhpRuntimeError
from .utils import DEBUG_PY_TRACE_ENV, debug_py_trace_enabled

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/clear": ("Clear the terminal screen", ""),
    "/debug": ("Toggle the node dump before each input", "[on|off]"),
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
    "/reset": ("Reset variables and functions", ""),
}

_ON = ("on", "1", "true", "yes")
_OFF = ("off", "0", "false", "no")


class ReplSession:
    """Interpreter state that survives between inputs."""

    def __init__(self, config: Optional[EvalConfig] = None):
        self.interpreter = Interpreter(parser=parse, config=config)
        self.ctx: Context = self.interpreter.new_context()

    @property
    def config(self) -> EvalConfig:
        return self.interpreter.config

    def set_debug(self, debug: bool) -> None:
        self.interpreter.config = self.config.with_debug(debug)
        self.ctx.config = self.interpreter.config

    def reset(self) -> None:
        self.ctx = self.interpreter.new_context()

    def eval(self, text: str) -> None:
        self.interpreter.execute(parse(text), self.ctx)


def _unclosed(text: str) -> bool:
    """Return True while braces, brackets or parens are still open."""
    depth = 0
    quote = None
    escaped = False

    for ch in text:
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue

        if ch in "'\"":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1

    return depth > 0 or quote is not None


class _SlashCompleter(Completer):
    """Autocomplete slash commands on the primary prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=desc,
                )


def _toggle(arg: str, current: bool) -> Optional[bool]:
    if arg.lower() in _ON:
        return True
    if arg.lower() in _OFF:
        return False
    if arg == "":
        return not current
    return None


def _handle_slash(line: str, session: ReplSession) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/clear":
        clear()
        return True

    if cmd == "/debug":
        state = _toggle(arg, session.config.debug)
        if state is None:
            print("Usage: /debug [on|off]", file=sys.stderr)
            return True

        session.set_debug(state)
        print(f"Node dump: {'on' if state else 'off'}")
        return True

    if cmd == "/py-traceback":
        state = _toggle(arg, debug_py_trace_enabled())
        if state is None:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        if state:
            os.environ[DEBUG_PY_TRACE_ENV] = "1"
        else:
            os.environ.pop(DEBUG_PY_TRACE_ENV, None)

        print(f"Python traceback: {'on' if state else 'off'}")
        return True

    if cmd == "/reset":
        session.reset()
        print("Environment reset.")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


def repl(config: Optional[EvalConfig] = None) -> None:
    """Interactive read-eval-print loop with prompt_toolkit."""
    session_state = ReplSession(config)

    bindings = KeyBindings()

    @bindings.add("backspace")
    def _backspace(event):
        buf = event.app.current_buffer
        buf.delete_before_cursor(1)
        if buf.text.startswith("/"):
            buf.start_completion()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer

        # keep reading lines until every brace is closed
        if _unclosed(buf.text):
            buf.insert_text("\n")
            return

        buf.validate_and_handle()

    session: PromptSession[str] = PromptSession(
        history=InMemoryHistory(),
        completer=_SlashCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("strictphp repl (Ctrl-D to exit, / for commands)")

    while True:
        try:
            text = session.prompt("php> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        if _handle_slash(text, session_state):
            continue

        try:
            session_state.eval(text)
        except (ParseError, PhpRuntimeError) as exc:
            sys.stdout.flush()
            print(f"Error: {exc}", file=sys.stderr)
            if debug_py_trace_enabled():
                print("\nPython traceback:", file=sys.stderr)
                print("".join(traceback.format_tb(exc.__traceback__)), file=sys.stderr, end="")
            continue

        print()
