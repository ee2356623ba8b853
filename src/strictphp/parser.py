"""Source text to syntax nodes.

Parsing happens in three steps:

1. Open/close tags are rewritten so that inline text outside ``<?php ... ?>``
   becomes ordinary ``echo '...';`` statements on the same source lines.
2. The lark LALR parser (basic lexer, keyword remapping through a lexer
   callback) produces a parse tree from ``grammar.lark``.
3. ``PhpLowering`` turns the tree into the frozen dataclasses of ``nodes``.
"""
from __future__ import annotations

import dataclasses
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

from lark import Lark, Token, Transformer, UnexpectedInput
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, VisitError
from lark.visitors import v_args

from .eval.common import INT_MAX
from .nodes import (
    Arg,
    ArrayItem,
    ArrayLiteral,
    Assign,
    BinaryOp,
    BinaryOperator,
    Call,
    CompoundAssign,
    ConstFetch,
    Echo,
    Else,
    ElseIf,
    Float,
    Foreach,
    FunctionDecl,
    If,
    Index,
    Int,
    Node,
    Nop,
    Param,
    Require,
    Return,
    String,
    UnaryOp,
    UnaryOperator,
    Variable,
)

GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")


class ParseError(Exception):
    """Raised when source text is not a valid program."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line})"

# ---------------- open/close tags ----------------

_OPEN_TAG = re.compile(r"<\?php(?:\s|$)", re.IGNORECASE)

def _blank(text: str) -> str:
    return re.sub(r"[^\n]", " ", text)

def _inline_echo(text: str) -> str:
    if not text:
        return ""
    escaped = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"echo '{escaped}';"

def _find_close_tag(text: str, pos: int) -> Optional[Tuple[int, int]]:
    """Locate the next ``?>`` that is not inside a string or block comment.

    Returns ``(code_end, close)``: code before ``code_end`` is kept, and a line
    comment cut short by the tag spans ``code_end`` to ``close``.
    """
    i = pos
    n = len(text)

    while i < n:
        ch = text[i]

        if ch in "'\"":
            i += 1
            while i < n and text[i] != ch:
                i += 2 if text[i] == "\\" else 1
            i += 1
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                return None
            i = end + 2
        elif ch == "#" or text.startswith("//", i):
            # a line comment still ends at a close tag
            start = i
            while i < n and text[i] != "\n":
                if text.startswith("?>", i):
                    return start, i
                i += 1
        elif text.startswith("?>", i):
            return i, i
        else:
            i += 1

    return None

def expand_tags(text: str) -> str:
    """Rewrite inline text around ``<?php``/``?>`` as echo statements.

    Source without an open tag is returned unchanged and parsed as code.
    Line numbers are preserved.
    """
    m = _OPEN_TAG.search(text)
    if m is None:
        return text

    out = [_inline_echo(text[:m.start()]), _blank(m.group())]
    pos = m.end()

    while pos < len(text):
        found = _find_close_tag(text, pos)
        if found is None:
            out.append(text[pos:])
            break

        code_end, close = found
        out.append(text[pos:code_end])
        out.append(_blank(text[code_end:close]))
        out.append("; ")
        pos = close + 2

        # a single newline directly after the close tag is swallowed
        if text.startswith("\r\n", pos):
            out.append("\r\n")
            pos += 2
        elif text.startswith("\n", pos):
            out.append("\n")
            pos += 1

        nxt = _OPEN_TAG.search(text, pos)
        end = nxt.start() if nxt is not None else len(text)
        out.append(_inline_echo(text[pos:end]))

        if nxt is None:
            break

        out.append(_blank(nxt.group()))
        pos = nxt.end()

    return "".join(out)

# ---------------- lark parser ----------------

KEYWORDS = {
    "echo": "_ECHO",
    "if": "_IF",
    "elseif": "_ELSEIF",
    "else": "_ELSE",
    "foreach": "_FOREACH",
    "as": "_AS",
    "function": "_FUNCTION",
    "return": "_RETURN",
    "array": "_ARRAY",
    "require": "REQUIRE",
    "require_once": "REQUIRE",
    "include": "REQUIRE",
    "include_once": "REQUIRE",
    "and": "AND_KW",
    "or": "OR_KW",
    "xor": "XOR_KW",
}

def _remap_ident(t: Token) -> Token:
    # keywords are case-insensitive; only whole words are remapped
    t.type = KEYWORDS.get(t.value.lower(), t.type)
    return t

def build_parser(grammar_text: str) -> Lark:
    return Lark(
        grammar_text,
        parser="lalr",
        lexer="basic",
        start="start",
        maybe_placeholders=False,
        propagate_positions=True,
        lexer_callbacks={"IDENT": _remap_ident},
    )

@lru_cache(maxsize=1)
def make_parser() -> Lark:
    return build_parser(GRAMMAR_PATH.read_text(encoding="utf-8"))

# ---------------- literal helpers ----------------

_DQ_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "v": "\v",
    "e": "\x1b",
    "f": "\f",
    "\\": "\\",
    "$": "$",
    '"': '"',
}
_OCTAL_ESCAPE = re.compile(r"[0-7]{1,3}")
_HEX_ESCAPE = re.compile(r"x([0-9A-Fa-f]{1,2})")
_UNICODE_ESCAPE = re.compile(r"u\{([0-9A-Fa-f]+)\}")
_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

def int_literal(text: str, line: Optional[int] = None) -> Union[Int, Float]:
    digits = text.replace("_", "")
    prefix = digits[:2].lower()

    if prefix == "0x":
        value = int(digits[2:], 16)
    elif prefix == "0b":
        value = int(digits[2:], 2)
    elif prefix == "0o":
        value = int(digits[2:], 8)
    elif len(digits) > 1 and digits[0] == "0":
        if any(d in "89" for d in digits):
            raise ParseError("Invalid numeric literal", line)
        value = int(digits, 8)
    else:
        value = int(digits)

    if value > INT_MAX:
        return Float(float(value), line=line)
    return Int(value, line=line)

def single_quoted(raw: str) -> str:
    return re.sub(r"\\([\\'])", r"\1", raw)

def double_quoted(raw: str, line: Optional[int] = None) -> Node:
    """Decode escapes and lower ``$name`` / ``{$name}`` interpolation to concatenation."""
    parts: List[Union[str, Node]] = []
    buf: List[str] = []

    def flush() -> None:
        if buf:
            parts.append("".join(buf))
            buf.clear()

    i = 0
    n = len(raw)

    while i < n:
        ch = raw[i]

        if ch == "\\" and i + 1 < n:
            nxt = raw[i + 1]

            if nxt in _DQ_ESCAPES:
                buf.append(_DQ_ESCAPES[nxt])
                i += 2
                continue

            m = _OCTAL_ESCAPE.match(raw, i + 1)
            if m:
                buf.append(chr(int(m.group(), 8) & 0xFF))
                i = m.end()
                continue

            m = _HEX_ESCAPE.match(raw, i + 1)
            if m:
                buf.append(chr(int(m.group(1), 16)))
                i = m.end()
                continue

            m = _UNICODE_ESCAPE.match(raw, i + 1)
            if m:
                buf.append(chr(int(m.group(1), 16)))
                i = m.end()
                continue

            buf.append(ch)
            i += 1
            continue

        if ch == "$":
            m = _NAME.match(raw, i + 1)
            if m:
                flush()
                parts.append(Variable(m.group(), line=line))
                i = m.end()
                continue

        if ch == "{" and raw.startswith("$", i + 1):
            m = _NAME.match(raw, i + 2)
            if m and raw.startswith("}", m.end()):
                flush()
                parts.append(Variable(m.group(), line=line))
                i = m.end() + 1
                continue

        buf.append(ch)
        i += 1

    flush()

    nodes = [String(p, line=line) if isinstance(p, str) else p for p in parts]
    if not nodes:
        return String("", line=line)
    if len(nodes) == 1 and isinstance(nodes[0], String):
        return nodes[0]

    # "$x" alone still has to produce a string
    result: Node = nodes[0] if isinstance(nodes[0], String) else String("", line=line)
    rest = nodes[1:] if isinstance(nodes[0], String) else nodes

    for part in rest:
        result = BinaryOp(BinaryOperator.CONCAT, result, part, line=line)

    return result

# ---------------- lowering ----------------

def _line(meta: Any) -> Optional[int]:
    if getattr(meta, "empty", True):
        return None
    return getattr(meta, "line", None)

def _flatten(items: Iterable[Any]) -> Tuple[Node, ...]:
    out: List[Node] = []
    for item in items:
        if isinstance(item, tuple):
            out.extend(_flatten(item))
        else:
            out.append(item)
    return tuple(out)

def _body(stmt: Any) -> Tuple[Node, ...]:
    return _flatten([stmt])

def _binary_operator(tok: Token) -> BinaryOperator:
    symbol = tok.value.lower()
    if symbol == "<>":
        return BinaryOperator.NOT_EQUAL
    return BinaryOperator(symbol)

def _check_target(target: Node, line: Optional[int]) -> None:
    if isinstance(target, Variable):
        return
    if isinstance(target, Index):
        base = target.base
        while isinstance(base, Index):
            base = base.base
        if isinstance(base, Variable):
            return
    raise ParseError("Cannot assign to this expression", line)


class PhpLowering(Transformer):
    def start(self, items):
        return _flatten(items)

    # ---- statements ----

    @v_args(meta=True)
    def echo(self, meta, c):
        return Echo(tuple(c), line=_line(meta))

    def expr_stmt(self, c):
        return c[0]

    @v_args(meta=True)
    def if_stmt(self, meta, c):
        cond, body, *rest = c
        elseifs = tuple(x for x in rest if isinstance(x, ElseIf))
        else_ = next((x for x in rest if isinstance(x, Else)), None)
        return If(cond, _body(body), elseifs, else_, line=_line(meta))

    @v_args(meta=True)
    def elseif_clause(self, meta, c):
        return ElseIf(c[0], _body(c[1]), line=_line(meta))

    @v_args(meta=True)
    def else_clause(self, meta, c):
        return Else(_body(c[0]), line=_line(meta))

    @v_args(meta=True)
    def foreach(self, meta, c):
        expr, value_var, body = c
        return Foreach(expr, value_var[1:], _body(body), line=_line(meta))

    @v_args(meta=True)
    def foreach_kv(self, meta, c):
        expr, key_var, value_var, body = c
        return Foreach(expr, value_var[1:], _body(body), key_var=key_var[1:], line=_line(meta))

    @v_args(meta=True)
    def function_decl(self, meta, c):
        name, params, body = c
        return FunctionDecl(name.value.lower(), params, body, line=_line(meta))

    def params(self, c):
        return tuple(c)

    @v_args(meta=True)
    def param(self, meta, c):
        default = c[1] if len(c) > 1 else None
        return Param(c[0][1:], default, line=_line(meta))

    def fn_body(self, c):
        return _flatten(c)

    @v_args(meta=True)
    def return_stmt(self, meta, c):
        return Return(c[0] if c else None, line=_line(meta))

    @v_args(meta=True)
    def require(self, meta, c):
        keyword = c[0].value.lower()
        return Require(
            c[1],
            once=keyword.endswith("_once"),
            fatal=keyword.startswith("require"),
            line=_line(meta),
        )

    def block(self, c):
        return _flatten(c)

    @v_args(meta=True)
    def nop(self, meta, c):
        return Nop(line=_line(meta))

    # ---- expressions ----

    @v_args(meta=True)
    def binop(self, meta, c):
        left, op, right = c
        return BinaryOp(_binary_operator(op), left, right, line=_line(meta))

    @v_args(meta=True)
    def unop(self, meta, c):
        op, operand = c
        return UnaryOp(UnaryOperator(op.value), operand, line=_line(meta))

    @v_args(meta=True)
    def assign(self, meta, c):
        target, expr = c
        _check_target(target, _line(meta))
        return Assign(target, expr, line=_line(meta))

    @v_args(meta=True)
    def compound_assign(self, meta, c):
        target, op, expr = c
        line = _line(meta)
        _check_target(target, line)
        if isinstance(target, Index) and target.dim is None:
            raise ParseError("Cannot use [] for reading", line)
        return CompoundAssign(BinaryOperator(op.value[:-1]), target, expr, line=line)

    @v_args(meta=True)
    def index(self, meta, c):
        return Index(c[0], c[1], line=_line(meta))

    @v_args(meta=True)
    def append_index(self, meta, c):
        return Index(c[0], None, line=_line(meta))

    @v_args(meta=True)
    def call(self, meta, c):
        name, args = c
        return Call(name.value.lower(), args, line=_line(meta))

    def args(self, c):
        return tuple(Arg(a, line=getattr(a, "line", None)) for a in c)

    def variable(self, c):
        tok = c[0]
        return Variable(tok.value[1:], line=tok.line)

    def const(self, c):
        tok = c[0]
        return ConstFetch(tok.value, line=tok.line)

    def int(self, c):
        return int_literal(c[0].value, c[0].line)

    def float(self, c):
        return Float(float(c[0].value.replace("_", "")), line=c[0].line)

    def sq_string(self, c):
        return String(single_quoted(c[0].value[1:-1]), line=c[0].line)

    def dq_string(self, c):
        return double_quoted(c[0].value[1:-1], c[0].line)

    @v_args(meta=True)
    def array_lit(self, meta, c):
        return ArrayLiteral(c[0], line=_line(meta))

    def array_items(self, c):
        return tuple(c)

    @v_args(meta=True)
    def array_item(self, meta, c):
        if len(c) == 2:
            return ArrayItem(c[1], key=c[0], line=_line(meta))
        return ArrayItem(c[0], line=_line(meta))

# ---------------- validation ----------------

def _reject_append_reads(node: Any, as_target: bool = False) -> None:
    """`$a[]` is only meaningful as the target of an assignment."""
    if isinstance(node, tuple):
        for item in node:
            _reject_append_reads(item)
        return

    if not isinstance(node, Node):
        return

    if isinstance(node, Assign):
        _reject_append_reads(node.target, as_target=True)
        _reject_append_reads(node.expr)
        return

    if isinstance(node, Index):
        if node.dim is None and not as_target:
            raise ParseError("Cannot use [] for reading", node.line)
        _reject_append_reads(node.base, as_target=as_target)
        if node.dim is not None:
            _reject_append_reads(node.dim)
        return

    for f in dataclasses.fields(node):
        _reject_append_reads(getattr(node, f.name))

# ---------------- public API ----------------

def _describe(err: UnexpectedInput) -> str:
    if isinstance(err, UnexpectedEOF):
        return "syntax error, unexpected end of file"
    if isinstance(err, UnexpectedCharacters):
        return f"syntax error, unexpected character '{err.char}'"

    token = getattr(err, "token", None)
    if token is None or token.type == "$END":
        return "syntax error, unexpected end of file"
    return f'syntax error, unexpected token "{token}"'

def parse(text: str) -> Tuple[Node, ...]:
    """Parse program text into a tuple of top-level statements."""
    source = expand_tags(text)

    try:
        tree = make_parser().parse(source)
    except UnexpectedInput as err:
        line = getattr(err, "line", None)
        column = getattr(err, "column", None)
        line = line if line and line > 0 else None
        column = column if column and column > 0 else None
        raise ParseError(_describe(err), line, column) from err

    try:
        stmts = PhpLowering().transform(tree)
    except VisitError as err:
        if isinstance(err.orig_exc, ParseError):
            raise err.orig_exc from None
        raise

    _reject_append_reads(stmts)
    return stmts
