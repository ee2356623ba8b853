"""Structural dump of parsed statements, printed before evaluation in debug mode."""
from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, List

from .nodes import (
    STATEMENT_KINDS,
    Arg,
    ArrayItem,
    ArrayLiteral,
    BinaryOp,
    Call,
    CompoundAssign,
    Else,
    ElseIf,
    Float,
    FunctionDecl,
    Index,
    Int,
    Node,
    Param,
    Require,
    String,
    UnaryOp,
    UnaryOperator,
)

_NAMES = {
    String: "Scalar_String",
    Int: "Scalar_Int",
    Float: "Scalar_Float",
    ArrayLiteral: "Expr_Array",
    Index: "Expr_ArrayDimFetch",
    Call: "Expr_FuncCall",
    FunctionDecl: "Stmt_Function",
    Require: "Expr_Include",
    ElseIf: "Stmt_ElseIf",
    Else: "Stmt_Else",
    Param: "Param",
    Arg: "Arg",
    ArrayItem: "ArrayItem",
}

_UNARY_NAMES = {
    UnaryOperator.NOT: "Expr_BooleanNot",
    UnaryOperator.MINUS: "Expr_UnaryMinus",
    UnaryOperator.PLUS: "Expr_UnaryPlus",
    UnaryOperator.BITWISE_NOT: "Expr_BitwiseNot",
}

_INDENT = "    "


def _camel(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


def node_name(node: Node) -> str:
    if isinstance(node, BinaryOp):
        return "Expr_BinaryOp_" + _camel(node.op.name)
    if isinstance(node, CompoundAssign):
        return "Expr_AssignOp_" + _camel(node.op.name)
    if isinstance(node, UnaryOp):
        return _UNARY_NAMES[node.op]

    cls = type(node)
    if cls in _NAMES:
        return _NAMES[cls]

    prefix = "Stmt_" if isinstance(node, STATEMENT_KINDS) else "Expr_"
    return prefix + cls.__name__


def _scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _dump(value: Any, depth: int, lines: List[str], head: str) -> None:
    pad = _INDENT * depth

    if isinstance(value, tuple):
        if not value:
            lines.append(f"{pad}{head}array(\n{pad})")
            return
        lines.append(f"{pad}{head}array(")
        for i, item in enumerate(value):
            _dump(item, depth + 1, lines, f"{i}: ")
        lines.append(f"{pad})")
        return

    if isinstance(value, Node):
        lines.append(f"{pad}{head}{node_name(value)}(")
        for f in dataclasses.fields(value):
            if f.name == "line":
                continue
            field_value = getattr(value, f.name)
            if isinstance(field_value, Enum):
                continue
            _dump(field_value, depth + 1, lines, f"{f.name}: ")
        lines.append(f"{pad})")
        return

    lines.append(f"{pad}{head}{_scalar(value)}")


def dump(stmts: Any) -> str:
    """Render a node or a tuple of nodes as an indented tree."""
    lines: List[str] = []
    _dump(stmts, 0, lines, "")
    return "\n".join(lines)
