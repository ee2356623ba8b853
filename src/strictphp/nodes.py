"""Immutable syntax nodes consumed by the evaluator.

The parser lowers its lark parse tree into these classes; the evaluator only
ever reads them. Every node carries an optional source line used when an error
is reported.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class BinaryOperator(Enum):
    CONCAT = "."
    SMALLER = "<"
    SMALLER_OR_EQUAL = "<="
    GREATER = ">"
    GREATER_OR_EQUAL = ">="
    SPACESHIP = "<=>"
    EQUAL = "=="
    NOT_EQUAL = "!="
    IDENTICAL = "==="
    NOT_IDENTICAL = "!=="
    PLUS = "+"
    MINUS = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    POW = "**"
    BOOLEAN_AND = "&&"
    BOOLEAN_OR = "||"
    LOGICAL_AND = "and"
    LOGICAL_OR = "or"
    LOGICAL_XOR = "xor"
    BITWISE_AND = "&"
    BITWISE_OR = "|"
    BITWISE_XOR = "^"
    COALESCE = "??"
    SHIFT_LEFT = "<<"
    SHIFT_RIGHT = ">>"


class UnaryOperator(Enum):
    NOT = "!"
    MINUS = "-"
    PLUS = "+"
    BITWISE_NOT = "~"


@dataclass(frozen=True)
class Node:
    line: Optional[int] = field(default=None, compare=False, kw_only=True)


Body = Tuple[Node, ...]

# ---------- Statements ----------

@dataclass(frozen=True)
class Echo(Node):
    exprs: Tuple[Node, ...]

@dataclass(frozen=True)
class Nop(Node):
    pass

@dataclass(frozen=True)
class Return(Node):
    expr: Optional[Node] = None

@dataclass(frozen=True)
class ElseIf(Node):
    cond: Node
    body: Body

@dataclass(frozen=True)
class Else(Node):
    body: Body

@dataclass(frozen=True)
class If(Node):
    cond: Node
    body: Body
    elseifs: Tuple[ElseIf, ...] = ()
    else_: Optional[Else] = None

@dataclass(frozen=True)
class Foreach(Node):
    expr: Node
    value_var: str
    body: Body
    key_var: Optional[str] = None

@dataclass(frozen=True)
class Param(Node):
    name: str
    default: Optional[Node] = None

@dataclass(frozen=True)
class FunctionDecl(Node):
    name: str
    params: Tuple[Param, ...]
    body: Body

@dataclass(frozen=True)
class Require(Node):
    """require / require_once / include / include_once."""
    path: Node
    once: bool = False
    fatal: bool = True

    @property
    def keyword(self) -> str:
        base = "require" if self.fatal else "include"
        return base + "_once" if self.once else base

# ---------- Expressions ----------

@dataclass(frozen=True)
class String(Node):
    value: str

@dataclass(frozen=True)
class Int(Node):
    value: int

@dataclass(frozen=True)
class Float(Node):
    value: float

@dataclass(frozen=True)
class ArrayItem(Node):
    value: Node
    key: Optional[Node] = None

@dataclass(frozen=True)
class ArrayLiteral(Node):
    items: Tuple[ArrayItem, ...] = ()

@dataclass(frozen=True)
class BinaryOp(Node):
    op: BinaryOperator
    left: Node
    right: Node

@dataclass(frozen=True)
class UnaryOp(Node):
    op: UnaryOperator
    operand: Node

@dataclass(frozen=True)
class Variable(Node):
    name: str

@dataclass(frozen=True)
class ConstFetch(Node):
    name: str

@dataclass(frozen=True)
class Index(Node):
    base: Node
    dim: Optional[Node]  # None only for `$a[] = ...` targets

@dataclass(frozen=True)
class Assign(Node):
    target: Node
    expr: Node

@dataclass(frozen=True)
class CompoundAssign(Node):
    """`$x op= expr`; the target's keys are evaluated once."""
    op: BinaryOperator
    target: Node
    expr: Node

@dataclass(frozen=True)
class Arg(Node):
    value: Node

@dataclass(frozen=True)
class Call(Node):
    name: str
    args: Tuple[Arg, ...] = ()


STATEMENT_KINDS: Tuple[type, ...] = (Echo, Nop, Return, If, Foreach, FunctionDecl, Require)
