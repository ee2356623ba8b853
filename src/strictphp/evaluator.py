from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional

from .nodes import (
    Arg,
    ArrayLiteral,
    Assign,
    BinaryOp,
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
    Require,
    Return,
    String,
    UnaryOp,
    Variable,
)
from .types import NULL, Context, PhpFloat, PhpInt, PhpRuntimeError, PhpString, PhpValue, ReturnSignal

from .eval.bind import eval_assign, eval_compound_assign
from .eval.control import eval_block, eval_echo, eval_if_stmt, eval_return_stmt
from .eval.expr import eval_binary, eval_unary
from .eval.fn import eval_arg, eval_call, eval_fn_def
from .eval.include import eval_require
from .eval.literals import eval_array_literal, eval_const, eval_index, eval_variable
from .eval.loops import eval_foreach

EvalFunc = Callable[[Node, Context], PhpValue]


def _maybe_attach_location(exc: PhpRuntimeError, node: Node) -> None:
    if exc.line is None and node.line is not None:
        exc.line = node.line

# ---------------- Public API ----------------

def eval_program(stmts: Iterable[Node], ctx: Context) -> Optional[PhpValue]:
    """Evaluate top-level statements in order.

    A propagated top-level `return` stops the program; its value is returned.
    """
    try:
        for stmt in stmts:
            eval_node(stmt, ctx)
    except ReturnSignal as signal:
        return signal.value

    return None

# ---------------- Core evaluator ----------------

def eval_node(n: Node, ctx: Context) -> PhpValue:
    try:
        return _eval_node_inner(n, ctx)
    except PhpRuntimeError as e:
        _maybe_attach_location(e, n)
        raise


def _eval_node_inner(n: Node, ctx: Context) -> PhpValue:
    handler = _NODE_DISPATCH.get(type(n))
    if handler is None:
        raise PhpRuntimeError(f"Unknown node: {type(n).__name__}")

    return handler(n, ctx)

def _eval_else_branch(n: ElseIf | Else, ctx: Context) -> PhpValue:
    # clauses are driven by their If; reached only when evaluated on their own
    return eval_block(n.body, ctx, eval_node)

_NODE_DISPATCH: Dict[type, Callable[..., PhpValue]] = {
    Echo: lambda n, ctx: eval_echo(n, ctx, eval_node),
    String: lambda n, _: PhpString(n.value),
    Int: lambda n, _: PhpInt(n.value),
    Float: lambda n, _: PhpFloat(n.value),
    ArrayLiteral: lambda n, ctx: eval_array_literal(n, ctx, eval_node),
    BinaryOp: lambda n, ctx: eval_binary(n, ctx, eval_node),
    UnaryOp: lambda n, ctx: eval_unary(n, ctx, eval_node),
    Assign: lambda n, ctx: eval_assign(n, ctx, eval_node),
    CompoundAssign: lambda n, ctx: eval_compound_assign(n, ctx, eval_node),
    Variable: eval_variable,
    ConstFetch: eval_const,
    Index: lambda n, ctx: eval_index(n, ctx, eval_node),
    FunctionDecl: eval_fn_def,
    Call: lambda n, ctx: eval_call(n, ctx, eval_node),
    Arg: lambda n, ctx: eval_arg(n, ctx, eval_node),
    Return: lambda n, ctx: eval_return_stmt(n, ctx, eval_node),
    If: lambda n, ctx: eval_if_stmt(n, ctx, eval_node),
    ElseIf: _eval_else_branch,
    Else: _eval_else_branch,
    Nop: lambda _, __: NULL,
    Foreach: lambda n, ctx: eval_foreach(n, ctx, eval_node),
    Require: lambda n, ctx: eval_require(n, ctx, eval_node),
}
