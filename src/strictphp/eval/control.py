from __future__ import annotations

from typing import Callable, Iterable

from ..nodes import Echo, If, Node, Return
from ..types import NULL, Context, PhpValue, ReturnSignal
from .common import stringify
from .helpers import is_truthy

EvalFunc = Callable[[Node, Context], PhpValue]

def eval_block(stmts: Iterable[Node], ctx: Context, eval_func: EvalFunc) -> PhpValue:
    for stmt in stmts:
        eval_func(stmt, ctx)

    return NULL

def eval_echo(n: Echo, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    values = [eval_func(expr, ctx) for expr in n.exprs]
    ctx.write("".join(stringify(v) for v in values))
    return NULL

def eval_return_stmt(n: Return, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    value = eval_func(n.expr, ctx) if n.expr is not None else NULL

    if ctx.config.propagate_return:
        raise ReturnSignal(value)

    # without propagation only the call loop looks at Return nodes
    return value

def eval_if_stmt(n: If, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    if is_truthy(eval_func(n.cond, ctx)):
        return eval_block(n.body, ctx, eval_func)

    matched = False

    for clause in n.elseifs:
        if matched and ctx.config.short_circuit_elseif:
            break

        if is_truthy(eval_func(clause.cond, ctx)) and not matched:
            matched = True
            eval_block(clause.body, ctx, eval_func)

    if not matched and n.else_ is not None:
        eval_block(n.else_.body, ctx, eval_func)

    return NULL
