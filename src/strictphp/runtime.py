from __future__ import annotations

import logging
from typing import Callable, List

from .nodes import Node, Return
from .types import (
    NULL,
    ArgumentCountError,
    Context,
    FunctionDefinition,
    FunctionTable,
    PhpArray,
    PhpBool,
    PhpFloat,
    PhpInt,
    PhpNull,
    PhpRuntimeError,
    PhpString,
    PhpValue,
    ReturnSignal,
    Scope,
    StackOverflow,
)

logger = logging.getLogger(__name__)

EvalFunc = Callable[[Node, Context], PhpValue]

__all__ = [
    "Context",
    "FunctionDefinition",
    "FunctionTable",
    "PhpArray",
    "PhpBool",
    "PhpFloat",
    "PhpInt",
    "PhpNull",
    "PhpRuntimeError",
    "PhpString",
    "PhpValue",
    "Scope",
    "bind_arguments",
    "call_function",
]

def bind_arguments(fn: FunctionDefinition, args: List[PhpValue], ctx: Context, eval_func: EvalFunc) -> None:
    """Bind parameter i to argument i in the (already active) callee scope.

    Extra arguments are dropped. A missing argument takes the parameter's
    default, evaluated against the callee scope; without one the call fails.
    """
    for idx, param in enumerate(fn.params):
        if idx < len(args):
            ctx.scope.set(param.name, args[idx])
            continue

        if param.default is None:
            required = fn.required_count
            raise ArgumentCountError(fn.name, param.name, len(args), required, exact=required == len(fn.params))

        ctx.scope.set(param.name, eval_func(param.default, ctx))

def _run_body_reference(fn: FunctionDefinition, ctx: Context, eval_func: EvalFunc) -> tuple[bool, PhpValue]:
    for stmt in fn.body:
        value = eval_func(stmt, ctx)

        if isinstance(stmt, Return):
            return True, value

    return False, NULL

def _run_body(fn: FunctionDefinition, ctx: Context, eval_func: EvalFunc) -> tuple[bool, PhpValue]:
    try:
        for stmt in fn.body:
            eval_func(stmt, ctx)
    except ReturnSignal as signal:
        return True, signal.value

    return False, NULL

def call_function(fn: FunctionDefinition, args: List[PhpValue], ctx: Context, eval_func: EvalFunc) -> PhpValue:
    """Invoke a declared function with already-evaluated arguments.

    The callee runs in a fresh Scope swapped in for the call. The caller's scope
    comes back on a normal exit; after a `return` it only comes back when
    `restore_scope_on_return` is set.
    """
    logger.debug("call %s(%d args) depth=%d", fn.name, len(args), ctx.call_depth)
    previous = ctx.swap_scope(Scope())
    ctx.call_depth += 1
    returned = False

    try:
        bind_arguments(fn, args, ctx, eval_func)

        if ctx.config.propagate_return:
            returned, result = _run_body(fn, ctx, eval_func)
        else:
            returned, result = _run_body_reference(fn, ctx, eval_func)
    except RecursionError:
        # innermost call converts; outer frames see a PhpRuntimeError
        raise StackOverflow(ctx.call_depth) from None
    finally:
        ctx.call_depth -= 1

        if not returned or ctx.config.restore_scope_on_return:
            ctx.scope = previous

    return result
