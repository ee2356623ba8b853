from __future__ import annotations

import logging
from typing import Callable

from ..nodes import Arg, Call, FunctionDecl, Node
from ..runtime import call_function
from ..types import NULL, Context, PhpValue

logger = logging.getLogger(__name__)

EvalFunc = Callable[[Node, Context], PhpValue]

def eval_fn_def(n: FunctionDecl, ctx: Context) -> PhpValue:
    if n.name in ctx.functions:
        logger.debug("function %s redeclared; replacing earlier definition", n.name)

    ctx.functions.define(n.name, n.params, n.body)
    return NULL

def eval_arg(n: Arg, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    return eval_func(n.value, ctx)

def eval_call(n: Call, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    fn = ctx.functions.lookup(n.name)

    if fn is None:
        logger.debug("call to undeclared function %s() ignored", n.name)
        return NULL

    args = [eval_func(arg, ctx) for arg in n.args]
    return call_function(fn, args, ctx, eval_func)
