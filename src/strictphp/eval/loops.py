from __future__ import annotations

from typing import Callable

from ..nodes import Foreach, Node
from ..types import NULL, Context, PhpArray, PhpTypeError, PhpValue
from .common import key_value
from .control import eval_block

EvalFunc = Callable[[Node, Context], PhpValue]

def eval_foreach(n: Foreach, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    source = eval_func(n.expr, ctx)

    if not isinstance(source, PhpArray):
        raise PhpTypeError(f"foreach() argument must be of type array, {source.type_name} given")

    # bindings land in whatever scope is current, loop variables outlive the loop
    for key, value in source.items():
        ctx.scope.set(n.value_var, value)

        if n.key_var is not None:
            ctx.scope.set(n.key_var, key_value(key))

        eval_block(n.body, ctx, eval_func)

    return NULL
