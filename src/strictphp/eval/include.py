from __future__ import annotations

import logging
from typing import Callable

from ..nodes import Node, Require
from ..types import Context, PhpBool, PhpInt, PhpValue, RequireError, ReturnSignal
from .common import stringify

logger = logging.getLogger(__name__)

EvalFunc = Callable[[Node, Context], PhpValue]

def eval_require(n: Require, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    """Run another file's statements in the current scope."""
    path = stringify(eval_func(n.path, ctx))

    try:
        if ctx.loader is None:
            raise FileNotFoundError(path)
        stmts = ctx.loader.load(path, once=n.once)
    except FileNotFoundError as exc:
        if n.fatal:
            raise RequireError(path, n.keyword) from exc

        logger.warning("%s(%s): Failed to open stream: No such file or directory", n.keyword, path)
        return PhpBool(False)

    if stmts is None:
        logger.debug("%s %s skipped, already included", n.keyword, path)
        return PhpBool(True)

    logger.debug("%s %s (%d statements)", n.keyword, path, len(stmts))

    try:
        for stmt in stmts:
            eval_func(stmt, ctx)
    except ReturnSignal as signal:
        return signal.value

    return PhpInt(1)
