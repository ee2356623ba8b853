from __future__ import annotations

from typing import Callable, Dict

from ..nodes import ArrayLiteral, ConstFetch, Index, Node, Variable
from ..types import (
    Context,
    IndexNotFound,
    NULL,
    PhpArray,
    PhpBool,
    PhpInt,
    PhpString,
    PhpTypeError,
    PhpValue,
    UnknownConstant,
)
from .common import array_key, parse_numeric

EvalFunc = Callable[[Node, Context], PhpValue]

_CONSTANTS: Dict[str, Callable[[], PhpValue]] = {
    "true": lambda: PhpBool(True),
    "false": lambda: PhpBool(False),
    "null": lambda: NULL,
}

def eval_const(n: ConstFetch, ctx: Context) -> PhpValue:
    factory = _CONSTANTS.get(n.name.lower())
    if factory is None:
        raise UnknownConstant(n.name)

    return factory()

def eval_variable(n: Variable, ctx: Context) -> PhpValue:
    return ctx.scope.get(n.name)

def eval_array_literal(n: ArrayLiteral, ctx: Context, eval_func: EvalFunc) -> PhpArray:
    result = PhpArray()

    for item in n.items:
        value = eval_func(item.value, ctx)

        if item.key is None:
            result.append(value)
        else:
            result.set(array_key(eval_func(item.key, ctx)), value)

    return result

def _string_offset(text: str, dim: PhpValue) -> PhpString:
    if isinstance(dim, PhpInt):
        offset = dim.value
    else:
        num = parse_numeric(dim.value) if isinstance(dim, PhpString) else None
        if not isinstance(num, PhpInt):
            raise PhpTypeError(f"Cannot access offset of type {dim.type_name} on string")
        offset = num.value

    pos = offset + len(text) if offset < 0 else offset
    if not 0 <= pos < len(text):
        raise IndexNotFound(offset)

    return PhpString(text[pos])

def read_index(base: PhpValue, dim: PhpValue) -> PhpValue:
    if isinstance(base, PhpArray):
        key = array_key(dim)
        found = base.get(key)

        if found is None:
            raise IndexNotFound(key)
        return found

    if isinstance(base, PhpString):
        return _string_offset(base.value, dim)

    raise PhpTypeError(f"Trying to access array offset on value of type {base.type_name}")

def eval_index(n: Index, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    base = eval_func(n.base, ctx)

    if n.dim is None:
        raise PhpTypeError("Cannot use [] for reading")

    return read_index(base, eval_func(n.dim, ctx))
