from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from ..nodes import Assign, BinaryOperator, CompoundAssign, Index, Node, Variable
from ..types import (
    NULL,
    RESERVED_NAME,
    ArrayKey,
    Context,
    IndexNotFound,
    PhpArray,
    PhpNull,
    PhpString,
    PhpTypeError,
    PhpValue,
    ReservedNameError,
    UnboundVariable,
)
from .common import array_key
from .expr import apply_binary_operator

EvalFunc = Callable[[Node, Context], PhpValue]

def _resolve_index_path(target: Index) -> tuple[Variable, List[Optional[Node]]]:
    """Split `$a[x][y]` into the root variable and its dim nodes, outermost first."""
    dims: List[Optional[Node]] = []
    node: Node = target

    while isinstance(node, Index):
        dims.append(node.dim)
        node = node.base

    if not isinstance(node, Variable):
        raise PhpTypeError("Cannot use a temporary expression in write context")

    dims.reverse()
    return node, dims

def _write_path(container: Optional[PhpValue], keys: Sequence[Optional[ArrayKey]], value: PhpValue) -> PhpArray:
    if container is None or isinstance(container, PhpNull):
        updated = PhpArray()
    elif isinstance(container, PhpArray):
        updated = container.copy()
    else:
        raise PhpTypeError(f"Cannot use a scalar value of type {container.type_name} as an array")

    key, rest = keys[0], keys[1:]

    if rest:
        child = updated.get(key) if key is not None else None
        value = _write_path(child, rest, value)

    if key is None:
        updated.append(value)
    else:
        updated.set(key, value)

    return updated

def assign_variable(name: str, value: PhpValue, ctx: Context) -> PhpValue:
    ctx.scope.set(name, value)
    return value

def eval_assign(n: Assign, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    target = n.target

    if isinstance(target, Variable):
        if target.name == RESERVED_NAME:
            raise ReservedNameError(target.name)

        return assign_variable(target.name, eval_func(n.expr, ctx), ctx)

    if isinstance(target, Index):
        root, dims = _resolve_index_path(target)
        if root.name == RESERVED_NAME:
            raise ReservedNameError(root.name)

        keys = [None if dim is None else array_key(eval_func(dim, ctx)) for dim in dims]
        value = eval_func(n.expr, ctx)
        current = ctx.scope.vars.get(root.name)
        ctx.scope.set(root.name, _write_path(current, keys, value))
        return value

    raise PhpTypeError(f"Cannot assign to {type(target).__name__}")

def _read_path(ctx: Context, name: str, keys: List[ArrayKey], absent_ok: bool) -> PhpValue:
    """Current value of `$name[k1][k2]...`; with `absent_ok` anything missing reads as null."""
    try:
        value = ctx.scope.get(name)
    except UnboundVariable:
        if absent_ok:
            return NULL
        raise

    for key in keys:
        if isinstance(value, PhpString):
            raise PhpTypeError("Cannot use assign-op operators with string offsets")

        if isinstance(value, PhpArray):
            found = value.get(key)
        elif isinstance(value, PhpNull):
            found = None
        else:
            raise PhpTypeError(f"Cannot use a scalar value of type {value.type_name} as an array")

        if found is None:
            if absent_ok:
                return NULL
            raise IndexNotFound(key)
        value = found

    return value

def eval_compound_assign(n: CompoundAssign, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    """Keys are evaluated once; the element is then read, combined and written back."""
    target = n.target

    if isinstance(target, Variable):
        root, dims = target, []
    elif isinstance(target, Index):
        root, dims = _resolve_index_path(target)
    else:
        raise PhpTypeError(f"Cannot assign to {type(target).__name__}")

    if root.name == RESERVED_NAME:
        raise ReservedNameError(root.name)
    if any(dim is None for dim in dims):
        raise PhpTypeError("Cannot use [] for reading")

    keys = [array_key(eval_func(dim, ctx)) for dim in dims if dim is not None]

    if n.op is BinaryOperator.COALESCE:
        current = _read_path(ctx, root.name, keys, absent_ok=True)
        if ctx.config.short_circuit and not isinstance(current, PhpNull):
            return current
        value = apply_binary_operator(n.op, current, eval_func(n.expr, ctx))
    else:
        rhs = eval_func(n.expr, ctx)
        value = apply_binary_operator(n.op, _read_path(ctx, root.name, keys, absent_ok=False), rhs)

    if not keys:
        return assign_variable(root.name, value, ctx)

    ctx.scope.set(root.name, _write_path(ctx.scope.vars.get(root.name), keys, value))
    return value
