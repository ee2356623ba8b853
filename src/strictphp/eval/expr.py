from __future__ import annotations

import math
from typing import Callable, Dict, Tuple

from ..nodes import BinaryOp, BinaryOperator, Index, Node, UnaryOp, UnaryOperator, Variable
from ..types import (
    NULL,
    Context,
    DivisionByZero,
    IndexNotFound,
    PhpArithmeticError,
    PhpArray,
    PhpBool,
    PhpFloat,
    PhpInt,
    PhpNull,
    PhpString,
    PhpTypeError,
    PhpValue,
    UnboundVariable,
    UnsupportedOperand,
)
from ..utils import is_smaller, is_smaller_or_equal, loose_equals, spaceship, strict_equals
from .common import Number, array_key, float_to_int, int_result, stringify, to_int, to_number
from .helpers import is_truthy, php_bool
from .literals import read_index

EvalFunc = Callable[[Node, Context], PhpValue]
BinaryFn = Callable[[PhpValue, PhpValue], PhpValue]

_INT_BITS = 64

def _wrap_int(value: int) -> int:
    half = 1 << (_INT_BITS - 1)
    return ((value + half) % (1 << _INT_BITS)) - half

# ---------------- Arithmetic ----------------

def _numeric_pair(op: BinaryOperator, lhs: PhpValue, rhs: PhpValue) -> Tuple[Number, Number]:
    lnum = to_number(lhs)
    rnum = to_number(rhs)

    if lnum is None or rnum is None:
        raise UnsupportedOperand(op.value, lhs, rhs)

    return lnum, rnum

def _int_pair(op: BinaryOperator, lhs: PhpValue, rhs: PhpValue) -> Tuple[int, int]:
    lint = to_int(lhs)
    rint = to_int(rhs)

    if lint is None or rint is None:
        raise UnsupportedOperand(op.value, lhs, rhs)

    return lint, rint

def _arith(op: BinaryOperator, lhs: PhpValue, rhs: PhpValue, fn: Callable[[object, object], object]) -> PhpValue:
    a, b = _numeric_pair(op, lhs, rhs)

    if isinstance(a, PhpInt) and isinstance(b, PhpInt):
        return int_result(fn(a.value, b.value))  # type: ignore[arg-type]

    return PhpFloat(fn(float(a.value), float(b.value)))  # type: ignore[arg-type]

def _plus(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    if isinstance(lhs, PhpArray) and isinstance(rhs, PhpArray):
        merged = lhs.copy()

        for key, val in rhs.items():
            if key not in merged:
                merged.set(key, val)
        return merged

    return _arith(BinaryOperator.PLUS, lhs, rhs, lambda a, b: a + b)

def _minus(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    return _arith(BinaryOperator.MINUS, lhs, rhs, lambda a, b: a - b)

def _mul(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    return _arith(BinaryOperator.MUL, lhs, rhs, lambda a, b: a * b)

def _div(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    a, b = _numeric_pair(BinaryOperator.DIV, lhs, rhs)

    if b.value == 0:
        raise DivisionByZero("/")

    if isinstance(a, PhpInt) and isinstance(b, PhpInt) and a.value % b.value == 0:
        return int_result(a.value // b.value)

    return PhpFloat(a.value / b.value)

def _mod(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    a, b = _int_pair(BinaryOperator.MOD, lhs, rhs)

    if b == 0:
        raise DivisionByZero("%")

    rem = abs(a) % abs(b)
    return PhpInt(-rem if a < 0 else rem)

def _float_pow(base: float, exp: float) -> PhpFloat:
    try:
        return PhpFloat(math.pow(base, exp))
    except OverflowError:
        negative = base < 0 and exp.is_integer() and int(exp) % 2 == 1
        return PhpFloat(-math.inf if negative else math.inf)
    except ValueError:
        if base == 0:
            return PhpFloat(math.inf)
        return PhpFloat(math.nan)

def _pow(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    a, b = _numeric_pair(BinaryOperator.POW, lhs, rhs)

    if isinstance(a, PhpInt) and isinstance(b, PhpInt) and b.value >= 0:
        if abs(a.value) <= 1 or b.value < _INT_BITS:
            return int_result(a.value ** b.value)

    return _float_pow(float(a.value), float(b.value))

# ---------------- Bitwise ----------------

def _string_bitwise(lhs: str, rhs: str, fn: Callable[[int, int], int], pad: bool) -> PhpString:
    if pad:
        width = max(len(lhs), len(rhs))
        lhs, rhs = lhs.ljust(width, "\0"), rhs.ljust(width, "\0")

    return PhpString("".join(chr(fn(ord(x), ord(y))) for x, y in zip(lhs, rhs)))

def _bitwise(op: BinaryOperator, fn: Callable[[int, int], int], pad: bool) -> BinaryFn:
    def apply(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
        if isinstance(lhs, PhpString) and isinstance(rhs, PhpString):
            return _string_bitwise(lhs.value, rhs.value, fn, pad)

        a, b = _int_pair(op, lhs, rhs)
        return PhpInt(_wrap_int(fn(a, b)))

    return apply

def _shift(op: BinaryOperator) -> BinaryFn:
    def apply(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
        a, b = _int_pair(op, lhs, rhs)

        if b < 0:
            raise PhpArithmeticError(op.value, "Bit shift by negative number")

        if op is BinaryOperator.SHIFT_LEFT:
            return PhpInt(0 if b >= _INT_BITS else _wrap_int(a << b))

        if b >= _INT_BITS:
            return PhpInt(0 if a >= 0 else -1)
        return PhpInt(a >> b)

    return apply

# ---------------- Table ----------------

def _coalesce(lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    return rhs if isinstance(lhs, PhpNull) else lhs

_BINARY: Dict[BinaryOperator, BinaryFn] = {
    BinaryOperator.CONCAT: lambda l, r: PhpString(stringify(l) + stringify(r)),
    BinaryOperator.SMALLER: lambda l, r: php_bool(is_smaller(l, r)),
    BinaryOperator.SMALLER_OR_EQUAL: lambda l, r: php_bool(is_smaller_or_equal(l, r)),
    # a > b is evaluated as b < a so uncomparable arrays answer false both ways
    BinaryOperator.GREATER: lambda l, r: php_bool(is_smaller(r, l)),
    BinaryOperator.GREATER_OR_EQUAL: lambda l, r: php_bool(is_smaller_or_equal(r, l)),
    BinaryOperator.SPACESHIP: lambda l, r: PhpInt(spaceship(l, r)),
    BinaryOperator.EQUAL: lambda l, r: php_bool(loose_equals(l, r)),
    BinaryOperator.NOT_EQUAL: lambda l, r: php_bool(not loose_equals(l, r)),
    BinaryOperator.IDENTICAL: lambda l, r: php_bool(strict_equals(l, r)),
    BinaryOperator.NOT_IDENTICAL: lambda l, r: php_bool(not strict_equals(l, r)),
    BinaryOperator.PLUS: _plus,
    BinaryOperator.MINUS: _minus,
    BinaryOperator.MUL: _mul,
    BinaryOperator.DIV: _div,
    BinaryOperator.MOD: _mod,
    BinaryOperator.POW: _pow,
    BinaryOperator.BOOLEAN_AND: lambda l, r: php_bool(is_truthy(l) and is_truthy(r)),
    BinaryOperator.BOOLEAN_OR: lambda l, r: php_bool(is_truthy(l) or is_truthy(r)),
    BinaryOperator.LOGICAL_AND: lambda l, r: php_bool(is_truthy(l) and is_truthy(r)),
    BinaryOperator.LOGICAL_OR: lambda l, r: php_bool(is_truthy(l) or is_truthy(r)),
    BinaryOperator.LOGICAL_XOR: lambda l, r: php_bool(is_truthy(l) != is_truthy(r)),
    BinaryOperator.BITWISE_AND: _bitwise(BinaryOperator.BITWISE_AND, lambda a, b: a & b, pad=False),
    BinaryOperator.BITWISE_OR: _bitwise(BinaryOperator.BITWISE_OR, lambda a, b: a | b, pad=True),
    BinaryOperator.BITWISE_XOR: _bitwise(BinaryOperator.BITWISE_XOR, lambda a, b: a ^ b, pad=False),
    BinaryOperator.COALESCE: _coalesce,
    BinaryOperator.SHIFT_LEFT: _shift(BinaryOperator.SHIFT_LEFT),
    BinaryOperator.SHIFT_RIGHT: _shift(BinaryOperator.SHIFT_RIGHT),
}

_AND_OPS = {BinaryOperator.BOOLEAN_AND, BinaryOperator.LOGICAL_AND}
_OR_OPS = {BinaryOperator.BOOLEAN_OR, BinaryOperator.LOGICAL_OR}

def apply_binary_operator(op: BinaryOperator, lhs: PhpValue, rhs: PhpValue) -> PhpValue:
    return _BINARY[op](lhs, rhs)

def _eval_maybe_absent(node: Node, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    """Left side of `??`: an unset variable, a missing key or a scalar base reads as null.

    Errors from evaluating the key itself, and illegal key types, still propagate.
    """
    if isinstance(node, Variable):
        try:
            return eval_func(node, ctx)
        except UnboundVariable:
            return NULL

    if not isinstance(node, Index) or node.dim is None:
        return eval_func(node, ctx)

    base = _eval_maybe_absent(node.base, ctx, eval_func)
    dim = eval_func(node.dim, ctx)

    if isinstance(base, PhpArray):
        found = base.get(array_key(dim))
        return NULL if found is None else found

    if isinstance(base, PhpString):
        try:
            return read_index(base, dim)
        except (IndexNotFound, PhpTypeError):
            return NULL

    return NULL

def eval_binary(n: BinaryOp, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    op = n.op

    if op is BinaryOperator.COALESCE:
        lhs = _eval_maybe_absent(n.left, ctx, eval_func)
        if ctx.config.short_circuit and not isinstance(lhs, PhpNull):
            return lhs
        return _coalesce(lhs, eval_func(n.right, ctx))

    lhs = eval_func(n.left, ctx)

    if ctx.config.short_circuit:
        if op in _AND_OPS and not is_truthy(lhs):
            return PhpBool(False)
        if op in _OR_OPS and is_truthy(lhs):
            return PhpBool(True)

    rhs = eval_func(n.right, ctx)
    return apply_binary_operator(op, lhs, rhs)

# ---------------- Unary ----------------

def _negate(value: PhpValue) -> PhpValue:
    num = to_number(value)
    if num is None:
        raise UnsupportedOperand("-", value)

    if isinstance(num, PhpInt):
        return int_result(-num.value)
    return PhpFloat(-num.value)

def _identity(value: PhpValue) -> PhpValue:
    num = to_number(value)
    if num is None:
        raise UnsupportedOperand("+", value)

    return num

def _bitwise_not(value: PhpValue) -> PhpValue:
    match value:
        case PhpInt(value=num):
            return PhpInt(~num)
        case PhpFloat(value=num):
            return PhpInt(~float_to_int(num))
        case PhpString(value=s):
            return PhpString("".join(chr(~ord(c) & 0xFF) for c in s))

    raise UnsupportedOperand("~", value)

_UNARY: Dict[UnaryOperator, Callable[[PhpValue], PhpValue]] = {
    UnaryOperator.NOT: lambda v: php_bool(not is_truthy(v)),
    UnaryOperator.MINUS: _negate,
    UnaryOperator.PLUS: _identity,
    UnaryOperator.BITWISE_NOT: _bitwise_not,
}

def apply_unary_operator(op: UnaryOperator, value: PhpValue) -> PhpValue:
    return _UNARY[op](value)

def eval_unary(n: UnaryOp, ctx: Context, eval_func: EvalFunc) -> PhpValue:
    return apply_unary_operator(n.op, eval_func(n.operand, ctx))

def binary_operator_table() -> Dict[BinaryOperator, BinaryFn]:
    return dict(_BINARY)
