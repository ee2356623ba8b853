from __future__ import annotations

import os
from typing import Optional

from .types import (
    PhpArray,
    PhpBool,
    PhpFloat,
    PhpInt,
    PhpNull,
    PhpString,
    PhpValue,
)
from .eval.common import parse_numeric, stringify
from .eval.helpers import is_truthy

DEBUG_PY_TRACE_ENV = "STRICTPHP_DEBUG_PY_TRACE"

def debug_py_trace_enabled() -> bool:
    return os.environ.get(DEBUG_PY_TRACE_ENV, "") not in ("", "0")

def _sign(a: object, b: object) -> int:
    if a == b:
        return 0
    return -1 if a < b else 1  # type: ignore[operator]

def _compare_strings(lhs: str, rhs: str) -> int:
    lnum = parse_numeric(lhs)
    rnum = parse_numeric(rhs)

    if lnum is not None and rnum is not None:
        return _sign(lnum.value, rnum.value)

    return _sign(lhs, rhs)

def _compare_arrays(lhs: PhpArray, rhs: PhpArray) -> Optional[int]:
    if len(lhs) != len(rhs):
        return _sign(len(lhs), len(rhs))

    for key, lval in lhs.items():
        if key not in rhs:
            return None

        rval = rhs.entries[key]
        result = php_compare(lval, rval)

        if result != 0:
            return result

    return 0

def php_compare(lhs: PhpValue, rhs: PhpValue) -> Optional[int]:
    """Three-way loose comparison. None marks arrays that are not comparable."""
    match (lhs, rhs):
        case (PhpNull(), PhpNull()):
            return 0
        case (PhpNull(), PhpString(value=s)):
            return 0 if s == "" else -1
        case (PhpString(value=s), PhpNull()):
            return 0 if s == "" else 1
        case (PhpBool() | PhpNull(), _) | (_, PhpBool() | PhpNull()):
            return _sign(is_truthy(lhs), is_truthy(rhs))
        case (PhpInt() | PhpFloat(), PhpInt() | PhpFloat()):
            return _sign(lhs.value, rhs.value)
        case (PhpString(value=ls), PhpString(value=rs)):
            return _compare_strings(ls, rs)
        case (PhpInt() | PhpFloat(), PhpString(value=s)):
            num = parse_numeric(s)
            if num is not None:
                return _sign(lhs.value, num.value)
            return _sign(stringify(lhs), s)
        case (PhpString(value=s), PhpInt() | PhpFloat()):
            num = parse_numeric(s)
            if num is not None:
                return _sign(num.value, rhs.value)
            return _sign(s, stringify(rhs))
        case (PhpArray(), PhpArray()):
            return _compare_arrays(lhs, rhs)
        case (PhpArray(), _):
            return 1
        case (_, PhpArray()):
            return -1

    raise TypeError(f"cannot compare {type(lhs).__name__} with {type(rhs).__name__}")

def spaceship(lhs: PhpValue, rhs: PhpValue) -> int:
    result = php_compare(lhs, rhs)
    return 1 if result is None else result

def is_smaller(lhs: PhpValue, rhs: PhpValue) -> bool:
    result = php_compare(lhs, rhs)
    return result is not None and result < 0

def is_smaller_or_equal(lhs: PhpValue, rhs: PhpValue) -> bool:
    result = php_compare(lhs, rhs)
    return result is not None and result <= 0

def loose_equals(lhs: PhpValue, rhs: PhpValue) -> bool:
    if isinstance(lhs, PhpArray) and isinstance(rhs, PhpArray):
        if len(lhs) != len(rhs):
            return False

        for key, lval in lhs.items():
            if key not in rhs or not loose_equals(lval, rhs.entries[key]):
                return False
        return True

    return php_compare(lhs, rhs) == 0

def strict_equals(lhs: PhpValue, rhs: PhpValue) -> bool:
    if type(lhs) is not type(rhs):
        return False

    match (lhs, rhs):
        case (PhpNull(), PhpNull()):
            return True
        case (PhpArray(), PhpArray()):
            if list(lhs.entries) != list(rhs.entries):
                return False
            return all(strict_equals(lhs.entries[k], rhs.entries[k]) for k in lhs.entries)
        case _:
            return lhs.value == rhs.value  # type: ignore[union-attr]
