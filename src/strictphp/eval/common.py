from __future__ import annotations

import logging
import math
import re
from typing import Optional

from ..types import (
    ArrayKey,
    PhpArray,
    PhpBool,
    PhpFloat,
    PhpInt,
    PhpNull,
    PhpString,
    PhpTypeError,
    PhpValue,
)

logger = logging.getLogger(__name__)

INT_MAX = 2**63 - 1
INT_MIN = -(2**63)

_WS = " \t\n\r\v\f"
_NUMBER = r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
_NUMERIC_RE = re.compile(rf"^[{_WS}]*({_NUMBER})[{_WS}]*$")
_LEADING_NUMERIC_RE = re.compile(rf"^[{_WS}]*({_NUMBER})")
_INT_TEXT_RE = re.compile(r"^[+-]?\d+$")
_INT_KEY_RE = re.compile(r"^(?:0|-?[1-9][0-9]*)$")

Number = PhpInt | PhpFloat

def int_result(value: int) -> Number:
    """Wrap an integer result, degrading to float on 64-bit overflow."""
    if INT_MIN <= value <= INT_MAX:
        return PhpInt(value)

    return PhpFloat(float(value))

def _number_from_text(text: str) -> Number:
    if _INT_TEXT_RE.match(text):
        return int_result(int(text))

    return PhpFloat(float(text))

def parse_numeric(text: str) -> Optional[Number]:
    """Return the number a fully numeric string denotes, or None."""
    m = _NUMERIC_RE.match(text)
    if m is None:
        return None

    return _number_from_text(m.group(1))

def is_numeric_string(text: str) -> bool:
    return _NUMERIC_RE.match(text) is not None

def to_number(value: PhpValue) -> Optional[Number]:
    """Numeric coercion for arithmetic. None means the operand is unusable."""
    match value:
        case PhpInt() | PhpFloat():
            return value
        case PhpNull():
            return PhpInt(0)
        case PhpBool(value=b):
            return PhpInt(1 if b else 0)
        case PhpString(value=s):
            full = parse_numeric(s)
            if full is not None:
                return full

            m = _LEADING_NUMERIC_RE.match(s)
            if m is None:
                return None

            logger.warning("A non-numeric value encountered: %r", s)
            return _number_from_text(m.group(1))
        case _:
            return None

def float_to_int(num: float) -> int:
    if not math.isfinite(num):
        return 0

    truncated = int(num)
    if not INT_MIN <= truncated <= INT_MAX:
        return 0

    return truncated

def to_int(value: PhpValue) -> Optional[int]:
    num = to_number(value)

    if num is None:
        return None
    if isinstance(num, PhpFloat):
        return float_to_int(num.value)

    return num.value

def format_float(num: float) -> str:
    """Render a float the way `echo` does (precision=14)."""
    if math.isnan(num):
        return "NAN"
    if math.isinf(num):
        return "INF" if num > 0 else "-INF"

    text = "%.14G" % num

    if "E" not in text:
        return text

    mantissa, exponent = text.split("E")
    if "." not in mantissa:
        mantissa += ".0"

    sign = exponent[0]
    digits = exponent[1:].lstrip("0") or "0"

    return f"{mantissa}E{sign}{digits}"

def stringify(value: PhpValue) -> str:
    match value:
        case PhpString(value=s):
            return s
        case PhpInt(value=num):
            return str(num)
        case PhpFloat(value=num):
            return format_float(num)
        case PhpBool(value=b):
            return "1" if b else ""
        case PhpNull():
            return ""
        case PhpArray():
            logger.warning("Array to string conversion")
            return "Array"

    raise PhpTypeError(f"Cannot convert {type(value).__name__} to string")

def array_key(value: PhpValue) -> ArrayKey:
    """Normalize a value into an array key (int or str)."""
    match value:
        case PhpInt(value=num):
            return num
        case PhpString(value=s):
            if _INT_KEY_RE.match(s):
                num = int(s)
                if INT_MIN <= num <= INT_MAX:
                    return num
            return s
        case PhpBool(value=b):
            return 1 if b else 0
        case PhpFloat(value=num):
            return float_to_int(num)
        case PhpNull():
            return ""

    raise PhpTypeError(f"Illegal offset type {value.type_name}")

def key_value(key: ArrayKey) -> PhpValue:
    return PhpInt(key) if isinstance(key, int) else PhpString(key)
