from __future__ import annotations

import math

from ..types import PhpArray, PhpBool, PhpFloat, PhpInt, PhpNull, PhpString, PhpValue

def is_truthy(val: PhpValue) -> bool:
    match val:
        case PhpBool(value=b):
            return b
        case PhpNull():
            return False
        case PhpInt(value=num):
            return num != 0
        case PhpFloat(value=num):
            return math.isnan(num) or num != 0.0
        case PhpString(value=s):
            return s not in ("", "0")
        case PhpArray():
            return len(val) > 0
        case _:
            return True

def php_bool(flag: bool) -> PhpBool:
    return PhpBool(bool(flag))
