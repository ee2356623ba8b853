from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Iterator, List, Optional, TextIO, Tuple, Union
from typing_extensions import Protocol, TypeAlias, TypeGuard

from .config import EvalConfig
from .nodes import Node, Param

# ---------- Value Model ----------

@dataclass
class PhpNull:
    type_name: ClassVar[str] = "null"
    def __repr__(self) -> str:
        return "NULL"

@dataclass
class PhpBool:
    value: bool
    type_name: ClassVar[str] = "bool"
    def __repr__(self) -> str:
        return "true" if self.value else "false"

@dataclass
class PhpInt:
    value: int
    type_name: ClassVar[str] = "int"
    def __repr__(self) -> str:
        return str(self.value)

@dataclass
class PhpFloat:
    value: float
    type_name: ClassVar[str] = "float"
    def __repr__(self) -> str:
        return repr(self.value)

@dataclass
class PhpString:
    value: str
    type_name: ClassVar[str] = "string"
    def __repr__(self) -> str:
        return f'"{self.value}"'

ArrayKey: TypeAlias = Union[int, str]

@dataclass
class PhpArray:
    """Ordered key -> value map. Keys are normalized ints or strings."""
    entries: Dict[ArrayKey, 'PhpValue'] = field(default_factory=dict)
    next_index: int = 0
    type_name: ClassVar[str] = "array"

    def __post_init__(self) -> None:
        for key in self.entries:
            self._bump(key)

    def _bump(self, key: ArrayKey) -> None:
        if isinstance(key, int) and key >= self.next_index:
            self.next_index = key + 1

    def append(self, value: 'PhpValue') -> None:
        self.entries[self.next_index] = value
        self.next_index += 1

    def set(self, key: ArrayKey, value: 'PhpValue') -> None:
        self.entries[key] = value
        self._bump(key)

    def get(self, key: ArrayKey) -> Optional['PhpValue']:
        return self.entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def items(self) -> Iterator[Tuple[ArrayKey, 'PhpValue']]:
        return iter(list(self.entries.items()))

    def copy(self) -> 'PhpArray':
        return PhpArray(dict(self.entries), self.next_index)

    @classmethod
    def from_list(cls, values: List['PhpValue']) -> 'PhpArray':
        arr = cls()
        for value in values:
            arr.append(value)
        return arr

    def __repr__(self) -> str:
        pairs = ", ".join(f"{k!r} => {v!r}" for k, v in self.entries.items())
        return f"[{pairs}]"

PhpValue: TypeAlias = PhpNull | PhpBool | PhpInt | PhpFloat | PhpString | PhpArray

_PHP_VALUE_TYPES: Tuple[type, ...] = (PhpNull, PhpBool, PhpInt, PhpFloat, PhpString, PhpArray)

def is_php_value(value: object) -> TypeGuard[PhpValue]:
    return isinstance(value, _PHP_VALUE_TYPES)

NULL = PhpNull()

# ---------- Exceptions ----------

class PhpRuntimeError(Exception):
    line: Optional[int]

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.line = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line})"

class ReservedNameError(PhpRuntimeError):
    def __init__(self, name: str = "this"):
        super().__init__(f"Cannot re-assign ${name}")
        self.name = name

class UnknownConstant(PhpRuntimeError):
    def __init__(self, name: str):
        super().__init__(f'Undefined constant "{name}"')
        self.name = name

class IndexNotFound(PhpRuntimeError):
    def __init__(self, key: ArrayKey):
        shown = f'"{key}"' if isinstance(key, str) else str(key)
        super().__init__(f"Undefined array key {shown}")
        self.key = key

class UnboundVariable(PhpRuntimeError):
    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"Undefined variable ${name}")
        self.name = name

class ArgumentCountError(UnboundVariable):
    def __init__(self, function: str, name: str, passed: int, expected: int, exact: bool = True):
        bound = "exactly" if exact else "at least"
        super().__init__(
            name,
            f"Too few arguments to function {function}(), {passed} passed and {bound} {expected} expected",
        )
        self.function = function
        self.passed = passed
        self.expected = expected

class PhpArithmeticError(PhpRuntimeError):
    def __init__(self, operator: str, message: str):
        super().__init__(message)
        self.operator = operator

class DivisionByZero(PhpArithmeticError):
    def __init__(self, operator: str):
        super().__init__(operator, "Modulo by zero" if operator == "%" else "Division by zero")

class UnsupportedOperand(PhpArithmeticError):
    def __init__(self, operator: str, lhs: PhpValue, rhs: Optional[PhpValue] = None):
        if rhs is None:
            message = f"Unsupported operand types: {operator}{lhs.type_name}"
        else:
            message = f"Unsupported operand types: {lhs.type_name} {operator} {rhs.type_name}"
        super().__init__(operator, message)

class PhpTypeError(PhpRuntimeError):
    pass

class RequireError(PhpRuntimeError):
    def __init__(self, path: str, keyword: str = "require"):
        super().__init__(f"Failed opening required '{path}'")
        self.path = path
        self.keyword = keyword

class StackOverflow(PhpRuntimeError):
    def __init__(self, depth: int):
        super().__init__(f"Maximum function nesting level of '{depth}' reached. Infinite recursion?")
        self.depth = depth

class ReturnSignal(Exception):
    """Internal control-flow exception used to implement `return`."""
    def __init__(self, value: PhpValue):
        self.value = value

# ---------- Scope / functions ----------

RESERVED_NAME = "this"

class Scope:
    """Flat name -> value bindings for one call frame (or the top level)."""

    def __init__(self, bindings: Optional[Dict[str, PhpValue]] = None):
        self.vars: Dict[str, PhpValue] = {}

        for name, val in (bindings or {}).items():
            self.set(name, val)

    def get(self, name: str) -> PhpValue:
        if name in self.vars:
            return self.vars[name]

        raise UnboundVariable(name)

    def set(self, name: str, val: PhpValue) -> None:
        if name == RESERVED_NAME:
            raise ReservedNameError(name)

        self.vars[name] = val

    def __contains__(self, name: object) -> bool:
        return name in self.vars

    def __repr__(self) -> str:
        return f"Scope({self.vars!r})"

@dataclass(frozen=True)
class FunctionDefinition:
    name: str
    params: Tuple[Param, ...]
    body: Tuple[Node, ...]

    @property
    def param_names(self) -> List[str]:
        return [p.name for p in self.params]

    @property
    def required_count(self) -> int:
        count = 0
        for idx, param in enumerate(self.params):
            if param.default is None:
                count = idx + 1
        return count

class FunctionTable:
    """Run-wide registry of declared functions. Names are case-insensitive."""

    def __init__(self) -> None:
        self._defs: Dict[str, FunctionDefinition] = {}

    def define(self, name: str, params: Tuple[Param, ...], body: Tuple[Node, ...]) -> FunctionDefinition:
        fn = FunctionDefinition(name=name, params=tuple(params), body=tuple(body))
        self._defs[name.lower()] = fn
        return fn

    def lookup(self, name: str) -> Optional[FunctionDefinition]:
        return self._defs.get(name.lower())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._defs

    def __len__(self) -> int:
        return len(self._defs)

# ---------- Evaluation context ----------

class OutputSink(Protocol):
    def write(self, text: str) -> object: ...

class SourceLoader(Protocol):
    def load(self, path: str, once: bool = False) -> Optional[Tuple[Node, ...]]: ...

class Context:
    """State threaded through every eval call: current scope, function table, output."""

    def __init__(
        self,
        scope: Optional[Scope] = None,
        functions: Optional[FunctionTable] = None,
        out: Optional[OutputSink] = None,
        config: Optional[EvalConfig] = None,
        loader: Optional[SourceLoader] = None,
    ):
        self.scope = scope if scope is not None else Scope()
        self.functions = functions if functions is not None else FunctionTable()
        self.out: OutputSink = out if out is not None else sys.stdout
        self.config = config if config is not None else EvalConfig()
        self.loader = loader
        self.call_depth = 0

    def write(self, text: str) -> None:
        if text:
            self.out.write(text)

    def swap_scope(self, scope: Scope) -> Scope:
        previous = self.scope
        self.scope = scope
        return previous
