from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

COMPAT_ENV = "STRICTPHP_COMPAT"
DEBUG_ENV = "STRICTPHP_DEBUG"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EvalConfig:
    """Behaviour switches for the evaluator.

    The defaults give the corrected semantics. `EvalConfig.reference()` turns
    every switch off, reproducing the legacy evaluator:

    - restore_scope_on_return: a `return` inside a function leaves the callee
      scope active for the caller when False.
    - propagate_return: a `return` nested in if/foreach bodies only ends the
      call when True; with False only a top-level `return` of the body does.
    - short_circuit: `&&`, `||`, `and`, `or` and `??` evaluate their right
      operand eagerly when False.
    - short_circuit_elseif: every remaining elseif condition is evaluated when
      False, even after one matched.
    - debug: dump the parsed statements to the output before running them.
    """

    restore_scope_on_return: bool = True
    propagate_return: bool = True
    short_circuit: bool = True
    short_circuit_elseif: bool = True
    debug: bool = False

    @classmethod
    def reference(cls, debug: bool = False) -> "EvalConfig":
        return cls(
            restore_scope_on_return=False,
            propagate_return=False,
            short_circuit=False,
            short_circuit_elseif=False,
            debug=debug,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EvalConfig":
        env = os.environ if environ is None else environ
        debug = env.get(DEBUG_ENV, "").strip().lower() in _TRUTHY
        compat = env.get(COMPAT_ENV, "").strip().lower()

        if compat == "reference":
            return cls.reference(debug=debug)
        if compat not in ("", "default"):
            raise ValueError(f"{COMPAT_ENV} must be 'reference' or 'default', got {compat!r}")

        return cls(debug=debug)

    def with_debug(self, debug: bool) -> "EvalConfig":
        return replace(self, debug=debug)
