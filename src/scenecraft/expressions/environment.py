"""Global function environment for SceneCraft expressions.

Every expression can call the deterministic numeric functions of Python's
`math` module (`floor(x)`, `sqrt(x)`, `hypot(a, b)`, ...) and read its
constants (`pi`, `e`, `tau`, `inf`, `nan`). The numeric builtins `abs`,
`min` and `max` are included as well, plus a `round` that rounds halves
toward positive infinity like JavaScript's `Math.round`.

`factorial`, `comb` and `perm` refuse arguments whose exact result would
exceed MAX_EXACT_INT_BITS, the same bound the evaluator puts on `**`.

The environment is built once at import and exposed read-only. Nothing
random lives here: evaluating a template twice with the same data must give
the same result.
"""

import functools
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

# Largest integer result (in bits) computed exactly
MAX_EXACT_INT_BITS = 4096

_LN2 = math.log(2)


class EntryKind(Enum):
    """Kinds of global environment entries."""

    FUNCTION = "function"
    CONSTANT = "constant"


@dataclass(frozen=True)
class EnvironmentEntry:
    """Description of one global environment entry, for documentation."""

    name: str
    kind: EntryKind
    source: str
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "source": self.source,
            "summary": self.summary,
        }


# -----------------------------------------------------------------------------
# Bounded integer functions
# -----------------------------------------------------------------------------


def _factorial_bits(n: int) -> float:
    return math.lgamma(n + 1) / _LN2


def _comb_bits(n: int, k: int) -> float:
    return _factorial_bits(n) - _factorial_bits(k) - _factorial_bits(n - k)


def _perm_bits(n: int, k: int | None = None) -> float:
    if k is None:
        return _factorial_bits(n)
    return _factorial_bits(n) - _factorial_bits(n - k)


def _in_domain(*args: Any) -> bool:
    """True when every argument is a non-negative int and k <= n."""
    if not all(isinstance(arg, int) and arg >= 0 for arg in args if arg is not None):
        return False
    return len(args) < 2 or args[1] is None or args[1] <= args[0]


def _bounded(fn: Callable[..., int], result_bits: Callable[..., float]) -> Callable[..., int]:
    """Wrap an exact integer function so oversized results are refused."""

    @functools.wraps(fn)
    def wrapper(*args: Any) -> int:
        if _in_domain(*args):
            try:
                bits = result_bits(*args)
            except OverflowError:
                bits = math.inf
            if bits > MAX_EXACT_INT_BITS:
                raise ValueError(f"{fn.__name__}() result exceeds {MAX_EXACT_INT_BITS} bits")
        return fn(*args)

    return wrapper


_BOUNDED_MATH = {
    "factorial": _factorial_bits,
    "comb": _comb_bits,
    "perm": _perm_bits,
}


# -----------------------------------------------------------------------------
# Rounding
# -----------------------------------------------------------------------------


def _round(value: int | float, decimals: int = 0) -> int | float:
    """Round half toward positive infinity, like JavaScript's Math.round."""
    if isinstance(value, int) and decimals >= 0:
        return value
    if math.isnan(value) or math.isinf(value):
        return value
    rounding = ROUND_HALF_UP if value >= 0 else ROUND_HALF_DOWN
    with localcontext() as ctx:
        # room for every digit of a finite double
        ctx.prec = 2000
        result = Decimal(value).quantize(Decimal(1).scaleb(-decimals), rounding=rounding)
    return int(result) if decimals <= 0 else float(result)


_NUMERIC_BUILTINS = {
    "abs": abs,
    "min": min,
    "max": max,
}


# -----------------------------------------------------------------------------
# Environment
# -----------------------------------------------------------------------------


def _first_line(doc: str | None) -> str:
    if not doc:
        return ""
    return doc.strip().splitlines()[0]


def _build() -> tuple[dict[str, Any], list[EnvironmentEntry]]:
    values: dict[str, Any] = {}
    entries: list[EnvironmentEntry] = []

    for name in sorted(dir(math)):
        if name.startswith("_"):
            continue
        value = getattr(math, name)
        if callable(value):
            if name in _BOUNDED_MATH:
                value = _bounded(value, _BOUNDED_MATH[name])
            values[name] = value
            entries.append(
                EnvironmentEntry(name, EntryKind.FUNCTION, "math", _first_line(value.__doc__))
            )
        elif isinstance(value, float):
            values[name] = value
            entries.append(EnvironmentEntry(name, EntryKind.CONSTANT, "math", repr(value)))

    for name, fn in _NUMERIC_BUILTINS.items():
        values[name] = fn
        entries.append(
            EnvironmentEntry(name, EntryKind.FUNCTION, "builtins", _first_line(fn.__doc__))
        )

    values["round"] = _round
    entries.append(
        EnvironmentEntry("round", EntryKind.FUNCTION, "scenecraft", _first_line(_round.__doc__))
    )

    return values, entries


_values, _entries = _build()

GLOBAL_ENVIRONMENT: Mapping[str, Any] = MappingProxyType(_values)
"""Read-only name -> function/constant table shared by every expression."""


def describe_environment() -> list[EnvironmentEntry]:
    """List the global environment entries sorted by name."""
    return sorted(_entries, key=lambda entry: entry.name)
