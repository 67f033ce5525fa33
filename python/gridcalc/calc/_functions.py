"""Error markers and builtin function implementations for formula evaluation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable


# ---------------------------------------------------------------------------
# CellError: in-band error markers that display like text
# ---------------------------------------------------------------------------


class CellError:
    """Error marker produced by evaluation instead of raising.

    Use ``CellError.of(code)`` to get a cached singleton for each code.
    Markers compare equal to their string code
    (``CellError.CIRCULAR == "#CIRCULAR!"``) and are never numeric.
    """

    __slots__ = ("code",)
    _cache: dict[str, CellError] = {}

    CIRCULAR: CellError
    ERROR: CellError

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> CellError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CellError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


# Singletons
CellError.CIRCULAR = CellError.of("#CIRCULAR!")
CellError.ERROR = CellError.of("#ERROR!")


def is_error(val: Any) -> bool:
    """Return True if *val* is a CellError instance."""
    return isinstance(val, CellError)


def first_error(*values: Any) -> CellError | None:
    """Return the first CellError found in *values*, or None."""
    for v in values:
        if isinstance(v, CellError):
            return v
    return None


def is_number(val: Any) -> bool:
    """int or float, never bool."""
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def is_numeric(val: Any) -> bool:
    """True for numbers and for non-blank strings that parse as a finite number."""
    if is_number(val):
        return True
    if not isinstance(val, str) or not val.strip() or "_" in val:
        return False
    try:
        return math.isfinite(float(val))
    except ValueError:
        return False


def normalize_number(val: Any) -> Any:
    """Collapse integral floats (``4.0``) to int; pass everything else through."""
    if isinstance(val, float) and val.is_integer():
        return int(val)
    return val


def to_text(val: Any) -> str:
    """String form of a resolved value, ``""`` for empty."""
    if val is None:
        return ""
    return str(normalize_number(val))


# ---------------------------------------------------------------------------
# Function kinds. Every function takes exactly one argument:
#   aggregate - argument is a range; handler gets the resolved cell values
#   text      - argument is a cell or literal; handler gets the text
# ---------------------------------------------------------------------------

AGGREGATE = "aggregate"
TEXT = "text"

BUILTIN_FUNCTIONS: dict[str, str] = {
    "SUM": AGGREGATE,
    "AVERAGE": AGGREGATE,
    "MAX": AGGREGATE,
    "MIN": AGGREGATE,
    "COUNT": AGGREGATE,
    "TRIM": TEXT,
    "UPPER": TEXT,
    "LOWER": TEXT,
}


def is_supported(func_name: str) -> bool:
    """Check if a function name is one of the builtins."""
    return func_name.upper() in BUILTIN_FUNCTIONS


# ---------------------------------------------------------------------------
# Aggregates. Non-numeric values (text, empty, error markers) are skipped,
# and every aggregate of an empty numeric set is 0.
# ---------------------------------------------------------------------------


def _numbers(values: list[Any]) -> list[int | float]:
    return [v for v in values if is_number(v)]


def _builtin_sum(values: list[Any]) -> int | float:
    return sum(_numbers(values))


def _builtin_average(values: list[Any]) -> int | float:
    nums = _numbers(values)
    if not nums:
        return 0
    return sum(nums) / len(nums)


def _builtin_max(values: list[Any]) -> int | float:
    nums = _numbers(values)
    return max(nums) if nums else 0


def _builtin_min(values: list[Any]) -> int | float:
    nums = _numbers(values)
    return min(nums) if nums else 0


def _builtin_count(values: list[Any]) -> int:
    """COUNT - counts numeric values only."""
    return len(_numbers(values))


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def _builtin_trim(text: str) -> str:
    """TRIM: strip leading/trailing whitespace, interior spacing untouched."""
    return text.strip()


def _builtin_upper(text: str) -> str:
    return text.upper()


def _builtin_lower(text: str) -> str:
    return text.lower()


_BUILTINS: dict[str, Callable[..., Any]] = {
    "SUM": _builtin_sum,
    "AVERAGE": _builtin_average,
    "MAX": _builtin_max,
    "MIN": _builtin_min,
    "COUNT": _builtin_count,
    "TRIM": _builtin_trim,
    "UPPER": _builtin_upper,
    "LOWER": _builtin_lower,
}


@dataclass(frozen=True)
class FunctionSpec:
    """A registered function and how its single argument is prepared."""

    name: str
    kind: str
    func: Callable[..., Any]


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions.
    """

    def __init__(self) -> None:
        self._functions: dict[str, FunctionSpec] = {
            name: FunctionSpec(name, BUILTIN_FUNCTIONS[name], func)
            for name, func in _BUILTINS.items()
        }

    def register(self, name: str, func: Callable[..., Any], kind: str = AGGREGATE) -> None:
        if kind not in (AGGREGATE, TEXT):
            raise ValueError(f"Unknown function kind: {kind!r}")
        canon = name.upper()
        self._functions[canon] = FunctionSpec(canon, kind, func)

    def get(self, name: str) -> FunctionSpec | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
