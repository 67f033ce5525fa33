"""Formula text helpers: reference extraction, range expansion, call matching."""

from __future__ import annotations

import re

from gridcalc._errors import EvaluationError
from gridcalc._utils import decode_address, rowcol_to_a1

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# Anything address-shaped, wherever it appears (ranges, arguments, literals).
_REF_TOKEN_RE = re.compile(r"[A-Z]+[0-9]+")

# Leading function name immediately followed by "(": SUM(, UPPER(
_FUNC_RE = re.compile(r"([A-Z][A-Z0-9_.]*)\(")


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def reference_tokens(formula: str) -> list[str]:
    """Every address-shaped token in *formula*, in order, duplicates kept.

    Ranges are not expanded: ``=SUM(A1:A5)`` yields ``["A1", "A5"]``.
    """
    return _REF_TOKEN_RE.findall(formula)


def extract_references(formula: str) -> set[str]:
    """The dependency set of a formula (see :func:`reference_tokens`)."""
    return set(reference_tokens(formula))


# ---------------------------------------------------------------------------
# Range expansion
# ---------------------------------------------------------------------------


def expand_range(range_ref: str) -> list[str]:
    """Expand ``"A1:B2"`` into ``["A1", "B1", "A2", "B2"]`` (row-major).

    A token without ``:`` or with an undecodable endpoint comes back as a
    one-element list holding the raw token, which is how a bare ``A1``
    reaches the aggregate functions. Reversed ranges are not normalized
    and expand to nothing.
    """
    parts = range_ref.split(":")
    if len(parts) != 2:
        return [range_ref]

    start = decode_address(parts[0])
    end = decode_address(parts[1])
    if start is None or end is None:
        return [range_ref]

    (start_row, start_col), (end_row, end_col) = start, end
    cells: list[str] = []
    for r in range(start_row, end_row + 1):
        for c in range(start_col, end_col + 1):
            cells.append(rowcol_to_a1(r, c))
    return cells


# ---------------------------------------------------------------------------
# Function calls
# ---------------------------------------------------------------------------


def match_function_call(
    expression: str, names: frozenset[str] | set[str],
) -> tuple[str, str] | None:
    """If *expression* starts with ``NAME(`` for a known name, split it.

    Returns ``(name, argument)`` where the argument is the text strictly
    between the first ``(`` and the last ``)``. Anything after the last
    ``)`` is ignored. Returns ``None`` for names not in *names* so the
    caller can fall through to arithmetic.
    """
    m = _FUNC_RE.match(expression)
    if not m or m.group(1) not in names:
        return None
    open_idx = m.end() - 1
    close_idx = expression.rfind(")")
    if close_idx <= open_idx:
        raise EvaluationError(f"{m.group(1)}: missing closing parenthesis")
    return m.group(1), expression[open_idx + 1 : close_idx]

