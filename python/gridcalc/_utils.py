"""A1-style address codec: zero-based (row, col) <-> ``"AB12"`` strings."""

from __future__ import annotations

import re

from gridcalc._errors import InvalidAddress

# Letters then a 1-based row with no leading zero. Exactly the strings
# rowcol_to_a1 can produce.
_ADDRESS_RE = re.compile(r"([A-Z]+)([1-9][0-9]*)")


def column_label(col: int) -> str:
    """Bijective base-26 label for a zero-based column (0 -> A, 26 -> AA)."""
    if col < 0:
        raise ValueError(f"Column index must be >= 0, got {col}")
    label = ""
    n = col + 1
    while n:
        n, rem = divmod(n - 1, 26)
        label = chr(65 + rem) + label
    return label


def column_index(label: str) -> int:
    """Zero-based column index for a letter label (A -> 0, AA -> 26)."""
    if not label or not label.isascii() or not label.isalpha() or not label.isupper():
        raise InvalidAddress(label)
    n = 0
    for ch in label:
        n = n * 26 + (ord(ch) - 64)
    return n - 1


def rowcol_to_a1(row: int, col: int) -> str:
    """Encode a zero-based (row, col) pair, e.g. ``(0, 0) -> "A1"``."""
    if row < 0:
        raise ValueError(f"Row index must be >= 0, got {row}")
    return f"{column_label(col)}{row + 1}"


def decode_address(address: str) -> tuple[int, int] | None:
    """Decode ``"B3"`` to ``(2, 1)``; ``None`` for anything that isn't an address."""
    if not isinstance(address, str):
        return None
    m = _ADDRESS_RE.fullmatch(address)
    if m is None:
        return None
    return int(m.group(2)) - 1, column_index(m.group(1))


def a1_to_rowcol(address: str) -> tuple[int, int]:
    """Like :func:`decode_address` but raises :class:`InvalidAddress`."""
    decoded = decode_address(address)
    if decoded is None:
        raise InvalidAddress(address)
    return decoded


def is_cell_reference(text: str) -> bool:
    return decode_address(text) is not None
