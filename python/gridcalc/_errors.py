"""Exception hierarchy for gridcalc.

Exception Hierarchy:
    GridcalcError (base)
    ├── InvalidAddress       caller passed something that isn't "A1"-shaped
    ├── CircularReference    rendered in-band as ``#CIRCULAR!``
    └── EvaluationError      rendered in-band as ``#ERROR!``

Only :class:`InvalidAddress` ever reaches a caller. The other two are
raised while a formula is being evaluated and are converted into cell
error markers before ``resolve`` returns.
"""

from __future__ import annotations


class GridcalcError(Exception):
    """Base class for all gridcalc exceptions."""


class InvalidAddress(GridcalcError, ValueError):
    """A string that does not match the ``[A-Z]+[1-9][0-9]*`` address grammar."""

    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(f"Invalid cell address: {address!r}")


class CircularReference(GridcalcError):
    """A cell was reached again while it was still being evaluated."""

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Circular reference at {address}")


class EvaluationError(GridcalcError):
    """Malformed formula, bad operand type, or a chain nested too deeply."""
