"""Cell record stored by :class:`gridcalc.Sheet`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

CellValue = Union[int, float, str, None]


@dataclass(frozen=True)
class Cell:
    """Content of one populated cell.

    ``dependencies`` is always exactly the set of address tokens found in
    ``formula`` and is empty when there is no formula. Records are
    immutable; the sheet replaces them on every write so the two fields
    can't drift apart.

    ``value`` on a formula cell is only a cache of the last refresh. The
    displayed value always comes from ``Sheet.resolve``.
    """

    value: CellValue = None
    formula: str | None = None
    dependencies: frozenset[str] = field(default_factory=frozenset)

    @property
    def has_formula(self) -> bool:
        return bool(self.formula)

    @property
    def is_empty(self) -> bool:
        return self.value is None and not self.formula
