"""CalcEngine protocol and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gridcalc._cell import Cell


@dataclass(frozen=True)
class CellDelta:
    """A single cell's cached value change from a refresh."""

    cell_ref: str
    old_value: Any
    new_value: Any
    formula: str | None = None  # the formula that produced new_value


@dataclass(frozen=True)
class RefreshResult:
    """Result of re-caching the formula cells downstream of an edit."""

    source: str  # the edited cell
    deltas: tuple[CellDelta, ...]  # cells whose cached value changed
    refreshed_cells: int = 0  # downstream formula cells re-evaluated
    max_chain_depth: int = 0  # longest dependency chain from the source

    @property
    def changed_cells(self) -> int:
        return len(self.deltas)


@runtime_checkable
class CalcEngine(Protocol):
    """The read/write contract external collaborators may rely on.

    Dependencies are only ever changed through ``set_formula``.
    """

    def get_cell(self, address: str) -> Cell | None:
        ...

    def set_value(self, address: str, value: Any) -> None:
        ...

    def set_formula(self, address: str, formula: str) -> None:
        ...

    def resolve(self, address: str) -> Any:
        """Display value of a cell, evaluated from live data on every call."""
        ...

    def find_dependents(self, address: str) -> set[str]:
        ...
