"""Sheet: the sparse cell store and the engine's single source of truth."""

from __future__ import annotations

import math
from collections.abc import Iterator
from typing import Any

from gridcalc._cell import Cell, CellValue
from gridcalc._utils import a1_to_rowcol, rowcol_to_a1
from gridcalc.calc._evaluator import DEFAULT_MAX_DEPTH, SheetEvaluator
from gridcalc.calc._functions import FunctionRegistry, is_number, is_numeric
from gridcalc.calc._graph import DependencyGraph, find_dependents
from gridcalc.calc._parser import extract_references
from gridcalc.calc._protocol import CellDelta, RefreshResult


def _values_differ(a: Any, b: Any, tolerance: float) -> bool:
    """Check if two values differ beyond tolerance."""
    if a is None and b is None:
        return False
    if a is None or b is None:
        return True
    if is_number(a) and is_number(b):
        return abs(float(a) - float(b)) > tolerance
    return type(a) is not type(b) or a != b


def parse_input(text: str) -> CellValue:
    """Typed value for non-formula input: number when numeric, else the text."""
    if not text:
        return None
    if not is_numeric(text):
        return text
    stripped = text.strip()
    try:
        return int(stripped)
    except ValueError:
        number = float(stripped)
        return int(number) if number.is_integer() and math.isfinite(number) else number


class Sheet:
    """Sparse mapping of ``"A1"`` addresses to :class:`Cell` records.

    Usage::

        sheet = Sheet()
        sheet.set_value("D2", 85)
        sheet.set_formula("D6", "=SUM(D2:D5)")
        sheet.resolve("D6")

    Absent addresses behave as empty cells. Writes go through
    ``set_value`` / ``set_formula`` (or ``set_input``), which keep every
    cell's dependency set equal to the references in its formula.
    """

    __slots__ = ("_cells", "_graph", "_evaluator")

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        functions: FunctionRegistry | None = None,
    ) -> None:
        self._cells: dict[str, Cell] = {}
        self._graph = DependencyGraph()
        self._evaluator = SheetEvaluator(self, functions=functions, max_depth=max_depth)

    @property
    def evaluator(self) -> SheetEvaluator:
        return self._evaluator

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def get_cell(self, address: str) -> Cell | None:
        a1_to_rowcol(address)
        return self._cells.get(address)

    def cell(self, row: int, col: int) -> Cell | None:
        """Zero-based coordinate access."""
        return self._cells.get(rowcol_to_a1(row, col))

    @staticmethod
    def address(row: int, col: int) -> str:
        return rowcol_to_a1(row, col)

    def __getitem__(self, address: str) -> Any:
        """``sheet['A1']`` -> displayed value."""
        return self.resolve(address)

    def __setitem__(self, address: str, value: Any) -> None:
        """``sheet['A1'] = 42`` or ``sheet['B1'] = '=A1*2'``."""
        if isinstance(value, str) and value.startswith("="):
            self.set_formula(address, value)
        else:
            self.set_value(address, value)

    def __delitem__(self, address: str) -> None:
        self.clear(address)

    def __contains__(self, address: object) -> bool:
        return address in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._cells))

    def items(self) -> Iterator[tuple[str, Cell]]:
        return iter(list(self._cells.items()))

    def formula_cells(self) -> list[str]:
        return [ref for ref, cell in self._cells.items() if cell.formula]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_value(self, address: str, value: CellValue) -> None:
        """Store a literal; any formula and its dependencies are dropped."""
        a1_to_rowcol(address)
        self._graph.remove(address)
        if value is None or value == "":
            self._cells.pop(address, None)
            return
        self._cells[address] = Cell(value=value)

    def set_formula(self, address: str, formula: str) -> None:
        """Store formula text and recompute its dependency set from scratch.

        The cell's previous ``value`` is kept as a stale cache. Empty text
        removes the formula; text without a leading ``=`` is a literal.
        """
        a1_to_rowcol(address)
        if formula and not formula.startswith("="):
            self.set_value(address, formula)
            return

        existing = self._cells.get(address)
        value = existing.value if existing is not None else None
        if not formula:
            self.set_value(address, value)
            return

        refs = extract_references(formula)
        self._cells[address] = Cell(value=value, formula=formula, dependencies=frozenset(refs))
        self._graph.set_dependencies(address, refs)

    def set_input(self, address: str, text: str) -> None:
        """Commit raw editor input: formula, number or text."""
        if text.startswith("="):
            self.set_formula(address, text)
        else:
            self.set_value(address, parse_input(text))

    def clear(self, address: str) -> None:
        self.set_value(address, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def resolve(self, address: str) -> Any:
        return self._evaluator.resolve(address)

    def evaluate(self, formula: str) -> Any:
        return self._evaluator.evaluate(formula)

    def extract_references(self, formula: str) -> set[str]:
        return extract_references(formula)

    def find_dependents(self, address: str) -> set[str]:
        """One-hop dependents of *address*, by scanning every cell."""
        return find_dependents(address, self._cells.items())

    def dependents_of(self, address: str) -> set[str]:
        """One-hop dependents of *address*, from the reverse index."""
        return self._graph.dependents_of(address)

    # ------------------------------------------------------------------
    # Cached values
    # ------------------------------------------------------------------

    def refresh_dependents(self, address: str, tolerance: float = 1e-10) -> RefreshResult:
        """Re-evaluate everything downstream of *address* into ``Cell.value``.

        The cache is informational (snapshots, exports); ``resolve`` never
        reads it for formula cells.
        """
        affected = self._graph.affected_cells({address})
        deltas: list[CellDelta] = []
        for cell_ref in affected:
            cell = self._cells.get(cell_ref)
            if cell is None or not cell.formula:
                continue
            new_value = self._evaluator.resolve(cell_ref)
            if _values_differ(cell.value, new_value, tolerance):
                deltas.append(CellDelta(
                    cell_ref=cell_ref,
                    old_value=cell.value,
                    new_value=new_value,
                    formula=cell.formula,
                ))
            self._cells[cell_ref] = Cell(
                value=new_value, formula=cell.formula, dependencies=cell.dependencies,
            )

        return RefreshResult(
            source=address,
            deltas=tuple(deltas),
            refreshed_cells=len(affected),
            max_chain_depth=self._graph.max_depth({address}),
        )
