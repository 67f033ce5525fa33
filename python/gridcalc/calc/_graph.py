"""Dependency tracking: one-hop dependents scan and a reverse-edge index."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gridcalc._cell import Cell


def find_dependents(address: str, cells: Iterable[tuple[str, Cell]]) -> set[str]:
    """Every cell whose recorded dependencies contain *address*.

    Full scan over ``(address, Cell)`` pairs, e.g. ``sheet.items()``.
    Direct (one-hop) dependents only.
    """
    return {ref for ref, cell in cells if address in cell.dependencies}


class DependencyGraph:
    """Reverse index of formula dependencies.

    Kept in step with the sheet: every formula write replaces a cell's
    forward set wholesale and rewrites its reverse edges, so
    ``dependents_of`` always agrees with :func:`find_dependents`.
    Cycles are allowed; nothing here assumes a DAG.
    """

    __slots__ = ("dependencies", "dependents")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[str, frozenset[str]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}

    def set_dependencies(self, cell_ref: str, refs: Iterable[str]) -> None:
        """Replace the forward set of *cell_ref* and its reverse edges."""
        self.remove(cell_ref)
        deps = frozenset(refs)
        if not deps:
            return
        self.dependencies[cell_ref] = deps
        for ref in deps:
            if ref not in self.dependents:
                self.dependents[ref] = set()
            self.dependents[ref].add(cell_ref)

    def remove(self, cell_ref: str) -> None:
        """Drop *cell_ref*'s outgoing edges (its formula went away)."""
        old = self.dependencies.pop(cell_ref, frozenset())
        for ref in old:
            readers = self.dependents.get(ref)
            if readers is None:
                continue
            readers.discard(cell_ref)
            if not readers:
                del self.dependents[ref]

    def dependents_of(self, cell_ref: str) -> set[str]:
        return set(self.dependents.get(cell_ref, ()))

    def affected_cells(self, changed_cells: set[str]) -> list[str]:
        """All cells transitively downstream of *changed_cells*, BFS order.

        The changed cells themselves are excluded, even when a cycle leads
        back to them.
        """
        affected: list[str] = []
        queue: deque[str] = deque(changed_cells)
        visited: set[str] = set(changed_cells)

        while queue:
            cell = queue.popleft()
            for dep in sorted(self.dependents.get(cell, ())):
                if dep not in visited:
                    visited.add(dep)
                    queue.append(dep)
                    affected.append(dep)

        return affected

    def max_depth(self, roots: set[str]) -> int:
        """Longest dependency chain from *roots*, capped at the formula count."""
        if not roots:
            return 0

        depth: dict[str, int] = {r: 0 for r in roots}
        queue: deque[str] = deque(roots)
        max_d = 0

        while queue:
            cell = queue.popleft()
            current_depth = depth[cell]
            for dep in self.dependents.get(cell, ()):
                new_depth = current_depth + 1
                # Bound by the node count so a cycle can't loop forever.
                if new_depth > len(self.dependencies):
                    continue
                if dep not in depth or new_depth > depth[dep]:
                    depth[dep] = new_depth
                    max_d = max(max_d, new_depth)
                    queue.append(dep)

        return max_d

    def __len__(self) -> int:
        return len(self.dependencies)
