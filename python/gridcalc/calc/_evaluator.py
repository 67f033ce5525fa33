"""SheetEvaluator: pull-based formula evaluation with cycle detection.

Every ``resolve`` call recomputes from the live sheet. Nothing is memoized
between calls, so a write is visible to the very next read. Within one call
an :class:`EvaluationContext` holds the cells currently being evaluated;
reaching one of them again yields ``#CIRCULAR!``.

Dispatch for a formula body ``=<expression>`` (first match wins):

1. ``NAME(arg)`` for a registered function name
   - aggregates expand ``arg`` as a range and fold the numeric results
   - text functions transform the referenced cell's text, or ``arg`` itself
2. Anything else is parsed as an arithmetic expression.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from gridcalc._errors import CircularReference, EvaluationError
from gridcalc._utils import a1_to_rowcol, is_cell_reference
from gridcalc.calc._expression import evaluate_node, parse_expression
from gridcalc.calc._functions import (
    AGGREGATE,
    CellError,
    FunctionRegistry,
    normalize_number,
    to_text,
)
from gridcalc.calc._parser import expand_range, match_function_call

if TYPE_CHECKING:
    from gridcalc._sheet import Sheet

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100


class EvaluationContext:
    """Cells in progress during one top-level ``resolve`` call."""

    __slots__ = ("in_progress",)

    def __init__(self) -> None:
        self.in_progress: set[str] = set()

    @contextmanager
    def evaluating(self, address: str) -> Iterator[None]:
        """Mark *address* in progress for the duration of the block."""
        if address in self.in_progress:
            raise CircularReference(address)
        self.in_progress.add(address)
        try:
            yield
        finally:
            self.in_progress.discard(address)

    def __contains__(self, address: object) -> bool:
        return address in self.in_progress

    def __len__(self) -> int:
        return len(self.in_progress)


class SheetEvaluator:
    """Evaluates formulas stored in a :class:`~gridcalc.Sheet`.

    Usage::

        evaluator = SheetEvaluator(sheet)
        evaluator.resolve("D6")          # -> 343
        evaluator.evaluate("=D2*2")      # formula text that isn't stored

    The evaluator only reads the sheet.
    """

    def __init__(
        self,
        sheet: Sheet,
        functions: FunctionRegistry | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")
        self._sheet = sheet
        self._functions = functions if functions is not None else FunctionRegistry()
        self._max_depth = max_depth

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def resolve(self, address: str) -> Any:
        """Display value of *address*: literal, formula result or error marker.

        Raises :class:`~gridcalc.InvalidAddress` for a malformed address;
        evaluation problems come back as ``#CIRCULAR!`` / ``#ERROR!``.
        """
        a1_to_rowcol(address)
        context = EvaluationContext()
        try:
            return self._resolve(address, context)
        except RecursionError:
            logger.debug("Reference chain from %s too deep to evaluate", address)
            return CellError.ERROR

    def evaluate(self, formula: str) -> Any:
        """Evaluate formula text against the sheet without storing it.

        Text that doesn't start with ``=`` is returned unchanged.
        """
        if not formula.startswith("="):
            return formula
        context = EvaluationContext()
        try:
            return self._evaluate_formula("<unsaved>", formula, context)
        except RecursionError:
            logger.debug("Reference chain in %r too deep to evaluate", formula)
            return CellError.ERROR

    # ------------------------------------------------------------------
    # Cell resolution
    # ------------------------------------------------------------------

    def _resolve(self, address: str, context: EvaluationContext) -> Any:
        # Raw range tokens that failed to decode land here too; they read
        # as empty cells.
        cell = self._sheet.get_cell(address) if is_cell_reference(address) else None
        if cell is None:
            return None
        if not cell.formula:
            return cell.value

        try:
            with context.evaluating(address):
                if len(context) > self._max_depth:
                    logger.debug("Max depth %d exceeded at %s", self._max_depth, address)
                    return CellError.ERROR
                return self._evaluate_formula(address, cell.formula, context)
        except CircularReference:
            logger.debug("Circular reference at %s", address)
            return CellError.CIRCULAR

    def _evaluate_formula(self, cell_ref: str, formula: str, context: EvaluationContext) -> Any:
        """Evaluate a formula string (starting with ``=``), errors in-band."""
        try:
            return normalize_number(self._eval_body(formula[1:].strip(), context))
        except EvaluationError as e:
            logger.debug("Cannot evaluate formula %r in %s: %s", formula, cell_ref, e)
            return CellError.ERROR
        except RecursionError:
            raise
        except Exception as e:
            logger.debug("Error evaluating formula %r in %s: %s", formula, cell_ref, e)
            return CellError.ERROR

    def _eval_body(self, expression: str, context: EvaluationContext) -> Any:
        call = match_function_call(expression, self._functions.supported_functions)
        if call is not None:
            return self._eval_function(call[0], call[1], context)
        node = parse_expression(expression)
        return evaluate_node(node, lambda ref: self._resolve(ref, context))

    # ------------------------------------------------------------------
    # Function dispatch
    # ------------------------------------------------------------------

    def _eval_function(self, func_name: str, arg: str, context: EvaluationContext) -> Any:
        registered = self._functions.get(func_name)
        if registered is None:
            raise EvaluationError(f"Unsupported function: {func_name}")

        try:
            if registered.kind == AGGREGATE:
                payload: Any = [self._resolve(ref, context) for ref in expand_range(arg)]
            elif is_cell_reference(arg):
                payload = to_text(self._resolve(arg, context))
            else:
                payload = arg
            return registered.func(payload)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise EvaluationError(f"{func_name}: {e}") from e
