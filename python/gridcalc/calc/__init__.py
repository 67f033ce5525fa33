"""gridcalc.calc - Formula evaluation engine for gridcalc sheets."""

from gridcalc.calc._evaluator import DEFAULT_MAX_DEPTH, EvaluationContext, SheetEvaluator
from gridcalc.calc._expression import parse_expression
from gridcalc.calc._functions import (
    BUILTIN_FUNCTIONS,
    CellError,
    FunctionRegistry,
    is_error,
    is_numeric,
    is_supported,
)
from gridcalc.calc._graph import DependencyGraph, find_dependents
from gridcalc.calc._parser import expand_range, extract_references, reference_tokens
from gridcalc.calc._protocol import CalcEngine, CellDelta, RefreshResult

__all__ = [
    "BUILTIN_FUNCTIONS",
    "CalcEngine",
    "CellDelta",
    "CellError",
    "DEFAULT_MAX_DEPTH",
    "DependencyGraph",
    "EvaluationContext",
    "FunctionRegistry",
    "RefreshResult",
    "SheetEvaluator",
    "expand_range",
    "extract_references",
    "find_dependents",
    "is_error",
    "is_numeric",
    "is_supported",
    "parse_expression",
    "reference_tokens",
]
