"""gridcalc — a formula engine for a tabular data grid.

Usage::

    from gridcalc import Sheet

    sheet = Sheet()
    sheet["D2"] = 85
    sheet["D3"] = 92
    sheet["D4"] = "=SUM(D2:D3)"
    print(sheet["D4"])          # 177

    sheet["A1"] = "=B1"
    sheet["B1"] = "=A1"
    print(sheet["A1"])          # #CIRCULAR!
"""

from gridcalc._cell import Cell
from gridcalc._errors import CircularReference, EvaluationError, GridcalcError, InvalidAddress
from gridcalc._sheet import Sheet
from gridcalc._utils import (
    a1_to_rowcol,
    column_index,
    column_label,
    decode_address,
    is_cell_reference,
    rowcol_to_a1,
)
from gridcalc.calc import CellError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Cell",
    "CellError",
    "CircularReference",
    "EvaluationError",
    "GridcalcError",
    "InvalidAddress",
    "Sheet",
    "a1_to_rowcol",
    "column_index",
    "column_label",
    "decode_address",
    "is_cell_reference",
    "rowcol_to_a1",
]
