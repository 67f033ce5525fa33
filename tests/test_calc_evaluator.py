"""Tests for gridcalc.calc SheetEvaluator."""

from __future__ import annotations

import logging
import sys

import pytest

from gridcalc import CellError, InvalidAddress, Sheet
from gridcalc.calc import FunctionRegistry, SheetEvaluator
from gridcalc.calc._evaluator import EvaluationContext
from gridcalc.calc._functions import TEXT


def _make_scores_sheet() -> Sheet:
    """A1:D5 table with scores in D2:D5 (85, 92, 78, 88)."""
    sheet = Sheet()
    rows = [
        ("Name", "Age", "City", "Score"),
        ("John Doe", 28, "New York", 85),
        ("Jane Smith", 32, "Los Angeles", 92),
        ("Bob Johnson", 45, "Chicago", 78),
        ("Alice Brown", 24, "Miami", 88),
    ]
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            sheet.set_value(sheet.address(r, c), value)
    sheet.set_value("B12", "  Trimmed Text  ")
    return sheet


class TestAggregates:
    def test_scores(self) -> None:
        sheet = _make_scores_sheet()
        sheet.set_formula("D6", "=SUM(D2:D5)")
        sheet.set_formula("D7", "=AVERAGE(D2:D5)")
        sheet.set_formula("D8", "=MAX(D2:D5)")
        sheet.set_formula("D9", "=MIN(D2:D5)")
        sheet.set_formula("D10", "=COUNT(D2:D5)")
        assert sheet.resolve("D6") == 343
        assert sheet.resolve("D7") == pytest.approx(85.75)
        assert sheet.resolve("D8") == 92
        assert sheet.resolve("D9") == 78
        assert sheet.resolve("D10") == 4

    def test_header_text_excluded(self) -> None:
        sheet = _make_scores_sheet()
        sheet.set_formula("E1", "=COUNT(D1:D5)")
        sheet.set_formula("E2", "=SUM(A1:D1)")
        assert sheet.resolve("E1") == 4
        assert sheet.resolve("E2") == 0

    def test_two_dimensional_range(self) -> None:
        sheet = _make_scores_sheet()
        sheet.set_formula("F1", "=SUM(B2:D3)")
        assert sheet.resolve("F1") == 28 + 85 + 32 + 92

    @pytest.mark.parametrize("name", ["SUM", "AVERAGE", "MAX", "MIN", "COUNT"])
    def test_empty_range_is_zero(self, name: str) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", f"={name}(B1:C10)")
        assert sheet.resolve("A1") == 0

    def test_bare_address_argument(self) -> None:
        sheet = Sheet()
        sheet.set_value("B1", 7)
        sheet.set_formula("A1", "=SUM(B1)")
        assert sheet.resolve("A1") == 7

    def test_reversed_range_is_empty(self) -> None:
        sheet = Sheet()
        sheet.set_value("B1", 7)
        sheet.set_value("B2", 3)
        sheet.set_formula("A1", "=SUM(B2:B1)")
        assert sheet.resolve("A1") == 0

    def test_malformed_range_degrades(self) -> None:
        sheet = Sheet()
        sheet.set_value("B1", 7)
        sheet.set_formula("A1", "=SUM(B1:)")
        sheet.set_formula("A2", "=COUNT(hello)")
        assert sheet.resolve("A1") == 0
        assert sheet.resolve("A2") == 0

    def test_formula_cells_in_range(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 2)
        sheet.set_formula("A2", "=A1*10")
        sheet.set_formula("A3", "=SUM(A1:A2)")
        assert sheet.resolve("A3") == 22

    def test_error_cells_excluded(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 5)
        sheet.set_formula("A2", "=1/0")
        sheet.set_formula("B1", "=SUM(A1:A2)")
        sheet.set_formula("B2", "=COUNT(A1:A2)")
        assert sheet.resolve("A2") == "#ERROR!"
        assert sheet.resolve("B1") == 5
        assert sheet.resolve("B2") == 1

    def test_average_result_normalized(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 1)
        sheet.set_value("A2", 3)
        sheet.set_formula("B1", "=AVERAGE(A1:A2)")
        result = sheet.resolve("B1")
        assert result == 2
        assert isinstance(result, int)


class TestTextFunctions:
    def test_cell_argument(self) -> None:
        sheet = _make_scores_sheet()
        sheet.set_formula("C12", "=TRIM(B12)")
        sheet.set_formula("C13", "=UPPER(B12)")
        sheet.set_formula("C14", "=LOWER(B12)")
        assert sheet.resolve("C12") == "Trimmed Text"
        assert sheet.resolve("C13") == "  TRIMMED TEXT  "
        assert sheet.resolve("C14") == "  trimmed text  "

    def test_literal_argument(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=UPPER(hello world)")
        sheet.set_formula("A2", "=TRIM(  padded  )")
        assert sheet.resolve("A1") == "HELLO WORLD"
        assert sheet.resolve("A2") == "padded"

    def test_empty_cell_argument(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=UPPER(B1)")
        assert sheet.resolve("A1") == ""

    def test_number_argument(self) -> None:
        sheet = Sheet()
        sheet.set_value("B1", 2.5)
        sheet.set_formula("A1", "=LOWER(B1)")
        assert sheet.resolve("A1") == "2.5"

    def test_formula_argument(self) -> None:
        sheet = Sheet()
        sheet.set_value("B1", "abc")
        sheet.set_formula("C1", "=UPPER(B1)")
        sheet.set_formula("A1", "=LOWER(C1)")
        assert sheet.resolve("A1") == "abc"


class TestArithmetic:
    def test_binary_operations(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 10)
        sheet.set_value("A2", 4)
        sheet.set_formula("B1", "=A1+A2")
        sheet.set_formula("B2", "=A1-A2")
        sheet.set_formula("B3", "=A1*A2")
        sheet.set_formula("B4", "=A1/A2")
        sheet.set_formula("B5", "=(A1+A2)*2-A2/2")
        assert sheet.resolve("B1") == 14
        assert sheet.resolve("B2") == 6
        assert sheet.resolve("B3") == 40
        assert sheet.resolve("B4") == pytest.approx(2.5)
        assert sheet.resolve("B5") == 26

    def test_integral_division_is_int(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=10/2")
        assert sheet.resolve("A1") == 5
        assert isinstance(sheet.resolve("A1"), int)

    def test_literal_formula(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=42")
        assert sheet.resolve("A1") == 42

    def test_direct_ref_to_text(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", "hello")
        sheet.set_formula("B1", "=A1")
        assert sheet.resolve("B1") == "hello"

    def test_empty_reference_is_zero(self) -> None:
        sheet = Sheet()
        sheet.set_formula("B1", "=A1+1")
        assert sheet.resolve("B1") == 1

    def test_negative_referenced_value(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", -5)
        sheet.set_formula("B1", "=2*A1")
        assert sheet.resolve("B1") == -10

    def test_chain(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 10)
        sheet.set_value("A2", 20)
        sheet.set_formula("A3", "=SUM(A1:A2)")
        sheet.set_formula("A4", "=A3*2")
        assert sheet.resolve("A4") == 60


class TestErrors:
    @pytest.mark.parametrize(
        "formula",
        ["=A1+", "=", "=1/0", '="a"*2', "=FOO(A1)", "=sum(A1:A2)", "=SUM(A1:A2", "=1 2"],
    )
    def test_error_marker(self, formula: str) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 1)
        sheet.set_formula("B1", formula)
        assert sheet.resolve("B1") == "#ERROR!"

    def test_text_operand(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", "abc")
        sheet.set_formula("B1", "=A1/2")
        assert sheet.resolve("B1") is CellError.ERROR

    def test_error_does_not_affect_unrelated_cells(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=A1+")
        sheet.set_value("B1", 3)
        sheet.set_formula("C1", "=B1*2")
        assert sheet.resolve("A1") == "#ERROR!"
        assert sheet.resolve("C1") == 6

    def test_error_propagates_through_arithmetic(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=1/0")
        sheet.set_formula("B1", "=A1+1")
        assert sheet.resolve("B1") == "#ERROR!"

    def test_invalid_address_raises(self) -> None:
        sheet = Sheet()
        with pytest.raises(InvalidAddress):
            sheet.resolve("a1")

    def test_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        sheet = Sheet()
        sheet.set_formula("B1", "=A1+")
        with caplog.at_level(logging.DEBUG, logger="gridcalc.calc._evaluator"):
            sheet.resolve("B1")
        assert "Cannot evaluate formula" in caplog.text

    @pytest.mark.skipif(
        not hasattr(sys, "set_int_max_str_digits"),
        reason="no integer string conversion limit",
    )
    def test_oversized_integer_literal(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=" + "1" * 5000)
        sheet.set_formula("B1", "=A1+1")
        assert sheet.resolve("A1") == "#ERROR!"
        assert sheet.resolve("B1") == "#ERROR!"

    @pytest.mark.skipif(
        not hasattr(sys, "set_int_max_str_digits"),
        reason="no integer string conversion limit",
    )
    def test_text_function_on_oversized_integer(self) -> None:
        sheet = Sheet()
        sheet.set_value("B1", 10**5000)
        sheet.set_formula("A1", "=UPPER(B1)")
        sheet.set_value("C1", "ok")
        sheet.set_formula("D1", "=UPPER(C1)")
        assert sheet.resolve("A1") == "#ERROR!"
        assert sheet.resolve("D1") == "OK"


class TestCircularReferences:
    def test_two_cell_cycle(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=B1")
        sheet.set_formula("B1", "=A1")
        assert sheet.resolve("A1") == "#CIRCULAR!"
        assert sheet.resolve("B1") == "#CIRCULAR!"

    def test_self_reference(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=A1+1")
        assert sheet.resolve("A1") == "#CIRCULAR!"

    def test_cycle_through_range(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 1)
        sheet.set_value("A2", 2)
        sheet.set_formula("A3", "=SUM(A1:A3)")
        assert sheet.resolve("A3") == 3

    def test_cycle_through_text_function(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=UPPER(A1)")
        assert sheet.resolve("A1") == "#CIRCULAR!"

    def test_diamond_is_not_circular(self) -> None:
        """A1 read twice through sibling branches is not a cycle."""
        sheet = Sheet()
        sheet.set_value("A1", 5)
        sheet.set_formula("B1", "=A1*2")
        sheet.set_formula("C1", "=A1+1")
        sheet.set_formula("D1", "=B1+C1+B1")
        assert sheet.resolve("D1") == 26

    def test_no_leak_between_calls(self) -> None:
        sheet = Sheet()
        sheet.set_formula("A1", "=B1")
        sheet.set_formula("B1", "=A1")
        assert sheet.resolve("A1") == "#CIRCULAR!"
        sheet.set_value("B1", 9)
        assert sheet.resolve("A1") == 9

    def test_breaking_and_completing_a_cycle(self) -> None:
        sheet = Sheet()
        sheet.set_value("B1", 1)
        sheet.set_formula("A1", "=B1+1")
        assert sheet.resolve("A1") == 2
        sheet.set_formula("B1", "=A1")
        assert sheet.resolve("A1") == "#CIRCULAR!"


class TestDepthLimit:
    def test_long_chain_is_error(self) -> None:
        sheet = Sheet(max_depth=20)
        sheet.set_value("A1", 0)
        for row in range(2, 40):
            sheet.set_formula(f"A{row}", f"=A{row - 1}+1")
        assert sheet.resolve("A15") == 14
        assert sheet.resolve("A39") == "#ERROR!"

    def test_default_depth_handles_moderate_chain(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 0)
        for row in range(2, 60):
            sheet.set_formula(f"A{row}", f"=A{row - 1}+1")
        assert sheet.resolve("A59") == 58

    def test_very_long_chain_does_not_raise(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 0)
        for row in range(2, 2000):
            sheet.set_formula(f"A{row}", f"=A{row - 1}+1")
        assert sheet.resolve("A1999") == "#ERROR!"

    def test_invalid_max_depth(self) -> None:
        with pytest.raises(ValueError, match="max_depth"):
            Sheet(max_depth=0)


class TestPullBased:
    def test_idempotent(self) -> None:
        sheet = _make_scores_sheet()
        sheet.set_formula("D6", "=AVERAGE(D2:D5)")
        sheet.set_formula("A1", "=B1")
        sheet.set_formula("B1", "=A1")
        assert sheet.resolve("D6") == sheet.resolve("D6")
        assert sheet.resolve("A1") == sheet.resolve("A1")

    def test_write_visible_on_next_read(self) -> None:
        sheet = _make_scores_sheet()
        sheet.set_formula("D6", "=SUM(D2:D5)")
        assert sheet.resolve("D6") == 343
        sheet.set_value("D2", 100)
        assert sheet.resolve("D6") == 358

    def test_stale_cached_value_ignored(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 999)
        sheet.set_formula("A1", "=2+2")
        assert sheet.get_cell("A1").value == 999
        assert sheet.resolve("A1") == 4

    def test_evaluation_does_not_mutate(self) -> None:
        sheet = _make_scores_sheet()
        sheet.set_formula("D6", "=SUM(D2:D5)")
        before = dict(sheet.items())
        sheet.resolve("D6")
        assert dict(sheet.items()) == before


class TestEvaluatorApi:
    def test_evaluate_unsaved_formula(self) -> None:
        sheet = _make_scores_sheet()
        assert sheet.evaluate("=D2*2") == 170
        assert sheet.evaluate("=MAX(D2:D5)") == 92
        assert sheet.evaluate("plain text") == "plain text"
        assert "E1" not in sheet

    def test_custom_function(self) -> None:
        registry = FunctionRegistry()
        registry.register("PRODUCT", lambda values: _product(values))
        registry.register("REVERSE", lambda text: text[::-1], kind="text")
        sheet = Sheet(functions=registry)
        sheet.set_value("A1", 3)
        sheet.set_value("A2", 4)
        sheet.set_value("B1", "abc")
        sheet.set_formula("C1", "=PRODUCT(A1:A2)")
        sheet.set_formula("C2", "=REVERSE(B1)")
        assert sheet.resolve("C1") == 12
        assert sheet.resolve("C2") == "cba"

    def test_handler_failure_is_error(self) -> None:
        registry = FunctionRegistry()
        registry.register("FIRST", lambda values: values[0] / 0)
        sheet = Sheet(functions=registry)
        sheet.set_formula("A1", "=FIRST(B1:B2)")
        assert sheet.resolve("A1") == "#ERROR!"

    def test_handler_lookup_failure_is_error(self) -> None:
        registry = FunctionRegistry()
        registry.register("FIFTH", lambda values: values[5])
        sheet = Sheet(functions=registry)
        sheet.set_formula("A1", "=FIFTH(B1:B2)")
        sheet.set_formula("C1", "=A1+1")
        sheet.set_value("D1", 4)
        sheet.set_formula("E1", "=D1*2")
        assert sheet.resolve("A1") is CellError.ERROR
        assert sheet.resolve("C1") is CellError.ERROR
        assert sheet.resolve("E1") == 8

    def test_text_handler_missing_key_is_error(self) -> None:
        registry = FunctionRegistry()
        registry.register("LOOKUP", lambda text: {}[text], kind=TEXT)
        sheet = Sheet(functions=registry)
        sheet.set_value("B1", "x")
        sheet.set_formula("A1", "=LOOKUP(B1)")
        assert sheet.resolve("A1") == "#ERROR!"
        assert sheet.evaluate("=LOOKUP(B1)") == "#ERROR!"

    def test_unexpected_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        registry = FunctionRegistry()
        registry.register("FIFTH", lambda values: values[5])
        sheet = Sheet(functions=registry)
        sheet.set_formula("A1", "=FIFTH(B1:B2)")
        with caplog.at_level(logging.DEBUG, logger="gridcalc.calc._evaluator"):
            sheet.resolve("A1")
        assert "Error evaluating formula" in caplog.text

    def test_standalone_evaluator(self) -> None:
        sheet = Sheet()
        sheet.set_value("A1", 2)
        ev = SheetEvaluator(sheet, max_depth=5)
        assert ev.max_depth == 5
        assert ev.evaluate("=A1*21") == 42

    def test_context(self) -> None:
        context = EvaluationContext()
        with context.evaluating("A1"):
            assert "A1" in context
            assert len(context) == 1
        assert "A1" not in context


def _product(values: list[object]) -> float:
    result = 1
    for v in values:
        if isinstance(v, (int, float)):
            result *= v
    return result
