import os
import sys
from types import SimpleNamespace

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from invoice_totals.reconciliation import (  # noqa: E402
    InvoiceMath,
    compute_invoice_math,
    line_item_cents,
    reconcile_totals,
    select_best_total,
)
from invoice_totals.totals import Totals, extract_totals  # noqa: E402


def test_only_line_items_falls_back_to_sum_items():
    totals = extract_totals("ACME PRODUCE\nCARROTS 20.00\nONIONS 30.00")
    math = compute_invoice_math([{"total_cents": 2000}, {"total_cents": 3000}], totals)

    selection = select_best_total(totals, math)

    assert totals.total_cents == 0
    assert selection.total_cents == 5000
    assert selection.source == "sum_items"
    assert selection.confidence == 0.6
    assert selection.reason == "Sum of line items only"


def test_extracted_total_wins():
    totals = extract_totals("INVOICE TOTAL 107.00")
    selection = select_best_total(totals, InvoiceMath(sum_line_items_cents=5000), parser_total_cents=9900)

    assert selection.total_cents == 10700
    assert selection.source == "extracted"
    assert selection.confidence == 0.95
    assert selection.reason == "Extracted from invoice: INVOICE TOTAL"


def test_parser_total_before_line_items():
    selection = select_best_total(Totals(), InvoiceMath(sum_line_items_cents=5000), parser_total_cents=9900)

    assert (selection.total_cents, selection.source, selection.confidence) == (9900, "parser", 0.85)
    assert selection.reason == "From invoice parser"


def test_computed_needs_adjustments():
    math = InvoiceMath(sum_line_items_cents=10000, tax_cents=700, fees_cents=500, discount_cents=-200)
    selection = select_best_total(Totals(), math)

    assert selection.total_cents == 11000
    assert selection.source == "computed"
    assert selection.confidence == 0.75
    assert selection.reason == "Computed from line items + tax + fees + discounts"


def test_nothing_available():
    selection = select_best_total(Totals(), InvoiceMath())

    assert (selection.total_cents, selection.source, selection.confidence) == (0, "none", 0.0)
    assert selection.reason == "No total could be determined"
    assert select_best_total(None, None).source == "none"


@pytest.mark.parametrize(
    "extracted, computed, matches, tolerance_ok, reason",
    [
        (10700, 10700, True, True, "Exact match"),
        (10700, 10697, False, True, "Within tolerance (3 cents difference)"),
        (10700, 10600, False, False, "Mismatch: extracted $107.00 vs computed $106.00 (delta 100 cents)"),
        (0, 10700, False, False, "No extracted total available"),
        (10700, 0, False, False, "No computed total available"),
        (0, 0, False, False, "No extracted total available"),
    ],
)
def test_reconcile_reasons(extracted, computed, matches, tolerance_ok, reason):
    result = reconcile_totals(extracted, computed)

    assert result.matches is matches
    assert result.tolerance_ok is tolerance_ok
    assert result.reason == reason
    assert result.delta_cents == extracted - computed
    assert result.tolerance_cents == 5


def test_reconcile_explicit_tolerance():
    assert reconcile_totals(10700, 10690, tolerance_cents=10).tolerance_ok
    assert not reconcile_totals(10700, 10690, tolerance_cents=0).tolerance_ok


def test_invoice_math_adds_components():
    totals = Totals(total_cents=11000, tax_cents=700, fees_cents=500, discount_cents=-200)
    math = compute_invoice_math([4000, {"line_total_cents": 6000}], totals)

    assert math.sum_line_items_cents == 10000
    assert math.computed_total_cents == 11000
    assert math.line_item_count == 2
    assert reconcile_totals(totals.total_cents, math.computed_total_cents).matches


def test_invoice_math_without_line_items():
    math = compute_invoice_math(None, None)

    assert math.computed_total_cents == 0
    assert math.to_dict()["components"] == {"tax_cents": 0, "fees_cents": 0, "discount_cents": 0}


@pytest.mark.parametrize(
    "item, expected",
    [
        (1250, 1250),
        ({"total_cents": 1250}, 1250),
        ({"totalCents": 1250}, 1250),
        ({"total": "$12.50"}, 1250),
        ({"description": "no amount"}, 0),
        (SimpleNamespace(total_cents=1250), 1250),
        (True, 0),
        ("12.50", 0),
    ],
)
def test_line_item_cents_shapes(item, expected):
    assert line_item_cents(item) == expected
