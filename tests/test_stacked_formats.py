import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from invoice_totals.normalizers import split_lines  # noqa: E402
from invoice_totals.totals.models import SOURCE_STACKED  # noqa: E402
from invoice_totals.totals.stacked import (  # noqa: E402
    detect_header_then_value_row,
    detect_stacked_totals,
    detect_total_label_then_value,
)


def _lines(*rows):
    return split_lines("\n".join(rows))


@pytest.mark.parametrize(
    "rows, rule, expected",
    [
        (
            ("SUBTOTAL", "TAX", "TOTAL", "100.00", "7.00", "107.00"),
            "STACKED 3x3",
            (10000, 700, 10700),
        ),
        (
            ("SUBTOTAL 100.00", "TAX", "TOTAL", "7.00", "107.00"),
            "STACKED 2x2",
            (None, 700, 10700),
        ),
        (
            ("SUBTOTAL TAX TOTAL", "100.00", "7.00", "107.00"),
            "HEADER + 3 VALUE LINES",
            (10000, 700, 10700),
        ),
        (
            ("SUBTOTAL TAX TOTAL", "100.00 7.00 107.00"),
            "HEADER + VALUE ROW",
            (10000, 700, 10700),
        ),
        (
            ("SUBTOTAL", "100.00", "TAX", "7.00", "TOTAL", "107.00"),
            "ALTERNATING 3",
            (10000, 700, 10700),
        ),
        (
            ("TAX", "7.00", "TOTAL", "107.00"),
            "ALTERNATING 2",
            (None, 700, 10700),
        ),
        (
            ("THANK YOU", "INVOICE TOTAL", "$107.00"),
            "TOTAL LABEL + VALUE",
            (None, None, 10700),
        ),
    ],
)
def test_each_stacked_format(rows, rule, expected):
    match = detect_stacked_totals(_lines(*rows))
    subtotal, tax, total = expected

    assert match is not None
    assert match.format_name == rule
    assert match.total.cents == total
    assert match.total.source == SOURCE_STACKED
    assert match.total.rule == f"{rule} (TOTAL)"
    assert (match.subtotal.cents if match.subtotal else None) == subtotal
    assert (match.tax.cents if match.tax else None) == tax


def test_stacked_evidence_points_at_the_value_line():
    match = detect_stacked_totals(_lines("SUBTOTAL", "TAX", "TOTAL", "100.00", "7.00", "107.00"))

    assert match.total.line == "TOTAL | 107.00"
    assert match.total.line_index == 6
    assert match.subtotal.line == "SUBTOTAL | 100.00"


def test_bottom_most_window_wins():
    lines = _lines("TOTAL", "50.00", "NOTES", "TOTAL", "80.00")
    assert detect_stacked_totals(lines).total.cents == 8000


def test_total_label_skipped_under_stacked_summary_labels():
    lines = _lines("SUBTOTAL", "TAX", "TOTAL", "100.00")
    assert detect_total_label_then_value(lines) is None


def test_total_label_with_non_value_next_line_is_ignored():
    assert detect_total_label_then_value(_lines("TOTAL", "SEE ATTACHED")) is None


@pytest.mark.parametrize(
    "header, row",
    [
        # Category banner repeating the column names
        ("DAIRY SUBTOTAL TAX TOTAL", "100.00 7.00 107.00"),
        # Quantity and unit: a line item, not a summary row
        ("SUBTOTAL TAX TOTAL", "2 CS 100.00 7.00 107.00"),
        # Item number
        ("SUBTOTAL TAX TOTAL", "1234567 100.00 7.00 107.00"),
    ],
)
def test_header_row_rejects_line_item_shapes(header, row):
    assert detect_header_then_value_row(_lines(header, row)) is None


def test_header_row_rejects_long_headers():
    header = "SUBTOTAL TAX TOTAL " + "X" * 80
    assert detect_header_then_value_row(_lines(header, "100.00 7.00 107.00"), max_header_length=80) is None


def test_no_stacked_shape():
    assert detect_stacked_totals(_lines("INVOICE TOTAL 107.00")) is None
    assert detect_stacked_totals([]) is None


def test_total_label_needs_an_amount_with_cents():
    assert detect_total_label_then_value(_lines("QTY", "TOTAL", "2")) is None


def test_total_column_header_yields_to_invoice_total_below():
    lines = _lines("QTY", "DESCRIPTION", "TOTAL", "250.00", "WIDGET 250.00", "INVOICE TOTAL 500.00")
    assert detect_total_label_then_value(lines) is None


def test_stacked_values_above_the_ceiling_are_ignored(fresh_config):
    fresh_config.set("totals.max_split_line_cents", 100000)

    assert detect_total_label_then_value(_lines("TOTAL", "4,412.00")) is None
    assert detect_stacked_totals(_lines("SUBTOTAL", "TAX", "TOTAL", "100.00", "7.00", "9,999.00")) is None
    assert detect_total_label_then_value(_lines("TOTAL", "999.00")).total.cents == 99900
