import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from invoice_totals.acquisition import (  # noqa: E402
    LayoutSettings,
    PositionedToken,
    analyze_coverage,
    extract_interesting_lines,
    group_tokens_into_lines,
)

SETTINGS = LayoutSettings(y_tolerance=5, narrow_gap=5, wide_gap=20, char_width=6, max_gap_spaces=8)


def test_tokens_on_one_band_form_one_line():
    tokens = [
        PositionedToken("107.00", 200, 236, 701.9),
        PositionedToken("TOTAL", 10, 40, 700.2),
    ]
    assert group_tokens_into_lines(tokens, SETTINGS) == ["TOTAL" + " " * 8 + "107.00"]


def test_lines_come_out_top_to_bottom():
    tokens = [
        PositionedToken("TOTAL", 10, 40, 700),
        PositionedToken("INVOICE", 10, 50, 100),
        PositionedToken("SUBTOTAL", 10, 55, 650),
    ]
    assert group_tokens_into_lines(tokens, SETTINGS) == ["INVOICE", "SUBTOTAL", "TOTAL"]


@pytest.mark.parametrize(
    "gap, expected",
    [
        (2, " "),
        (5, " "),
        (12, "  "),
        (20, "  "),
        (21, "   "),
        (36, " " * 6),
        (500, " " * 8),
    ],
)
def test_spacing_grows_with_the_gap(gap, expected):
    tokens = [PositionedToken("A", 0, 10, 50), PositionedToken("B", 10 + gap, 20 + gap, 50)]
    assert group_tokens_into_lines(tokens, SETTINGS) == ["A" + expected + "B"]


def test_blank_tokens_are_dropped():
    tokens = [PositionedToken("  ", 0, 5, 10), PositionedToken("", 0, 5, 50)]
    assert group_tokens_into_lines(tokens, SETTINGS) == []


def test_settings_from_config(fresh_config):
    fresh_config.set("acquisition.layout.max_gap_spaces", 4)
    assert LayoutSettings.from_config().max_gap_spaces == 4


def test_coverage_needs_all_three_anchors():
    full = analyze_coverage("INVOICE 1001\nTOTAL 107.00")
    assert full.is_sufficient
    assert not full.missing_critical_anchors

    no_money = analyze_coverage("INVOICE\nTOTAL DUE UPON RECEIPT")
    assert no_money.has_total_anchor and no_money.has_invoice_word
    assert not no_money.has_money_values
    assert no_money.missing_critical_anchors

    empty = analyze_coverage("")
    assert empty.to_dict() == {
        "has_total_anchor": False,
        "has_invoice_word": False,
        "has_money_values": False,
        "missing_critical_anchors": True,
        "text_length": 0,
    }


def test_interesting_lines_with_context():
    text = "\n".join(["A", "B", "C", "D", "E", "F", "SALES TAX 7.00", "TOTAL 107.00"])
    lines = extract_interesting_lines(text, context=1)

    assert lines == [
        "     6: F",
        ">    7: SALES TAX 7.00",
        ">    8: TOTAL 107.00",
    ]


def test_interesting_lines_separate_distant_groups():
    text = "\n".join(["TOTAL 1.00", "x", "x", "x", "x", "TAX 2.00"])
    lines = extract_interesting_lines(text, context=0)

    assert lines == [">    1: TOTAL 1.00", "...", ">    6: TAX 2.00"]
    assert extract_interesting_lines("") == []
