import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from invoice_totals.totals import (  # noqa: E402
    Totals,
    TotalsExtractor,
    extract_totals,
    is_group_subtotal_line,
)
from invoice_totals.totals.models import (  # noqa: E402
    SOURCE_LINE_SCAN,
    SOURCE_STACKED,
    SOURCE_TEXT_POSITION,
    SOURCE_UNIVERSAL,
)


GROUP_TOTAL_INVOICE = "\n".join([
    "SYSCO EASTERN MARYLAND, LLC",
    "2 CS WHOLE MILK 24.50",
    "***GROUP TOTAL*** 1,747.30",
    "INVOICE",
    "TOTAL 1,748.85",
])


def test_split_line_invoice_total_beats_group_total():
    totals = extract_totals(GROUP_TOTAL_INVOICE)

    assert totals.total_cents == 174885
    assert totals.evidence.total.rule == "INVOICE + TOTAL (split-line)"
    assert totals.evidence.total.line == "INVOICE | TOTAL 1,748.85"
    assert totals.evidence.total.line_index == 5
    assert totals.evidence.total.source == SOURCE_LINE_SCAN
    assert totals.subtotal_cents != 174730
    assert totals.total_cents != 174730


def test_stacked_labels_then_values():
    totals = extract_totals("SUBTOTAL\nTAX\nTOTAL\n100.00\n7.00\n107.00")

    assert (totals.subtotal_cents, totals.tax_cents, totals.total_cents) == (10000, 700, 10700)
    assert totals.evidence.total.source == SOURCE_STACKED
    assert totals.evidence.subtotal.rule == "STACKED 3x3 (SUBTOTAL)"
    assert totals.warnings == ()


@pytest.mark.parametrize("text", ["", "   \n\t ", None])
def test_empty_text_gives_empty_totals(text):
    totals = extract_totals(text)

    assert totals == Totals()
    assert totals.evidence.total is None
    assert not totals.found


@pytest.mark.parametrize(
    "group_line",
    [
        "***GROUP TOTAL*** 999.00",
        "PRODUCE GROUP TOTAL 999.00",
        "CATEGORY TOTAL 999.00",
        "SECTION TOTAL 999.00",
        "DEPT TOTAL 999.00",
        "JOHN SMITH SUBTOTAL - 999.00",
    ],
)
def test_group_subtotal_never_becomes_the_total(group_line):
    text = "\n".join(["ACME FOODS", group_line, "INVOICE TOTAL 1,200.00"])
    totals = extract_totals(text)

    assert totals.total_cents == 120000
    assert not is_group_subtotal_line(totals.evidence.total.line)
    assert totals.subtotal_cents != 99900


def test_only_group_totals_yields_no_total():
    text = "ACME FOODS\nMILK 2 CS 125.00\nDAIRY GROUP TOTAL 250.00"
    totals = extract_totals(text)

    assert totals.total_cents == 0
    assert totals.evidence.total is None
    assert "No total found" in totals.warnings


def test_whitelisted_label_wins_over_group_wording():
    totals = extract_totals("GROUP TOTAL / INVOICE TOTAL 500.00")
    assert totals.total_cents == 50000


def test_priority_then_lowest_line():
    text = "\n".join([
        "TOTAL 90.00",
        "AMOUNT DUE 100.00",
        "TOTAL 95.00",
    ])
    totals = extract_totals(text)

    assert totals.total_cents == 10000
    assert totals.evidence.total.rule == "AMOUNT DUE"
    alternatives = [c.cents for c in totals.evidence.total.alternatives]
    assert alternatives == [9500, 9000]


def test_components_and_adjustments():
    text = "\n".join([
        "SUBTOTAL 100.00",
        "SALES TAX 7.00",
        "FUEL SURCHARGE 5.00",
        "DISCOUNT -2.00",
        "INVOICE TOTAL 110.00",
    ])
    totals = extract_totals(text)

    assert totals.total_cents == 11000
    assert totals.subtotal_cents == 10000
    assert totals.tax_cents == 700
    assert totals.fees_cents == 500
    assert totals.discount_cents == -200
    assert totals.evidence.tax.rule == "SALES TAX"
    assert [e.rule for e in totals.evidence.fees] == ["FUEL SURCHARGE"]
    assert [e.rule for e in totals.evidence.discounts] == ["DISCOUNT"]


def test_subtotal_never_above_total_when_smaller_candidate_exists():
    text = "\n".join([
        "MERCHANDISE TOTAL 150.00",
        "SUBTOTAL 100.00",
        "INVOICE TOTAL 107.00",
    ])
    totals = extract_totals(text)

    assert totals.total_cents == 10700
    assert totals.subtotal_cents == 10000


def test_total_smaller_than_subtotal_is_warned_not_changed():
    totals = extract_totals("SUBTOTAL 200.00\nINVOICE TOTAL 107.00")

    assert totals.total_cents == 10700
    assert totals.subtotal_cents == 20000
    assert any("smaller than subtotal" in w for w in totals.warnings)


def test_every_nonzero_field_has_evidence():
    text = "SUBTOTAL 100.00\nSALES TAX 7.00\nSERVICE FEE 3.00\nCREDIT (1.00)\nINVOICE TOTAL 109.00"
    totals = extract_totals(text)
    evidence = totals.evidence

    assert totals.total_cents and evidence.total is not None
    assert totals.subtotal_cents and evidence.subtotal is not None
    assert totals.tax_cents and evidence.tax is not None
    assert totals.fees_cents == sum(e.cents for e in evidence.fees)
    assert totals.discount_cents == sum(e.cents for e in evidence.discounts) == -100


def test_universal_finder_fallback():
    text = "\n".join([
        "ACME SUPPLY CO",
        "INVOICE 12345",
        "ITEM ONE 40.00",
        "ITEM TWO 60.00",
        "TOTAL = $100.00",
    ])
    totals = extract_totals(text)

    assert totals.total_cents == 10000
    assert totals.evidence.total.source == SOURCE_UNIVERSAL
    assert totals.evidence.total.confidence == "medium"
    assert totals.evidence.total.rule.startswith("UNIVERSAL FINDER")


def test_unanchored_values_are_not_accepted_as_total():
    totals = extract_totals("ACME PRODUCE\nCARROTS 20.00\nONIONS 30.00")

    assert totals.total_cents == 0
    assert totals.evidence.total is None


def test_last_resort_text_position(fresh_config):
    # Keep the universal finder from accepting anything
    fresh_config.set("totals.fallback.min_confidence", 101)
    text = "INVOICE TOTAL\nPLEASE REMIT\n$1,234.56"

    totals = TotalsExtractor().extract(text)

    assert totals.total_cents == 123456
    assert totals.evidence.total.source == SOURCE_TEXT_POSITION
    assert totals.evidence.total.confidence == "low"
    assert totals.evidence.total.line_index == 3
    assert totals.evidence.total.line == "$1,234.56"


def test_extract_totals_never_raises(monkeypatch):
    def boom(self, text):
        raise RuntimeError("broken rule table")

    monkeypatch.setattr(TotalsExtractor, "extract", boom)
    assert extract_totals("INVOICE TOTAL 1.00") == Totals()


def test_totals_to_dict_is_json_ready():
    totals = extract_totals("INVOICE TOTAL 12.00")
    data = totals.to_dict()

    assert data["total_cents"] == 1200
    assert data["evidence"]["total"]["rule"] == "INVOICE TOTAL"
    assert data["evidence"]["subtotal"] is None
    assert '"total_cents": 1200' in totals.to_json()


def test_total_column_header_over_quantity_is_not_the_total():
    text = "\n".join([
        "QTY",
        "DESCRIPTION",
        "TOTAL",
        "2",
        "WIDGET 250.00",
        "INVOICE TOTAL 500.00",
    ])
    totals = extract_totals(text)

    assert totals.total_cents == 50000
    assert totals.evidence.total.rule == "INVOICE TOTAL"


def test_account_number_under_total_label_is_rejected():
    totals = extract_totals("TOTAL\n4412345678")

    assert totals.total_cents == 0
    assert "No total found" in totals.warnings


def test_discount_with_minus_after_dollar_sign():
    totals = extract_totals("DISCOUNT $ -5.00\nINVOICE TOTAL 95.00")

    assert totals.total_cents == 9500
    assert totals.discount_cents == -500


def test_tax_total_label_is_read_as_tax():
    totals = extract_totals("SUBTOTAL 100.00\nTAX TOTAL 7.00\nINVOICE TOTAL 107.00")

    assert totals.tax_cents == 700
    assert totals.total_cents == 10700


def test_combined_summary_row_is_not_read_as_tax_total():
    totals = extract_totals("SUBTOTAL TAX TOTAL 100.00 7.00 107.00")
    assert totals.tax_cents == 0
