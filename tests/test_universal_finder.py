import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from invoice_totals.totals.universal import (  # noqa: E402
    LARGEST_VALUE_CEILING,
    UNANCHORED_CEILING,
    UniversalTotalFinder,
    extract_monetary_values,
    find_total_near_last_label,
)


def test_empty_text_finds_nothing():
    finder = UniversalTotalFinder()

    assert not finder.find("").found
    assert not finder.find(None).found
    assert finder.find("   ").confidence == 0


def test_labelled_total_is_found_with_agreement_bonus():
    text = "ACME SUPPLY\nWIDGETS 40.00\nGADGETS 60.00\nINVOICE TOTAL 100.00\n"
    result = UniversalTotalFinder().find(text)

    assert result.found
    assert result.cents == 10000
    assert result.confidence == 100
    assert len(result.strategies) >= 3
    assert result.line_index == 4


def test_values_without_any_anchor_are_capped():
    result = UniversalTotalFinder().find("WIDGETS 40.00\nGADGETS 60.00")

    assert result.found
    assert result.confidence <= UNANCHORED_CEILING


def test_subtotal_and_tax_lines_do_not_win():
    text = "SUBTOTAL 900.00\nTAX TOTAL 63.00\nAMOUNT DUE 963.00"
    result = UniversalTotalFinder().find(text)

    assert result.cents == 96300


def test_last_page_values_are_favoured():
    text = "PAGE 1 OF 2\nTOTAL 10.00\nPAGE 2 OF 2\nTOTAL 250.00"
    result = UniversalTotalFinder().find(text)

    assert result.cents == 25000
    assert "last_page_focus" in result.strategies


def test_monetary_values_skip_identifiers_dates_and_years():
    text = "INVOICE 12345 DATE 2024-01-15 ACCT# 998 PHONE 5551234567 QTY 3 AMOUNT 45.10"
    cents = [token.cents for token in extract_monetary_values(text)]

    assert cents == [300, 4510]


def test_monetary_values_keep_dollar_and_thousands():
    tokens = extract_monetary_values("DUE $1,748.85 NOW")

    assert [t.cents for t in tokens] == [174885]
    assert tokens[0].raw == "$1,748.85"


def test_last_label_search_takes_largest_value_after_it():
    text = "TOTAL 5.00\nINVOICE TOTAL\nPLEASE REMIT\n$1,234.56\nREF 99"
    token = find_total_near_last_label(text)

    assert token.cents == 123456
    assert text[token.start:token.start + 8] == "1,234.56"


def test_last_label_search_without_label():
    assert find_total_near_last_label("NOTHING 12.00") is None
    assert find_total_near_last_label("") is None


def test_last_label_search_respects_bounds():
    assert find_total_near_last_label("TOTAL 5.00") is None
    assert find_total_near_last_label("TOTAL 250,000.00") is None


def test_labelled_total_beats_larger_context_line_items():
    text = "ACME SUPPLY CO\nINVOICE 12345\nITEM ONE 40.00\nITEM TWO 60.00\nTOTAL = $100.00"
    result = UniversalTotalFinder().find(text)

    assert result.cents == 10000
    assert result.confidence >= 50
    assert "regex_army" in result.strategies


def test_largest_value_votes_stay_below_labelled_hits():
    finder = UniversalTotalFinder()
    votes = finder.find_by_largest_value("INVOICE TOTAL 900.00\nWIDGETS 40.00")

    assert votes
    assert max(v.score for v in votes) <= LARGEST_VALUE_CEILING
    assert [v.anchored for v in votes] == [True, False]


def test_keyword_proximity_ignores_values_on_earlier_lines():
    votes = UniversalTotalFinder().find_by_keyword_proximity("ITEM TWO 60.00\nTOTAL 100.00")

    assert {v.cents for v in votes} == {10000}


def test_last_label_search_skips_subtotal():
    text = "TOTAL\n$45.00\n" + "THANK YOU FOR YOUR BUSINESS. " * 3 + "\nSUBTOTAL 12.00"
    token = find_total_near_last_label(text)

    assert token.cents == 4500
