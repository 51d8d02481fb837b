"""
Totals Rule Tables.

Ordered, prioritized pattern tables for every field the engine reads, and
the one function that decides whether a line is an invoice-level total or a
group/category subtotal.

All patterns run against lines produced by normalize_line(), which are
upper-cased with collapsed whitespace.

Priorities: lower numbers win. Split-line rules sit below zero because the
label-on-one-line, value-on-the-next artifact only occurs for real
invoice totals.
"""

import re
from enum import Enum
from typing import Dict, List, Union

from invoice_totals.normalizers import normalize_line
from .models import PatternRule, SplitLineRule


# Monetary capture group shared by the tables below
VALUE = r'\$?\s?(\d[\d,]*(?:\.\d{1,3})?)'
# Same, but cents are mandatory: used where bare integers are usually quantities
DECIMAL_VALUE = r'\$?\s?(\d[\d,]*\.\d{2})'
# Signed value for discounts: "-5.00", "(5.00)", "5.00-", "$ -5.00"
SIGNED_VALUE = r'(\(?-?\s?\$?\s?-?\s?\d[\d,]*\.\d{2}\)?-?)'
# A line holding nothing but one value
BARE_VALUE_RE = re.compile(r'^\$?\s?(\d[\d,]*(?:\.\d{1,3})?)$')


def _rule(pattern: str, label: str, priority: int) -> PatternRule:
    return PatternRule(re.compile(pattern), label, priority)


# =============================================================================
# TOTAL RULES
# =============================================================================

TOTAL_RULES: List[PatternRule] = [
    _rule(r'INVOICE\s+TOTAL[:\s]*' + VALUE, 'INVOICE TOTAL', 1),
    _rule(r'\bINV\.?\s*TOTAL[:\s]*' + VALUE, 'INV TOTAL', 1),
    _rule(r'INVOICETOTAL[:\s]*' + VALUE, 'INVOICETOTAL', 1),
    _rule(r'TOTAL\s+USD[:\s]*' + VALUE, 'TOTAL USD', 2),
    _rule(r'AMOUNT\s+DUE[:\s]*' + VALUE, 'AMOUNT DUE', 3),
    _rule(r'BALANCE\s+DUE[:\s]*' + VALUE, 'BALANCE DUE', 4),
    _rule(r'GRAND\s+TOTAL[:\s]*' + VALUE, 'GRAND TOTAL', 5),
    _rule(r'BILL\s+TOTAL[:\s]*' + VALUE, 'BILL TOTAL', 5),
    _rule(r'STATEMENT\s+TOTAL[:\s]*' + VALUE, 'STATEMENT TOTAL', 5),
    _rule(r'TOTAL\s+AMOUNT[:\s]*' + VALUE, 'TOTAL AMOUNT', 6),
    _rule(r'ORDER\s+TOTAL[:\s]*' + VALUE, 'ORDER TOTAL', 6),
    _rule(r'DELIVERY\s+TOTAL[:\s]*' + VALUE, 'DELIVERY TOTAL', 6),
    _rule(r'TOTAL\s+DUE[:\s]*' + VALUE, 'TOTAL DUE', 7),
    _rule(r'CURRENT\s+CHARGES[:\s]*' + VALUE, 'CURRENT CHARGES', 7),
    _rule(r'NEW\s+BALANCE[:\s]*' + VALUE, 'NEW BALANCE', 7),
    _rule(r'PAY\s+THIS\s+AMOUNT[:\s]*' + VALUE, 'PAY THIS AMOUNT', 8),
    _rule(r'PLEASE\s+PAY[:\s]*' + VALUE, 'PLEASE PAY', 8),
    _rule(r'PAYMENT\s+DUE[:\s]*' + VALUE, 'PAYMENT DUE', 8),
    _rule(r'NET\s+(?:TOTAL|DUE|AMOUNT)[:\s]*' + VALUE, 'NET TOTAL', 8),
    _rule(r'AMOUNT\s+ENCLOSED[:\s]*' + VALUE, 'AMOUNT ENCLOSED', 8),
    # Bare TOTAL, not part of SUBTOTAL or TAX TOTAL
    _rule(r'(?:^|(?<!\bTAX)\s)TOTAL[:\s]+' + DECIMAL_VALUE + r'(?:\s|$)', 'TOTAL', 10),
]

SUBTOTAL_RULES: List[PatternRule] = [
    _rule(r'\bSUBTOTAL[:\s]*' + VALUE, 'SUBTOTAL', 1),
    _rule(r'\bSUB[\s-]TOTAL[:\s]*' + VALUE, 'SUB-TOTAL', 2),
    _rule(r'MERCHANDISE\s+TOTAL[:\s]*' + VALUE, 'MERCHANDISE TOTAL', 3),
]

TAX_RULES: List[PatternRule] = [
    _rule(r'(?<!SUBTOTAL )SALES\s+TAX[:\s]*(?:TOTAL\b[:\s]*)?(?:\(?\d+(?:\.\d+)?\s*%\)?)?[:\s]*' + VALUE, 'SALES TAX', 1),
    _rule(r'(?<!SUBTOTAL )\bTAX\s*(?:TOTAL\b[:\s]*)?(?:\(?\d+(?:\.\d+)?\s*%\)?)?[:\s]*' + VALUE, 'TAX', 2),
    _rule(r'\bVAT\b\s*(?:\(?\d+(?:\.\d+)?\s*%\)?)?[:\s]*' + VALUE, 'VAT', 3),
    _rule(r'\b[GH]ST\b\s*(?:\(?\d+(?:\.\d+)?\s*%\)?)?[:\s]*' + VALUE, 'GST', 3),
]

FEE_RULES: List[PatternRule] = [
    _rule(r'FUEL\s+(?:SURCHARGE|FEE|CHARGE)[:\s]*' + DECIMAL_VALUE, 'FUEL SURCHARGE', 1),
    _rule(r'DELIVERY\s+(?:FEE|CHARGE)[:\s]*' + DECIMAL_VALUE, 'DELIVERY FEE', 1),
    _rule(r'SERVICE\s+(?:FEE|CHARGE)[:\s]*' + DECIMAL_VALUE, 'SERVICE FEE', 1),
    _rule(r'ENVIRONMENT(?:AL)?\s+(?:FEE|CHARGE)[:\s]*' + DECIMAL_VALUE, 'ENVIRONMENTAL FEE', 1),
    _rule(r'ENERGY\s+SURCHARGE[:\s]*' + DECIMAL_VALUE, 'ENERGY SURCHARGE', 1),
    _rule(r'\bHANDLING(?:\s+(?:FEE|CHARGE))?[:\s]*' + DECIMAL_VALUE, 'HANDLING', 2),
    _rule(r'\bFREIGHT(?:\s+CHARGE)?[:\s]*' + DECIMAL_VALUE, 'FREIGHT', 2),
    _rule(r'\bSHIPPING(?:\s+(?:FEE|CHARGE))?[:\s]*' + DECIMAL_VALUE, 'SHIPPING', 2),
]

DISCOUNT_RULES: List[PatternRule] = [
    _rule(r'\bDISCOUNTS?[:\s]*' + SIGNED_VALUE, 'DISCOUNT', 1),
    _rule(r'\bCREDITS?[:\s]*' + SIGNED_VALUE, 'CREDIT', 1),
    _rule(r'\bREBATES?[:\s]*' + SIGNED_VALUE, 'REBATE', 1),
    _rule(r'\bSAVINGS[:\s]*' + SIGNED_VALUE, 'SAVINGS', 2),
    _rule(r'\bPROMO(?:TION)?S?[:\s]*' + SIGNED_VALUE, 'PROMOTION', 2),
]


# =============================================================================
# SPLIT-LINE RULES
# =============================================================================

_BARE = r'^\$?\s?(\d[\d,]*(?:\.\d{1,3})?)$'

SPLIT_LINE_RULES: List[SplitLineRule] = [
    # "INVOICE" then "TOTAL 1,748.85": a two-word label broken by extraction
    SplitLineRule(
        re.compile(r'^INVOICE:?$'),
        re.compile(r'^(?!.*(?:GROUP|SUB\s*-?TOTAL))TOTAL[\s:]*' + VALUE + r'(?:\s|$)'),
        'INVOICE + TOTAL (split-line)', -2
    ),
    SplitLineRule(
        re.compile(r'^TOTAL\s+USD:?$'),
        re.compile(_BARE),
        'TOTAL USD (split-line)', -2
    ),
    SplitLineRule(
        re.compile(r'^INVOICE\s+TOTAL\s*[:.]?$'),
        re.compile(_BARE),
        'INVOICE TOTAL (next line)', 0
    ),
    SplitLineRule(
        re.compile(r'^TOTAL\s*[:.]?$'),
        re.compile(_BARE),
        'TOTAL (next line)', 5
    ),
    SplitLineRule(
        re.compile(r'^(?!.*(?:SUB[\s-]?TOTAL|GROUP|\bTAX\b))[A-Z][A-Z .#&]{0,18}\sTOTAL:?$'),
        re.compile(_BARE),
        'LABEL TOTAL (next line)', 6
    ),
]


# =============================================================================
# LINE CLASSIFICATION
# =============================================================================

class LineClass(Enum):
    """How a line relates to the invoice grand total."""
    INVOICE_TOTAL = "invoice_total"
    GROUP_SUBTOTAL = "group_subtotal"
    NEUTRAL = "neutral"


# Labels that only ever name the invoice-level total
INVOICE_TOTAL_WHITELIST = [
    re.compile(r'INVOICE\s+TOTAL'),
    re.compile(r'TOTAL\s+USD'),
    re.compile(r'AMOUNT\s+DUE'),
    re.compile(r'BALANCE\s+DUE'),
    re.compile(r'GRAND\s+TOTAL'),
]

GROUP_SUBTOTAL_RULES: List[PatternRule] = [
    _rule(r'\*{2,}.*GROUP', 'ASTERISK GROUP BANNER', 0),
    _rule(r'GROUP.*\*{2,}', 'ASTERISK GROUP BANNER', 0),
    _rule(r'\*{2,}.*TOTAL', 'ASTERISK TOTAL BANNER', 0),
    _rule(r'GROUP\s*TOTAL', 'GROUP TOTAL', 0),
    _rule(r'CATEGORY\s*TOTAL', 'CATEGORY TOTAL', 0),
    _rule(r'SECTION\s*TOTAL', 'SECTION TOTAL', 0),
    _rule(r'DEPT\.*\s*TOTAL', 'DEPT TOTAL', 0),
    _rule(r'DEPARTMENT\s*TOTAL', 'DEPARTMENT TOTAL', 0),
    _rule(r'\b(?:AREA|ZONE|ROUTE|CLASS)\s+TOTAL', 'AREA TOTAL', 0),
    _rule(r'PRODUCT\s+CLASS.*TOTAL', 'PRODUCT CLASS TOTAL', 0),
    # Per-employee and per-location subtotals on uniform-rental invoices
    _rule(r'^\d{4}\s+[A-Z]+\s+[A-Z]+\s+SUBTOTAL', 'EMPLOYEE ID SUBTOTAL', 0),
    _rule(r'^[A-Z]+\s+[A-Z]+\s+SUBTOTAL\s*-?\s*[\d,.]+$', 'NAME SUBTOTAL', 0),
    _rule(r'^[A-Z]+(?:/[A-Z]+)+\s+SUBTOTAL', 'DEPARTMENT SUBTOTAL', 0),
    _rule(r'\bIT\s+SUBTOTAL', 'IT SUBTOTAL', 0),
    _rule(r'\bLOC\s+\d+.*SUBTOTAL', 'LOCATION SUBTOTAL', 0),
    _rule(r'LOCATION\s+SUBTOTAL', 'LOCATION SUBTOTAL', 0),
    _rule(r'EMPLOYEE.*SUBTOTAL', 'EMPLOYEE SUBTOTAL', 0),
    _rule(r'\bEMP\s*#.*SUBTOTAL', 'EMPLOYEE SUBTOTAL', 0),
]

_SUBTOTAL_WORD_RE = re.compile(r'\bSUB[\s-]?TOTAL\b')


def classify_line(line: str) -> LineClass:
    """
    Decide whether a line names the invoice total or a group subtotal.

    The whitelist is consulted first and wins outright: a line carrying an
    invoice-level label is never treated as a group subtotal, even when it
    also contains text that a group pattern would match. Every place in
    the engine that accepts or rejects a total goes through here.

    Args:
        line: Raw or normalized line. Split-line evidence (two lines
            joined by `` | ``) is accepted as is.

    Returns:
        The LineClass of the line.
    """
    text = normalize_line(line)
    if not text:
        return LineClass.NEUTRAL

    if any(p.search(text) for p in INVOICE_TOTAL_WHITELIST):
        return LineClass.INVOICE_TOTAL

    if any(rule.search(text) for rule in GROUP_SUBTOTAL_RULES):
        return LineClass.GROUP_SUBTOTAL

    # "<FIRST> <LAST> SUBTOTAL": two to four plain words naming a person or place
    match = _SUBTOTAL_WORD_RE.search(text)
    if match and match.start() > 5:
        words = text[:match.start()].split()
        if 2 <= len(words) <= 4 and all(w.isalpha() for w in words):
            return LineClass.GROUP_SUBTOTAL

    return LineClass.NEUTRAL


def is_group_subtotal_line(line: str) -> bool:
    """True if the line is a group/category/employee subtotal."""
    return classify_line(line) is LineClass.GROUP_SUBTOTAL


def mask_group_subtotal_lines(text: str) -> str:
    """
    Blank out group-subtotal lines so free-text strategies cannot read them.

    A rejected label line without a value of its own also takes the next
    line with it when that line is a bare value. Line count is preserved.
    """
    if not text:
        return ''

    lines = text.split('\n')
    masked = list(lines)
    for i, line in enumerate(lines):
        if not is_group_subtotal_line(line):
            continue
        masked[i] = ''
        has_value = re.search(r'\d[\d,]*\.\d{2}', line)
        if not has_value and i + 1 < len(lines) and BARE_VALUE_RE.match(normalize_line(lines[i + 1])):
            masked[i + 1] = ''
    return '\n'.join(masked)


RULES_BY_LABEL: Dict[str, Union[PatternRule, SplitLineRule]] = {
    rule.label: rule
    for table in (TOTAL_RULES, SUBTOTAL_RULES, TAX_RULES, FEE_RULES, DISCOUNT_RULES, SPLIT_LINE_RULES)
    for rule in table
}
