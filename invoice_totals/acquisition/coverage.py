"""
Coverage Report.

Checks an acquired text for the anchors the totals engine depends on and
decides whether a more expensive extraction source should be tried.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

TOTAL_ANCHOR_RE = re.compile(
    r'INVOICE\s*TOTAL|TOTAL\s*USD|AMOUNT\s*DUE|BALANCE\s*DUE|GRAND\s*TOTAL|\bTOTAL\b',
    re.IGNORECASE
)
INVOICE_WORD_RE = re.compile(r'\bINVOICE\b|\bINV\s*(?:#|NO\b)|\bBILL\s+TO\b', re.IGNORECASE)
MONEY_VALUE_RE = re.compile(r'\d{1,3}(?:,\d{3})+\.\d{2}\b|\d+\.\d{2}\b')

INTERESTING_LINE_RE = re.compile(
    r'TOTAL|AMOUNT\s+DUE|BALANCE|TAX|FEE|SURCHARGE|DISCOUNT|CREDIT|LAST\s+PAGE',
    re.IGNORECASE
)


@dataclass(frozen=True)
class CoverageReport:
    """Which critical anchors an acquired text contains."""
    has_total_anchor: bool = False
    has_invoice_word: bool = False
    has_money_values: bool = False
    text_length: int = 0

    @property
    def is_sufficient(self) -> bool:
        return self.has_total_anchor and self.has_invoice_word and self.has_money_values

    @property
    def missing_critical_anchors(self) -> bool:
        return not self.is_sufficient

    def to_dict(self) -> Dict[str, Any]:
        return {
            'has_total_anchor': self.has_total_anchor,
            'has_invoice_word': self.has_invoice_word,
            'has_money_values': self.has_money_values,
            'missing_critical_anchors': self.missing_critical_anchors,
            'text_length': self.text_length,
        }


def analyze_coverage(text: Optional[str]) -> CoverageReport:
    """Build the coverage report for one text; empty text covers nothing."""
    if not text or not text.strip():
        return CoverageReport()

    return CoverageReport(
        has_total_anchor=TOTAL_ANCHOR_RE.search(text) is not None,
        has_invoice_word=INVOICE_WORD_RE.search(text) is not None,
        has_money_values=MONEY_VALUE_RE.search(text) is not None,
        text_length=len(text),
    )


def extract_interesting_lines(text: Optional[str], context: int = 2) -> List[str]:
    """
    Lines mentioning totals, tax, fees or discounts, with surrounding context.

    Each entry is prefixed with its 1-based line number; a ``>`` marks the
    matching line itself. Non-adjacent groups are separated by ``...``.
    """
    if not text:
        return []

    lines = text.split('\n')
    wanted = set()
    hits = set()
    for i, line in enumerate(lines):
        if INTERESTING_LINE_RE.search(line):
            hits.add(i)
            wanted.update(range(max(0, i - context), min(len(lines), i + context + 1)))

    output = []
    previous = None
    for i in sorted(wanted):
        if previous is not None and i != previous + 1:
            output.append('...')
        marker = '>' if i in hits else ' '
        output.append(f"{marker}{i + 1:5d}: {lines[i].rstrip()}")
        previous = i
    return output
