"""
Universal Total Finder.

The permissive fallback used when no structured rule produced a total.
Seven independent strategies each propose scored money values from the
whole text; proposals are grouped by value and the value with the best
support wins:

    1. label_pattern      value next to a known total label
    2. bottom_scan        growing values in the last 40 lines
    3. column_footer      a lone value line near a TOTAL label
    4. keyword_proximity  values near a keyword, never on an earlier line
    5. largest_value      the five largest values in the document
    6. last_page_focus    bottom scan of the last page only
    7. regex_army         a battery of label/value expressions

A value supported only by strategies that never saw a total keyword is
capped below the acceptance floor.

Also home to the last-resort search: the largest plausible value in a
window around the last TOTAL label.
"""

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from invoice_totals.normalizers import parse_cents
from invoice_totals.utils.logger import get_logger

logger = get_logger(__name__)


TOTAL_LABEL_SCORES: Dict[str, int] = OrderedDict([
    ('INVOICE TOTAL', 100),
    ('INVOICETOTAL', 100),
    ('INV TOTAL', 95),
    ('INV. TOTAL', 95),
    ('GRAND TOTAL', 95),
    ('TOTAL DUE', 90),
    ('AMOUNT DUE', 90),
    ('BALANCE DUE', 85),
    ('PAY THIS AMOUNT', 85),
    ('PLEASE PAY', 80),
    ('PAYMENT DUE', 80),
    ('TOTAL AMOUNT', 80),
    ('TOTAL USD', 80),
    ('NET TOTAL', 75),
    ('NET AMOUNT', 75),
    ('ORDER TOTAL', 75),
    ('BILL TOTAL', 75),
    ('STATEMENT TOTAL', 75),
    ('FINAL TOTAL', 75),
    ('TOTAL', 50),
    ('AMOUNT', 40),
    ('DUE', 30),
])

SUBTOTAL_LABELS = [
    'SUBTOTAL', 'SUB-TOTAL', 'SUB TOTAL', 'MERCHANDISE TOTAL', 'PRODUCT TOTAL',
    'ITEMS TOTAL', 'LINE ITEMS', 'GROUP TOTAL', 'DEPT TOTAL', 'SECTION TOTAL',
    'CATEGORY TOTAL',
]

EXCLUDE_LABELS = [
    'TAX TOTAL', 'SALES TAX', 'TAX AMT', 'DISCOUNT', 'CREDIT', 'PREVIOUS BALANCE',
    'LAST PAYMENT', 'ACCOUNT NUMBER', 'CUSTOMER NUMBER', 'INVOICE NUMBER',
    'ORDER NUMBER', 'PO NUMBER', 'PHONE', 'FAX', 'ZIP', 'CASES', 'SPLIT', 'PAGE',
    'DRIVER',
]

PROXIMITY_KEYWORDS: List[Tuple[str, int, int]] = [
    # (keyword, character distance, score)
    ('INVOICE TOTAL', 50, 100),
    ('GRAND TOTAL', 50, 95),
    ('TOTAL DUE', 40, 90),
    ('AMOUNT DUE', 40, 85),
    ('BALANCE DUE', 40, 85),
    ('PAYABLE', 30, 70),
    ('TOTAL', 30, 50),
]

# (pattern, score, keyword-anchored)
REGEX_ARMY: List[Tuple[re.Pattern, int, bool]] = [
    (re.compile(r'INVOICE\s*TOTAL[:\s]*\$?([\d,]+\.?\d*)'), 100, True),
    (re.compile(r'INVOICE\s*\n\s*TOTAL\s*\n\s*\$?([\d,]+\.?\d*)'), 95, True),
    (re.compile(r'\bINV\.?\s*TOTAL[:\s]*\$?([\d,]+\.?\d*)'), 95, True),
    (re.compile(r'GRAND\s*TOTAL[:\s]*\$?([\d,]+\.?\d*)'), 95, True),
    (re.compile(r'TOTAL\s*DUE[:\s]*\$?([\d,]+\.?\d*)'), 90, True),
    (re.compile(r'AMOUNT\s*DUE[:\s]*\$?([\d,]+\.?\d*)'), 90, True),
    (re.compile(r'BALANCE\s*DUE[:\s]*\$?([\d,]+\.?\d*)'), 85, True),
    (re.compile(r'PAY\s*(?:THIS\s*)?AMOUNT[:\s]*\$?([\d,]+\.?\d*)'), 85, True),
    (re.compile(r'PLEASE\s*PAY[:\s]*\$?([\d,]+\.?\d*)'), 80, True),
    (re.compile(r'NET\s*(?:TOTAL|DUE|AMOUNT)[:\s]*\$?([\d,]+\.?\d*)'), 80, True),
    (re.compile(r'^.*\bTOTAL\s*[:=]\s*\$?([\d,]+\.?\d*)\s*$', re.MULTILINE), 70, True),
    (re.compile(r'\b(?:TOTAL|DUE|AMOUNT)\s*(?:USD)?\s*\$?([\d,]+\.\d{2})'), 70, True),
    (re.compile(r'\$?([\d,]+\.\d{2})\s*(?:TOTAL|DUE|AMOUNT)\b'), 60, True),
    (re.compile(r'\bTOTAL\s*(?:AMOUNT|AMT)?[:\s]*\$?([\d,]+\.?\d*)'), 50, True),
    (re.compile(r'\bTOTAL\s*\n\s*\$?([\d,]+\.?\d*)'), 45, True),
    (re.compile(r'^\s*\$?([\d,]+\.\d{2})\s*$', re.MULTILINE), 20, False),
]

_MONEY_TOKEN_RE = re.compile(r'\$?[ \t]*(?<![A-Za-z\d.,])(\d[\d,]*(?:\.\d{1,3})?)(?!\d)')
# Integers right after these are identifiers, not amounts
_IDENTIFIER_PREFIX_RE = re.compile(
    r'(?:#|\bNO\.?|\bNUMBER|\bINVOICE|\bINV\.?|\bACCT\.?|\bACCOUNT|\bORDER|\bPO|\bCUST(?:OMER)?|\bSTORE)\s*:?\s*$',
    re.IGNORECASE
)
_PAGE_OF_RE = re.compile(r'(?:PAGE|PG\.?)\s*(\d+)\s*(?:OF|/)\s*(\d+)')
_LAST_PAGE_RE = re.compile(r'LAST\s+PAGE')

MIN_VALUE_CENTS = 100
MAX_VALUE_CENTS = 1000000000
UNANCHORED_CEILING = 45
# Largest-value votes stay below every labelled regex hit
LARGEST_VALUE_CEILING = 45


@dataclass(frozen=True)
class MoneyToken:
    """A money-shaped token located in a text."""
    cents: int
    raw: str
    start: int


@dataclass(frozen=True)
class ScoredValue:
    """One strategy's vote for a value."""
    strategy: str
    cents: int
    score: int
    anchored: bool
    line_index: int
    context: str


@dataclass(frozen=True)
class UniversalResult:
    """Outcome of a universal search; ``found`` is False when nothing scored."""
    found: bool = False
    cents: int = 0
    confidence: int = 0
    strategies: Tuple[str, ...] = ()
    line_index: int = 0
    context: str = ''
    candidate_count: int = 0


def extract_monetary_values(text: str) -> List[MoneyToken]:
    """
    Find plausible money values in free text.

    Skips values under one dollar or over ten million, bare years, long
    digit runs without cents (account and phone numbers), integers that
    follow an identifier label such as INVOICE or #, and numbers directly
    after a slash or dash (dates, ranges, part numbers).
    """
    tokens: List[MoneyToken] = []
    if not text:
        return tokens

    for match in _MONEY_TOKEN_RE.finditer(text):
        raw = match.group(1)
        digits = raw.replace(',', '')
        has_cents = '.' in raw

        if not has_cents and (len(digits) >= 7 or (len(digits) == 4 and 1900 <= int(digits) <= 2099)):
            continue
        if re.search(r'[/\-]\s*$', text[max(0, match.start() - 5):match.start()]):
            continue
        if not has_cents and _IDENTIFIER_PREFIX_RE.search(text[max(0, match.start() - 12):match.start()]):
            continue

        cents = parse_cents(raw)
        if cents is None or cents < MIN_VALUE_CENTS or cents > MAX_VALUE_CENTS:
            continue
        tokens.append(MoneyToken(cents=cents, raw=match.group(0).strip(), start=match.start()))
    return tokens


def _line_number(text: str, position: int) -> int:
    return text.count('\n', 0, max(0, position)) + 1


def _label_regex(label: str) -> re.Pattern:
    words = [re.escape(w) for w in label.split()]
    return re.compile(r'(?<![A-Z])' + r'\s+'.join(words) + r'(?![A-Z])')


_LABEL_REGEXES = {label: _label_regex(label) for label in TOTAL_LABEL_SCORES}
_KEYWORD_REGEXES = {kw: _label_regex(kw) for kw, _, _ in PROXIMITY_KEYWORDS}


class UniversalTotalFinder:
    """
    Multi-strategy total finder over an upper-cased text blob.

    Example:
        >>> result = UniversalTotalFinder().find(text)
        >>> if result.found and result.confidence >= 50:
        ...     print(result.cents, result.strategies)
    """

    def __init__(self, bottom_lines: int = 40) -> None:
        self.bottom_lines = bottom_lines

    def find(self, text: Optional[str]) -> UniversalResult:
        if not text or not text.strip():
            return UniversalResult()

        upper = text.upper()
        lines = upper.split('\n')

        votes: List[ScoredValue] = []
        votes.extend(self.find_by_label_patterns(upper))
        votes.extend(self.find_by_bottom_scan(lines))
        votes.extend(self.find_by_column_footer(lines))
        votes.extend(self.find_by_keyword_proximity(upper))
        votes.extend(self.find_by_largest_value(upper))
        votes.extend(self.find_by_last_page_focus(upper))
        votes.extend(self.find_by_regex_army(upper))

        if not votes:
            logger.debug("Universal finder: no candidates")
            return UniversalResult()

        return self._rank(votes)

    # -------------------------------------------------------------------------
    # Ranking
    # -------------------------------------------------------------------------

    def _rank(self, votes: Sequence[ScoredValue]) -> UniversalResult:
        groups: Dict[int, List[ScoredValue]] = OrderedDict()
        for vote in votes:
            groups.setdefault(vote.cents, []).append(vote)

        def key(item):
            group = item[1]
            return (
                -max(v.score for v in group),
                -sum(v.score for v in group),
                -len(group),
            )

        ranked = sorted(groups.items(), key=key)
        for cents, group in ranked[:5]:
            logger.debug(
                f"  {cents} cents - max={max(v.score for v in group)} "
                f"sum={sum(v.score for v in group)} "
                f"strategies={sorted(set(v.strategy for v in group))}"
            )

        cents, group = ranked[0]
        best = max(group, key=lambda v: v.score)
        strategies = tuple(OrderedDict.fromkeys(v.strategy for v in group))

        confidence = min(100, best.score)
        if len(strategies) >= 3:
            confidence = min(100, confidence + 15)
        elif len(strategies) >= 2:
            confidence = min(100, confidence + 10)
        if not any(v.anchored for v in group):
            confidence = min(confidence, UNANCHORED_CEILING)

        return UniversalResult(
            found=True,
            cents=cents,
            confidence=confidence,
            strategies=strategies,
            line_index=best.line_index,
            context=best.context,
            candidate_count=len(votes),
        )

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def find_by_label_patterns(self, text: str) -> List[ScoredValue]:
        votes = []
        for label, score in TOTAL_LABEL_SCORES.items():
            for match in _LABEL_REGEXES[label].finditer(text):
                start, end = match.start(), match.end()
                before = text[max(0, start - 20):start]
                line_end = text.find("\n", end)
                line_stop = line_end if line_end >= 0 else len(text)
                rest_of_line = text[end:line_stop]

                if any(sub in before for sub in SUBTOTAL_LABELS):
                    continue
                if any(ex in before or ex in text[start:line_stop] for ex in EXCLUDE_LABELS):
                    continue

                values = extract_monetary_values(rest_of_line)
                if not values and line_end >= 0:
                    next_end = text.find('\n', line_end + 1)
                    values = [
                        MoneyToken(v.cents, v.raw, v.start + line_end + 1)
                        for v in extract_monetary_values(text[line_end + 1:next_end if next_end >= 0 else None])
                    ]
                if not values:
                    continue

                best = max(values, key=lambda v: v.cents)
                votes.append(ScoredValue(
                    strategy='label_pattern',
                    cents=best.cents,
                    score=score,
                    anchored=True,
                    line_index=_line_number(text, start),
                    context=text[start:start + 50].replace('\n', ' ').strip(),
                ))
        return votes

    def find_by_bottom_scan(self, lines: Sequence[str], line_offset: int = 0) -> List[ScoredValue]:
        votes = []
        start = max(0, len(lines) - self.bottom_lines)
        largest = 0

        for i in range(len(lines) - 1, start - 1, -1):
            line = lines[i].strip()
            if len(line) < 3:
                continue
            if any(ex in line for ex in EXCLUDE_LABELS):
                continue
            if any(sub in line for sub in SUBTOTAL_LABELS) and 'INVOICE' not in line:
                continue

            has_total = 'TOTAL' in line
            has_invoice = 'INVOICE' in line
            score = 85 if has_invoice and has_total else 60 if has_total else 30

            for value in extract_monetary_values(line):
                if value.cents > largest:
                    largest = value.cents
                    votes.append(ScoredValue(
                        strategy='bottom_scan',
                        cents=value.cents,
                        score=score,
                        anchored=has_total,
                        line_index=line_offset + i + 1,
                        context=line[:80],
                    ))
        return votes

    def find_by_column_footer(self, lines: Sequence[str]) -> List[ScoredValue]:
        votes = []
        lone_value = re.compile(r'^\$?\s*([\d,]+\.\d{2})\s*$')

        for i, raw in enumerate(lines):
            match = lone_value.match(raw.strip())
            if not match:
                continue
            cents = parse_cents(match.group(1))
            if cents is None or not (MIN_VALUE_CENTS < cents < MAX_VALUE_CENTS):
                continue

            before = ' '.join(lines[max(0, i - 5):i])
            after = ' '.join(lines[i + 1:i + 3])
            if any(sub in before for sub in SUBTOTAL_LABELS):
                continue

            has_total = 'TOTAL' in before or 'TOTAL' in after
            has_invoice = 'INVOICE' in before or 'INVOICE' in after
            score = 80 if has_invoice and has_total else 50 if has_total else 25
            if i > len(lines) * 0.66:
                score += 15

            votes.append(ScoredValue(
                strategy='column_footer',
                cents=cents,
                score=score,
                anchored=has_total,
                line_index=i + 1,
                context=raw.strip(),
            ))
        return votes

    def find_by_keyword_proximity(self, text: str) -> List[ScoredValue]:
        votes = []
        for keyword, distance, score in PROXIMITY_KEYWORDS:
            for match in _KEYWORD_REGEXES[keyword].finditer(text):
                # Values on earlier lines belong to other rows
                line_start = text.rfind('\n', 0, match.start()) + 1
                window_start = max(line_start, match.start() - distance)
                window = text[window_start:match.end() + distance]
                for value in extract_monetary_values(window):
                    votes.append(ScoredValue(
                        strategy='keyword_proximity',
                        cents=value.cents,
                        score=score,
                        anchored=True,
                        line_index=_line_number(text, window_start + value.start),
                        context=window.replace('\n', ' ').strip()[:80],
                    ))
        return votes

    def find_by_largest_value(self, text: str) -> List[ScoredValue]:
        votes = []
        values = sorted(extract_monetary_values(text), key=lambda v: v.cents, reverse=True)

        for rank, value in enumerate(values[:5]):
            context = text[max(0, value.start - 30):value.start + 50].replace('\n', ' ')
            if any(ex in context for ex in EXCLUDE_LABELS):
                continue
            if any(sub in context for sub in SUBTOTAL_LABELS) and 'INVOICE' not in context:
                continue

            # Keywords count only when they label this value: same line, before it
            line_prefix = text[text.rfind('\n', 0, value.start) + 1:value.start]
            has_total = re.search(r'(?<![A-Z])TOTAL\b', line_prefix) is not None
            score = 35 - rank * 5
            if has_total:
                score += 20
            if 'INVOICE' in line_prefix:
                score += 20
            if 1000 <= value.cents <= 1000000:
                score += 10

            votes.append(ScoredValue(
                strategy='largest_value',
                cents=value.cents,
                score=min(LARGEST_VALUE_CEILING, max(5, score)),
                anchored=has_total,
                line_index=_line_number(text, value.start),
                context=context.strip(),
            ))
        return votes

    def find_by_last_page_focus(self, text: str) -> List[ScoredValue]:
        last_page_start = -1
        for match in _PAGE_OF_RE.finditer(text):
            if match.group(1) == match.group(2):
                last_page_start = match.start()
        markers = list(_LAST_PAGE_RE.finditer(text))
        if markers and markers[-1].start() > last_page_start:
            last_page_start = markers[-1].start()

        if last_page_start <= 0:
            return []

        offset = _line_number(text, last_page_start) - 1
        page_lines = text[last_page_start:].split('\n')
        return [
            ScoredValue(
                strategy='last_page_focus',
                cents=vote.cents,
                score=vote.score + 15,
                anchored=vote.anchored,
                line_index=vote.line_index,
                context=vote.context,
            )
            for vote in self.find_by_bottom_scan(page_lines, line_offset=offset)
        ]

    def find_by_regex_army(self, text: str) -> List[ScoredValue]:
        votes = []
        for pattern, score, anchored in REGEX_ARMY:
            for match in pattern.finditer(text):
                cents = parse_cents(match.group(1))
                if cents is None or not (0 < cents < MAX_VALUE_CENTS):
                    continue
                context = text[max(0, match.start() - 20):match.end() + 10]
                if any(sub in context for sub in SUBTOTAL_LABELS) and 'INVOICE' not in context:
                    continue
                if any(ex in context for ex in EXCLUDE_LABELS):
                    continue
                votes.append(ScoredValue(
                    strategy='regex_army',
                    cents=cents,
                    score=score,
                    anchored=anchored,
                    line_index=_line_number(text, match.start(1)),
                    context=match.group(0).replace('\n', ' ').strip()[:60],
                ))
        return votes


# =============================================================================
# LAST RESORT
# =============================================================================

_LOOSE_MONEY_RE = re.compile(r'\$?\s*(\d[\d,]*\.?\d{0,2})\b')
_INVOICE_TOTAL_WORD_RE = re.compile(r'\bINVOICE\s+TOTAL\b')
# Bare TOTAL, not the tail of SUBTOTAL
_TOTAL_WORD_RE = re.compile(r'\bTOTAL\b')


def find_total_near_last_label(
    text: Optional[str],
    window_before: int = 50,
    window_after: int = 200,
    min_cents: int = 1000,
    max_cents: int = 10000000
) -> Optional[MoneyToken]:
    """
    Largest plausible value around the last INVOICE TOTAL, else last TOTAL.

    SUBTOTAL never counts as a TOTAL label here.

    Returns:
        The chosen token with ``start`` relative to ``text``, or None.
    """
    if not text:
        return None

    upper = text.upper()
    labels = list(_INVOICE_TOTAL_WORD_RE.finditer(upper)) or list(_TOTAL_WORD_RE.finditer(upper))
    if not labels:
        return None
    position = labels[-1].start()

    window_start = max(0, position - window_before)
    window = text[window_start:position + window_after]

    best: Optional[MoneyToken] = None
    for match in _LOOSE_MONEY_RE.finditer(window):
        cents = parse_cents(match.group(1))
        if cents is None or not (min_cents <= cents <= max_cents):
            continue
        if best is None or cents > best.cents:
            best = MoneyToken(cents=cents, raw=match.group(1), start=window_start + match.start(1))
    return best
