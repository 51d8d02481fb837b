"""
Stacked-Format Detectors.

Detectors for layouts where labels and values sit on separate, vertically
consecutive lines. Each detector needs an exact structural shape, so a
match is trusted over any free pattern scan:

    (a) SUBTOTAL / TAX / TOTAL labels, then three value lines
    (b) TAX / TOTAL labels, then two value lines
    (c) one combined "SUBTOTAL TAX TOTAL" header, then three value lines
    (d) the combined header, then one row holding all three values
    (e) label, value, label, value, label, value for three fields
    (f) label, value, label, value for tax and total
    (g) a total label followed by one bare value line

Windows are scanned bottom-up since totals sit at the foot of the invoice.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from config import get_config
from invoice_totals.normalizers import NormalizedLine, normalize_to_cents
from invoice_totals.utils.logger import get_logger
from .models import Evidence, SOURCE_STACKED, SPLIT_LINE_JOINER
from .rules import BARE_VALUE_RE, LineClass, classify_line, is_group_subtotal_line

logger = get_logger(__name__)


SUBTOTAL_LABEL_RE = re.compile(r'^SUB[\s-]?TOTAL\s*:?$')
TAX_LABEL_RE = re.compile(r'^(?:SALES\s+)?TAX(?:\s*\(?\d+(?:\.\d+)?\s*%\)?)?\s*:?$')
TOTAL_LABEL_RE = re.compile(
    r'^(?:(?:INVOICE|GRAND)\s+)?TOTAL(?:\s+(?:USD|DUE))?\s*:?$'
    r'|^(?:AMOUNT|BALANCE)\s+DUE\s*:?$'
)
COMBINED_HEADER_RE = re.compile(
    r'SUB[\s-]?TOTAL\s+(?:SALES\s+)?TAX\s+(?:INVOICE\s+)?TOTAL(?:\s+USD)?'
)

# Vendor category banners that happen to repeat the summary column names
CATEGORY_MARKER_RE = re.compile(
    r'GROUP|CATEGORY|SECTION|DEPT|\*{2,}|DAIRY|PRODUCE|MEATS?\b|POULTRY|SEAFOOD'
    r'|FROZEN|CANNED|DRY\s+GOODS|PAPER|CHEMICAL|BEVERAGE|SUPPLIES'
)
# Quantity + unit, leading item number, or pack size: "2 CS", "1234567 ", "6/5 LB"
LINE_ITEM_SHAPE_RE = re.compile(
    r'^\d+\s+(?:CS|EA|LB|BX|PK|CT|DZ|GAL|OZ|BAG|CASE|EACH)\b'
    r'|^\d{5,}\s'
    r'|\b\d+\s*/\s*\d+(?:\.\d+)?\s*(?:LB|OZ|CT|GAL)\b'
)
ROW_VALUE_RE = re.compile(r'\$?(\d[\d,]*\.\d{2})\b')
# A value line holding one amount with cents: "$1,748.85"
MONEY_LINE_RE = re.compile(r'^\$?\s?(\d[\d,]*\.\d{2})$')


@dataclass(frozen=True)
class StackedMatch:
    """Fields recovered by one stacked-format detector."""
    format_name: str
    total: Evidence
    subtotal: Optional[Evidence] = None
    tax: Optional[Evidence] = None


def _is(pattern: re.Pattern, line: NormalizedLine) -> bool:
    return pattern.search(line.text) is not None


def _ceiling() -> int:
    return get_config("totals.max_split_line_cents", 100000000)


def _value(line: NormalizedLine, pattern: re.Pattern = BARE_VALUE_RE) -> Optional[int]:
    """Cents of a bare value line, or None when absent or at the split-line ceiling."""
    match = pattern.match(line.text)
    if not match:
        return None
    cents = normalize_to_cents(match.group(1))
    if cents >= _ceiling():
        logger.debug(f"Stacked value {cents} on line {line.index} above ceiling")
        return None
    return cents


def _evidence(rule: str, label: NormalizedLine, value: NormalizedLine, cents: int) -> Evidence:
    return Evidence(
        rule=rule,
        line=f"{label.text}{SPLIT_LINE_JOINER}{value.text}",
        line_index=value.index,
        cents=cents,
        source=SOURCE_STACKED,
    )


def _windows(lines: Sequence[NormalizedLine], size: int):
    """Yield start indexes of every window of ``size`` lines, bottom-up."""
    for i in range(len(lines) - size, -1, -1):
        yield i


def _labels_then_values(
    lines: Sequence[NormalizedLine],
    labels: Sequence[re.Pattern],
    rule: str,
    guard: Optional[Callable[[int], bool]] = None
) -> Optional[StackedMatch]:
    """Match N label lines followed by N bare value lines in the same order."""
    n = len(labels)
    for i in _windows(lines, 2 * n):
        if not all(_is(labels[k], lines[i + k]) for k in range(n)):
            continue
        if guard is not None and not guard(i):
            continue
        values = [_value(lines[i + n + k]) for k in range(n)]
        if any(v is None for v in values) or values[-1] <= 0:
            continue
        return _build(rule, [(lines[i + k], lines[i + n + k], values[k]) for k in range(n)])
    return None


def _alternating(
    lines: Sequence[NormalizedLine],
    labels: Sequence[re.Pattern],
    rule: str
) -> Optional[StackedMatch]:
    """Match label, value, label, value ... for the given labels."""
    n = len(labels)
    for i in _windows(lines, 2 * n):
        if not all(_is(labels[k], lines[i + 2 * k]) for k in range(n)):
            continue
        values = [_value(lines[i + 2 * k + 1]) for k in range(n)]
        if any(v is None for v in values) or values[-1] <= 0:
            continue
        return _build(rule, [(lines[i + 2 * k], lines[i + 2 * k + 1], values[k]) for k in range(n)])
    return None


def _build(rule: str, fields) -> StackedMatch:
    """
    Assemble a match from (label, value, cents) triples.

    The last triple is always the total; a three-field match starts with
    the subtotal, and the field before the total is the tax.
    """
    total_label, total_value, total_cents = fields[-1]
    tax = subtotal = None
    if len(fields) >= 2:
        tax_label, tax_value, tax_cents = fields[-2]
        tax = _evidence(f"{rule} (TAX)", tax_label, tax_value, tax_cents)
    if len(fields) == 3:
        sub_label, sub_value, sub_cents = fields[0]
        subtotal = _evidence(f"{rule} (SUBTOTAL)", sub_label, sub_value, sub_cents)

    return StackedMatch(
        format_name=rule,
        total=_evidence(f"{rule} (TOTAL)", total_label, total_value, total_cents),
        subtotal=subtotal,
        tax=tax,
    )


# =============================================================================
# DETECTORS
# =============================================================================

def detect_three_labels_three_values(lines: Sequence[NormalizedLine]) -> Optional[StackedMatch]:
    """(a) SUBTOTAL / TAX / TOTAL, then the three values."""
    return _labels_then_values(
        lines, [SUBTOTAL_LABEL_RE, TAX_LABEL_RE, TOTAL_LABEL_RE], 'STACKED 3x3'
    )


def detect_two_labels_two_values(lines: Sequence[NormalizedLine]) -> Optional[StackedMatch]:
    """(b) TAX / TOTAL, then the two values."""
    def not_part_of_three(i: int) -> bool:
        return not (i > 0 and _is(SUBTOTAL_LABEL_RE, lines[i - 1]))

    return _labels_then_values(
        lines, [TAX_LABEL_RE, TOTAL_LABEL_RE], 'STACKED 2x2', guard=not_part_of_three
    )


def detect_header_then_value_lines(lines: Sequence[NormalizedLine]) -> Optional[StackedMatch]:
    """(c) Combined header, then three separate value lines."""
    for i in _windows(lines, 4):
        header = lines[i]
        if not _is(COMBINED_HEADER_RE, header):
            continue
        values = [_value(lines[i + k]) for k in (1, 2, 3)]
        if any(v is None for v in values) or values[2] <= 0:
            continue
        return _build('HEADER + 3 VALUE LINES', [
            (header, lines[i + 1], values[0]),
            (header, lines[i + 2], values[1]),
            (header, lines[i + 3], values[2]),
        ])
    return None


def detect_header_then_value_row(
    lines: Sequence[NormalizedLine],
    max_header_length: int = 80
) -> Optional[StackedMatch]:
    """
    (d) Combined header, then one row with all three values.

    Rejected when the header is too long, carries a category marker, or
    the row looks like a line item rather than a summary row.
    """
    for i in _windows(lines, 2):
        header, row = lines[i], lines[i + 1]
        if not _is(COMBINED_HEADER_RE, header):
            continue
        if len(header.text) > max_header_length:
            logger.debug(f"Header too long for summary row: {header.text!r}")
            continue
        if CATEGORY_MARKER_RE.search(header.text):
            logger.debug(f"Header carries category marker: {header.text!r}")
            continue
        if LINE_ITEM_SHAPE_RE.search(row.text):
            logger.debug(f"Row after header looks like a line item: {row.text!r}")
            continue

        values = [normalize_to_cents(v) for v in ROW_VALUE_RE.findall(row.text)]
        if len(values) < 3 or not 0 < values[2] < _ceiling():
            continue
        return _build('HEADER + VALUE ROW', [
            (header, row, values[0]),
            (header, row, values[1]),
            (header, row, values[2]),
        ])
    return None


def detect_alternating_three(lines: Sequence[NormalizedLine]) -> Optional[StackedMatch]:
    """(e) SUBTOTAL, value, TAX, value, TOTAL, value."""
    return _alternating(
        lines, [SUBTOTAL_LABEL_RE, TAX_LABEL_RE, TOTAL_LABEL_RE], 'ALTERNATING 3'
    )


def detect_alternating_two(lines: Sequence[NormalizedLine]) -> Optional[StackedMatch]:
    """(f) TAX, value, TOTAL, value."""
    return _alternating(lines, [TAX_LABEL_RE, TOTAL_LABEL_RE], 'ALTERNATING 2')


def detect_total_label_then_value(lines: Sequence[NormalizedLine]) -> Optional[StackedMatch]:
    """
    (g) A total label followed by one amount line with cents.

    Skipped when the two lines above the label are themselves summary
    labels: in that column layout the next line holds the subtotal's
    value, not the total's. Also skipped when an invoice-level total line
    appears further down; the label is then a column header.
    """
    summary_labels = (SUBTOTAL_LABEL_RE, TAX_LABEL_RE)

    for i in _windows(lines, 2):
        label = lines[i]
        if not _is(TOTAL_LABEL_RE, label) or is_group_subtotal_line(label.text):
            continue
        if i >= 2 and all(
            any(_is(p, lines[k]) for p in summary_labels) for k in (i - 2, i - 1)
        ):
            logger.debug(f"Skipping total label on line {label.index}: stacked label column")
            continue
        cents = _value(lines[i + 1], MONEY_LINE_RE)
        if cents is None or cents <= 0:
            continue
        if any(classify_line(later.text) is LineClass.INVOICE_TOTAL for later in lines[i + 2:]):
            logger.debug(f"Skipping total label on line {label.index}: invoice total further down")
            continue
        return StackedMatch(
            format_name='TOTAL LABEL + VALUE',
            total=_evidence('TOTAL LABEL + VALUE (TOTAL)', label, lines[i + 1], cents),
        )
    return None


def detect_stacked_totals(
    lines: List[NormalizedLine],
    max_header_length: Optional[int] = None
) -> Optional[StackedMatch]:
    """
    Run the stacked-format detectors in order; the first match wins.

    Args:
        lines: Normalized lines of the document.
        max_header_length: Header length limit for detector (d).

    Returns:
        The first StackedMatch found, or None.
    """
    if max_header_length is None:
        max_header_length = get_config("totals.stacked.max_header_length", 80)

    detectors = [
        detect_three_labels_three_values,
        detect_two_labels_two_values,
        detect_header_then_value_lines,
        lambda ls: detect_header_then_value_row(ls, max_header_length),
        detect_alternating_three,
        detect_alternating_two,
        detect_total_label_then_value,
    ]

    for detector in detectors:
        match = detector(lines)
        if match is not None:
            logger.debug(
                f"Stacked format '{match.format_name}' matched: "
                f"total={match.total.cents} on line {match.total.line_index}"
            )
            return match
    return None
