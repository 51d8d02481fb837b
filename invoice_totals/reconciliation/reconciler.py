"""
Invoice Math, Reconciliation and Best-Total Selection.

Combines the totals engine output with line items supplied by an external
line-item parser:

    - compute_invoice_math: line items + tax + fees + discounts
    - reconcile_totals: extracted vs computed, within a cents tolerance
    - select_best_total: one authoritative total with a confidence

Reconciliation is diagnostic only; it never changes which total is
selected.

Author: ML Engineering Team
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from config import get_config
from invoice_totals.normalizers import normalize_to_cents
from invoice_totals.totals.models import Totals
from invoice_totals.utils.helpers import format_cents
from invoice_totals.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


# Selection sources with their fixed confidence, strongest first
SOURCE_EXTRACTED = 'extracted'
SOURCE_PARSER = 'parser'
SOURCE_COMPUTED = 'computed'
SOURCE_SUM_ITEMS = 'sum_items'
SOURCE_NONE = 'none'

SELECTION_CONFIDENCE = {
    SOURCE_EXTRACTED: 0.95,
    SOURCE_PARSER: 0.85,
    SOURCE_COMPUTED: 0.75,
    SOURCE_SUM_ITEMS: 0.6,
    SOURCE_NONE: 0.0,
}


def line_item_cents(item: Any) -> int:
    """
    Total of one line item in cents.

    Accepts plain integers (cents), mappings with ``total_cents`` or
    ``line_total_cents``, and objects with a ``total_cents`` attribute.
    Anything else counts as zero.
    """
    if isinstance(item, bool):
        return 0
    if isinstance(item, int):
        return item
    if isinstance(item, dict):
        for key in ('total_cents', 'line_total_cents', 'totalCents', 'lineTotalCents'):
            if key in item:
                return int(item[key] or 0)
        if 'total' in item:
            return normalize_to_cents(item['total'])
        return 0
    return int(getattr(item, 'total_cents', 0) or 0)


@dataclass(frozen=True)
class InvoiceMath:
    """Expected total computed from line items and the extracted components."""
    sum_line_items_cents: int = 0
    tax_cents: int = 0
    fees_cents: int = 0
    discount_cents: int = 0
    line_item_count: int = 0

    @property
    def computed_total_cents(self) -> int:
        return self.sum_line_items_cents + self.tax_cents + self.fees_cents + self.discount_cents

    @property
    def has_adjustments(self) -> bool:
        return any((self.tax_cents, self.fees_cents, self.discount_cents))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sum_line_items_cents': self.sum_line_items_cents,
            'computed_total_cents': self.computed_total_cents,
            'line_item_count': self.line_item_count,
            'components': {
                'tax_cents': self.tax_cents,
                'fees_cents': self.fees_cents,
                'discount_cents': self.discount_cents,
            },
        }


def compute_invoice_math(line_items: Optional[Iterable[Any]], totals: Optional[Totals]) -> InvoiceMath:
    """
    Sum line items and add the extracted tax, fees and (negative) discounts.

    Example:
        >>> compute_invoice_math([{'total_cents': 10000}], totals).computed_total_cents
        10700
    """
    items = list(line_items or [])
    totals = totals or Totals()
    return InvoiceMath(
        sum_line_items_cents=sum(line_item_cents(item) for item in items),
        tax_cents=totals.tax_cents,
        fees_cents=totals.fees_cents,
        discount_cents=totals.discount_cents,
        line_item_count=len(items),
    )


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Comparison of the extracted total against the computed total.

    Attributes:
        matches: Exact agreement of two available totals
        tolerance_ok: Agreement within ``tolerance_cents``
        delta_cents: extracted minus computed
        reason: Human-readable category of the outcome
    """
    extracted_total_cents: int
    computed_total_cents: int
    delta_cents: int
    matches: bool
    tolerance_ok: bool
    tolerance_cents: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extracted_total_cents': self.extracted_total_cents,
            'computed_total_cents': self.computed_total_cents,
            'delta_cents': self.delta_cents,
            'matches': self.matches,
            'tolerance_ok': self.tolerance_ok,
            'tolerance_cents': self.tolerance_cents,
            'reason': self.reason,
        }


def reconcile_totals(
    extracted_total_cents: int,
    computed_total_cents: int,
    tolerance_cents: Optional[int] = None
) -> ReconciliationResult:
    """
    Compare the printed total with the computed one.

    A missing side is reported before any comparison, so two zeros read as
    "no extracted total" rather than an exact match.

    Args:
        extracted_total_cents: Total read from the document.
        computed_total_cents: Total from compute_invoice_math.
        tolerance_cents: Allowed difference; defaults to
            ``reconciliation.tolerance_cents`` (5).
    """
    if tolerance_cents is None:
        tolerance_cents = get_config("reconciliation.tolerance_cents", 5)

    extracted = int(extracted_total_cents or 0)
    computed = int(computed_total_cents or 0)
    delta = extracted - computed
    abs_delta = abs(delta)

    if extracted == 0:
        matches, tolerance_ok = False, False
        reason = "No extracted total available"
    elif computed == 0:
        matches, tolerance_ok = False, False
        reason = "No computed total available"
    elif abs_delta == 0:
        matches, tolerance_ok = True, True
        reason = "Exact match"
    elif abs_delta <= tolerance_cents:
        matches, tolerance_ok = False, True
        reason = f"Within tolerance ({abs_delta} cents difference)"
    else:
        matches, tolerance_ok = False, False
        reason = (
            f"Mismatch: extracted {format_cents(extracted)} vs computed "
            f"{format_cents(computed)} (delta {delta} cents)"
        )
        logger.warning(f"Reconciliation {reason}")

    return ReconciliationResult(
        extracted_total_cents=extracted,
        computed_total_cents=computed,
        delta_cents=delta,
        matches=matches,
        tolerance_ok=tolerance_ok,
        tolerance_cents=tolerance_cents,
        reason=reason,
    )


@dataclass(frozen=True)
class TotalSelection:
    """The authoritative total and why it was chosen."""
    total_cents: int
    source: str
    reason: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_cents': self.total_cents,
            'source': self.source,
            'reason': self.reason,
            'confidence': self.confidence,
        }


def _selection(total_cents: int, source: str, reason: str) -> TotalSelection:
    logger.debug(f"Selected total {format_cents(total_cents)} from {source}: {reason}")
    return TotalSelection(total_cents, source, reason, SELECTION_CONFIDENCE[source])


def select_best_total(
    extracted: Optional[Totals],
    computed: Optional[InvoiceMath],
    parser_total_cents: int = 0
) -> TotalSelection:
    """
    Select one total, first satisfied source wins.

    Order: the printed total found by the engine, a vendor parser's
    total, line items adjusted by tax, fees and discounts, then the bare
    sum of line items.

    Example:
        >>> select_best_total(Totals(), InvoiceMath(sum_line_items_cents=5000)).source
        'sum_items'
    """
    if extracted is not None and extracted.total_cents > 0:
        evidence = extracted.evidence.total
        rule = evidence.rule if evidence is not None else 'TOTAL'
        return _selection(extracted.total_cents, SOURCE_EXTRACTED, f"Extracted from invoice: {rule}")

    if parser_total_cents and parser_total_cents > 0:
        return _selection(parser_total_cents, SOURCE_PARSER, "From invoice parser")

    if computed is not None and computed.sum_line_items_cents > 0:
        if computed.has_adjustments and computed.computed_total_cents > 0:
            return _selection(
                computed.computed_total_cents,
                SOURCE_COMPUTED,
                "Computed from line items + tax + fees + discounts"
            )
        return _selection(computed.sum_line_items_cents, SOURCE_SUM_ITEMS, "Sum of line items only")

    return _selection(0, SOURCE_NONE, "No total could be determined")
