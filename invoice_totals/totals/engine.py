"""
Totals Extraction Engine.

Turns a text blob into a Totals result. Stages run in order and the total
is taken from the first stage that produces one:

    1. repair blanks inside numbers
    2. stacked-format detectors
    3. split-line and same-line rule scan, group subtotals rejected
    4. universal finder (group-subtotal lines masked out)
    5. last-resort search around the last TOTAL label

Subtotal, tax, fees and discounts not captured structurally by stage 2 come
from the stage 3 scan.

Usage:
    from invoice_totals.totals import extract_totals

    totals = extract_totals(text)
    print(totals.total_cents, totals.evidence.total.rule)
"""

from typing import Optional

from config import get_config
from invoice_totals.normalizers import repair_money_spacing, split_lines
from invoice_totals.utils.helpers import format_cents
from invoice_totals.utils.logger import get_logger
from .models import (
    Evidence,
    SOURCE_LINE_SCAN,
    SOURCE_TEXT_POSITION,
    SOURCE_UNIVERSAL,
    Totals,
    TotalsEvidence,
)
from .rules import mask_group_subtotal_lines
from .scanner import scan_lines, select_subtotal, select_total
from .stacked import detect_stacked_totals
from .universal import UniversalTotalFinder, find_total_near_last_label
from .validators import TotalsValidator

logger = get_logger(__name__)


class TotalsExtractor:
    """
    Staged totals extraction over normalized invoice text.

    All thresholds are read from configuration once, at construction.

    Example:
        >>> extractor = TotalsExtractor()
        >>> totals = extractor.extract("SUBTOTAL\\nTAX\\nTOTAL\\n100.00\\n7.00\\n107.00")
        >>> totals.total_cents
        10700
    """

    def __init__(self) -> None:
        self.max_split_line_cents = get_config("totals.max_split_line_cents", 100000000)
        self.max_header_length = get_config("totals.stacked.max_header_length", 80)
        self.fallback_min_confidence = get_config("totals.fallback.min_confidence", 50)
        self.last_resort_window_before = get_config("totals.last_resort.window_before", 50)
        self.last_resort_window_after = get_config("totals.last_resort.window_after", 200)
        self.last_resort_min_cents = get_config("totals.last_resort.min_cents", 1000)
        self.last_resort_max_cents = get_config("totals.last_resort.max_cents", 10000000)

        self.universal_finder = UniversalTotalFinder()
        self.validator = TotalsValidator()

    def extract(self, text: Optional[str]) -> Totals:
        """
        Extract totals from one document's text.

        Args:
            text: Acquired invoice text. None and blank text are allowed.

        Returns:
            Totals; fields that were not found are zero with no evidence.
        """
        if not text or not text.strip():
            logger.debug("Empty text: no totals")
            return Totals()

        repaired = repair_money_spacing(text)
        lines = split_lines(repaired)

        stacked = detect_stacked_totals(lines, self.max_header_length)
        scan = scan_lines(lines, self.max_split_line_cents)

        if stacked is not None:
            total = stacked.total
        else:
            total = self._total_from_scan(scan)
        if total is None:
            masked = mask_group_subtotal_lines(repaired)
            total = self._total_from_universal_finder(masked)
            if total is None:
                total = self._total_from_text_position(masked)

        total_cents = total.cents if total else 0

        subtotal = stacked.subtotal if stacked is not None else None
        if subtotal is None:
            candidate = select_subtotal(scan.subtotals, total_cents)
            if candidate is not None:
                subtotal = Evidence.from_candidate(candidate)

        tax = stacked.tax if stacked is not None else None
        if tax is None and scan.tax is not None:
            tax = Evidence.from_candidate(scan.tax)

        fees = tuple(Evidence.from_candidate(c) for c in scan.fees)
        discounts = tuple(Evidence.from_candidate(c) for c in scan.discounts)

        totals = Totals(
            total_cents=total_cents,
            subtotal_cents=subtotal.cents if subtotal else 0,
            tax_cents=tax.cents if tax else 0,
            fees_cents=sum(e.cents for e in fees),
            discount_cents=sum(e.cents for e in discounts),
            evidence=TotalsEvidence(
                total=total,
                subtotal=subtotal,
                tax=tax,
                fees=fees,
                discounts=discounts,
            ),
        )

        validation = self.validator.validate(totals)
        if validation.messages:
            totals = Totals(
                total_cents=totals.total_cents,
                subtotal_cents=totals.subtotal_cents,
                tax_cents=totals.tax_cents,
                fees_cents=totals.fees_cents,
                discount_cents=totals.discount_cents,
                evidence=totals.evidence,
                warnings=tuple(validation.messages),
            )

        logger.info(
            f"Totals: total={format_cents(totals.total_cents)} "
            f"({total.rule if total else 'not found'}), "
            f"subtotal={format_cents(totals.subtotal_cents)}, tax={format_cents(totals.tax_cents)}, "
            f"fees={format_cents(totals.fees_cents)}, discounts={format_cents(totals.discount_cents)}"
        )
        return totals

    def _total_from_scan(self, scan) -> Optional[Evidence]:
        winner, runners_up = select_total(scan.totals)
        if winner is None:
            return None
        logger.debug(
            f"Line scan total {winner.cents} via '{winner.rule_label}' "
            f"(priority {winner.priority}, {len(scan.totals)} candidates)"
        )
        return Evidence.from_candidate(winner, SOURCE_LINE_SCAN, "high", runners_up)

    def _total_from_universal_finder(self, text: str) -> Optional[Evidence]:
        result = self.universal_finder.find(text)
        if not result.found:
            return None
        if result.confidence < self.fallback_min_confidence:
            logger.debug(
                f"Universal finder best {result.cents} at {result.confidence}% "
                f"is below the {self.fallback_min_confidence}% floor"
            )
            return None

        logger.info(
            f"Universal finder selected {format_cents(result.cents)} at {result.confidence}% "
            f"({'+'.join(result.strategies)})"
        )
        return Evidence(
            rule=f"UNIVERSAL FINDER ({'+'.join(result.strategies)})",
            line=result.context,
            line_index=result.line_index,
            cents=result.cents,
            source=SOURCE_UNIVERSAL,
            confidence="medium",
        )

    def _total_from_text_position(self, text: str) -> Optional[Evidence]:
        token = find_total_near_last_label(
            text,
            window_before=self.last_resort_window_before,
            window_after=self.last_resort_window_after,
            min_cents=self.last_resort_min_cents,
            max_cents=self.last_resort_max_cents,
        )
        if token is None:
            return None

        line_index = text.count('\n', 0, token.start) + 1
        line = text.split('\n')[line_index - 1].strip().upper()
        logger.warning(f"Total from last-resort text position search: {format_cents(token.cents)}")
        return Evidence(
            rule="LAST RESORT (text position)",
            line=line,
            line_index=line_index,
            cents=token.cents,
            source=SOURCE_TEXT_POSITION,
            confidence="low",
        )


def extract_totals(text: Optional[str]) -> Totals:
    """
    Extract totals from invoice text; never raises.

    Example:
        >>> extract_totals("INVOICE\\nTOTAL 1,748.85").total_cents
        174885
    """
    try:
        return TotalsExtractor().extract(text)
    except Exception as e:
        logger.error(f"Totals extraction failed, returning empty result: {e}", exc_info=True)
        return Totals()
