"""
Invoice Totals Pipeline.

Runs one document through the whole engine:

    bytes -> TextAcquirer -> normalized text -> classify + extract_totals
          -> compute_invoice_math -> reconcile_totals + select_best_total

Usage:
    from invoice_totals.pipeline import process_document, process_text

    report = process_document(pdf_bytes, line_items=[{'total_cents': 5000}])
    print(report.selection.total_cents, report.vendor.vendor_key)

    report = process_text(extracted_text)
    print(report.to_json())
"""

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from invoice_totals.acquisition import (
    AcquisitionResult,
    TextAcquirer,
    acquire_text,
    extract_interesting_lines,
)
from invoice_totals.reconciliation import (
    InvoiceMath,
    ReconciliationResult,
    TotalSelection,
    compute_invoice_math,
    reconcile_totals,
    select_best_total,
)
from invoice_totals.totals import Totals, extract_totals
from invoice_totals.utils.exceptions import DocumentNotFoundError
from invoice_totals.utils.helpers import format_cents, get_file_extension, validate_file_exists
from invoice_totals.utils.logger import get_logger
from invoice_totals.vendor import VendorResult, classify

logger = get_logger(__name__)

TEXT_EXTENSIONS = (".txt",)


@dataclass(frozen=True)
class InvoiceTotalsReport:
    """
    Everything the engine learned about one document.

    Attributes:
        acquisition: Acquired text, sources used and coverage
        vendor: Vendor classification
        totals: Extracted totals with evidence
        invoice_math: Line-item math against the extracted components
        reconciliation: Extracted vs computed comparison (diagnostic)
        selection: The authoritative total
        interesting_lines: Total/tax/fee lines with context, for debugging
    """
    acquisition: AcquisitionResult
    vendor: VendorResult
    totals: Totals
    invoice_math: InvoiceMath
    reconciliation: ReconciliationResult
    selection: TotalSelection
    interesting_lines: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_cents(self) -> int:
        return self.selection.total_cents

    def to_dict(self, include_text: bool = False) -> Dict[str, Any]:
        """
        Convert to dictionary format.

        Args:
            include_text: Also include the full acquired text.
        """
        return {
            'total_cents': self.selection.total_cents,
            'selection': self.selection.to_dict(),
            'vendor': self.vendor.to_dict(),
            'totals': self.totals.to_dict(),
            'invoice_math': self.invoice_math.to_dict(),
            'reconciliation': self.reconciliation.to_dict(),
            'acquisition': self.acquisition.to_dict(include_text=include_text),
            'interesting_lines': list(self.interesting_lines),
        }

    def to_json(self, indent: int = 2, include_text: bool = False) -> str:
        return json.dumps(self.to_dict(include_text=include_text), indent=indent)


def analyze(
    acquisition: AcquisitionResult,
    line_items: Optional[Iterable[Any]] = None,
    parser_total_cents: int = 0
) -> InvoiceTotalsReport:
    """Run vendor classification, totals extraction and reconciliation on acquired text."""
    text = acquisition.text

    vendor = classify(text)
    totals = extract_totals(text)
    invoice_math = compute_invoice_math(line_items, totals)
    reconciliation = reconcile_totals(totals.total_cents, invoice_math.computed_total_cents)
    selection = select_best_total(totals, invoice_math, parser_total_cents)

    logger.info(
        f"Report: vendor={vendor.vendor_key} ({vendor.confidence_percent}%), "
        f"total={format_cents(selection.total_cents)} from {selection.source} "
        f"({selection.confidence}); reconciliation: {reconciliation.reason}"
    )

    return InvoiceTotalsReport(
        acquisition=acquisition,
        vendor=vendor,
        totals=totals,
        invoice_math=invoice_math,
        reconciliation=reconciliation,
        selection=selection,
        interesting_lines=tuple(extract_interesting_lines(text)),
    )


def process_document(
    data: Optional[bytes],
    line_items: Optional[Iterable[Any]] = None,
    parser_total_cents: int = 0,
    acquirer: Optional[TextAcquirer] = None,
    cancel_event: Optional[threading.Event] = None
) -> InvoiceTotalsReport:
    """
    Process PDF or image bytes end to end.

    Args:
        data: Document bytes.
        line_items: Optional externally parsed line items.
        parser_total_cents: A vendor parser's own total, 0 if none.
        acquirer: TextAcquirer to use; a default one is built if None.
        cancel_event: Stops OCR between pages once set.
    """
    acquirer = acquirer or TextAcquirer()
    acquisition = acquirer.acquire(data, cancel_event=cancel_event)
    return analyze(acquisition, line_items, parser_total_cents)


def process_text(
    text: Optional[str],
    line_items: Optional[Iterable[Any]] = None,
    parser_total_cents: int = 0
) -> InvoiceTotalsReport:
    """Process already-extracted invoice text end to end."""
    return analyze(acquire_text(text), line_items, parser_total_cents)


def process_file(
    filepath: Union[str, Path],
    line_items: Optional[Iterable[Any]] = None,
    parser_total_cents: int = 0,
    as_text: bool = False
) -> InvoiceTotalsReport:
    """
    Process a document or text file on disk.

    Files with a text extension (``.txt``) are read as already-extracted
    text, as is any file when ``as_text`` is set.

    Raises:
        DocumentNotFoundError: If the path is not an existing file.
    """
    if as_text or get_file_extension(filepath) in TEXT_EXTENSIONS:
        if not validate_file_exists(filepath):
            raise DocumentNotFoundError(str(filepath))
        text = Path(filepath).read_text(encoding='utf-8', errors='replace')
        return process_text(text, line_items, parser_total_cents)

    acquisition = TextAcquirer().acquire_file(filepath)
    return analyze(acquisition, line_items, parser_total_cents)
