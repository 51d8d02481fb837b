"""
Text Acquisition Handler.

This module provides the TextAcquirer, the single entry point that turns
document bytes into one normalized text blob plus a coverage report.

Sources are tried cheapest first and only escalated when the coverage
report is insufficient:

    1. direct PDF text layer
    2. layout-aware re-extraction from positioned words
    3. OCR of the last page, then of all pages (bounded)

Each source's output is appended with its own separator instead of being
merged, so the same total read by two methods is visible twice.

Usage:
    from invoice_totals.acquisition import TextAcquirer

    acquirer = TextAcquirer()
    result = acquirer.acquire_file("invoice.pdf")
    print(result.coverage.is_sufficient, len(result.text))
"""

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from config import get_config
from invoice_totals.normalizers import normalize_invoice_text
from invoice_totals.utils.exceptions import (
    DocumentNotFoundError,
    InvoiceTotalsError,
    OCREngineNotAvailableError,
    OCRProcessingError,
    UnsupportedDocumentError,
)
from invoice_totals.utils.helpers import detect_document_type, validate_file_exists
from invoice_totals.utils.logger import get_logger
from .coverage import CoverageReport, analyze_coverage
from .layout import LayoutSettings, group_tokens_into_lines
from .pdf_processor import PDFProcessor, load_image
from .tesseract_backend import TesseractBackend

# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class SourcesUsed:
    """Characters contributed by each extraction source."""
    direct_layer_chars: int = 0
    layout_aware_chars: int = 0
    ocr_chars: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'direct_layer_chars': self.direct_layer_chars,
            'layout_aware_chars': self.layout_aware_chars,
            'ocr_chars': self.ocr_chars,
        }


@dataclass(frozen=True)
class AcquisitionResult:
    """
    Data class representing the result of text acquisition.

    Attributes:
        text: Normalized text of every source used, with separators
        sources_used: Characters contributed per source
        coverage: Anchors found in ``text``
        document_type: 'pdf', 'image', 'text' or 'unknown'
        page_count: Pages in the document (0 if unknown)
        warnings: Degradations met along the way
        elapsed_seconds: Wall time spent acquiring
    """
    text: str = ""
    sources_used: SourcesUsed = field(default_factory=SourcesUsed)
    coverage: CoverageReport = field(default_factory=CoverageReport)
    document_type: str = "unknown"
    page_count: int = 0
    warnings: Tuple[str, ...] = ()
    elapsed_seconds: float = 0.0

    def __repr__(self) -> str:
        return (
            f"AcquisitionResult(type='{self.document_type}', "
            f"pages={self.page_count}, chars={len(self.text)}, "
            f"sufficient={self.coverage.is_sufficient})"
        )

    def to_dict(self, include_text: bool = True) -> Dict[str, Any]:
        result = {
            'sources_used': self.sources_used.to_dict(),
            'coverage': self.coverage.to_dict(),
            'document_type': self.document_type,
            'page_count': self.page_count,
            'warnings': list(self.warnings),
            'elapsed_seconds': round(self.elapsed_seconds, 3),
        }
        if include_text:
            result['text'] = self.text
        return result


class _Run:
    """Mutable state of one acquisition, frozen into a result at the end."""

    def __init__(self, deadline: Optional[float], cancel_event: Optional[threading.Event]):
        self.parts: List[str] = []
        self.direct_chars = 0
        self.layout_chars = 0
        self.ocr_chars = 0
        self.page_count = 0
        self.warnings: List[str] = []
        self.deadline = deadline
        self.cancel_event = cancel_event

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    @property
    def text(self) -> str:
        return '\n'.join(p for p in self.parts if p)

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def should_stop(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


class TextAcquirer:
    """
    Acquire invoice text from PDF bytes, image bytes or plain text.

    Never raises for a malformed, empty or image-only document: failures of
    individual sources become warnings and the result carries whatever the
    other sources produced.

    Attributes:
        pdf_processor: PDFProcessor used for text, words and rendering
        ocr_enabled: Whether OCR may be attempted at all
        ocr_max_pages: Page ceiling for the all-pages OCR pass
        overall_timeout: Seconds allowed for all OCR of one document

    Example:
        >>> acquirer = TextAcquirer()
        >>> result = acquirer.acquire(pdf_bytes)
        >>> result.sources_used.ocr_chars
        0
    """

    SUPPORTED_TYPES = ['pdf', 'image']

    def __init__(
        self,
        pdf_processor: Optional[PDFProcessor] = None,
        ocr_backend: Optional[TesseractBackend] = None,
        layout_settings: Optional[LayoutSettings] = None
    ) -> None:
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.layout_settings = layout_settings or LayoutSettings.from_config()
        self._ocr_backend = ocr_backend
        self._ocr_unavailable_reason: Optional[str] = None

        self.ocr_enabled = get_config("acquisition.ocr.enabled", True)
        self.ocr_max_pages = get_config("acquisition.ocr.max_pages", 10)
        self.overall_timeout = get_config("acquisition.ocr.overall_timeout", 180)

        logger.debug(
            f"TextAcquirer initialized (ocr_enabled={self.ocr_enabled}, "
            f"ocr_max_pages={self.ocr_max_pages})"
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def acquire_file(
        self,
        filepath: Union[str, Path],
        cancel_event: Optional[threading.Event] = None
    ) -> AcquisitionResult:
        """
        Acquire text from a document on disk.

        Raises:
            DocumentNotFoundError: If the path is not an existing file.
        """
        if not validate_file_exists(filepath):
            raise DocumentNotFoundError(str(filepath))

        logger.info(f"Acquiring text from: {Path(filepath).name}")
        return self.acquire(Path(filepath).read_bytes(), cancel_event=cancel_event)

    def acquire_text(self, text: Optional[str]) -> AcquisitionResult:
        """Wrap already-extracted text in an AcquisitionResult."""
        return acquire_text(text)

    def acquire(
        self,
        data: Optional[bytes],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> AcquisitionResult:
        """
        Acquire text from document bytes.

        Args:
            data: PDF or image bytes.
            timeout: Seconds allowed for OCR of this document; defaults to
                ``acquisition.ocr.overall_timeout``.
            cancel_event: Checked between OCR pages; once set, no further
                pages are processed.

        Returns:
            AcquisitionResult; empty with ``missing_critical_anchors`` when
            nothing could be read.
        """
        start_time = time.monotonic()
        if timeout is None:
            timeout = self.overall_timeout
        run = _Run(start_time + timeout if timeout else None, cancel_event)

        document_type = detect_document_type(data) if data else 'unknown'

        if not data:
            run.warn("Empty document")
        else:
            try:
                self._dispatch(data, document_type, run)
            except UnsupportedDocumentError as e:
                run.warn(str(e))

        text = normalize_invoice_text(run.text)
        coverage = analyze_coverage(text)
        elapsed = time.monotonic() - start_time

        logger.info(
            f"Acquired {len(text)} chars from {document_type} "
            f"(direct={run.direct_chars}, layout={run.layout_chars}, ocr={run.ocr_chars}) "
            f"in {elapsed:.2f}s; sufficient={coverage.is_sufficient}"
        )

        return AcquisitionResult(
            text=text,
            sources_used=SourcesUsed(run.direct_chars, run.layout_chars, run.ocr_chars),
            coverage=coverage,
            document_type=document_type,
            page_count=run.page_count,
            warnings=tuple(run.warnings),
            elapsed_seconds=elapsed,
        )

    def _dispatch(self, data: bytes, document_type: str, run: _Run) -> None:
        """
        Route bytes to the PDF or image path.

        Raises:
            UnsupportedDocumentError: For anything but PDF or image bytes.
        """
        if document_type == 'pdf':
            self._acquire_pdf(data, run)
        elif document_type == 'image':
            run.page_count = 1
            self._ocr_image(data, run)
        else:
            raise UnsupportedDocumentError(document_type, self.SUPPORTED_TYPES)

    # -------------------------------------------------------------------------
    # PDF sources
    # -------------------------------------------------------------------------

    def _acquire_pdf(self, data: bytes, run: _Run) -> None:
        try:
            run.page_count = self.pdf_processor.page_count(data)
        except InvoiceTotalsError as e:
            run.warn(f"Could not read PDF page count: {e}")

        self._direct_layer(data, run)
        if analyze_coverage(run.text).is_sufficient:
            return

        layout_ok = self._layout_layer(data, run)
        if layout_ok and analyze_coverage(run.text).is_sufficient:
            return

        self._ocr_pdf(data, run)

    def _direct_layer(self, data: bytes, run: _Run) -> None:
        try:
            pages = self.pdf_processor.extract_text_layer(data)
        except InvoiceTotalsError as e:
            run.warn(f"Direct text extraction failed: {e}")
            return

        parts = []
        for number, page_text in enumerate(pages, start=1):
            if number > 1:
                parts.append(f"\n=== PAGE {number} ===\n")
            parts.append(page_text)
        text = '\n'.join(parts).strip()

        run.direct_chars = len(text)
        run.parts.append(text)
        logger.debug(f"Direct text layer: {len(text)} chars from {len(pages)} page(s)")

    def _layout_layer(self, data: bytes, run: _Run) -> bool:
        """Layout-aware pass; False when it failed outright."""
        try:
            pages = self.pdf_processor.extract_positioned_tokens(data)
        except InvoiceTotalsError as e:
            run.warn(f"Layout-aware extraction failed: {e}")
            return False

        parts = []
        for number, tokens in enumerate(pages, start=1):
            lines = group_tokens_into_lines(tokens, self.layout_settings)
            if lines:
                parts.append(f"\n=== LAYOUT PAGE {number} ===\n" + '\n'.join(lines))
        text = '\n'.join(parts)

        run.layout_chars = len(text)
        run.parts.append(text)
        logger.debug(f"Layout-aware pass: {len(text)} chars")
        return True

    # -------------------------------------------------------------------------
    # OCR
    # -------------------------------------------------------------------------

    def _get_ocr_backend(self, run: _Run) -> Optional[TesseractBackend]:
        """The OCR backend, constructed on first use; None if unavailable."""
        if not self.ocr_enabled:
            logger.debug("OCR disabled by configuration")
            return None
        if self._ocr_backend is not None:
            return self._ocr_backend
        if self._ocr_unavailable_reason is None:
            try:
                self._ocr_backend = TesseractBackend()
                return self._ocr_backend
            except OCREngineNotAvailableError as e:
                self._ocr_unavailable_reason = str(e)
        run.warn(f"OCR unavailable, continuing without it: {self._ocr_unavailable_reason}")
        return None

    def _ocr(self, backend: TesseractBackend, image, page: int, run: _Run) -> Optional[str]:
        remaining = run.remaining()
        timeout = backend.page_timeout
        if remaining is not None:
            timeout = min(timeout, remaining) if timeout else remaining
        try:
            return backend.extract_text(image, page=page, timeout=timeout)
        except OCRProcessingError as e:
            run.warn(f"OCR failed on page {page}: {e}")
            return None

    def _ocr_image(self, data: bytes, run: _Run) -> None:
        backend = self._get_ocr_backend(run)
        if backend is None:
            return
        try:
            image = load_image(data)
        except InvoiceTotalsError as e:
            run.warn(f"Could not decode image: {e}")
            return

        text = self._ocr(backend, image, 1, run)
        if text:
            run.ocr_chars = len(text)
            run.parts.append(text)

    def _ocr_pdf(self, data: bytes, run: _Run) -> None:
        backend = self._get_ocr_backend(run)
        if backend is None:
            return
        if run.page_count <= 0:
            run.warn("OCR skipped: page count unknown")
            return

        # Totals are conventionally on the last page
        last = run.page_count
        text = self._ocr_pdf_page(data, last, backend, run)
        if text:
            run.parts.append(f"\n=== OCR LAST PAGE ({last}) ===\n{text}")
            run.ocr_chars += len(text)
            if analyze_coverage(run.text).is_sufficient:
                return
        if run.page_count == 1:
            return

        pages = min(run.page_count, self.ocr_max_pages)
        if run.page_count > pages:
            logger.warning(f"PDF has {run.page_count} pages, OCR limited to {pages}")

        for number in range(1, pages + 1):
            if run.should_stop():
                run.warn(f"OCR stopped before page {number}: deadline reached or cancelled")
                break
            text = self._ocr_pdf_page(data, number, backend, run)
            if text is None:
                run.parts.append(f"\n--- OCR PAGE {number} FAILED ---\n")
                continue
            run.parts.append(f"\n--- OCR PAGE {number} ---\n{text}")
            run.ocr_chars += len(text)

    def _ocr_pdf_page(self, data: bytes, number: int, backend: TesseractBackend, run: _Run) -> Optional[str]:
        if run.should_stop():
            run.warn(f"OCR of page {number} skipped: deadline reached or cancelled")
            return None
        try:
            image = self.pdf_processor.render_page(data, number)
        except InvoiceTotalsError as e:
            run.warn(f"Could not render page {number}: {e}")
            return None
        return self._ocr(backend, image, number, run)


def acquire_text(text: Optional[str]) -> AcquisitionResult:
    """
    Wrap already-extracted text in an AcquisitionResult.

    The text is normalized and counted as the direct layer; no PDF or OCR
    library is touched.
    """
    normalized = normalize_invoice_text(text)
    return AcquisitionResult(
        text=normalized,
        sources_used=SourcesUsed(direct_layer_chars=len(normalized)),
        coverage=analyze_coverage(normalized),
        document_type='text',
    )
