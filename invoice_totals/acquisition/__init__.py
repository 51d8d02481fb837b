"""
Text Acquisition Module for Invoice Totals Engine.

This module provides functionality for:
    - Direct PDF text-layer extraction
    - Layout-aware re-extraction from positioned words
    - OCR fallback of rendered pages (last page first)
    - Coverage reporting to decide when to escalate

Supported inputs:
    - PDF (digital and scanned)
    - Images: PNG, JPEG, TIFF (OCR only)
    - Already-extracted text

Author: ML Engineering Team
"""

from .coverage import CoverageReport, analyze_coverage, extract_interesting_lines
from .handler import AcquisitionResult, SourcesUsed, TextAcquirer, acquire_text
from .layout import LayoutSettings, PositionedToken, group_tokens_into_lines
from .pdf_processor import PDFProcessor
from .tesseract_backend import TesseractBackend

__all__ = [
    'AcquisitionResult',
    'CoverageReport',
    'LayoutSettings',
    'PDFProcessor',
    'PositionedToken',
    'SourcesUsed',
    'TesseractBackend',
    'TextAcquirer',
    'acquire_text',
    'analyze_coverage',
    'extract_interesting_lines',
    'group_tokens_into_lines',
]
