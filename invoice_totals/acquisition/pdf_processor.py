"""
PDF Processor Module.

This module handles PDF documents held in memory:
    - Direct text-layer extraction (pdfplumber, PyMuPDF as fallback)
    - Positioned word extraction for layout-aware re-extraction
    - Page rendering to images for OCR (PyMuPDF, pdf2image as fallback)
    - Page counting

Author: ML Engineering Team
"""

import io
from typing import List, Optional

from PIL import Image

from config import get_config
from invoice_totals.utils.exceptions import (
    AcquisitionError,
    CorruptedDocumentError,
    LayoutExtractionError,
)
from invoice_totals.utils.logger import get_logger
from .layout import PositionedToken

# Initialize module logger
logger = get_logger(__name__)


class PDFProcessor:
    """
    Processor for PDF documents given as bytes.

    Every public method raises an AcquisitionError subclass on failure;
    the TextAcquirer turns those into warnings.

    Attributes:
        dpi: Resolution for page rendering
        max_pages: Maximum number of pages read by any extraction

    Example:
        >>> processor = PDFProcessor()
        >>> pages = processor.extract_text_layer(pdf_bytes)
        >>> print(f"Extracted {len(pages)} pages")
    """

    def __init__(self) -> None:
        """Initialize the PDF processor with configuration."""
        self.dpi = get_config("acquisition.pdf.dpi", 300)
        self.max_pages = get_config("acquisition.pdf.max_pages", 10)

        self._check_dependencies()

        logger.debug(f"PDFProcessor initialized (DPI={self.dpi}, max_pages={self.max_pages})")

    def _check_dependencies(self) -> None:
        """Detect which PDF libraries are importable."""
        try:
            import pdfplumber
            self._pdfplumber = pdfplumber
        except ImportError:
            logger.warning("pdfplumber not available. Install with: pip install pdfplumber")
            self._pdfplumber = None

        try:
            import fitz  # PyMuPDF
            self._pymupdf = fitz
        except ImportError:
            logger.debug("PyMuPDF not available. Using pdf2image for rendering.")
            self._pymupdf = None

        try:
            import pdf2image
            self._pdf2image = pdf2image
        except ImportError:
            logger.debug("pdf2image not available.")
            self._pdf2image = None

    def page_count(self, data: bytes) -> int:
        """
        Get the number of pages in a PDF.

        Raises:
            CorruptedDocumentError: If no library can open the document.
        """
        errors = []

        if self._pymupdf is not None:
            try:
                with self._pymupdf.open(stream=data, filetype="pdf") as doc:
                    return len(doc)
            except Exception as e:
                errors.append(f"PyMuPDF: {e}")

        if self._pdfplumber is not None:
            try:
                with self._pdfplumber.open(io.BytesIO(data)) as pdf:
                    return len(pdf.pages)
            except Exception as e:
                errors.append(f"pdfplumber: {e}")

        if self._pdf2image is not None:
            try:
                info = self._pdf2image.pdfinfo_from_bytes(data)
                return int(info.get('Pages', 1))
            except Exception as e:
                errors.append(f"pdf2image: {e}")

        raise CorruptedDocumentError("pdf", "; ".join(errors) or "no PDF library available")

    def extract_text_layer(self, data: bytes) -> List[str]:
        """
        Extract the embedded text of each page.

        Returns:
            One string per page, up to ``max_pages``. Image-only pages
            yield empty strings.

        Raises:
            CorruptedDocumentError: If the PDF cannot be read.
            AcquisitionError: If no text extraction library is installed.
        """
        if self._pdfplumber is not None:
            try:
                with self._pdfplumber.open(io.BytesIO(data)) as pdf:
                    return [
                        page.extract_text() or ""
                        for page in pdf.pages[:self.max_pages]
                    ]
            except Exception as e:
                logger.error(f"pdfplumber text extraction failed: {e}")
                raise CorruptedDocumentError("pdf", str(e))

        if self._pymupdf is not None:
            try:
                with self._pymupdf.open(stream=data, filetype="pdf") as doc:
                    return [
                        doc.load_page(i).get_text() or ""
                        for i in range(min(len(doc), self.max_pages))
                    ]
            except Exception as e:
                logger.error(f"PyMuPDF text extraction failed: {e}")
                raise CorruptedDocumentError("pdf", str(e))

        raise AcquisitionError(
            "No PDF text extraction library available. Install pdfplumber or PyMuPDF."
        )

    def extract_positioned_tokens(self, data: bytes) -> List[List[PositionedToken]]:
        """
        Extract word tokens with their positions, per page.

        Raises:
            LayoutExtractionError: If positions cannot be extracted.
        """
        if self._pdfplumber is not None:
            try:
                with self._pdfplumber.open(io.BytesIO(data)) as pdf:
                    return [
                        [
                            PositionedToken(w['text'], float(w['x0']), float(w['x1']), float(w['top']))
                            for w in page.extract_words(keep_blank_chars=False, use_text_flow=False)
                        ]
                        for page in pdf.pages[:self.max_pages]
                    ]
            except Exception as e:
                raise LayoutExtractionError(f"pdfplumber: {e}")

        if self._pymupdf is not None:
            try:
                with self._pymupdf.open(stream=data, filetype="pdf") as doc:
                    pages = []
                    for i in range(min(len(doc), self.max_pages)):
                        # (x0, y0, x1, y1, word, block_no, line_no, word_no)
                        words = doc.load_page(i).get_text("words")
                        pages.append([
                            PositionedToken(w[4], float(w[0]), float(w[2]), float(w[1]))
                            for w in words
                        ])
                    return pages
            except Exception as e:
                raise LayoutExtractionError(f"PyMuPDF: {e}")

        raise LayoutExtractionError("no positioned text library available")

    def render_page(self, data: bytes, page_number: int) -> Image.Image:
        """
        Render one page (1-based) to an RGB image at ``dpi``.

        Raises:
            CorruptedDocumentError: If rendering fails.
            AcquisitionError: If no rendering library is installed.
        """
        if self._pymupdf is not None:
            return self._render_with_pymupdf(data, page_number)
        if self._pdf2image is not None:
            return self._render_with_pdf2image(data, page_number)
        raise AcquisitionError(
            "No PDF rendering library available. Install PyMuPDF or pdf2image."
        )

    def _render_with_pymupdf(self, data: bytes, page_number: int) -> Image.Image:
        try:
            with self._pymupdf.open(stream=data, filetype="pdf") as doc:
                page = doc.load_page(page_number - 1)

                # Default PDF resolution is 72 DPI
                zoom = self.dpi / 72.0
                pix = page.get_pixmap(matrix=self._pymupdf.Matrix(zoom, zoom))
                image = Image.open(io.BytesIO(pix.tobytes("png")))
                image.load()
        except Exception as e:
            logger.error(f"PyMuPDF rendering of page {page_number} failed: {e}")
            raise CorruptedDocumentError("pdf", str(e))

        return image.convert('RGB') if image.mode != 'RGB' else image

    def _render_with_pdf2image(self, data: bytes, page_number: int) -> Image.Image:
        try:
            images = self._pdf2image.convert_from_bytes(
                data,
                dpi=self.dpi,
                first_page=page_number,
                last_page=page_number,
                fmt='png'
            )
        except Exception as e:
            logger.error(f"pdf2image rendering of page {page_number} failed: {e}")
            raise CorruptedDocumentError("pdf", str(e))

        if not images:
            raise CorruptedDocumentError("pdf", f"page {page_number} produced no image")
        image = images[0]
        return image.convert('RGB') if image.mode != 'RGB' else image


def load_image(data: bytes) -> Image.Image:
    """
    Open image bytes as an RGB PIL image.

    Raises:
        CorruptedDocumentError: If Pillow cannot decode the bytes.
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except Exception as e:
        raise CorruptedDocumentError("image", str(e))
    return image.convert('RGB') if image.mode != 'RGB' else image
