"""
Tesseract OCR Backend.

This module provides plain-text OCR of rendered invoice pages using
Tesseract (pytesseract).

Features:
    - Grayscale conversion and mild contrast enhancement before OCR
    - Configurable language, page segmentation and engine modes
    - Per-call timeout passed through to the Tesseract process

Requirements:
    - Tesseract OCR installed on the system
    - pytesseract Python package

Author: ML Engineering Team
"""

import time
from typing import Optional

from PIL import Image, ImageEnhance

from config import get_config
from invoice_totals.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError
from invoice_totals.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Attributes:
        language: Tesseract language code (e.g., "eng")
        psm: Page Segmentation Mode; 6 reads the page as one uniform block
        oem: OCR Engine Mode (0-3)
        page_timeout: Seconds allowed per image, 0 for no limit

    Raises:
        OCREngineNotAvailableError: On construction, if pytesseract or the
            tesseract binary is missing.

    Example:
        >>> backend = TesseractBackend()
        >>> text = backend.extract_text(image, page=3)
    """

    def __init__(self) -> None:
        """Initialize the Tesseract backend with configuration."""
        self.language = get_config("acquisition.ocr.lang", "eng")
        self.psm = get_config("acquisition.ocr.psm", 6)
        self.oem = get_config("acquisition.ocr.oem", 3)
        self.page_timeout = get_config("acquisition.ocr.page_timeout", 60)
        self.enhance_contrast = get_config("acquisition.ocr.enhance_contrast", True)

        self._check_dependencies()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem}, timeout={self.page_timeout}s)"
        )

    def _check_dependencies(self) -> None:
        """
        Check if Tesseract is available.

        Raises:
            OCREngineNotAvailableError: If Tesseract is not installed.
        """
        try:
            import pytesseract
            self._pytesseract = pytesseract

            version = pytesseract.get_tesseract_version()
            logger.debug(f"Tesseract version: {version}")

        except ImportError:
            raise OCREngineNotAvailableError(
                "pytesseract (install with: pip install pytesseract)"
            )
        except Exception as e:
            raise OCREngineNotAvailableError(
                f"Tesseract OCR (not installed or not in PATH): {e}"
            )

    def _build_config(self) -> str:
        return f"--psm {self.psm} --oem {self.oem}"

    def preprocess(self, image: Image.Image) -> Image.Image:
        """Grayscale plus a slight contrast boost."""
        image = image.convert('L')
        if self.enhance_contrast:
            image = ImageEnhance.Contrast(image).enhance(1.5)
        return image

    def extract_text(
        self,
        image: Image.Image,
        page: int = 0,
        timeout: Optional[float] = None
    ) -> str:
        """
        OCR one image to plain text.

        Args:
            image: Rendered page.
            page: Page number, used in logs and errors only.
            timeout: Seconds allowed; defaults to ``page_timeout``.

        Raises:
            OCRProcessingError: If Tesseract fails or times out.
        """
        if timeout is None:
            timeout = self.page_timeout
        start_time = time.time()

        try:
            text = self._pytesseract.image_to_string(
                self.preprocess(image),
                lang=self.language,
                config=self._build_config(),
                timeout=timeout or 0
            )
        except RuntimeError as e:
            # pytesseract signals a killed process with RuntimeError
            logger.warning(f"OCR of page {page} timed out after {timeout}s")
            raise OCRProcessingError(page, f"timeout: {e}")
        except Exception as e:
            logger.error(f"OCR of page {page} failed: {e}")
            raise OCRProcessingError(page, str(e))

        logger.info(f"OCR page {page}: {len(text)} chars ({time.time() - start_time:.2f}s)")
        return text
