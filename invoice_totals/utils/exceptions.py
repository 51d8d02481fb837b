"""
Custom Exceptions Module.

Exceptions raised by the document-handling side of the engine. The text
scanning functions (totals, vendor, reconciliation) never raise for bad
input; these errors exist so acquisition helpers can report precisely what
went wrong before the acquirer downgrades them to warnings.

Exception Hierarchy:
    InvoiceTotalsError (base)
    ├── InputError
    │   ├── UnsupportedDocumentError
    │   ├── DocumentNotFoundError
    │   └── CorruptedDocumentError
    └── AcquisitionError
        ├── LayoutExtractionError
        └── OCRError
            ├── OCREngineNotAvailableError
            └── OCRProcessingError
"""


class InvoiceTotalsError(Exception):
    """
    Base exception for all invoice totals errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceTotalsError):
    """Base exception for input handling errors."""
    pass


class UnsupportedDocumentError(InputError):
    """
    Raised when a document is neither a PDF nor a readable image.

    Example:
        >>> raise UnsupportedDocumentError("docx", ["pdf", "image"])
    """

    def __init__(self, document_type: str, supported_types: list):
        message = f"Unsupported document type: '{document_type}'"
        details = {"document_type": document_type, "supported_types": supported_types}
        super().__init__(message, details)


class DocumentNotFoundError(InputError):
    """Raised when an input path cannot be found."""

    def __init__(self, filepath: str):
        message = f"File not found: {filepath}"
        details = {"filepath": filepath}
        super().__init__(message, details)


class CorruptedDocumentError(InputError):
    """Raised when document bytes cannot be opened by any reader."""

    def __init__(self, source: str, reason: str = None):
        message = f"Corrupted or unreadable document: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# ACQUISITION ERRORS
# =============================================================================

class AcquisitionError(InvoiceTotalsError):
    """Base exception for text acquisition errors."""
    pass


class LayoutExtractionError(AcquisitionError):
    """Raised when positioned-word extraction fails for a document."""

    def __init__(self, reason: str = None):
        message = "Layout-aware extraction failed"
        details = {"reason": reason}
        super().__init__(message, details)


class OCRError(AcquisitionError):
    """Base exception for OCR-related errors."""
    pass


class OCREngineNotAvailableError(OCRError):
    """Raised when the OCR engine or its binary is not installed."""

    def __init__(self, engine_name: str):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name}
        super().__init__(message, details)


class OCRProcessingError(OCRError):
    """Raised when OCR of a single page fails or times out."""

    def __init__(self, page: int, reason: str = None):
        message = f"OCR processing failed for page {page}"
        details = {"page": page, "reason": reason}
        super().__init__(message, details)
