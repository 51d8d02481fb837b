"""
Helper Utilities Module.

Small generic functions shared by the acquisition layer, the pipeline and
the CLI.

Functions:
    - detect_document_type: Sniff PDF / image bytes by magic number
    - format_cents: Render integer cents for messages
    - validate_file_exists: Check an input path
    - get_file_extension: Extract file extension safely
"""

from pathlib import Path
from typing import Union


# Magic numbers for the image formats the acquirer accepts: PNG, JPEG and TIFF
_IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpeg"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
)


def detect_document_type(data: bytes) -> str:
    """
    Identify the document type from its leading bytes.

    Args:
        data: Raw document bytes.

    Returns:
        "pdf", "image" (PNG, JPEG or TIFF) or "unknown".

    Example:
        >>> detect_document_type(b"%PDF-1.7 ...")
        'pdf'
    """
    if not data:
        return "unknown"

    # Some generators prepend junk before the header; the PDF format allows
    # the header anywhere in the first 1024 bytes.
    if b"%PDF-" in data[:1024]:
        return "pdf"

    for signature, _ in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return "image"

    return "unknown"


def format_cents(cents: int) -> str:
    """
    Format integer cents as a dollar string.

    Example:
        >>> format_cents(174885)
        '$1,748.85'
        >>> format_cents(-500)
        '-$5.00'
    """
    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(int(cents)), 100)
    return f"{sign}${dollars:,}.{remainder:02d}"


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Extract the lowercase file extension, including the dot.

    Returns empty string if no extension exists.
    """
    return Path(filepath).suffix.lower()


def validate_file_exists(filepath: Union[str, Path]) -> bool:
    """
    Check if a file exists and is a regular file.

    Example:
        >>> validate_file_exists("config/settings.yaml")
        True
    """
    path = Path(filepath)
    return path.exists() and path.is_file()
