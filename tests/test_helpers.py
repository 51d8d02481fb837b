import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from invoice_totals.utils.helpers import (  # noqa: E402
    detect_document_type,
    format_cents,
    get_file_extension,
)


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"%PDF-1.7\n...", "pdf"),
        (b"\x00\x00junk%PDF-1.4", "pdf"),
        (b"\x89PNG\r\n\x1a\n....", "image"),
        (b"\xff\xd8\xff\xe0....", "image"),
        (b"II*\x00....", "image"),
        (b"MM\x00*....", "image"),
        # Bitmaps are not among the accepted image formats
        (b"BM6\x00\x00\x00", "unknown"),
        (b"BMW INVOICE", "unknown"),
        (b"", "unknown"),
    ],
)
def test_detect_document_type(data, expected):
    assert detect_document_type(data) == expected


def test_format_cents():
    assert format_cents(174885) == "$1,748.85"
    assert format_cents(-500) == "-$5.00"
    assert format_cents(0) == "$0.00"


def test_get_file_extension_is_lower_case():
    assert get_file_extension("scan/INVOICE.TXT") == ".txt"
    assert get_file_extension("invoice") == ""
