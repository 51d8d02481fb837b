"""
Money and Text Normalizers.

This module converts human-written monetary strings into signed integer
cents and repairs the text damage that PDF text layers and OCR commonly
introduce (letters spaced apart, digits split by stray blanks, look-alike
characters inside keywords).

Every monetary value in the engine passes through normalize_to_cents();
floating point is never used for money.

Example:
    >>> normalize_to_cents("$1,748.85")
    174885
    >>> normalize_to_cents("(12.50)")
    -1250
    >>> repair_money_spacing("INVOICE TOTAL 1 748 .85")
    'INVOICE TOTAL 1748.85'
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional


# =============================================================================
# MONEY
# =============================================================================

CURRENCY_SYMBOLS = ['$', '€', '£', '¥']
CURRENCY_CODES = ['USD', 'EUR', 'GBP', 'CAD']

_CURRENCY_CODE_RE = re.compile(r'\b(?:' + '|'.join(CURRENCY_CODES) + r')\b', re.IGNORECASE)
_EUROPEAN_RE = re.compile(r'^\d{1,3}(?:\.\d{3})*,\d{1,2}$')
_NUMBER_RE = re.compile(r'^\d+(?:\.\d*)?$|^\.\d+$')


def parse_cents(value: Any) -> Optional[int]:
    """
    Parse a monetary value into integer cents.

    Numbers (int, float, Decimal) are taken as dollar amounts. Strings may
    carry currency symbols or codes, thousands separators, a European
    decimal comma, stray whitespace, and a negative marker in any of the
    printed forms: ``(12.00)``, ``-12.00``, ``12.00-``, ``CR 12.00`` or
    ``12.00 CR``.

    Args:
        value: The value to parse.

    Returns:
        Signed integer cents, or None if the value is not a number.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, Decimal)):
        return _to_cents(Decimal(value))
    if isinstance(value, float):
        # str() first so that 0.1 becomes Decimal('0.1') and not its binary expansion
        return _to_cents(Decimal(str(value)))

    s = str(value).strip()
    if not s:
        return None

    s = _CURRENCY_CODE_RE.sub('', s).strip()
    upper = s.upper()

    negative = False
    if s.startswith('(') and s.endswith(')'):
        negative = True
    if upper.startswith('CR') or upper.endswith('CR'):
        negative = True
        s = re.sub(r'^CR|CR$', '', s, flags=re.IGNORECASE)

    for symbol in CURRENCY_SYMBOLS:
        s = s.replace(symbol, '')
    s = re.sub(r'[\s()]', '', s)

    if s.startswith('-'):
        negative = True
        s = s[1:]
    if s.endswith('-'):
        negative = True
        s = s[:-1]

    if _EUROPEAN_RE.match(s):
        s = s.replace('.', '').replace(',', '.')
    else:
        s = s.replace(',', '')

    if not _NUMBER_RE.match(s):
        return None

    cents = _to_cents(Decimal(s))
    if cents is None:
        return None
    return -cents if negative else cents


def _to_cents(amount: Decimal) -> Optional[int]:
    try:
        return int((amount * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return None


def normalize_to_cents(value: Any) -> int:
    """
    Convert a monetary value to signed integer cents.

    Same rules as parse_cents(), but anything unparseable yields 0 so that
    callers always get a usable integer.

    Example:
        >>> normalize_to_cents("1 748 .85")
        174885
        >>> normalize_to_cents("1.234,56")
        123456
        >>> normalize_to_cents("n/a")
        0
    """
    cents = parse_cents(value)
    return cents if cents is not None else 0


# Digit followed by a split decimal point: "1748 .85", "1748. 85", "1748 . 85"
_SPLIT_DECIMAL_RE = re.compile(r'(\d)(?:[ \t]+\.[ \t]*|\.[ \t]+)(\d{2})(?!\d)')
# Thousands group after a comma split by a blank: "1, 748.85"
_SPLIT_COMMA_RE = re.compile(r'(\d),[ \t]+(\d{3})(?!\d)')
# Dollar sign separated from its number: "$ 12.00"
_SPLIT_DOLLAR_RE = re.compile(r'\$[ \t]+(\d)')
# Thousands groups split by single blanks after a dollar sign or total label: "TOTAL 1 748.85"
_SPLIT_LABELLED_THOUSANDS_RE = re.compile(
    r'(\$|\b(?:(?:SUB)?TOTAL|DUE|AMOUNT|BALANCE|TAX|PAY)\b[: \t]*\$?)(\d{1,3}(?:[ \t]\d{3})+\.\d{2})(?!\d)',
    re.IGNORECASE
)
# At least two split groups stand on their own: "12 345 678.90". A single
# group may be a quantity column beside a price: "QTY 12 450.00"
_SPLIT_THOUSANDS_RE = re.compile(r'(?<![\d.,])(\d{1,3}(?:[ \t]\d{3}){2,}\.\d{2})(?!\d)')
# Minus sign separated from a decimal amount: "- 5.00"
_SPLIT_MINUS_RE = re.compile(r"(?:(?<=[ \t(])|^)-[ \t]+(\d[\d,]*\.\d{2})(?!\d)", re.MULTILINE)


def repair_money_spacing(text: str) -> str:
    """
    Remove blanks that text extraction inserted inside monetary numbers.

    Repairs are made within a line only and never join two complete
    decimal amounts, so a row such as ``100.00 7.00 107.00`` is left
    untouched. A lone thousands group split off by a blank is only
    joined after a dollar sign or a total label, so ``QTY 12 450.00``
    keeps its quantity column.

    Example:
        >>> repair_money_spacing("TOTAL $ 1 748 .85")
        'TOTAL $1748.85'
    """
    if not text:
        return ''

    text = _SPLIT_DECIMAL_RE.sub(r'\1.\2', text)
    text = _SPLIT_COMMA_RE.sub(r'\1,\2', text)
    text = _SPLIT_DOLLAR_RE.sub(r'$\1', text)
    text = _SPLIT_MINUS_RE.sub(r"-\1", text)
    text = _SPLIT_LABELLED_THOUSANDS_RE.sub(lambda m: m.group(1) + re.sub(r'[ \t]', '', m.group(2)), text)
    text = _SPLIT_THOUSANDS_RE.sub(lambda m: re.sub(r'[ \t]', '', m.group(1)), text)
    return text


# =============================================================================
# TEXT
# =============================================================================

_UNICODE_SPACES_RE = re.compile(r'[\u00A0\u2000-\u200B\u202F\u205F\u3000]')
_UNICODE_DASHES_RE = re.compile(r'[\u2010-\u2015\u2212]')
_SINGLE_QUOTES_RE = re.compile(r'[\u2018-\u201B]')
_DOUBLE_QUOTES_RE = re.compile(r'[\u201C-\u201F]')


def _spaced(word: str) -> re.Pattern:
    return re.compile(r'[ \t]*'.join(re.escape(ch) for ch in word), re.IGNORECASE)


# Keywords and vendor names OCR often prints letter-by-letter.
# TOTAL precedes SUBTOTAL so "S U B T O T A L" collapses in two steps.
SPACED_WORDS = [
    (_spaced('SYSCO'), 'SYSCO'),
    (_spaced('CINTAS'), 'CINTAS'),
    (re.compile(r'U[ \t]*S[ \t]+F[ \t]*O[ \t]*O[ \t]*D[ \t]*S', re.IGNORECASE), 'US FOODS'),
    (_spaced('ARAMARK'), 'ARAMARK'),
    (_spaced('UNIFIRST'), 'UNIFIRST'),
    (_spaced('INVOICE'), 'INVOICE'),
    (_spaced('TOTAL'), 'TOTAL'),
    (_spaced('SUBTOTAL'), 'SUBTOTAL'),
    (_spaced('AMOUNT'), 'AMOUNT'),
    (_spaced('BALANCE'), 'BALANCE'),
    (_spaced('PAYMENT'), 'PAYMENT'),
]

_SPACED_CAPS_RE = re.compile(r'\b[A-Z](?: [A-Z]){3,}\b')

OCR_WORD_FIXES = [
    (re.compile(r'\b(?:FOTAL|TQTAL|T0TAL|TOTAI)\b', re.IGNORECASE), 'TOTAL'),
    (re.compile(r'\b(?:1NVOICE|lNVOICE|INV0ICE|INVOlCE)\b', re.IGNORECASE), 'INVOICE'),
    (re.compile(r'\b(?:SUBT0TAL|SUBTQTAL)\b', re.IGNORECASE), 'SUBTOTAL'),
    (re.compile(r'\b(?:AMOUNF|AM0UNT)\b', re.IGNORECASE), 'AMOUNT'),
    (re.compile(r'\bBALANCE[ \t]*DUE\b', re.IGNORECASE), 'BALANCE DUE'),
    (re.compile(r'\bAMOUNT[ \t]*DUE\b', re.IGNORECASE), 'AMOUNT DUE'),
    # Letter O and lowercase l read in place of 0 and 1 between digits
    (re.compile(r'(?<=\d)O(?=\d)'), '0'),
    (re.compile(r'(?<=\d)l(?=\d)'), '1'),
]


def fix_spaced_characters(text: str) -> str:
    """
    Collapse letter-spaced words (``S Y S C O`` -> ``SYSCO``).

    Known keywords are collapsed case-insensitively; any other run of four
    or more single capital letters separated by single spaces is joined.
    """
    if not text:
        return ''

    for pattern, replacement in SPACED_WORDS:
        text = pattern.sub(replacement, text)

    return _SPACED_CAPS_RE.sub(lambda m: m.group(0).replace(' ', ''), text)


def fix_ocr_substitutions(text: str) -> str:
    """Repair common OCR look-alike characters in invoice keywords and amounts."""
    if not text:
        return ''

    for pattern, replacement in OCR_WORD_FIXES:
        text = pattern.sub(replacement, text)
    return text


def normalize_invoice_text(text: Optional[str]) -> str:
    """
    Normalize a whole acquired text blob.

    Line endings, unicode dashes, quotes and spaces are unified, OCR damage
    is repaired and each line is trimmed. Line breaks and runs of spaces
    inside a line are preserved; layout-aware extraction uses them to keep
    columns apart.
    """
    if not text:
        return ''

    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = _UNICODE_DASHES_RE.sub('-', text)
    text = _SINGLE_QUOTES_RE.sub("'", text)
    text = _DOUBLE_QUOTES_RE.sub('"', text)
    text = _UNICODE_SPACES_RE.sub(' ', text)

    text = fix_spaced_characters(text)
    text = repair_money_spacing(text)
    text = fix_ocr_substitutions(text)

    text = text.replace('\t', ' ')
    text = '\n'.join(line.strip() for line in text.split('\n'))
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


def normalize_line(line: Optional[str]) -> str:
    """
    Normalize one line for pattern matching.

    Unicode spaces and dashes are unified, whitespace collapsed, the line
    trimmed and upper-cased.
    """
    if not line:
        return ''
    line = _UNICODE_SPACES_RE.sub(' ', line)
    line = _UNICODE_DASHES_RE.sub('-', line)
    return ' '.join(line.split()).upper()


@dataclass(frozen=True)
class NormalizedLine:
    """A non-empty normalized line and its 1-based index in the source text."""
    text: str
    index: int


def split_lines(text: Optional[str]) -> List[NormalizedLine]:
    """
    Split text into normalized lines, dropping empty ones.

    The index is the 1-based physical line number in the original text,
    so evidence can point back at the document even after blank lines
    are dropped.
    """
    if not text:
        return []

    lines = []
    for number, raw in enumerate(text.replace('\r\n', '\n').replace('\r', '\n').split('\n'), start=1):
        normalized = normalize_line(raw)
        if normalized:
            lines.append(NormalizedLine(text=normalized, index=number))
    return lines


__all__ = [
    'parse_cents',
    'normalize_to_cents',
    'repair_money_spacing',
    'fix_spaced_characters',
    'fix_ocr_substitutions',
    'normalize_invoice_text',
    'normalize_line',
    'NormalizedLine',
    'split_lines',
]
