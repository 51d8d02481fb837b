"""
Layout-Aware Line Grouping.

Rebuilds plain-text lines from positioned word tokens. Tokens are bucketed
into lines by rounding their vertical position to a tolerance band, sorted
left to right, and joined with spacing that grows with the horizontal gap
so that columns stay visually apart in the output.

Coordinates are page points with ``top`` growing downwards, as reported
by pdfplumber and PyMuPDF.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from config import get_config


@dataclass(frozen=True)
class PositionedToken:
    """One word of a page with its bounding box."""
    text: str
    x0: float
    x1: float
    top: float


@dataclass(frozen=True)
class LayoutSettings:
    y_tolerance: float = 5
    narrow_gap: float = 5
    wide_gap: float = 20
    char_width: float = 6
    max_gap_spaces: int = 8

    @classmethod
    def from_config(cls) -> 'LayoutSettings':
        return cls(
            y_tolerance=get_config("acquisition.layout.y_tolerance", 5),
            narrow_gap=get_config("acquisition.layout.narrow_gap", 5),
            wide_gap=get_config("acquisition.layout.wide_gap", 20),
            char_width=get_config("acquisition.layout.char_width", 6),
            max_gap_spaces=get_config("acquisition.layout.max_gap_spaces", 8),
        )


def _band(top: float, tolerance: float) -> int:
    """Round a vertical position to the nearest tolerance band."""
    if tolerance <= 0:
        return int(round(top))
    return int(round(top / tolerance) * tolerance)


def _separator(gap: float, settings: LayoutSettings) -> str:
    if gap <= settings.narrow_gap:
        return ' '
    if gap <= settings.wide_gap:
        return '  '
    spaces = int(gap / settings.char_width) if settings.char_width > 0 else settings.max_gap_spaces
    return ' ' * min(settings.max_gap_spaces, max(3, spaces))


def group_tokens_into_lines(
    tokens: Iterable[PositionedToken],
    settings: Optional[LayoutSettings] = None
) -> List[str]:
    """
    Group positioned tokens into text lines, top to bottom.

    Args:
        tokens: Word tokens of one page, in any order.
        settings: Banding and spacing thresholds; read from config if None.

    Returns:
        Non-empty text lines in reading order.

    Example:
        >>> tokens = [PositionedToken("TOTAL", 10, 40, 700.2),
        ...           PositionedToken("107.00", 200, 236, 701.9)]
        >>> group_tokens_into_lines(tokens)
        ['TOTAL        107.00']
    """
    settings = settings or LayoutSettings.from_config()

    buckets: Dict[int, List[PositionedToken]] = defaultdict(list)
    for token in tokens:
        if not token.text or not token.text.strip():
            continue
        buckets[_band(token.top, settings.y_tolerance)].append(token)

    lines = []
    for band in sorted(buckets):
        row = sorted(buckets[band], key=lambda t: t.x0)
        parts = []
        last_x1 = None
        for token in row:
            if last_x1 is not None:
                parts.append(_separator(token.x0 - last_x1, settings))
            parts.append(token.text.strip())
            last_x1 = token.x1 if last_x1 is None else max(last_x1, token.x1)
        line = ''.join(parts)
        if line.strip():
            lines.append(line)

    return lines
