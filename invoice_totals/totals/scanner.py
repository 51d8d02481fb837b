"""
Line Scanner.

Collects every total, subtotal, tax, fee and discount match in a document
as candidates. Nothing is accepted here; selection happens afterwards so
that losing candidates survive as evidence.

Two passes:
    - top-to-bottom over adjacent line pairs for split-line labels
    - bottom-to-top over single lines for same-line label + value
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from invoice_totals.normalizers import NormalizedLine, normalize_to_cents
from invoice_totals.utils.logger import get_logger
from .models import Candidate, SPLIT_LINE_JOINER
from .rules import (
    DISCOUNT_RULES,
    FEE_RULES,
    SPLIT_LINE_RULES,
    SUBTOTAL_RULES,
    TAX_RULES,
    TOTAL_RULES,
    is_group_subtotal_line,
)

logger = get_logger(__name__)


@dataclass
class ScanResult:
    """All candidates found by one scan of a document."""
    totals: List[Candidate] = field(default_factory=list)
    subtotals: List[Candidate] = field(default_factory=list)
    tax: Optional[Candidate] = None
    fees: List[Candidate] = field(default_factory=list)
    discounts: List[Candidate] = field(default_factory=list)


def _add_unique(candidates: List[Candidate], candidate: Candidate) -> None:
    if candidate not in candidates:
        candidates.append(candidate)


def _is_duplicate_adjustment(existing: List[Candidate], candidate: Candidate) -> bool:
    """Same physical line, or the same named charge printed twice."""
    return any(
        c.line_index == candidate.line_index
        or (c.rule_label == candidate.rule_label and c.cents == candidate.cents)
        for c in existing
    )


def scan_split_lines(
    lines: Sequence[NormalizedLine],
    max_cents: int = 100000000
) -> List[Candidate]:
    """Top-to-bottom pass: labels whose value sits on the following line."""
    candidates: List[Candidate] = []

    for first, second in zip(lines, lines[1:]):
        if is_group_subtotal_line(first.text) or is_group_subtotal_line(second.text):
            continue
        for rule in SPLIT_LINE_RULES:
            match = rule.match(first.text, second.text)
            if not match:
                continue
            cents = normalize_to_cents(match.group(1))
            if 0 < cents < max_cents:
                _add_unique(candidates, Candidate(
                    cents=cents,
                    priority=rule.priority,
                    rule_label=rule.label,
                    evidence_line=f"{first.text}{SPLIT_LINE_JOINER}{second.text}",
                    line_index=second.index,
                ))
    return candidates


def scan_same_lines(lines: Sequence[NormalizedLine], result: ScanResult) -> ScanResult:
    """Bottom-to-top pass: label and value on the same line."""
    for line in reversed(lines):
        text = line.text
        if is_group_subtotal_line(text):
            logger.debug(f"Line {line.index} rejected as group subtotal: {text!r}")
            continue

        for rule in TOTAL_RULES:
            match = rule.search(text)
            if match:
                cents = normalize_to_cents(match.group(1))
                if cents > 0:
                    _add_unique(result.totals, Candidate(cents, rule.priority, rule.label, text, line.index))

        for rule in SUBTOTAL_RULES:
            match = rule.search(text)
            if match:
                cents = normalize_to_cents(match.group(1))
                if cents > 0:
                    _add_unique(result.subtotals, Candidate(cents, rule.priority, rule.label, text, line.index))

        # Tax is printed once, near the total: first hit from the bottom wins
        if result.tax is None:
            for rule in TAX_RULES:
                match = rule.search(text)
                if match:
                    cents = normalize_to_cents(match.group(1))
                    if cents > 0:
                        result.tax = Candidate(cents, rule.priority, rule.label, text, line.index)
                        break

        for rule in FEE_RULES:
            match = rule.search(text)
            if match:
                cents = abs(normalize_to_cents(match.group(1)))
                candidate = Candidate(cents, rule.priority, rule.label, text, line.index)
                if cents > 0 and not _is_duplicate_adjustment(result.fees, candidate):
                    result.fees.append(candidate)

        for rule in DISCOUNT_RULES:
            match = rule.search(text)
            if match:
                cents = -abs(normalize_to_cents(match.group(1)))
                candidate = Candidate(cents, rule.priority, rule.label, text, line.index)
                if cents < 0 and not _is_duplicate_adjustment(result.discounts, candidate):
                    result.discounts.append(candidate)

    return result


def scan_lines(lines: Sequence[NormalizedLine], max_split_line_cents: int = 100000000) -> ScanResult:
    """
    Collect all candidates from both passes.

    Args:
        lines: Normalized lines of the document.
        max_split_line_cents: Upper bound for split-line values; larger
            numbers after a bare label are account or order numbers.

    Returns:
        ScanResult with every candidate found.
    """
    result = ScanResult(totals=scan_split_lines(lines, max_split_line_cents))
    scan_same_lines(lines, result)

    logger.debug(
        f"Line scan: {len(result.totals)} total, {len(result.subtotals)} subtotal, "
        f"{len(result.fees)} fee, {len(result.discounts)} discount candidates"
    )
    return result


def select_total(candidates: Sequence[Candidate]):
    """
    Pick the winning total candidate.

    Candidates whose evidence is a group subtotal are dropped, the rest are
    ordered by priority, and within a priority the lower line wins.

    Returns:
        Tuple of (winner or None, up to two runner-up candidates).
    """
    surviving = [c for c in candidates if not is_group_subtotal_line(c.evidence_line)]
    if len(surviving) < len(candidates):
        logger.warning(
            f"Dropped {len(candidates) - len(surviving)} total candidate(s) matching group-subtotal rules"
        )
    if not surviving:
        return None, ()

    ranked = sorted(surviving, key=lambda c: (c.priority, -c.line_index))
    winner = ranked[0]
    runners_up = tuple(c for c in ranked[1:] if c != winner)[:2]
    return winner, runners_up


def select_subtotal(candidates: Sequence[Candidate], total_cents: int) -> Optional[Candidate]:
    """
    Pick the subtotal: the largest value not above the total, else the largest.
    """
    if not candidates:
        return None

    eligible = [c for c in candidates if total_cents <= 0 or c.cents <= total_cents]
    pool = eligible or list(candidates)
    return max(pool, key=lambda c: c.cents)
