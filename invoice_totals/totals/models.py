"""
Totals Data Classes.

Immutable records produced by the totals extraction engine. A value of
zero with no evidence means "not found"; a value backed by Evidence means
it was literally read from the document by the named rule.

Author: ML Engineering Team
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Pattern, Tuple


# Evidence sources, from most to least structural
SOURCE_STACKED = "stacked_format"
SOURCE_LINE_SCAN = "printed_line_scan"
SOURCE_UNIVERSAL = "universal_finder"
SOURCE_TEXT_POSITION = "text_position_search"

# Joins the two physical lines behind a split-line match
SPLIT_LINE_JOINER = " | "


@dataclass(frozen=True)
class PatternRule:
    """
    A labelled, prioritized pattern matched against one normalized line.

    The first capture group of ``pattern`` is the monetary value.
    Lower priority numbers win.
    """
    pattern: Pattern
    label: str
    priority: int = 0

    def search(self, line: str) -> Optional[re.Match]:
        return self.pattern.search(line)

    def rematch(self, evidence_line: str) -> bool:
        """True if the rule still matches a line it produced as evidence."""
        return self.pattern.search(evidence_line) is not None


@dataclass(frozen=True)
class SplitLineRule:
    """
    A rule matching a label on one line and its value on the next.

    ``first`` is matched against the label line, ``second`` against the
    following line; the first capture group of ``second`` is the value.
    """
    first: Pattern
    second: Pattern
    label: str
    priority: int = 0

    def match(self, first_line: str, second_line: str) -> Optional[re.Match]:
        if not self.first.search(first_line):
            return None
        return self.second.search(second_line)

    def rematch(self, evidence_line: str) -> bool:
        parts = evidence_line.split(SPLIT_LINE_JOINER)
        return len(parts) == 2 and self.match(parts[0], parts[1]) is not None


@dataclass(frozen=True)
class Candidate:
    """A tentative monetary match collected during scanning."""
    cents: int
    priority: int
    rule_label: str
    evidence_line: str
    line_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cents': self.cents,
            'priority': self.priority,
            'rule_label': self.rule_label,
            'evidence_line': self.evidence_line,
            'line_index': self.line_index,
        }


@dataclass(frozen=True)
class Evidence:
    """
    Audit record for one accepted field.

    Attributes:
        rule: Label of the rule or format that matched.
        line: The literal line(s) matched against. Split-line and stacked
            matches join their physical lines with `` | ``.
        line_index: 1-based index of the line holding the value.
        cents: The value accepted from this evidence.
        source: Which pipeline stage produced it.
        confidence: "high", "medium" or "low".
        alternatives: Up to two runner-up total candidates.
    """
    rule: str
    line: str
    line_index: int
    cents: int
    source: str = SOURCE_LINE_SCAN
    confidence: str = "high"
    alternatives: Tuple[Candidate, ...] = ()

    @classmethod
    def from_candidate(
        cls,
        candidate: Candidate,
        source: str = SOURCE_LINE_SCAN,
        confidence: str = "high",
        alternatives: Tuple[Candidate, ...] = ()
    ) -> 'Evidence':
        return cls(
            rule=candidate.rule_label,
            line=candidate.evidence_line,
            line_index=candidate.line_index,
            cents=candidate.cents,
            source=source,
            confidence=confidence,
            alternatives=tuple(alternatives),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule': self.rule,
            'line': self.line,
            'line_index': self.line_index,
            'cents': self.cents,
            'source': self.source,
            'confidence': self.confidence,
            'alternatives': [c.to_dict() for c in self.alternatives],
        }


@dataclass(frozen=True)
class TotalsEvidence:
    """Evidence for every field of a Totals result; None means not found."""
    total: Optional[Evidence] = None
    subtotal: Optional[Evidence] = None
    tax: Optional[Evidence] = None
    fees: Tuple[Evidence, ...] = ()
    discounts: Tuple[Evidence, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total.to_dict() if self.total else None,
            'subtotal': self.subtotal.to_dict() if self.subtotal else None,
            'tax': self.tax.to_dict() if self.tax else None,
            'fees': [e.to_dict() for e in self.fees],
            'discounts': [e.to_dict() for e in self.discounts],
        }


@dataclass(frozen=True)
class Totals:
    """
    Monetary totals read from one invoice, in integer cents.

    ``fees_cents`` is never negative and ``discount_cents`` never positive.
    ``warnings`` carries sanity-check findings; they annotate the result
    and never change it.

    Example:
        >>> totals = extract_totals(text)
        >>> totals.total_cents, totals.evidence.total.rule
        (174885, 'INVOICE + TOTAL (split-line)')
    """
    total_cents: int = 0
    subtotal_cents: int = 0
    tax_cents: int = 0
    fees_cents: int = 0
    discount_cents: int = 0
    evidence: TotalsEvidence = field(default_factory=TotalsEvidence)
    warnings: Tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        """Whether a total was read from the document."""
        return self.evidence.total is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_cents': self.total_cents,
            'subtotal_cents': self.subtotal_cents,
            'tax_cents': self.tax_cents,
            'fees_cents': self.fees_cents,
            'discount_cents': self.discount_cents,
            'evidence': self.evidence.to_dict(),
            'warnings': list(self.warnings),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
