"""
Totals Extraction Module for Invoice Totals Engine.

This module provides:
    - Rule tables and the group-subtotal line classifier
    - Stacked-format detectors
    - Split-line and same-line candidate scanning
    - The universal finder and last-resort text position search
    - Post-extraction sanity checks

Author: ML Engineering Team
"""

from .engine import TotalsExtractor, extract_totals
from .models import Candidate, Evidence, PatternRule, SplitLineRule, Totals, TotalsEvidence
from .rules import LineClass, classify_line, is_group_subtotal_line, mask_group_subtotal_lines
from .stacked import StackedMatch, detect_stacked_totals
from .universal import UniversalTotalFinder, find_total_near_last_label
from .validators import TotalsValidator, ValidationResult

__all__ = [
    'TotalsExtractor',
    'extract_totals',
    'Candidate',
    'Evidence',
    'PatternRule',
    'SplitLineRule',
    'Totals',
    'TotalsEvidence',
    'LineClass',
    'classify_line',
    'is_group_subtotal_line',
    'mask_group_subtotal_lines',
    'StackedMatch',
    'detect_stacked_totals',
    'UniversalTotalFinder',
    'find_total_near_last_label',
    'TotalsValidator',
    'ValidationResult',
]
