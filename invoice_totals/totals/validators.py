"""
Totals Sanity Checks.

Post-extraction checks on a Totals result. Findings are reported as
warnings and logged; they never change or block the extracted values.

Author: ML Engineering Team
"""

from typing import Any, Dict, List

from config import get_config
from invoice_totals.utils.helpers import format_cents
from invoice_totals.utils.logger import get_logger
from .models import Totals
from .rules import LineClass, classify_line

logger = get_logger(__name__)


class ValidationResult:
    """
    Contains the result of validation checks.

    Attributes:
        is_valid: False once any error has been recorded
        errors: List of error messages
        warnings: List of warning messages
    """

    def __init__(self):
        self.is_valid = True
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def add_error(self, message: str) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(message)

    @property
    def messages(self) -> List[str]:
        return self.errors + self.warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': self.errors,
            'warnings': self.warnings,
        }


class TotalsValidator:
    """
    Sanity checks for extracted totals.

    Checks for:
        - A nonzero total
        - Total not smaller than subtotal
        - Total inside a plausible monetary range
        - Total evidence not being a group subtotal

    Example:
        >>> result = TotalsValidator().validate(totals)
        >>> result.warnings
        ['Total $50.00 is smaller than subtotal $60.00']
    """

    def __init__(self) -> None:
        self.min_total_cents = get_config("totals.sanity.min_total_cents", 100)
        self.max_total_cents = get_config("totals.sanity.max_total_cents", 1000000000)

    def validate(self, totals: Totals) -> ValidationResult:
        result = ValidationResult()

        if totals.total_cents == 0:
            result.add_warning("No total found")
            return result

        if totals.subtotal_cents and totals.total_cents < totals.subtotal_cents:
            result.add_warning(
                f"Total {format_cents(totals.total_cents)} is smaller than "
                f"subtotal {format_cents(totals.subtotal_cents)}"
            )

        if not self.min_total_cents <= totals.total_cents <= self.max_total_cents:
            result.add_warning(
                f"Total {format_cents(totals.total_cents)} outside plausible range "
                f"{format_cents(self.min_total_cents)} - {format_cents(self.max_total_cents)}"
            )

        evidence = totals.evidence.total
        if evidence is not None and classify_line(evidence.line) is LineClass.GROUP_SUBTOTAL:
            result.add_error(f"Total evidence is a group subtotal line: {evidence.line!r}")

        for message in result.messages:
            logger.warning(f"Sanity check: {message}")

        return result
