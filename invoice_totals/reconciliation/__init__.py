"""
Reconciliation Module for Invoice Totals Engine.

This module provides:
    - Invoice math from externally parsed line items
    - Extracted vs computed total reconciliation
    - Best-total selection across sources

Author: ML Engineering Team
"""

from .reconciler import (
    InvoiceMath,
    ReconciliationResult,
    TotalSelection,
    compute_invoice_math,
    line_item_cents,
    reconcile_totals,
    select_best_total,
)

__all__ = [
    'InvoiceMath',
    'ReconciliationResult',
    'TotalSelection',
    'compute_invoice_math',
    'line_item_cents',
    'reconcile_totals',
    'select_best_total',
]
