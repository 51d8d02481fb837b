"""
Invoice Totals Engine.

Recovers the vendor identity and the printed monetary totals (subtotal,
tax, fees, discounts, grand total) from unstructured invoice text, with
evidence for every value it reports.

Modules:
    - normalizers: integer-cents parsing and text repair
    - acquisition: direct, layout-aware and OCR text extraction
    - vendor: pattern-scored vendor classification
    - totals: the staged totals extraction engine
    - reconciliation: invoice math and best-total selection
    - pipeline: end-to-end processing of one document

Architecture:
    Document bytes -> Acquisition -> normalized text -> {Vendor, Totals}
                                                       -> Reconciliation
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'normalizers',
    'acquisition',
    'vendor',
    'totals',
    'reconciliation',
    'pipeline',
    'utils'
]
