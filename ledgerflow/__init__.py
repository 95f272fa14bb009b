"""
LedgerFlow - Source Package

A personal multi-account ledger engine. Presentation layers call into
`LedgerEngine` and render what it returns.

DESIGN PRINCIPLES:
1. One writer owns every balance change
2. Decline bad input, never half-apply it
3. Posting recurring charges is idempotent
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "LedgerFlow Team"
