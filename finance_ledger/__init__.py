"""
Finance Ledger - Source Package

The data core behind the monthly finance grid: category trees,
monthly rollups, cell reconciliation, cell clipboard and a local
snapshot cache in front of the remote ledger store.

DESIGN PRINCIPLES:
1. Displayed values are always derived from ledger entries
2. Ledger history is append-only from the grid's point of view
3. The cache may be stale, never fatal
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Ledger Team"
