"""
Wallet Ledger

Custodial wallet ledger with investment contracts, kept consistent over a
whole-document remote store using Decimal money and per-collection locking.
"""

__version__ = "1.0.0"
