"""
Bank Ledger

In-memory account ledger with per-account serialised deposits and
withdrawals, standard and overdraft withdraw policies, and explicit
flushes to a durable store.
"""

__version__ = "1.0.0"
