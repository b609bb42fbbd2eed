"""Mosque Ledger: bookkeeping, reporting and sync for a mosque treasury."""

__version__ = "1.0.0"
