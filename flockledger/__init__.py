"""Flock Ledger: poultry cycle lifecycle and sales reconciliation ledger."""

__version__ = "0.1.0"
