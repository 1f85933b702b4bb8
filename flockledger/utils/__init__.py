"""Utilities package for the flock ledger."""
