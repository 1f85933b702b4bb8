"""Tests for the flock ledger."""
