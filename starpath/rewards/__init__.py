"""Idempotent reward ledger."""
