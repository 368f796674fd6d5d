"""Reconciliation: compare, classify, transform, deduplicate, and commit reviewed extractions."""
