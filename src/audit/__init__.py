"""Audit trail: event bus, operational log, and the approval audit log."""
