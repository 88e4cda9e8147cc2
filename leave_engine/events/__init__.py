"""Outbox consumer API for the external notifier."""
