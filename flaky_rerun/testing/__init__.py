"""Helpers for testing code that consumes run reports."""
