"""Formatting and validation helpers."""
