"""Metadata repository export/import engine."""

__version__ = "1.0.0"
