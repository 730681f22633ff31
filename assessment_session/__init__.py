"""Timed assessment session engine."""

__version__ = "1.0.0"
