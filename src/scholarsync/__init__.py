"""Bibliometric aggregation for researcher publication records."""

__version__ = "0.3.0"
