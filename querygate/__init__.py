"""Declarative SQL query gateway."""

__version__ = "0.1.0"
