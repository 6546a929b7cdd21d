"""Batch importer for marketplace orders."""

__version__ = "0.1.0"
