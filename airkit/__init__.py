"""Contextual structured logging, log ids and a bounded connection pool."""

__version__ = "0.1.0"