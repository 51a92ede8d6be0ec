"""Translate document-database commands and filters into SQL for a JSON document store."""

__version__ = "0.1.0"