"""Summarize selected text and keep a persisted, exportable history."""

__version__ = "0.1.0"
