"""Conversational retrieval assistant for municipal services and local businesses."""

__version__ = "0.1.0"
