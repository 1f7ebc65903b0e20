"""Persistent memory and context retrieval for coding-agent sessions."""

__version__ = "0.1.0"
