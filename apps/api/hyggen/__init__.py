"""Authoritative session server for a shared real-time room."""

__version__ = "0.1.0"
