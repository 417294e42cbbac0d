"""Shared helpers: caching and the error taxonomy."""
