"""Subprocess and filesystem adapters."""
