"""Vertical slices called by the CLI."""
