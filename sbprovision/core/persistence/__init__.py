"""Persistence helpers: on-disk writes that survive a crash."""
