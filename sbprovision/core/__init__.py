"""Core: models, services, engine and use cases. No CLI code."""
