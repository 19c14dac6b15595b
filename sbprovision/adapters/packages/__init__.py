"""Package manager adapter."""
