"""Small generic helpers."""
