"""Matching and per-layer ordering algorithms."""
