"""Schedulers that walk a print layer by layer."""
