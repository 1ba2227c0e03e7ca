"""Flush matrices, layer helpers, and nozzle hardware description."""
