"""Flow network primitives used by the matchers."""
