"""GraphSpace: compile two-variable expressions and sample them into surfaces."""

__version__ = "0.1.0"
