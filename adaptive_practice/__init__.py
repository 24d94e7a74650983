"""Adaptive knowledge tracing and practice scheduling engine."""

__version__ = "0.1.0"
