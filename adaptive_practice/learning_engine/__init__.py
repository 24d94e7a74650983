"""Adaptive learning engine: mastery tracing, review scheduling and next-item selection."""
