"""Wrong-answer frequency ledger."""

from adaptive_practice.learning_engine.mistakes.ledger import NO_MISTAKES_TEXT, MistakeLedger

__all__ = ["MistakeLedger", "NO_MISTAKES_TEXT"]
