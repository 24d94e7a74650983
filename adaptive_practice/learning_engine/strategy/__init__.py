"""Weighted multi-strategy next-topic selection."""

from adaptive_practice.learning_engine.strategy.selector import SelectorConfig, StrategySelector

__all__ = ["SelectorConfig", "StrategySelector"]
