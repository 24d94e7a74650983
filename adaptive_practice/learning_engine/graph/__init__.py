"""Prerequisite DAG over topics."""

from adaptive_practice.learning_engine.graph.knowledge_graph import KnowledgeGraph

__all__ = ["KnowledgeGraph"]
