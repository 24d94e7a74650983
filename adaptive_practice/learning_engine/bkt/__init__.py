"""Bayesian Knowledge Tracing (BKT) mastery estimation."""

from adaptive_practice.learning_engine.bkt.core import (
    BKTParams,
    clamp_probability,
    update_mastery,
    validate_bkt_params,
)

__all__ = ["BKTParams", "clamp_probability", "update_mastery", "validate_bkt_params"]
