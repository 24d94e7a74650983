"""
BKT Core Math - Pure functions for Bayesian Knowledge Tracing.

Implements the standard 4-parameter BKT model:
- L0: Prior probability of mastery (p_init)
- T: Probability of learning (p_transit)
- S: Probability of slip (learned but answers wrong)
- G: Probability of guess (unlearned but answers correct)

Posterior mastery is always clamped into [eps, 1 - eps] so that no sequence
of observations can pin a learner at exactly 0 or 1.
"""

from dataclasses import dataclass
from typing import Tuple

from adaptive_practice.learning_engine.config import (
    BKT_MAX_PROB,
    BKT_MIN_PROB,
    BKT_STABILITY_EPSILON,
)


@dataclass(frozen=True)
class BKTParams:
    """Per-topic BKT parameters, each in the open interval (0, 1)."""

    p_init: float
    p_transit: float
    p_guess: float
    p_slip: float

    def to_dict(self) -> dict:
        return {
            "p_init": self.p_init,
            "p_transit": self.p_transit,
            "p_guess": self.p_guess,
            "p_slip": self.p_slip,
        }


def clamp_probability(p: float) -> float:
    """
    Clamp a probability value to valid range [BKT_MIN_PROB, BKT_MAX_PROB].

    Args:
        p: Probability value

    Returns:
        Clamped probability in valid range
    """
    return max(BKT_MIN_PROB.value, min(BKT_MAX_PROB.value, p))


def predict_correct(p_L: float, p_S: float, p_G: float) -> float:
    """
    Predict probability of correct answer given current mastery state.

    Formula:
        P(Correct) = P(L) * (1 - P(S)) + (1 - P(L)) * P(G)
    """
    return p_L * (1.0 - p_S) + (1.0 - p_L) * p_G


def posterior_given_obs(p_L: float, correct: bool, p_S: float, p_G: float) -> float:
    """
    Update mastery probability given an observation (Bayesian update).

    Formulas:
        P(L | Correct) = [P(L) * (1 - P(S))] / [P(L) * (1 - P(S)) + (1 - P(L)) * P(G)]
        P(L | Wrong)   = [P(L) * P(S)] / [P(L) * P(S) + (1 - P(L)) * (1 - P(G))]

    Args:
        p_L: Prior probability of mastery
        correct: Whether the answer was correct
        p_S: Probability of slip
        p_G: Probability of guess

    Returns:
        Posterior probability of mastery given the observation (unclamped)
    """
    if correct:
        numerator = p_L * (1.0 - p_S)
        denominator = numerator + (1.0 - p_L) * p_G
    else:
        numerator = p_L * p_S
        denominator = numerator + (1.0 - p_L) * (1.0 - p_G)

    # Guard against division by zero
    if denominator < BKT_STABILITY_EPSILON.value:
        return p_L

    return numerator / denominator


def apply_learning_transition(p_L_given_obs: float, p_T: float) -> float:
    """
    Apply learning transition to get next mastery state.

    Formula:
        P(L_next) = P(L | obs) + (1 - P(L | obs)) * P(T)
    """
    return p_L_given_obs + (1.0 - p_L_given_obs) * p_T


def update_mastery(p_L_current: float, correct: bool, params: BKTParams) -> Tuple[float, dict]:
    """
    Complete BKT update: observation + learning transition + clamp.

    Args:
        p_L_current: Current mastery probability (``params.p_init`` on the first observation)
        correct: Whether the answer was correct
        params: Topic BKT parameters

    Returns:
        Tuple of (new_mastery, metadata_dict)
        - new_mastery: Updated mastery probability in [eps, 1 - eps]
        - metadata: Dict with intermediate values for debugging/logging
    """
    p_correct_predicted = predict_correct(p_L_current, params.p_slip, params.p_guess)
    p_L_given_obs = posterior_given_obs(p_L_current, correct, params.p_slip, params.p_guess)
    p_L_next = clamp_probability(apply_learning_transition(p_L_given_obs, params.p_transit))

    metadata = {
        "p_L_prior": p_L_current,
        "p_correct_predicted": p_correct_predicted,
        "p_L_posterior": p_L_given_obs,
        "p_L_next": p_L_next,
        "observation": "correct" if correct else "wrong",
        "params_used": params.to_dict(),
    }

    return p_L_next, metadata


def validate_bkt_params(params: BKTParams) -> Tuple[bool, str]:
    """
    Validate BKT parameters for conceptual soundness.

    Checks:
    1. All parameters in (0, 1)
    2. P(Correct | Learned) > P(Correct | Unlearned), i.e. (1 - S) > G

    Returns:
        Tuple of (is_valid, error_message)
    """
    for name, value in params.to_dict().items():
        if not (0.0 < value < 1.0):
            return False, f"{name} must be in (0, 1), got {value}"

    p_correct_learned = 1.0 - params.p_slip
    p_correct_unlearned = params.p_guess
    if p_correct_learned <= p_correct_unlearned:
        return False, (
            f"Learned performance (1-S={p_correct_learned:.3f}) must be better than "
            f"unlearned performance (G={p_correct_unlearned:.3f})"
        )

    return True, ""
