"""
Auto-routing policy — may a bot classification skip the human gate?
"""
import random

from app.lifecycle.base import Classification, ConfigSnapshot, RoutingAction, RoutingDecision


# Meeting offers always go through a reviewer, whatever the confidence
ALWAYS_REVIEW = frozenset({Classification.HIGH_QUALITY})


def decide(classification: Classification, confidence: float,
           config: ConfigSnapshot) -> RoutingDecision:
    """Compare the bot's confidence against the category threshold."""
    if confidence is None or not 0.0 <= float(confidence) <= 1.0:
        raise ValueError(f"Confidence must be within [0, 1], got {confidence!r}")

    threshold = config.threshold_for(classification)

    if classification in ALWAYS_REVIEW:
        return RoutingDecision(RoutingAction.REQUIRE_REVIEW, True, threshold)

    if confidence >= threshold:
        return RoutingDecision(RoutingAction.AUTO_SEND, False, threshold)
    return RoutingDecision(RoutingAction.REQUIRE_REVIEW, True, threshold)


def sample_ai_authority(config: ConfigSnapshot, rng=random.random) -> bool:
    """Rollout sample: True when the bot's decision drives this lead."""
    return rng() < config.rollout_percentage
