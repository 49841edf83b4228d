"""Score-to-action thresholds.

Actions are configured independently of the scorer's risk levels
(``FraudConfig.decision`` vs ``FraudConfig.scoring``), even though the default
thresholds coincide.
"""

from .config import DecisionThresholds, default_config
from .models import Action


def decide(score: int, thresholds: DecisionThresholds | None = None) -> Action:
    """Map a risk score to the enforcement action."""
    t = thresholds or default_config.decision
    if score >= t.block_from:
        return Action.BLOCK
    if score >= t.review_from:
        return Action.REVIEW
    if score >= t.challenge_from:
        return Action.CHALLENGE
    return Action.ALLOW
