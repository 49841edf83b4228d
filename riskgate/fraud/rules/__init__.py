"""Fraud detection rules package.

Exports DEFAULT_DETECTORS, the fixed detector list the engine runs.
"""

from .amount import amount_detector
from .base import Detector, DetectorResult, Finding, Rule, RuleContext
from .behavioral import behavioral_detector
from .velocity import velocity_detector

# Detector order only affects the order signals are reported in
DEFAULT_DETECTORS: tuple[Detector, ...] = (
    velocity_detector,
    amount_detector,
    behavioral_detector,
)

__all__ = [
    "DEFAULT_DETECTORS",
    "Detector",
    "DetectorResult",
    "Finding",
    "Rule",
    "RuleContext",
    "amount_detector",
    "behavioral_detector",
    "velocity_detector",
]
