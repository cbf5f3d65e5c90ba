#!/usr/bin/env python3
"""
Cyber Risk Register - Risk Scoring Engine
Maps qualitative probability/impact to a numeric risk score.

The score is weight(p) * weight(i) / 100 * 25 with weights 10..90, which
produces 25..2025 rather than the 1-25 range of a 5x5 matrix. score_band()
bands on the formula's own range.
"""

import math
from typing import Any, Dict

try:
    from .models import Level, Severity
except ImportError:
    from models import Level, Severity


LEVEL_WEIGHTS: Dict[Level, int] = {
    Level.VERY_LOW: 10,
    Level.LOW: 30,
    Level.MEDIUM: 50,
    Level.HIGH: 70,
    Level.VERY_HIGH: 90,
}

# Lowest and highest score the formula can produce
MIN_SCORE = 25
MAX_SCORE = 2025


def level_weight(level: Any) -> int:
    """Numeric weight of a probability/impact level."""
    return LEVEL_WEIGHTS[Level.parse(level)]


def calculate_risk_score(probability: Any, impact: Any) -> int:
    """round(weight(probability) * weight(impact) / 100 * 25), halves up."""
    raw = level_weight(probability) * level_weight(impact) / 100 * 25
    return int(math.floor(raw + 0.5))


def requires_escalation(severity: Any, risk_score: int, threshold: int) -> bool:
    """Critical severity or a score at/above the threshold escalates."""
    return Severity.parse(severity) is Severity.CRITICAL or risk_score >= threshold


def score_band(risk_score: int) -> str:
    """Band a score: critical from High x Very High, high from Medium x High,
    medium from Low x Medium."""
    if risk_score >= 1575:
        return 'critical'
    if risk_score >= 875:
        return 'high'
    if risk_score >= 375:
        return 'medium'
    return 'low'
