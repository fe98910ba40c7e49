"""Deterministic confidence scoring for section candidates"""
import math

from .models import SectionCandidate


def _round2(value: float) -> float:
    # Half-up rounding, so 0.125 -> 0.13 rather than banker's 0.12
    return math.floor(value * 100 + 0.5) / 100


def calculate_confidence(candidate: SectionCandidate, total_candidates: int) -> float:
    """
    Score a candidate in [0, 1] from structural signals.

    Args:
        candidate: Section window produced by the section finder
        total_candidates: Number of windows found for the same field

    Returns:
        Confidence rounded to two decimals
    """
    score = min(len(candidate.matched_keywords) / 4, 1) * 0.4

    if candidate.is_title:
        score += 0.25

    if len(candidate.text) > 200:
        score += 0.15
    elif len(candidate.text) > 50:
        score += 0.08

    # Fewer competing windows, more trust
    if total_candidates == 1:
        score += 0.2
    elif total_candidates == 2:
        score += 0.1
    elif total_candidates <= 3:
        score += 0.05

    return max(0.0, min(_round2(score), 1.0))


def has_conflict(confidence_a: float, confidence_b: float, threshold: float = 0.15) -> bool:
    """True when two candidates are too close to call."""
    return abs(confidence_a - confidence_b) < threshold


def apply_penalty(confidence: float, penalty: float) -> float:
    """Lower a confidence, floored at 0"""
    return max(0.0, _round2(confidence - penalty))
