"""
Level Logic - Pure functions for level and accuracy computation.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.
"""
from typing import Dict, Mapping

from ..schemas import (
    SCOPE_CATEGORY,
    SCOPE_INDUSTRY_CATEGORY,
    SCOPE_OVERALL,
    SCOPE_SUBCATEGORY,
)

# Which level_thresholds entry applies to each scope type
SCOPE_THRESHOLD_KEYS: Dict[str, str] = {
    SCOPE_OVERALL: 'overall',
    SCOPE_CATEGORY: 'main_category',
    SCOPE_INDUSTRY_CATEGORY: 'industry_category',
    SCOPE_SUBCATEGORY: 'industry_subcategory',
}


def threshold_for_scope(scope_type: str, thresholds: Mapping[str, float]) -> int:
    """XP per level for ``scope_type``; unknown scope types use the overall threshold."""
    key = SCOPE_THRESHOLD_KEYS.get(scope_type, 'overall')
    return int(thresholds.get(key) or thresholds.get('overall') or 0)


def calculate_level(xp: int, threshold: int) -> int:
    """
    Level reached with ``xp`` experience: ``floor(xp / threshold) + 1``.

    Examples:
        >>> calculate_level(0, 1000)
        1
        >>> calculate_level(2500, 1000)
        3
    """
    if threshold <= 0 or xp <= 0:
        return 1
    return xp // threshold + 1


def calculate_next_level_xp(xp: int, threshold: int) -> int:
    """XP still missing before the next level is reached."""
    if threshold <= 0:
        return 0
    xp = max(xp, 0)
    return (xp // threshold) * threshold + threshold - xp


def calculate_level_progress(xp: int, threshold: int) -> float:
    """Percentage of the current level already earned, 0-100 with two decimals."""
    if threshold <= 0:
        return 0.0
    xp = max(xp, 0)
    return round((xp % threshold) * 100 / threshold, 2)


def calculate_accuracy(correct: int, answered: int) -> float:
    """Accuracy in percent, clamped to [0, 100]. Zero when nothing was answered."""
    if answered <= 0:
        return 0.0
    accuracy = round(correct * 100 / answered, 2)
    return min(max(accuracy, 0.0), 100.0)
