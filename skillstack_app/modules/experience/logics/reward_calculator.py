"""
Reward Calculator - Pure functions mapping a LearningEvent to XP and SKP.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.

Rules:
    - a correct item earns the XP rate of its difficulty for the event kind
      (unknown difficulty: the ``basic`` rate, logged as a data-quality warning);
      an incorrect item earns no XP
    - every item earns ``skp.correct`` or ``skp.incorrect``
    - once per quiz: 100% accuracy earns ``bonus_xp.accuracy_100`` plus
      ``skp.perfect_bonus``; otherwise 80% or better earns ``bonus_xp.accuracy_80``
    - once per course session completed at 100%: ``bonus_xp.course_completion``
    - a repeated completion of the same course session earns nothing and its
      items are not counted as answered again

All amounts are truncated to integers. Item rewards go to the item's
category and subcategory scopes; event-level bonuses only to the overall scope.
"""
import logging
from collections import OrderedDict
from typing import Dict, List, Tuple

from ..schemas import (
    CATEGORY_TYPE_INDUSTRY,
    EVENT_KIND_COURSE,
    EVENT_KIND_QUIZ,
    OVERALL_SCOPE_KEY,
    SCOPE_CATEGORY,
    SCOPE_INDUSTRY_CATEGORY,
    SCOPE_OVERALL,
    SCOPE_SUBCATEGORY,
    EventItem,
    LearningEvent,
    RewardResult,
    RewardSettings,
    ScopeDelta,
)
from .level_logic import calculate_accuracy

logger = logging.getLogger(__name__)

ACCURACY_BONUS_THRESHOLD = 80


def item_xp(item: EventItem, kind: str, settings: RewardSettings) -> Tuple[int, bool]:
    """XP for one item and whether its difficulty was recognized."""
    rates = settings.xp_rates(kind)
    if item.difficulty in rates:
        return int(rates[item.difficulty]), True
    return int(rates.get('basic', 0)), False


def item_skp(item: EventItem, settings: RewardSettings) -> int:
    key = 'correct' if item.is_correct else 'incorrect'
    return int(settings.skp.get(key, 0))


def compute_bonuses(event: LearningEvent, settings: RewardSettings) -> Dict[str, Dict[str, int]]:
    """Event-level bonuses, keyed by bonus name, each as ``{'xp': n, 'skp': m}``."""
    bonuses: Dict[str, Dict[str, int]] = {}
    correct, answered = event.correct_count, event.answered_count

    if event.kind == EVENT_KIND_QUIZ and answered > 0:
        if correct == answered:
            bonuses['accuracy_100'] = {'xp': int(settings.bonus_xp.get('accuracy_100', 0)), 'skp': 0}
            bonuses['perfect_bonus'] = {'xp': 0, 'skp': int(settings.skp.get('perfect_bonus', 0))}
        elif correct * 100 >= ACCURACY_BONUS_THRESHOLD * answered:
            bonuses['accuracy_80'] = {'xp': int(settings.bonus_xp.get('accuracy_80', 0)), 'skp': 0}

    if event.kind == EVENT_KIND_COURSE and event.completion_rate == 100:
        bonuses['course_completion'] = {'xp': int(settings.bonus_xp.get('course_completion', 0)), 'skp': 0}

    return bonuses


def compute_rewards(
    event: LearningEvent,
    settings: RewardSettings,
    is_first_completion: bool = True
) -> RewardResult:
    """
    Compute every reward ``event`` earns under ``settings``.

    Deterministic and side-effect free, so it is safe to call again on retry.

    Args:
        event: Normalized learning event.
        settings: Reward constants snapshot.
        is_first_completion: False when a course session is being completed
            again; such reviews still count as activity but earn nothing.

    Returns:
        RewardResult with totals, bonuses and one ScopeDelta per touched scope.
    """
    earns = event.kind != EVENT_KIND_COURSE or is_first_completion
    unknown: List[str] = []

    overall = ScopeDelta(scope_type=SCOPE_OVERALL, scope_key=OVERALL_SCOPE_KEY)
    scopes: "OrderedDict[Tuple[str, str], ScopeDelta]" = OrderedDict()

    for item in event.items:
        xp, recognized = item_xp(item, event.kind, settings)
        if not recognized and item.difficulty not in unknown:
            unknown.append(item.difficulty)
        if not item.is_correct:
            xp = 0
        skp = item_skp(item, settings)
        if not earns:
            xp = skp = 0

        for delta in _item_scopes(item, scopes):
            _add_item(delta, event.kind, xp, skp, item.is_correct, count_answer=earns)
        _add_item(overall, event.kind, xp, skp, item.is_correct, count_answer=earns)

    if unknown:
        logger.warning(
            "Unknown difficulty %s in event %s (user %s), using the basic rate",
            ", ".join(repr(label) for label in unknown), event.event_id, event.user_id
        )

    item_xp_total, item_skp_total = overall.xp, overall.skp
    bonuses = compute_bonuses(event, settings) if earns else {}
    bonus_xp = sum(bonus['xp'] for bonus in bonuses.values())
    bonus_skp = sum(bonus['skp'] for bonus in bonuses.values())

    overall.xp += bonus_xp
    overall.bonus_xp += bonus_xp
    overall.skp += bonus_skp

    return RewardResult(
        xp=overall.xp,
        skp=overall.skp,
        item_xp=item_xp_total,
        item_skp=item_skp_total,
        bonus_xp=bonus_xp,
        bonus_skp=bonus_skp,
        bonuses=bonuses,
        scope_deltas=[overall] + list(scopes.values()),
        accuracy=calculate_accuracy(event.correct_count, event.answered_count),
        correct_count=event.correct_count,
        answered_count=event.answered_count,
        is_first_completion=is_first_completion,
        unknown_difficulties=unknown,
    )


def _item_scopes(item: EventItem, scopes: "OrderedDict[Tuple[str, str], ScopeDelta]") -> List[ScopeDelta]:
    category_scope = SCOPE_INDUSTRY_CATEGORY if item.category_type == CATEGORY_TYPE_INDUSTRY else SCOPE_CATEGORY
    category = scopes.setdefault(
        (category_scope, item.category_id),
        ScopeDelta(scope_type=category_scope, scope_key=item.category_id),
    )
    subcategory = scopes.setdefault(
        (SCOPE_SUBCATEGORY, item.subcategory_id),
        ScopeDelta(scope_type=SCOPE_SUBCATEGORY, scope_key=item.subcategory_id, parent_key=item.category_id),
    )
    return [category, subcategory]


def _add_item(delta: ScopeDelta, kind: str, xp: int, skp: int, is_correct: bool,
              count_answer: bool = True) -> None:
    delta.xp += xp
    delta.skp += skp
    if kind == EVENT_KIND_COURSE:
        delta.course_xp += xp
    else:
        delta.quiz_xp += xp
    if not count_answer:
        return
    delta.answered += 1
    if is_correct:
        delta.correct += 1
