"""
Tests for the Reward Calculator

Tests cover:
- Per-item XP and SKP
- Accuracy, perfect-score and course completion bonuses
- Bonus exclusivity
- Scope breakdown
- Course reviews and unknown difficulties
"""

from datetime import datetime, timezone

import pytest

from skillstack_app.modules.experience.logics.reward_calculator import compute_rewards
from skillstack_app.modules.experience.schemas import EventItem, LearningEvent
from skillstack_app.modules.experience.services.settings_provider import build_reward_settings


def build_event(difficulties, correct=None, kind='quiz', completion_rate=100.0, categories=None):
    correct = correct if correct is not None else [True] * len(difficulties)
    categories = categories or [('cat-1', 'sub-1', 'main')] * len(difficulties)
    items = tuple(
        EventItem(
            item_id=f'i{index}',
            category_id=category,
            subcategory_id=subcategory,
            category_type=category_type,
            difficulty=difficulty,
            is_correct=ok,
            time_spent_seconds=5,
        )
        for index, (difficulty, ok, (category, subcategory, category_type))
        in enumerate(zip(difficulties, correct, categories))
    )
    return LearningEvent(
        event_id='evt-1',
        user_id='u1',
        kind=kind,
        occurred_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        items=items,
        completion_rate=completion_rate,
    )


@pytest.fixture
def settings():
    return build_reward_settings()


class TestQuizRewards:
    """Quiz XP, SKP and accuracy bonuses."""

    def test_perfect_quiz_scenario(self, settings):
        """All-correct quiz: item XP plus the 100% bonus, plus the perfect SKP bonus."""
        event = build_event(['basic', 'basic', 'intermediate', 'advanced', 'expert'])

        result = compute_rewards(event, settings)

        assert result.item_xp == 120
        assert result.bonus_xp == 30
        assert result.xp == 150
        assert result.skp == 5 * 10 + 50
        assert result.accuracy == 100.0
        assert result.bonuses == {
            'accuracy_100': {'xp': 30, 'skp': 0},
            'perfect_bonus': {'xp': 0, 'skp': 50},
        }

    def test_perfect_quiz_never_gets_80_bonus(self, settings):
        result = compute_rewards(build_event(['basic'] * 10), settings)

        assert 'accuracy_100' in result.bonuses
        assert 'accuracy_80' not in result.bonuses

    def test_exactly_80_percent(self, settings):
        event = build_event(['basic'] * 5, correct=[True, True, True, True, False])

        result = compute_rewards(event, settings)

        assert result.bonuses == {'accuracy_80': {'xp': 20, 'skp': 0}}
        assert result.xp == 4 * 10 + 20
        assert result.skp == 4 * 10 + 2
        assert result.accuracy == 80.0

    def test_below_80_percent_no_bonus(self, settings):
        event = build_event(['basic'] * 5, correct=[True, True, True, False, False])

        result = compute_rewards(event, settings)

        assert result.bonuses == {}
        assert result.xp == 3 * 10

    def test_incorrect_answer_earns_skp_but_no_xp(self, settings):
        result = compute_rewards(build_event(['expert'], correct=[False]), settings)

        assert result.item_xp == 0
        assert result.xp == 0
        assert result.skp == 2
        assert result.overall_delta.quiz_xp == 0
        assert result.overall_delta.answered == 1
        assert result.overall_delta.correct == 0

    def test_calculation_is_deterministic(self, settings):
        event = build_event(['basic', 'advanced'], correct=[True, False])

        assert compute_rewards(event, settings) == compute_rewards(event, settings)


class TestCourseRewards:
    """Course XP and completion bonus."""

    def test_completed_course_gets_completion_bonus_only(self, settings):
        event = build_event(['basic', 'basic'], kind='course', completion_rate=100)

        result = compute_rewards(event, settings)

        assert result.bonuses == {'course_completion': {'xp': 50, 'skp': 0}}
        assert result.xp == 15 + 15 + 50
        assert result.skp == 20

    def test_partial_course_no_completion_bonus(self, settings):
        event = build_event(['intermediate'], kind='course', completion_rate=99.5)

        result = compute_rewards(event, settings)

        assert result.bonuses == {}
        assert result.xp == 25

    def test_wrong_confirmation_answer_earns_no_course_xp(self, settings):
        event = build_event(['advanced'], correct=[False], kind='course', completion_rate=100)

        result = compute_rewards(event, settings)

        assert result.item_xp == 0
        assert result.overall_delta.course_xp == 0
        assert result.xp == 50

    def test_course_review_earns_nothing(self, settings):
        event = build_event(['expert', 'expert'], kind='course', completion_rate=100)

        result = compute_rewards(event, settings, is_first_completion=False)

        assert result.xp == 0
        assert result.skp == 0
        assert result.bonuses == {}
        assert result.is_first_completion is False
        assert result.overall_delta.answered == 0
        assert result.overall_delta.correct == 0
        assert result.overall_delta.sessions == 1
        assert all(delta.answered == 0 for delta in result.scope_deltas)


class TestScopeBreakdown:
    """Item rewards reach category and subcategory scopes; bonuses stay overall."""

    def test_bonus_only_on_overall_scope(self, settings):
        event = build_event(['basic', 'intermediate'])

        result = compute_rewards(event, settings)
        deltas = {(delta.scope_type, delta.scope_key): delta for delta in result.scope_deltas}

        assert deltas[('overall', 'overall')].xp == 10 + 20 + 30
        assert deltas[('overall', 'overall')].bonus_xp == 30
        assert deltas[('category', 'cat-1')].xp == 30
        assert deltas[('category', 'cat-1')].bonus_xp == 0
        assert deltas[('subcategory', 'sub-1')].xp == 30
        assert deltas[('subcategory', 'sub-1')].parent_key == 'cat-1'

    def test_items_split_across_categories(self, settings):
        event = build_event(
            ['basic', 'advanced', 'expert'],
            correct=[True, False, True],
            categories=[
                ('cat-1', 'sub-1', 'main'),
                ('cat-2', 'sub-2', 'main'),
                ('ind-1', 'sub-3', 'industry'),
            ],
        )

        result = compute_rewards(event, settings)
        deltas = {(delta.scope_type, delta.scope_key): delta for delta in result.scope_deltas}

        assert len(result.scope_deltas) == 7
        assert deltas[('category', 'cat-2')].xp == 0
        assert deltas[('category', 'cat-2')].skp == 2
        assert deltas[('category', 'cat-2')].correct == 0
        assert deltas[('category', 'cat-2')].answered == 1
        assert deltas[('industry_category', 'ind-1')].skp == 10
        assert deltas[('subcategory', 'sub-3')].parent_key == 'ind-1'

    def test_overall_xp_equals_items_plus_bonus(self, settings):
        event = build_event(['basic', 'expert', 'advanced'], correct=[True, True, False])

        result = compute_rewards(event, settings)

        assert result.overall_delta.xp == result.item_xp + result.bonus_xp
        assert result.overall_delta.skp == result.item_skp + result.bonus_skp


class TestSettingsEdgeCases:

    def test_unknown_difficulty_uses_basic_rate(self, settings):
        result = compute_rewards(build_event(['legendary', 'basic']), settings)

        assert result.item_xp == 20
        assert result.unknown_difficulties == ['legendary']

    def test_fractional_rates_truncated(self):
        settings = build_reward_settings({'quiz_xp': {'basic': 10.9}, 'skp': {'correct': 3.7}})

        result = compute_rewards(build_event(['basic', 'basic'], correct=[True, False]), settings)

        assert result.item_xp == 10
        assert result.skp == 3 + 2
        assert isinstance(result.xp, int)
