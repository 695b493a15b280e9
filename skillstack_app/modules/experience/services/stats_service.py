"""
Stats Service
Read-only views over the scope aggregates and daily rollups.
"""
from datetime import date, timedelta
from typing import Dict, Optional

from flask import current_app

from skillstack_app.models import DailyRollup, ScopeAggregate

from ..logics.level_logic import (
    calculate_level,
    calculate_level_progress,
    calculate_next_level_xp,
    threshold_for_scope,
)
from ..schemas import (
    OVERALL_SCOPE_KEY,
    SCOPE_CATEGORY,
    SCOPE_INDUSTRY_CATEGORY,
    SCOPE_OVERALL,
    SCOPE_SUBCATEGORY,
    DailyActivityDTO,
    ScopeStatsDTO,
    UserStatsDTO,
)
from .settings_provider import get_settings_provider
from .streak_engine import StreakEngine, utc_today


class StatsService:
    """Aggregated XP/SKP statistics for a user."""

    @staticmethod
    def _scope_dto(aggregate: Optional[ScopeAggregate], thresholds, scope_type=SCOPE_OVERALL,
                   scope_key=OVERALL_SCOPE_KEY) -> ScopeStatsDTO:
        if aggregate is not None:
            scope_type = aggregate.scope_type
        threshold = threshold_for_scope(scope_type, thresholds)
        if aggregate is None:
            return ScopeStatsDTO(
                scope_type=scope_type, scope_key=scope_key, parent_key=None,
                total_xp=0, quiz_xp=0, course_xp=0, bonus_xp=0, total_skp=0, streak_skp=0,
                sessions_completed=0, correct_count=0, answered_count=0, accuracy=0.0,
                current_level=1,
                next_level_xp=calculate_next_level_xp(0, threshold),
                level_progress_percent=0.0,
            )

        return ScopeStatsDTO(
            scope_type=aggregate.scope_type,
            scope_key=aggregate.scope_key,
            parent_key=aggregate.parent_key,
            total_xp=aggregate.total_xp,
            quiz_xp=aggregate.quiz_xp,
            course_xp=aggregate.course_xp,
            bonus_xp=aggregate.bonus_xp,
            total_skp=aggregate.total_skp,
            streak_skp=aggregate.streak_skp,
            sessions_completed=aggregate.sessions_completed,
            correct_count=aggregate.correct_count,
            answered_count=aggregate.answered_count,
            accuracy=aggregate.accuracy,
            # Level follows the thresholds in force now, not when the row was last written
            current_level=calculate_level(aggregate.total_xp, threshold),
            next_level_xp=calculate_next_level_xp(aggregate.total_xp, threshold),
            level_progress_percent=calculate_level_progress(aggregate.total_xp, threshold),
        )

    @staticmethod
    def get_overall_totals(user_id: str) -> Dict[str, object]:
        """Compact overall totals, as returned after an ingest."""
        thresholds = get_settings_provider().get_settings().level_thresholds
        aggregate = ScopeAggregate.query.filter_by(
            user_id=user_id, scope_type=SCOPE_OVERALL, scope_key=OVERALL_SCOPE_KEY
        ).first()
        dto = StatsService._scope_dto(aggregate, thresholds)
        return {
            'total_xp': dto.total_xp,
            'total_skp': dto.total_skp,
            'current_level': dto.current_level,
            'next_level_xp': dto.next_level_xp,
            'sessions_completed': dto.sessions_completed,
            'accuracy': dto.accuracy,
        }

    @staticmethod
    def get_user_stats(user_id: str, today: Optional[date] = None,
                       recent_days: Optional[int] = None) -> UserStatsDTO:
        """
        Overall, per-category and per-subcategory totals plus recent daily activity.

        Categories and subcategories are ordered by total XP, highest first.
        ``recent_activity`` covers the last ``recent_days`` days (newest first).
        """
        today = today or utc_today()
        if recent_days is None:
            recent_days = int(current_app.config.get('RECENT_ACTIVITY_DAYS', 30))
        thresholds = get_settings_provider().get_settings().level_thresholds

        aggregates = ScopeAggregate.query.filter_by(user_id=user_id).order_by(
            ScopeAggregate.total_xp.desc(), ScopeAggregate.scope_key
        ).all()

        overall = None
        categories = []
        subcategories = []
        for aggregate in aggregates:
            if aggregate.scope_type == SCOPE_OVERALL:
                overall = aggregate
            elif aggregate.scope_type in (SCOPE_CATEGORY, SCOPE_INDUSTRY_CATEGORY):
                categories.append(StatsService._scope_dto(aggregate, thresholds))
            elif aggregate.scope_type == SCOPE_SUBCATEGORY:
                subcategories.append(StatsService._scope_dto(aggregate, thresholds))

        since = today - timedelta(days=recent_days - 1) if recent_days > 0 else today
        rollups = DailyRollup.query.filter(
            DailyRollup.user_id == user_id,
            DailyRollup.activity_date >= since,
            DailyRollup.activity_date <= today,
        ).order_by(DailyRollup.activity_date.desc()).all()

        recent_activity = [
            DailyActivityDTO(
                date=rollup.activity_date.isoformat(),
                xp_earned=rollup.xp_earned,
                skp_earned=rollup.skp_earned,
                sessions_count=rollup.sessions_count,
                quiz_sessions=rollup.quiz_sessions,
                course_sessions=rollup.course_sessions,
                time_spent_seconds=rollup.time_spent_seconds,
            )
            for rollup in rollups
        ]

        return UserStatsDTO(
            user_id=user_id,
            overall=StatsService._scope_dto(overall, thresholds),
            categories=categories,
            subcategories=subcategories,
            recent_activity=recent_activity,
            learning_streak=StreakEngine.current_streak(user_id, today=today, allow_grace_day=True),
        )
