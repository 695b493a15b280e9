"""
Aggregate Updater
Applies reward deltas to the scope aggregates and the daily rollup.

Nothing here commits: every method runs inside the caller's transaction so
the ledger row and all aggregate rows become visible together or not at all.
"""
from datetime import date, datetime, timezone
from typing import Iterable, Mapping, Optional

from skillstack_app.extensions import db
from skillstack_app.models import DailyRollup, ScopeAggregate

from ..logics.level_logic import calculate_accuracy, calculate_level, threshold_for_scope
from ..schemas import EVENT_KIND_COURSE, OVERALL_SCOPE_KEY, SCOPE_OVERALL, ScopeDelta

_COUNTER_FIELDS = (
    'total_xp', 'quiz_xp', 'course_xp', 'bonus_xp', 'total_skp', 'streak_skp',
    'sessions_completed', 'correct_count', 'answered_count',
)


class AggregateUpdater:
    """Upserts ScopeAggregate and DailyRollup rows."""

    @staticmethod
    def get_or_create_scope(user_id, scope_type, scope_key, parent_key=None) -> ScopeAggregate:
        aggregate = ScopeAggregate.query.filter_by(
            user_id=user_id, scope_type=scope_type, scope_key=scope_key
        ).first()
        if aggregate is None:
            aggregate = ScopeAggregate(
                user_id=user_id,
                scope_type=scope_type,
                scope_key=scope_key,
                parent_key=parent_key,
                accuracy=0.0,
                current_level=1,
                **{name: 0 for name in _COUNTER_FIELDS},
            )
            db.session.add(aggregate)
        elif parent_key and not aggregate.parent_key:
            aggregate.parent_key = parent_key
        return aggregate

    @staticmethod
    def apply(
        user_id: str,
        deltas: Iterable[ScopeDelta],
        thresholds: Mapping[str, float],
        activity_date: date,
        kind: str,
        time_spent_seconds: int = 0,
        occurred_at: Optional[datetime] = None,
    ) -> None:
        """
        Add each delta to its scope, recompute level and accuracy, then upsert the day's rollup.

        The rollup takes the overall delta's XP and SKP.
        """
        touched_at = occurred_at or datetime.now(timezone.utc)
        overall_delta = None

        for delta in deltas:
            aggregate = AggregateUpdater.get_or_create_scope(
                user_id, delta.scope_type, delta.scope_key, delta.parent_key
            )
            aggregate.total_xp += delta.xp
            aggregate.quiz_xp += delta.quiz_xp
            aggregate.course_xp += delta.course_xp
            aggregate.bonus_xp += delta.bonus_xp
            aggregate.total_skp += delta.skp
            aggregate.correct_count += delta.correct
            aggregate.answered_count += delta.answered
            aggregate.sessions_completed += delta.sessions
            AggregateUpdater._recompute(aggregate, thresholds)
            if aggregate.last_activity_at is None or _naive(touched_at) > _naive(aggregate.last_activity_at):
                aggregate.last_activity_at = touched_at

            if delta.scope_type == SCOPE_OVERALL:
                overall_delta = delta

        if overall_delta is None:
            raise ValueError("Aggregate deltas must include the overall scope")

        AggregateUpdater.upsert_daily_rollup(
            user_id,
            activity_date,
            xp=overall_delta.xp,
            skp=overall_delta.skp,
            kind=kind,
            sessions=overall_delta.sessions,
            time_spent_seconds=time_spent_seconds,
        )

    @staticmethod
    def apply_streak_bonus(user_id: str, amount: int, thresholds: Mapping[str, float]) -> ScopeAggregate:
        """Credit a streak payout to the overall scope. SKP only; no session or XP change."""
        aggregate = AggregateUpdater.get_or_create_scope(user_id, SCOPE_OVERALL, OVERALL_SCOPE_KEY)
        aggregate.total_skp += amount
        aggregate.streak_skp += amount
        AggregateUpdater._recompute(aggregate, thresholds)
        return aggregate

    @staticmethod
    def upsert_daily_rollup(
        user_id: str,
        activity_date: date,
        xp: int = 0,
        skp: int = 0,
        kind: Optional[str] = None,
        sessions: int = 1,
        time_spent_seconds: int = 0,
    ) -> DailyRollup:
        rollup = DailyRollup.query.filter_by(user_id=user_id, activity_date=activity_date).first()
        if rollup is None:
            rollup = DailyRollup(
                user_id=user_id,
                activity_date=activity_date,
                xp_earned=0,
                skp_earned=0,
                sessions_count=0,
                quiz_sessions=0,
                course_sessions=0,
                time_spent_seconds=0,
            )
            db.session.add(rollup)

        rollup.xp_earned += xp
        rollup.skp_earned += skp
        rollup.sessions_count += sessions
        if kind == EVENT_KIND_COURSE:
            rollup.course_sessions += sessions
        elif kind:
            rollup.quiz_sessions += sessions
        rollup.time_spent_seconds += max(time_spent_seconds or 0, 0)
        return rollup

    @staticmethod
    def _recompute(aggregate: ScopeAggregate, thresholds: Mapping[str, float]) -> None:
        threshold = threshold_for_scope(aggregate.scope_type, thresholds)
        aggregate.current_level = calculate_level(aggregate.total_xp, threshold)
        aggregate.accuracy = calculate_accuracy(aggregate.correct_count, aggregate.answered_count)


def _naive(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; compare everything as naive UTC
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
