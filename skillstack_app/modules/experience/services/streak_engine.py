"""
Streak Engine
Computes the current learning streak from daily rollups and pays streak SKP.

Payouts are incremental and never retracted: each call pays only the part
of the current entitlement that has not been paid yet.
"""
from datetime import date, datetime, timezone
from typing import Optional

from flask import current_app
from sqlalchemy import func

from skillstack_app.core.exceptions import InvariantViolation, StorageTransactionError
from skillstack_app.core.signals import streak_bonus_awarded
from skillstack_app.extensions import db
from skillstack_app.models import DailyRollup, StreakBonusRecord

from ..logics.streak_logic import calculate_streak_entitlement, calculate_streak_from_dates
from ..schemas import RewardSettings, StreakResult
from .aggregate_updater import AggregateUpdater
from .ledger_writer import LedgerWriter
from .settings_provider import get_settings_provider

STREAK_SOURCE_PREFIX = 'streak_'


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class StreakEngine:
    """Streak counting and streak SKP payouts."""

    @staticmethod
    def get_active_dates(user_id: str, today: date):
        return [row[0] for row in db.session.query(DailyRollup.activity_date).filter(
            DailyRollup.user_id == user_id,
            DailyRollup.sessions_count > 0,
            DailyRollup.activity_date <= today,
        ).order_by(DailyRollup.activity_date.desc()).all()]

    @staticmethod
    def current_streak(user_id: str, today: Optional[date] = None, allow_grace_day: bool = False) -> int:
        """
        Consecutive days with at least one session, counted back from ``today``.

        Bonus payouts use the strict count; ``allow_grace_day`` keeps a streak
        that ended yesterday alive for display.
        """
        today = today or utc_today()
        dates = StreakEngine.get_active_dates(user_id, today)
        return calculate_streak_from_dates(dates, today=today, allow_grace_day=allow_grace_day)

    @staticmethod
    def already_paid(user_id: str) -> int:
        total = db.session.query(func.coalesce(func.sum(StreakBonusRecord.amount_paid), 0)).filter(
            StreakBonusRecord.user_id == user_id,
            StreakBonusRecord.source.like(f'{STREAK_SOURCE_PREFIX}%'),
        ).scalar()
        return int(total or 0)

    @staticmethod
    def reconcile_streak(
        user_id: str,
        today: Optional[date] = None,
        settings: Optional[RewardSettings] = None
    ) -> StreakResult:
        """
        Pay whatever part of the streak entitlement is still unpaid.

        Raises:
            InvariantViolation: the user's writes are frozen.
            StorageTransactionError: the payout could not be written; nothing changed.
        """
        today = today or utc_today()
        settings = settings or get_settings_provider().get_settings()

        try:
            LedgerWriter.lock_user(user_id)

            streak_days = StreakEngine.current_streak(user_id, today=today)
            entitlement = calculate_streak_entitlement(
                streak_days,
                settings.skp.get('daily_streak', 0),
                settings.skp.get('ten_day_streak', 0),
            )
            paid = StreakEngine.already_paid(user_id)
            award = entitlement - paid

            if award <= 0:
                db.session.commit()
                return StreakResult(streak_days, 0, entitlement, paid)

            source = f'{STREAK_SOURCE_PREFIX}{streak_days}days'
            db.session.add(StreakBonusRecord(
                user_id=user_id,
                streak_length=streak_days,
                amount_paid=award,
                source=source,
            ))
            AggregateUpdater.apply_streak_bonus(user_id, award, settings.level_thresholds)
            db.session.commit()
        except InvariantViolation:
            db.session.rollback()
            raise
        except Exception as exc:
            db.session.rollback()
            current_app.logger.error(f"Streak payout failed for user {user_id}: {exc}", exc_info=True)
            raise StorageTransactionError('Could not record the streak bonus, please retry') from exc

        current_app.logger.info(
            f"Streak bonus for user {user_id}: {streak_days} days, +{award} SKP (paid so far {paid + award})"
        )
        streak_bonus_awarded.send(None, user_id=user_id, streak_days=streak_days, amount=award, source=source)
        return StreakResult(streak_days, award, entitlement, paid + award)
