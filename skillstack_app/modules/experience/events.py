"""
Event Handlers for the Experience Module.

Streak payouts follow every newly committed ledger entry, and audit/settings
changes leave a trail in the application log.
"""
from flask import current_app

from skillstack_app.core.exceptions import SkillStackError
from skillstack_app.core.signals import (
    invariant_violated,
    ledger_committed,
    reward_settings_changed,
    streak_bonus_awarded,
)


@ledger_committed.connect
def on_ledger_committed(sender, **kwargs):
    """
    Reconcile the user's streak after a new event is recorded.

    Expected kwargs:
        - user_id: str
        - event_id: str
        - kind: str ('quiz', 'course')
        - xp_earned / skp_earned: int
        - activity_date: date
    """
    if not current_app.config.get('STREAK_RECONCILE_ON_INGEST', True):
        return

    from .services.streak_engine import StreakEngine

    user_id = kwargs.get('user_id')
    if not user_id:
        return

    try:
        StreakEngine.reconcile_streak(user_id)
    except SkillStackError as e:
        # The event itself is committed; the next reconciliation pays what is owed
        current_app.logger.error(f"[Experience] Streak reconciliation after {kwargs.get('event_id')} failed: {e}")


@streak_bonus_awarded.connect
def on_streak_bonus_awarded(sender, **kwargs):
    current_app.logger.debug(
        f"[Experience] {kwargs.get('user_id')} reached {kwargs.get('streak_days')} days, "
        f"+{kwargs.get('amount')} SKP ({kwargs.get('source')})"
    )


@invariant_violated.connect
def on_invariant_violated(sender, **kwargs):
    current_app.logger.critical(
        f"[Experience] Writes frozen for user {kwargs.get('user_id')}; "
        f"run reconcile_user_totals after investigating. Report: {kwargs.get('report')}"
    )


@reward_settings_changed.connect
def on_reward_settings_changed(sender, **kwargs):
    current_app.logger.info(
        f"[Experience] Reward setting {kwargs.get('category')}.{kwargs.get('key')} "
        f"set to {kwargs.get('value')}"
    )
