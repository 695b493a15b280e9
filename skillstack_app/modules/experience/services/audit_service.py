"""
Audit Service
Read-repair pass over the ledger plus the admin recovery tools.

- audit_user: compares ledger sums with the overall aggregate; a mismatch
  freezes the user's writes and raises InvariantViolation.
- reconcile_user_totals: rebuilds every aggregate and rollup from the ledger
  and lifts the freeze.
- reset_user_progress: voids the ledger and clears all derived rows.
"""
from datetime import datetime, timezone
from typing import Dict

from flask import current_app
from sqlalchemy import func

from skillstack_app.core.exceptions import InvariantViolation, StorageTransactionError
from skillstack_app.core.signals import invariant_violated
from skillstack_app.extensions import db
from skillstack_app.models import (
    DailyRollup,
    LearningEventRecord,
    LedgerEntry,
    ScopeAggregate,
    StreakBonusRecord,
)

from ..schemas import OVERALL_SCOPE_KEY, SCOPE_OVERALL, AuditReport, ScopeDelta
from .aggregate_updater import AggregateUpdater
from .ledger_writer import LedgerWriter
from .settings_provider import get_settings_provider
from .streak_engine import StreakEngine


class AuditService:

    @staticmethod
    def build_report(user_id: str) -> AuditReport:
        ledger_xp, ledger_skp = db.session.query(
            func.coalesce(func.sum(LedgerEntry.xp_earned), 0),
            func.coalesce(func.sum(LedgerEntry.skp_earned), 0),
        ).filter(
            LedgerEntry.user_id == user_id,
            LedgerEntry.voided_at.is_(None),
        ).one()

        overall = ScopeAggregate.query.filter_by(
            user_id=user_id, scope_type=SCOPE_OVERALL, scope_key=OVERALL_SCOPE_KEY
        ).first()

        return AuditReport(
            user_id=user_id,
            ledger_xp=int(ledger_xp or 0),
            ledger_skp=int(ledger_skp or 0),
            streak_skp_paid=StreakEngine.already_paid(user_id),
            aggregate_xp=overall.total_xp if overall else 0,
            aggregate_skp=overall.total_skp if overall else 0,
            checked_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def audit_user(user_id: str) -> AuditReport:
        """
        Check the sum invariants for one user.

        Both sums are read under the user's ledger lock, so a concurrent
        ingest is either fully counted or not at all.

        Raises:
            InvariantViolation: ledger and aggregates disagree. The user's
                writes are frozen until reconcile_user_totals runs.
        """
        try:
            guard = LedgerWriter.lock_user(user_id, allow_frozen=True)
            report = AuditService.build_report(user_id)
            if report.is_consistent:
                db.session.commit()
                return report

            details = report.to_dict()
            guard.is_frozen = True
            guard.frozen_reason = (
                f"xp_difference={details['xp_difference']}, skp_difference={details['skp_difference']}"
            )
            guard.frozen_at = datetime.now(timezone.utc)
            db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.error(f"Audit of user {user_id} could not complete", exc_info=True)
            raise

        current_app.logger.critical(f"Ledger invariant violated for user {user_id}: {details}")
        invariant_violated.send(None, user_id=user_id, report=details)
        raise InvariantViolation('Ledger totals do not match aggregates', user_id=user_id, details=details)

    @staticmethod
    def reconcile_user_totals(user_id: str) -> AuditReport:
        """Rebuild aggregates and rollups by replaying the ledger, then unfreeze the user."""
        thresholds = get_settings_provider().get_settings().level_thresholds
        try:
            guard = LedgerWriter.lock_user(user_id, allow_frozen=True)

            ScopeAggregate.query.filter_by(user_id=user_id).delete()
            DailyRollup.query.filter_by(user_id=user_id).delete()
            db.session.flush()

            entries = LedgerEntry.query.filter(
                LedgerEntry.user_id == user_id,
                LedgerEntry.voided_at.is_(None),
            ).order_by(LedgerEntry.entry_id).all()
            events = {
                record.event_id: record
                for record in LearningEventRecord.query.filter_by(user_id=user_id).all()
            }

            for entry in entries:
                record = events.get(entry.event_id)
                received_at = (record.received_at if record else None) or entry.created_at
                AggregateUpdater.apply(
                    user_id,
                    [ScopeDelta.from_dict(data) for data in entry.scope_breakdown or []],
                    thresholds,
                    activity_date=received_at.date(),
                    kind=entry.kind,
                    time_spent_seconds=record.time_spent_seconds if record else 0,
                    occurred_at=received_at,
                )

            paid = StreakEngine.already_paid(user_id)
            if paid:
                AggregateUpdater.apply_streak_bonus(user_id, paid, thresholds)

            guard.is_frozen = False
            guard.frozen_reason = None
            guard.frozen_at = None
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            current_app.logger.error(f"Reconciliation failed for user {user_id}: {exc}", exc_info=True)
            raise StorageTransactionError('Could not rebuild totals from the ledger, please retry') from exc

        current_app.logger.info(f"Rebuilt totals for user {user_id} from {len(entries)} ledger entries.")
        return AuditService.build_report(user_id)

    @staticmethod
    def reset_user_progress(user_id: str) -> Dict[str, int]:
        """Void every ledger entry and delete all derived rows for the user."""
        now = datetime.now(timezone.utc)
        try:
            guard = LedgerWriter.lock_user(user_id, allow_frozen=True)
            voided = LedgerEntry.query.filter(
                LedgerEntry.user_id == user_id,
                LedgerEntry.voided_at.is_(None),
            ).update({LedgerEntry.voided_at: now})
            aggregates = ScopeAggregate.query.filter_by(user_id=user_id).delete()
            rollups = DailyRollup.query.filter_by(user_id=user_id).delete()
            streaks = StreakBonusRecord.query.filter_by(user_id=user_id).delete()
            guard.is_frozen = False
            guard.frozen_reason = None
            guard.frozen_at = None
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            current_app.logger.error(f"Reset failed for user {user_id}: {exc}", exc_info=True)
            raise StorageTransactionError('Could not reset user progress, please retry') from exc

        current_app.logger.warning(
            f"Reset progress for user {user_id}: {voided} ledger entries voided, "
            f"{aggregates} aggregates, {rollups} rollups, {streaks} streak records removed."
        )
        return {
            'ledger_entries_voided': voided,
            'aggregates_deleted': aggregates,
            'rollups_deleted': rollups,
            'streak_records_deleted': streaks,
        }
