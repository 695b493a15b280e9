"""
Ledger Writer
Records a learning event and its rewards exactly once per (user_id, event_id).

The event row, the ledger entry, every aggregate update, the daily rollup and
the submission-token transition share one database transaction. A failure
anywhere rolls the whole unit back and surfaces as StorageTransactionError.
"""
from datetime import datetime, timezone
from typing import Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from skillstack_app.core.exceptions import (
    DuplicateEventError,
    InvariantViolation,
    StorageTransactionError,
)
from skillstack_app.core.signals import ledger_committed
from skillstack_app.extensions import db
from skillstack_app.models import (
    LearningEventRecord,
    LedgerEntry,
    LedgerGuard,
    SubmissionToken,
)

from ..schemas import LearningEvent, RewardResult
from .aggregate_updater import AggregateUpdater


class LedgerWriter:
    """Single-writer-per-user access to the ledger."""

    @staticmethod
    def lock_user(user_id: str, allow_frozen: bool = False) -> LedgerGuard:
        """
        Lock the user's guard row for the rest of the transaction.

        Raises:
            InvariantViolation: the user is frozen pending reconciliation.
        """
        guard = LedgerGuard.query.filter_by(user_id=user_id).with_for_update().first()
        if guard is None:
            guard = LedgerGuard(user_id=user_id, is_frozen=False)
            db.session.add(guard)
            db.session.flush()
        if guard.is_frozen and not allow_frozen:
            raise InvariantViolation(
                'Writes are frozen for this user pending manual reconciliation',
                user_id=user_id,
                details={'reason': guard.frozen_reason},
            )
        return guard

    @staticmethod
    def find_entry(user_id: str, event_id: str) -> Optional[LedgerEntry]:
        return LedgerEntry.query.filter_by(user_id=user_id, event_id=event_id).first()

    @staticmethod
    def has_completed_source(user_id: str, source_ref: str) -> bool:
        """True when a non-voided course completion for ``source_ref`` is already in the ledger."""
        return db.session.query(LedgerEntry.entry_id).filter(
            LedgerEntry.user_id == user_id,
            LedgerEntry.source_ref == source_ref,
            LedgerEntry.voided_at.is_(None),
        ).first() is not None

    @staticmethod
    def commit(
        event: LearningEvent,
        reward: RewardResult,
        thresholds: Mapping[str, float],
        token: Optional[SubmissionToken] = None,
    ) -> LedgerEntry:
        """
        Persist ``event`` with ``reward`` and apply its aggregates atomically.

        Raises:
            DuplicateEventError: the event is already in the ledger (carries the stored entry).
            InvariantViolation: the user's writes are frozen.
            StorageTransactionError: anything else went wrong; nothing was written.
        """
        user_id = event.user_id
        try:
            LedgerWriter.lock_user(user_id)

            existing = LedgerWriter.find_entry(user_id, event.event_id)
            if existing is not None:
                raise DuplicateEventError(existing)

            db.session.add(LearningEventRecord(
                event_id=event.event_id,
                user_id=user_id,
                kind=event.kind,
                occurred_at=event.occurred_at,
                received_at=event.activity_at,
                completion_rate=event.completion_rate,
                source_ref=event.source_ref,
                time_spent_seconds=event.time_spent_seconds,
                items=[item.to_dict() for item in event.items],
            ))
            entry = LedgerEntry(
                user_id=user_id,
                event_id=event.event_id,
                kind=event.kind,
                source_ref=event.source_ref,
                xp_earned=reward.xp,
                skp_earned=reward.skp,
                bonus_breakdown=reward.bonuses,
                scope_breakdown=[delta.to_dict() for delta in reward.scope_deltas],
                accuracy=reward.accuracy,
                is_first_completion=reward.is_first_completion,
            )
            db.session.add(entry)

            AggregateUpdater.apply(
                user_id,
                reward.scope_deltas,
                thresholds,
                activity_date=event.activity_date,
                kind=event.kind,
                time_spent_seconds=event.time_spent_seconds,
                occurred_at=event.activity_at,
            )

            if token is not None:
                token.status = SubmissionToken.STATUS_COMMITTED
                token.event_id = event.event_id
                token.committed_at = datetime.now(timezone.utc)

            db.session.commit()
        except (DuplicateEventError, InvariantViolation):
            db.session.rollback()
            raise
        except IntegrityError as exc:
            # Lost a race against a concurrent submit of the same event
            db.session.rollback()
            existing = LedgerWriter.find_entry(user_id, event.event_id)
            if existing is not None:
                raise DuplicateEventError(existing) from exc
            current_app.logger.error(
                f"Integrity error while recording event {event.event_id} for user {user_id}: {exc}",
                exc_info=True,
            )
            raise StorageTransactionError('Could not record the learning event, please retry') from exc
        except Exception as exc:
            db.session.rollback()
            current_app.logger.error(
                f"Ledger transaction failed for event {event.event_id} (user {user_id}): {exc}",
                exc_info=True,
            )
            raise StorageTransactionError('Could not record the learning event, please retry') from exc

        current_app.logger.info(
            f"Recorded {event.kind} event {event.event_id} for user {user_id}: "
            f"+{reward.xp} XP, +{reward.skp} SKP"
        )
        ledger_committed.send(
            None,
            user_id=user_id,
            event_id=event.event_id,
            kind=event.kind,
            xp_earned=reward.xp,
            skp_earned=reward.skp,
            activity_date=event.activity_date,
        )
        return entry
