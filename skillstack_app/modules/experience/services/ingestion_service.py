"""
Ingestion Service
Normalize -> compute rewards -> commit to the ledger, for quiz and course sessions.
"""
import uuid
from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from skillstack_app.core.exceptions import (
    DuplicateEventError,
    StorageTransactionError,
    ValidationError,
)
from skillstack_app.extensions import db
from skillstack_app.models import LedgerEntry, SubmissionToken

from ..logics.event_normalizer import normalize_submission
from ..logics.reward_calculator import compute_rewards
from ..schemas import EVENT_KIND_COURSE, IngestResult
from .ledger_writer import LedgerWriter
from .settings_provider import get_settings_provider
from .stats_service import StatsService


class IngestionService:
    """Turns raw learning-session submissions into ledger entries."""

    @staticmethod
    def issue_submission_token(user_id: str) -> SubmissionToken:
        """Issue a fresh idempotency token for one upcoming submission."""
        user_id = str(user_id or '').strip()
        if not user_id:
            raise ValidationError('user_id is required', errors={'user_id': 'required'})

        token = SubmissionToken(
            token=uuid.uuid4().hex,
            user_id=user_id,
            status=SubmissionToken.STATUS_SUBMITTED,
        )
        try:
            db.session.add(token)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(f"Could not issue submission token for user {user_id}: {exc}", exc_info=True)
            raise StorageTransactionError('Could not issue a submission token, please retry') from exc
        return token

    @staticmethod
    def _resolve_token(user_id: str, raw: Mapping[str, Any]) -> Optional[SubmissionToken]:
        value = raw.get('submission_token')
        if not value:
            if current_app.config.get('REQUIRE_SUBMISSION_TOKEN', False):
                raise ValidationError(
                    'A submission token is required', errors={'submission_token': 'required'}
                )
            return None

        token = db.session.get(SubmissionToken, str(value))
        if token is None or token.user_id != user_id:
            raise ValidationError('Unknown submission token', errors={'submission_token': 'unknown'})
        return token

    @staticmethod
    def _from_entry(entry: LedgerEntry, duplicate: bool) -> IngestResult:
        return IngestResult(
            event_id=entry.event_id,
            kind=entry.kind,
            xp_earned=entry.xp_earned,
            skp_earned=entry.skp_earned,
            bonuses=entry.bonus_breakdown or {},
            accuracy=entry.accuracy,
            is_first_completion=entry.is_first_completion,
            duplicate=duplicate,
            new_totals=StatsService.get_overall_totals(entry.user_id),
        )

    @staticmethod
    def ingest(user_id: str, raw: Mapping[str, Any], kind: str) -> IngestResult:
        """
        Record one learning session.

        Replays of an already recorded event are answered with the stored
        rewards and ``duplicate=True``; nothing is credited twice.

        Raises:
            ValidationError: malformed submission.
            InvariantViolation: the user's writes are frozen.
            StorageTransactionError: the write failed and was rolled back; retry with the same id.
        """
        if not isinstance(raw, Mapping):
            raise ValidationError('Submission must be a JSON object')
        user_id = str(user_id or '').strip()

        event = normalize_submission(raw, user_id, kind)
        token = IngestionService._resolve_token(event.user_id, raw)

        existing = LedgerWriter.find_entry(event.user_id, event.event_id)
        if existing is not None:
            current_app.logger.info(f"Duplicate submission {event.event_id} for user {event.user_id} ignored.")
            return IngestionService._from_entry(existing, duplicate=True)

        settings = get_settings_provider().get_settings()

        is_first_completion = True
        if kind == EVENT_KIND_COURSE and event.source_ref:
            is_first_completion = not LedgerWriter.has_completed_source(event.user_id, event.source_ref)

        reward = compute_rewards(event, settings, is_first_completion=is_first_completion)

        try:
            entry = LedgerWriter.commit(event, reward, settings.level_thresholds, token=token)
        except DuplicateEventError as dup:
            current_app.logger.info(f"Concurrent duplicate {event.event_id} for user {event.user_id} absorbed.")
            return IngestionService._from_entry(dup.entry, duplicate=True)

        return IngestionService._from_entry(entry, duplicate=False)
