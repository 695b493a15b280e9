"""Ledger tables: accepted learning events, their rewards and the per-user write guard."""

from __future__ import annotations

from sqlalchemy.sql import func

from ..extensions import db


class LearningEventRecord(db.Model):
    """Normalized learning event as accepted by the ledger. Immutable once stored."""

    __tablename__ = 'learning_events'

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    kind = db.Column(db.String(20), nullable=False)  # quiz, course
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    received_at = db.Column(db.DateTime(timezone=True))  # server clock; drives the rollup day
    completion_rate = db.Column(db.Float, nullable=False, default=100.0)
    source_ref = db.Column(db.String(100))  # course session id
    time_spent_seconds = db.Column(db.Integer, nullable=False, default=0)
    items = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (db.UniqueConstraint('user_id', 'event_id', name='_learning_event_user_uc'),)

    def __repr__(self):
        return f'<LearningEventRecord {self.user_id}:{self.event_id}>'


class LedgerEntry(db.Model):
    """Rewards credited for one learning event.

    Written exactly once per ``(user_id, event_id)``. ``voided_at`` is only
    ever set by an admin reset; voided rows no longer count towards totals.
    """

    __tablename__ = 'ledger_entries'

    entry_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    event_id = db.Column(db.String(64), nullable=False)
    kind = db.Column(db.String(20), nullable=False)
    source_ref = db.Column(db.String(100))
    xp_earned = db.Column(db.Integer, nullable=False, default=0)
    skp_earned = db.Column(db.Integer, nullable=False, default=0)
    bonus_breakdown = db.Column(db.JSON, nullable=False, default=dict)
    # Per-scope deltas as applied, so aggregates can be rebuilt from the ledger alone
    scope_breakdown = db.Column(db.JSON, nullable=False, default=list)
    accuracy = db.Column(db.Float, nullable=False, default=0.0)
    is_first_completion = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    voided_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (db.UniqueConstraint('user_id', 'event_id', name='_ledger_user_event_uc'),)

    def to_dict(self):
        return {
            'entry_id': self.entry_id,
            'user_id': self.user_id,
            'event_id': self.event_id,
            'kind': self.kind,
            'source_ref': self.source_ref,
            'xp_earned': self.xp_earned,
            'skp_earned': self.skp_earned,
            'bonuses': self.bonus_breakdown or {},
            'accuracy': self.accuracy,
            'is_first_completion': self.is_first_completion,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'voided_at': self.voided_at.isoformat() if self.voided_at else None,
        }

    def __repr__(self):
        return f'<LedgerEntry {self.user_id}:{self.event_id} xp={self.xp_earned} skp={self.skp_earned}>'


class SubmissionToken(db.Model):
    """Server-issued idempotency token for one in-flight submission."""

    __tablename__ = 'submission_tokens'

    STATUS_SUBMITTED = 'submitted'
    STATUS_COMMITTED = 'committed'

    token = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_SUBMITTED)
    event_id = db.Column(db.String(64))
    issued_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    committed_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self):
        return {
            'token': self.token,
            'user_id': self.user_id,
            'status': self.status,
            'event_id': self.event_id,
            'issued_at': self.issued_at.isoformat() if self.issued_at else None,
            'committed_at': self.committed_at.isoformat() if self.committed_at else None,
        }


class LedgerGuard(db.Model):
    """Per-user lock row. Locked first in every write path; also carries the audit freeze flag."""

    __tablename__ = 'ledger_guards'

    user_id = db.Column(db.String(64), primary_key=True)
    is_frozen = db.Column(db.Boolean, nullable=False, default=False)
    frozen_reason = db.Column(db.Text)
    frozen_at = db.Column(db.DateTime(timezone=True))
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f'<LedgerGuard {self.user_id} frozen={self.is_frozen}>'
