"""Running totals derived from the ledger: per-scope aggregates, daily rollups and streak payouts."""

from __future__ import annotations

from sqlalchemy.sql import func

from ..extensions import db


class ScopeAggregate(db.Model):
    """Running totals for one user in one scope (overall, category or subcategory)."""

    __tablename__ = 'scope_aggregates'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    scope_type = db.Column(db.String(30), nullable=False)  # overall, category, industry_category, subcategory
    scope_key = db.Column(db.String(100), nullable=False)
    parent_key = db.Column(db.String(100))  # category of a subcategory

    total_xp = db.Column(db.Integer, nullable=False, default=0)
    quiz_xp = db.Column(db.Integer, nullable=False, default=0)
    course_xp = db.Column(db.Integer, nullable=False, default=0)
    bonus_xp = db.Column(db.Integer, nullable=False, default=0)
    total_skp = db.Column(db.Integer, nullable=False, default=0)
    streak_skp = db.Column(db.Integer, nullable=False, default=0)

    sessions_completed = db.Column(db.Integer, nullable=False, default=0)
    correct_count = db.Column(db.Integer, nullable=False, default=0)
    answered_count = db.Column(db.Integer, nullable=False, default=0)
    accuracy = db.Column(db.Float, nullable=False, default=0.0)
    current_level = db.Column(db.Integer, nullable=False, default=1)

    last_activity_at = db.Column(db.DateTime(timezone=True))
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        db.UniqueConstraint('user_id', 'scope_type', 'scope_key', name='_scope_aggregate_uc'),
    )

    def __repr__(self):
        return f'<ScopeAggregate {self.user_id} {self.scope_type}:{self.scope_key} xp={self.total_xp}>'


class DailyRollup(db.Model):
    """Per-user, per-day activity totals. One row per calendar day (UTC)."""

    __tablename__ = 'daily_rollups'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    activity_date = db.Column(db.Date, nullable=False)
    xp_earned = db.Column(db.Integer, nullable=False, default=0)
    skp_earned = db.Column(db.Integer, nullable=False, default=0)
    sessions_count = db.Column(db.Integer, nullable=False, default=0)
    quiz_sessions = db.Column(db.Integer, nullable=False, default=0)
    course_sessions = db.Column(db.Integer, nullable=False, default=0)
    time_spent_seconds = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (db.UniqueConstraint('user_id', 'activity_date', name='_daily_rollup_uc'),)

    def to_dict(self):
        return {
            'date': self.activity_date.isoformat(),
            'xp_earned': self.xp_earned,
            'skp_earned': self.skp_earned,
            'sessions_count': self.sessions_count,
            'quiz_sessions': self.quiz_sessions,
            'course_sessions': self.course_sessions,
            'time_spent_seconds': self.time_spent_seconds,
        }


class StreakBonusRecord(db.Model):
    """Append-only log of streak bonus payouts. Only an admin progress reset deletes a user's rows."""

    __tablename__ = 'streak_bonus_records'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    streak_length = db.Column(db.Integer, nullable=False)
    amount_paid = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String(50), nullable=False)  # streak_<N>days
    paid_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f'<StreakBonusRecord {self.user_id} {self.source} +{self.amount_paid}>'
