"""Tunable reward constants stored in the database."""

from __future__ import annotations

from sqlalchemy.sql import func

from ..extensions import db


class RewardSetting(db.Model):
    """One reward constant, e.g. ``quiz_xp/basic = 10``.

    Rows are grouped by ``category`` (quiz_xp, course_xp, bonus_xp,
    level_thresholds, skp). Inactive rows are ignored and the code-level
    default applies instead.
    """

    __tablename__ = 'reward_settings'

    setting_id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(50), nullable=False)
    key = db.Column(db.String(100), nullable=False)
    value = db.Column(db.Float, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    description = db.Column(db.Text)
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (db.UniqueConstraint('category', 'key', name='_reward_setting_uc'),)

    def to_dict(self):
        return {
            'category': self.category,
            'key': self.key,
            'value': self.value,
            'is_active': self.is_active,
            'description': self.description,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<RewardSetting {self.category}.{self.key}={self.value}>'
