"""Database models package for SkillStack."""

from ..extensions import db

from .settings import RewardSetting
from .ledger import LearningEventRecord, LedgerEntry, LedgerGuard, SubmissionToken
from .aggregates import DailyRollup, ScopeAggregate, StreakBonusRecord

__all__ = [
    'db',
    'RewardSetting',
    'LearningEventRecord',
    'LedgerEntry',
    'LedgerGuard',
    'SubmissionToken',
    'ScopeAggregate',
    'DailyRollup',
    'StreakBonusRecord',
]
