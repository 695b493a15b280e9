from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

EVENT_KIND_QUIZ = 'quiz'
EVENT_KIND_COURSE = 'course'
EVENT_KINDS = (EVENT_KIND_QUIZ, EVENT_KIND_COURSE)

SCOPE_OVERALL = 'overall'
SCOPE_CATEGORY = 'category'
SCOPE_INDUSTRY_CATEGORY = 'industry_category'
SCOPE_SUBCATEGORY = 'subcategory'
OVERALL_SCOPE_KEY = 'overall'

CATEGORY_TYPE_MAIN = 'main'
CATEGORY_TYPE_INDUSTRY = 'industry'

DIFFICULTIES = ('basic', 'intermediate', 'advanced', 'expert')


@dataclass(frozen=True)
class EventItem:
    item_id: str
    category_id: str
    subcategory_id: str
    difficulty: str
    is_correct: bool
    time_spent_seconds: int = 0
    category_type: str = CATEGORY_TYPE_MAIN

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LearningEvent:
    """Canonical form of one quiz or course session submission."""
    event_id: str
    user_id: str
    kind: str
    occurred_at: datetime
    items: Tuple[EventItem, ...]
    completion_rate: float = 100.0
    source_ref: Optional[str] = None
    session_time_seconds: Optional[int] = None
    received_at: Optional[datetime] = None

    @property
    def answered_count(self) -> int:
        return len(self.items)

    @property
    def correct_count(self) -> int:
        return sum(1 for item in self.items if item.is_correct)

    @property
    def time_spent_seconds(self) -> int:
        if self.session_time_seconds is not None:
            return self.session_time_seconds
        return sum(item.time_spent_seconds for item in self.items)

    @property
    def activity_at(self) -> datetime:
        """Server receipt time; the client's ``occurred_at`` only when none was recorded."""
        return self.received_at or self.occurred_at

    @property
    def activity_date(self) -> date:
        return self.activity_at.date()


@dataclass(frozen=True)
class RewardSettings:
    """Snapshot of every reward constant. Replaced wholesale on reload, never mutated."""
    quiz_xp: Dict[str, float]
    course_xp: Dict[str, float]
    bonus_xp: Dict[str, float]
    level_thresholds: Dict[str, float]
    skp: Dict[str, float]
    source: str = 'defaults'
    loaded_at: Optional[datetime] = None

    def xp_rates(self, kind: str) -> Dict[str, float]:
        return self.course_xp if kind == EVENT_KIND_COURSE else self.quiz_xp

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['loaded_at'] = self.loaded_at.isoformat() if self.loaded_at else None
        return data


@dataclass
class ScopeDelta:
    """Increment for one scope aggregate produced by a single event."""
    scope_type: str
    scope_key: str
    parent_key: Optional[str] = None
    xp: int = 0
    skp: int = 0
    quiz_xp: int = 0
    course_xp: int = 0
    bonus_xp: int = 0
    correct: int = 0
    answered: int = 0
    sessions: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScopeDelta':
        return cls(**{name: data[name] for name in cls.__dataclass_fields__ if name in data})


@dataclass
class RewardResult:
    xp: int
    skp: int
    item_xp: int
    item_skp: int
    bonus_xp: int
    bonus_skp: int
    bonuses: Dict[str, Dict[str, int]]
    scope_deltas: List[ScopeDelta]
    accuracy: float
    correct_count: int
    answered_count: int
    is_first_completion: bool = True
    unknown_difficulties: List[str] = field(default_factory=list)

    @property
    def overall_delta(self) -> ScopeDelta:
        return next(delta for delta in self.scope_deltas if delta.scope_type == SCOPE_OVERALL)


@dataclass
class IngestResult:
    event_id: str
    kind: str
    xp_earned: int
    skp_earned: int
    bonuses: Dict[str, Dict[str, int]]
    accuracy: float
    is_first_completion: bool
    duplicate: bool
    new_totals: Dict[str, Any]


@dataclass
class StreakResult:
    streak_days: int
    bonus_awarded_now: int
    entitlement: int = 0
    already_paid: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScopeStatsDTO:
    scope_type: str
    scope_key: str
    parent_key: Optional[str]
    total_xp: int
    quiz_xp: int
    course_xp: int
    bonus_xp: int
    total_skp: int
    streak_skp: int
    sessions_completed: int
    correct_count: int
    answered_count: int
    accuracy: float
    current_level: int
    next_level_xp: int
    level_progress_percent: float


@dataclass
class DailyActivityDTO:
    date: str
    xp_earned: int
    skp_earned: int
    sessions_count: int
    quiz_sessions: int
    course_sessions: int
    time_spent_seconds: int


@dataclass
class UserStatsDTO:
    user_id: str
    overall: ScopeStatsDTO
    categories: List[ScopeStatsDTO]
    subcategories: List[ScopeStatsDTO]
    recent_activity: List[DailyActivityDTO]
    learning_streak: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AuditReport:
    user_id: str
    ledger_xp: int
    ledger_skp: int
    streak_skp_paid: int
    aggregate_xp: int
    aggregate_skp: int
    checked_at: datetime

    @property
    def expected_skp(self) -> int:
        return self.ledger_skp + self.streak_skp_paid

    @property
    def is_consistent(self) -> bool:
        return self.ledger_xp == self.aggregate_xp and self.expected_skp == self.aggregate_skp

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'ledger_xp': self.ledger_xp,
            'ledger_skp': self.ledger_skp,
            'streak_skp_paid': self.streak_skp_paid,
            'aggregate_xp': self.aggregate_xp,
            'aggregate_skp': self.aggregate_skp,
            'xp_difference': self.aggregate_xp - self.ledger_xp,
            'skp_difference': self.aggregate_skp - self.expected_skp,
            'is_consistent': self.is_consistent,
            'checked_at': self.checked_at.isoformat(),
        }
