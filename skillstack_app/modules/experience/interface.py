from datetime import date
from typing import Any, Dict, Mapping, Optional

from .schemas import EVENT_KIND_COURSE, EVENT_KIND_QUIZ
from .services.audit_service import AuditService
from .services.ingestion_service import IngestionService
from .services.settings_provider import get_settings_provider
from .services.stats_service import StatsService
from .services.streak_engine import StreakEngine


def ingest_quiz_session(user_id: str, raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Record a finished quiz session.

    Returns:
        dict with: event_id, xp_earned, skp_earned, bonuses, accuracy, new_totals, duplicate
    """
    result = IngestionService.ingest(user_id, raw, EVENT_KIND_QUIZ)
    return {
        'event_id': result.event_id,
        'xp_earned': result.xp_earned,
        'skp_earned': result.skp_earned,
        'bonuses': result.bonuses,
        'accuracy': result.accuracy,
        'new_totals': result.new_totals,
        'duplicate': result.duplicate,
    }


def ingest_course_session(user_id: str, raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Record a finished course session.

    Returns:
        dict with: event_id, xp_earned, skp_earned, bonuses, is_first_completion, new_totals, duplicate
    """
    result = IngestionService.ingest(user_id, raw, EVENT_KIND_COURSE)
    return {
        'event_id': result.event_id,
        'xp_earned': result.xp_earned,
        'skp_earned': result.skp_earned,
        'bonuses': result.bonuses,
        'is_first_completion': result.is_first_completion,
        'new_totals': result.new_totals,
        'duplicate': result.duplicate,
    }


def get_user_stats(user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
    """Overall, categories[], subcategories[] and recent_activity[] for a user (pure read)."""
    return StatsService.get_user_stats(user_id, today=today).to_dict()


def reconcile_streak(user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
    """Pay any unpaid streak SKP. Returns streak_days and bonus_awarded_now."""
    return StreakEngine.reconcile_streak(user_id, today=today).to_dict()


def issue_submission_token(user_id: str) -> Dict[str, Any]:
    return IngestionService.issue_submission_token(user_id).to_dict()


def audit_user(user_id: str) -> Dict[str, Any]:
    """Check ledger/aggregate invariants; raises InvariantViolation (and freezes) on mismatch."""
    return AuditService.audit_user(user_id).to_dict()


def reconcile_user_totals(user_id: str) -> Dict[str, Any]:
    return AuditService.reconcile_user_totals(user_id).to_dict()


def reset_user_progress(user_id: str) -> Dict[str, int]:
    return AuditService.reset_user_progress(user_id)


def get_reward_settings() -> Dict[str, Any]:
    return get_settings_provider().get_settings().to_dict()


def update_reward_setting(category: str, key: str, value, is_active: bool = True,
                          description: Optional[str] = None) -> Dict[str, Any]:
    return get_settings_provider().update_setting(
        category, key, value, is_active=is_active, description=description
    ).to_dict()
