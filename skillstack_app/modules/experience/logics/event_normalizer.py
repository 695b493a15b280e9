"""
Event Normalizer - turns raw quiz/course submissions into a LearningEvent.

This module contains ONLY pure Python logic.
NO database, NO Flask, NO model dependencies allowed.

Accepted submission shape (all keys optional unless noted)::

    {
        "submission_token" | "event_id": "...",      # idempotency key, reused on retry
        "occurred_at": "2024-05-01T10:00:00Z",         # stored as reported; days follow receipt time
        "completion_rate": 100,                        # required for course sessions
        "total_questions": 5,                          # must match the item count
        "time_spent": 120,                             # session seconds
        "session_id": "course-session-7",              # course sessions only
        "items" | "answers": [
            {"item_id", "category_id", "category_type", "subcategory_id",
             "difficulty", "is_correct", "time_spent_seconds"}
        ]
    }

A course submission without an item list records a single confirmation
answer from ``session_quiz_correct`` plus the session-level category,
subcategory and difficulty.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from skillstack_app.core.exceptions import ValidationError

from ..schemas import (
    CATEGORY_TYPE_INDUSTRY,
    CATEGORY_TYPE_MAIN,
    DIFFICULTIES,
    EVENT_KIND_COURSE,
    EVENT_KINDS,
    EventItem,
    LearningEvent,
)

logger = logging.getLogger(__name__)

MAX_EVENT_ID_LENGTH = 64

# Labels seen in stored content, mapped onto the canonical difficulty names
DIFFICULTY_ALIASES: Dict[str, str] = {
    'beginner': 'basic',
    'easy': 'basic',
    'medium': 'intermediate',
    'hard': 'advanced',
    '基礎': 'basic',
    '初級': 'basic',
    '中級': 'intermediate',
    '上級': 'advanced',
    'エキスパート': 'expert',
}


def normalize_difficulty(label: Any) -> Optional[str]:
    """Map a difficulty label onto basic/intermediate/advanced/expert.

    Unknown labels are returned cleaned but unchanged; the reward
    calculator decides what to do with them.
    """
    if label is None:
        return None
    cleaned = str(label).strip()
    if not cleaned:
        return None
    lowered = cleaned.lower()
    if lowered in DIFFICULTIES:
        return lowered
    return DIFFICULTY_ALIASES.get(lowered, lowered)


def normalize_submission(
    raw: Mapping[str, Any],
    user_id: str,
    kind: str,
    now: Optional[datetime] = None
) -> LearningEvent:
    """
    Validate ``raw`` and build the canonical LearningEvent.

    Raises:
        ValidationError: empty item list, missing category/subcategory/difficulty,
            completion rate outside [0, 100], negative time, or a total_questions
            count that disagrees with the items.
    """
    if kind not in EVENT_KINDS:
        raise ValidationError(f"Unknown event kind '{kind}'", errors={'kind': 'must be quiz or course'})
    if not isinstance(raw, Mapping):
        raise ValidationError('Submission must be a JSON object')

    user_id = _clean_id(user_id)
    if not user_id:
        raise ValidationError('user_id is required', errors={'user_id': 'required'})

    errors: Dict[str, str] = {}

    raw_items = raw.get('items')
    if raw_items is None:
        raw_items = raw.get('answers')
    if raw_items is None and kind == EVENT_KIND_COURSE and 'session_quiz_correct' in raw:
        raw_items = [_confirmation_item(raw)]

    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError('Submission contains no answered items', errors={'items': 'must be a non-empty list'})

    items = _normalize_items(raw_items, errors)

    total_questions = raw.get('total_questions')
    if total_questions is not None:
        if _as_int(total_questions) != len(raw_items):
            errors['total_questions'] = (
                f'does not match the number of answers ({total_questions} != {len(raw_items)})'
            )

    completion_rate = _completion_rate(raw, kind, errors)

    session_time = raw.get('time_spent', raw.get('time_spent_seconds'))
    if session_time is not None:
        session_time = _as_int(session_time)
        if session_time is None or session_time < 0:
            errors['time_spent'] = 'must be a non-negative number of seconds'

    received_at = _as_utc(now or datetime.now(timezone.utc))
    occurred_at = _parse_occurred_at(raw.get('occurred_at'), received_at, errors)
    event_id = _event_id(raw, errors)

    if errors:
        raise ValidationError('Invalid learning session submission', errors=errors)

    source_ref = raw.get('session_id') if kind == EVENT_KIND_COURSE else None
    return LearningEvent(
        event_id=event_id,
        user_id=user_id,
        kind=kind,
        occurred_at=occurred_at,
        items=tuple(items),
        completion_rate=completion_rate,
        source_ref=_clean_id(source_ref) or None,
        session_time_seconds=session_time,
        received_at=received_at,
    )


def _normalize_items(raw_items: List[Any], errors: Dict[str, str]) -> List[EventItem]:
    items = []
    for index, raw_item in enumerate(raw_items):
        prefix = f'items[{index}]'
        if not isinstance(raw_item, Mapping):
            errors[prefix] = 'must be an object'
            continue

        category_id = _clean_id(raw_item.get('category_id'))
        subcategory_id = _clean_id(raw_item.get('subcategory_id'))
        difficulty = normalize_difficulty(raw_item.get('difficulty'))
        if not category_id:
            errors[f'{prefix}.category_id'] = 'required'
        if not subcategory_id:
            errors[f'{prefix}.subcategory_id'] = 'required'
        if not difficulty:
            errors[f'{prefix}.difficulty'] = 'required'

        category_type = str(raw_item.get('category_type') or CATEGORY_TYPE_MAIN).strip().lower()
        if category_type not in (CATEGORY_TYPE_MAIN, CATEGORY_TYPE_INDUSTRY):
            errors[f'{prefix}.category_type'] = 'must be main or industry'

        time_spent = raw_item.get('time_spent_seconds', raw_item.get('time_spent', 0))
        time_spent = _as_int(time_spent if time_spent is not None else 0)
        if time_spent is None or time_spent < 0:
            errors[f'{prefix}.time_spent_seconds'] = 'must be a non-negative number of seconds'
            time_spent = 0

        item_id = _clean_id(raw_item.get('item_id', raw_item.get('question_id'))) or str(index)
        items.append(EventItem(
            item_id=item_id,
            category_id=category_id,
            subcategory_id=subcategory_id,
            difficulty=difficulty or '',
            is_correct=bool(raw_item.get('is_correct', False)),
            time_spent_seconds=time_spent,
            category_type=category_type,
        ))
    return items


def _confirmation_item(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'item_id': 'confirmation',
        'category_id': raw.get('category_id'),
        'category_type': raw.get('category_type'),
        'subcategory_id': raw.get('subcategory_id'),
        'difficulty': raw.get('difficulty'),
        'is_correct': bool(raw.get('session_quiz_correct')),
        'time_spent_seconds': 0,
    }


def _completion_rate(raw: Mapping[str, Any], kind: str, errors: Dict[str, str]) -> float:
    value = raw.get('completion_rate')
    if value is None:
        if kind == EVENT_KIND_COURSE:
            errors['completion_rate'] = 'required for course sessions'
            return 0.0
        return 100.0
    if isinstance(value, bool):
        errors['completion_rate'] = 'must be a number between 0 and 100'
        return 0.0
    try:
        rate = float(value)
    except (TypeError, ValueError):
        errors['completion_rate'] = 'must be a number between 0 and 100'
        return 0.0
    if rate < 0 or rate > 100:
        errors['completion_rate'] = 'must be between 0 and 100'
    return rate


def _parse_occurred_at(value: Any, fallback: datetime, errors: Dict[str, str]) -> datetime:
    if value is None or value == '':
        return _as_utc(fallback)
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        errors['occurred_at'] = 'must be an ISO 8601 timestamp'
        return _as_utc(fallback)
    return _as_utc(parsed)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _event_id(raw: Mapping[str, Any], errors: Dict[str, str]) -> str:
    supplied = _clean_id(raw.get('submission_token') or raw.get('event_id'))
    if not supplied:
        # No deterministic id is synthesized: an id-less double submit is recorded twice.
        generated = str(uuid.uuid4())
        logger.debug("No event id supplied, generated %s", generated)
        return generated
    if len(supplied) > MAX_EVENT_ID_LENGTH:
        errors['event_id'] = f'must be at most {MAX_EVENT_ID_LENGTH} characters'
    return supplied


def _clean_id(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ''
    return str(value).strip()


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None
