"""
Tests for the Event Normalizer

Tests cover:
- Validation failures (empty items, missing fields, completion rate, counts)
- Difficulty label normalization
- Event id selection
- Course confirmation answers
"""

from datetime import date, datetime, timezone

import pytest

from skillstack_app.core.exceptions import ValidationError
from skillstack_app.modules.experience.logics.event_normalizer import (
    normalize_difficulty,
    normalize_submission,
)

from conftest import make_item


class TestNormalizerValidation:
    """Malformed submissions are rejected with ValidationError."""

    def test_empty_item_list_rejected(self):
        with pytest.raises(ValidationError):
            normalize_submission({'items': []}, 'u1', 'quiz')

    def test_missing_items_rejected(self):
        with pytest.raises(ValidationError):
            normalize_submission({}, 'u1', 'quiz')

    def test_missing_subcategory_reported_per_item(self):
        item = make_item()
        item.pop('subcategory_id')

        with pytest.raises(ValidationError) as excinfo:
            normalize_submission({'items': [make_item(), item]}, 'u1', 'quiz')

        assert 'items[1].subcategory_id' in excinfo.value.errors

    def test_missing_difficulty_rejected(self):
        item = make_item()
        item['difficulty'] = '  '

        with pytest.raises(ValidationError) as excinfo:
            normalize_submission({'items': [item]}, 'u1', 'quiz')

        assert 'items[0].difficulty' in excinfo.value.errors

    @pytest.mark.parametrize('rate', [-1, 100.5, 120])
    def test_completion_rate_out_of_range(self, rate):
        with pytest.raises(ValidationError) as excinfo:
            normalize_submission({'items': [make_item()], 'completion_rate': rate}, 'u1', 'course')

        assert 'completion_rate' in excinfo.value.errors

    def test_course_requires_completion_rate(self):
        with pytest.raises(ValidationError):
            normalize_submission({'items': [make_item()]}, 'u1', 'course')

    def test_total_questions_must_match_answers(self):
        payload = {'items': [make_item(), make_item()], 'total_questions': 3}

        with pytest.raises(ValidationError) as excinfo:
            normalize_submission(payload, 'u1', 'quiz')

        assert 'total_questions' in excinfo.value.errors

    def test_negative_time_rejected(self):
        with pytest.raises(ValidationError):
            normalize_submission({'items': [make_item()], 'time_spent': -5}, 'u1', 'quiz')

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            normalize_submission({'items': [make_item()]}, 'u1', 'flashcard')

    def test_blank_user_rejected(self):
        with pytest.raises(ValidationError):
            normalize_submission({'items': [make_item()]}, '  ', 'quiz')


class TestNormalizerOutput:
    """Valid submissions become canonical LearningEvents."""

    def test_quiz_defaults(self):
        event = normalize_submission({'items': [make_item(), make_item(is_correct=False)]}, 'u1', 'quiz')

        assert event.kind == 'quiz'
        assert event.completion_rate == 100.0
        assert event.answered_count == 2
        assert event.correct_count == 1
        assert event.source_ref is None
        assert event.occurred_at.tzinfo is not None

    def test_answers_key_accepted(self):
        event = normalize_submission({'answers': [make_item()]}, 'u1', 'quiz')

        assert len(event.items) == 1

    def test_time_spent_sums_items_without_session_time(self):
        items = [make_item(time_spent_seconds=12), make_item(time_spent_seconds=8)]

        event = normalize_submission({'items': items}, 'u1', 'quiz')
        assert event.time_spent_seconds == 20

        event = normalize_submission({'items': items, 'time_spent': 45}, 'u1', 'quiz')
        assert event.time_spent_seconds == 45

    def test_occurred_at_parsed_as_utc(self):
        event = normalize_submission(
            {'items': [make_item()], 'occurred_at': '2024-05-01T23:30:00-02:00'}, 'u1', 'quiz'
        )

        assert event.occurred_at == datetime(2024, 5, 2, 1, 30, tzinfo=timezone.utc)

    def test_activity_date_follows_receipt_time(self):
        received = datetime(2024, 6, 20, 9, 0, tzinfo=timezone.utc)

        event = normalize_submission(
            {'items': [make_item()], 'occurred_at': '2024-06-01T10:00:00Z'}, 'u1', 'quiz', now=received
        )

        assert event.occurred_at == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
        assert event.received_at == received
        assert event.activity_date == date(2024, 6, 20)

    def test_invalid_occurred_at_rejected(self):
        with pytest.raises(ValidationError):
            normalize_submission({'items': [make_item()], 'occurred_at': 'yesterday'}, 'u1', 'quiz')

    def test_course_keeps_session_reference(self):
        event = normalize_submission(
            {'items': [make_item()], 'completion_rate': 80, 'session_id': 42}, 'u1', 'course'
        )

        assert event.source_ref == '42'
        assert event.completion_rate == 80.0

    def test_course_confirmation_answer_without_items(self):
        payload = {
            'completion_rate': 100,
            'session_id': 's-9',
            'session_quiz_correct': True,
            'category_id': 'cat-1',
            'subcategory_id': 'sub-1',
            'difficulty': 'intermediate',
        }

        event = normalize_submission(payload, 'u1', 'course')

        assert len(event.items) == 1
        assert event.items[0].is_correct is True
        assert event.items[0].difficulty == 'intermediate'

    def test_industry_category_type_kept(self):
        event = normalize_submission({'items': [make_item(category_type='Industry')]}, 'u1', 'quiz')

        assert event.items[0].category_type == 'industry'


class TestEventIds:
    """Event ids come from the caller when given, otherwise they are fresh."""

    def test_caller_event_id_used(self):
        event = normalize_submission({'items': [make_item()], 'event_id': 'evt-1'}, 'u1', 'quiz')

        assert event.event_id == 'evt-1'

    def test_submission_token_takes_precedence(self):
        payload = {'items': [make_item()], 'event_id': 'evt-1', 'submission_token': 'tok-1'}

        assert normalize_submission(payload, 'u1', 'quiz').event_id == 'tok-1'

    def test_generated_ids_are_unique(self):
        payload = {'items': [make_item()]}

        first = normalize_submission(payload, 'u1', 'quiz')
        second = normalize_submission(payload, 'u1', 'quiz')

        assert first.event_id != second.event_id

    def test_overlong_event_id_rejected(self):
        with pytest.raises(ValidationError):
            normalize_submission({'items': [make_item()], 'event_id': 'x' * 65}, 'u1', 'quiz')


class TestDifficultyLabels:

    @pytest.mark.parametrize('label, expected', [
        ('basic', 'basic'),
        ('EXPERT', 'expert'),
        (' Intermediate ', 'intermediate'),
        ('beginner', 'basic'),
        ('基礎', 'basic'),
        ('初級', 'basic'),
        ('中級', 'intermediate'),
        ('上級', 'advanced'),
        ('エキスパート', 'expert'),
    ])
    def test_known_labels(self, label, expected):
        assert normalize_difficulty(label) == expected

    def test_unknown_label_passes_through(self):
        assert normalize_difficulty('Legendary') == 'legendary'

    def test_blank_label(self):
        assert normalize_difficulty('') is None
        assert normalize_difficulty(None) is None
