import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from skillstack_app import create_app, db
from skillstack_app.config import Config


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False}
    }
    LOG_DIR = None
    LOG_LEVEL = 'WARNING'
    # Tests that need the on-ingest streak payout switch it on explicitly
    STREAK_RECONCILE_ON_INGEST = False
    REQUIRE_SUBMISSION_TOKEN = False


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_item(difficulty='basic', is_correct=True, category_id='cat-1', subcategory_id='sub-1',
              category_type='main', time_spent_seconds=10, item_id=None):
    return {
        'item_id': item_id or f'{category_id}-{subcategory_id}-{difficulty}',
        'category_id': category_id,
        'category_type': category_type,
        'subcategory_id': subcategory_id,
        'difficulty': difficulty,
        'is_correct': is_correct,
        'time_spent_seconds': time_spent_seconds,
    }


@pytest.fixture
def quiz_payload():
    """Build a quiz submission from a list of difficulties (all correct unless told otherwise)."""

    def _build(difficulties=('basic', 'basic', 'intermediate', 'advanced', 'expert'),
               correct=None, event_id=None, **extra):
        correct = correct if correct is not None else [True] * len(difficulties)
        payload = {
            'items': [
                make_item(difficulty=difficulty, is_correct=ok, item_id=f'q{index}')
                for index, (difficulty, ok) in enumerate(zip(difficulties, correct))
            ],
        }
        if event_id:
            payload['event_id'] = event_id
        payload.update(extra)
        return payload

    return _build


@pytest.fixture
def course_payload():
    def _build(completion_rate=100, session_id='course-session-1', event_id=None,
               difficulties=('basic', 'basic'), **extra):
        payload = {
            'session_id': session_id,
            'completion_rate': completion_rate,
            'items': [
                make_item(difficulty=difficulty, item_id=f'c{index}')
                for index, difficulty in enumerate(difficulties)
            ],
        }
        if event_id:
            payload['event_id'] = event_id
        payload.update(extra)
        return payload

    return _build
