# File: skillstack_app/config.py
# Application configuration, read from the environment (.env supported).

import os
from dotenv import load_dotenv

load_dotenv()

# Project root: skillstack_app/ sits directly below it
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))

# Default SQLite database file, inside database/ at the project root
DATABASE_PATH = os.path.join(BASE_DIR, "database", "skillstack.db")


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """SkillStack application configuration."""

    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        # Fallback for development, though env is preferred
        SECRET_KEY = 'dev-secret-key-replace-in-production'

    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI') or f'sqlite:///{DATABASE_PATH}'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'connect_args': {'timeout': 30},
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR')  # None keeps logging on the console only
    LOG_JSON = _env_flag('LOG_JSON')

    # Reward engine
    REWARD_SETTINGS_TTL_SECONDS = int(os.environ.get('REWARD_SETTINGS_TTL_SECONDS', 300))
    STREAK_RECONCILE_ON_INGEST = _env_flag('STREAK_RECONCILE_ON_INGEST', True)
    REQUIRE_SUBMISSION_TOKEN = _env_flag('REQUIRE_SUBMISSION_TOKEN')
    RECENT_ACTIVITY_DAYS = int(os.environ.get('RECENT_ACTIVITY_DAYS', 30))

    @classmethod
    def init_app(cls, app):
        """Create the directories the default configuration relies on."""
        if app.config.get('SQLALCHEMY_DATABASE_URI') == f'sqlite:///{DATABASE_PATH}':
            os.makedirs(os.path.dirname(DATABASE_PATH), exist_ok=True)
        if app.config.get('LOG_DIR'):
            os.makedirs(app.config['LOG_DIR'], exist_ok=True)
