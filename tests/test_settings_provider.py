"""
Tests for the Settings Provider

Tests cover:
- Default seeding and loading from the database
- Merging missing keys with defaults
- TTL caching and invalidation
- Degraded mode when storage fails
- Admin updates
"""

import pytest
from sqlalchemy.exc import OperationalError

from skillstack_app import db
from skillstack_app.core.defaults import DEFAULT_REWARD_SETTINGS
from skillstack_app.core.exceptions import ValidationError
from skillstack_app.models import RewardSetting
from skillstack_app.modules.experience.services.settings_provider import (
    SettingsProvider,
    get_settings_provider,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class InvalidatingClock(FakeClock):
    """Clears the provider's cache from inside the reader, as a concurrent admin update would."""

    def __init__(self):
        super().__init__()
        self.provider = None
        self.armed = False

    def __call__(self):
        if self.armed:
            self.armed = False
            self.provider.invalidate()
        return self.now


class BrokenQuery:
    def filter_by(self, **kwargs):
        raise OperationalError('SELECT reward_settings', {}, Exception('database is locked'))


def _set_value(category, key, value):
    row = RewardSetting.query.filter_by(category=category, key=key).first()
    row.value = value
    db.session.commit()


class TestLoading:

    def test_defaults_seeded_on_startup(self, app):
        expected = sum(len(values) for values in DEFAULT_REWARD_SETTINGS.values())

        assert RewardSetting.query.count() == expected

    def test_ensure_defaults_is_idempotent(self, app):
        assert get_settings_provider().ensure_defaults() == 0

    def test_settings_loaded_from_database(self, app):
        _set_value('quiz_xp', 'basic', 12)

        settings = SettingsProvider().get_settings()

        assert settings.source == 'database'
        assert settings.quiz_xp['basic'] == 12
        assert settings.level_thresholds['overall'] == 1000

    def test_missing_keys_merged_with_defaults(self, app):
        RewardSetting.query.filter_by(category='skp', key='perfect_bonus').delete()
        RewardSetting.query.filter_by(category='quiz_xp', key='expert').update({'is_active': False})
        db.session.commit()

        settings = SettingsProvider().get_settings()

        assert settings.skp['perfect_bonus'] == 50
        assert settings.quiz_xp['expert'] == 50

    def test_empty_table_yields_defaults(self, app):
        RewardSetting.query.delete()
        db.session.commit()

        settings = SettingsProvider().get_settings()

        assert settings.source == 'defaults'
        assert settings.course_xp == DEFAULT_REWARD_SETTINGS['course_xp']


class TestCaching:

    def test_cached_until_ttl_expires(self, app):
        clock = FakeClock()
        provider = SettingsProvider(ttl_seconds=300, clock=clock)

        assert provider.get_settings().quiz_xp['basic'] == 10
        _set_value('quiz_xp', 'basic', 99)

        clock.now += 299
        assert provider.get_settings().quiz_xp['basic'] == 10

        clock.now += 2
        assert provider.get_settings().quiz_xp['basic'] == 99

    def test_invalidate_forces_reload(self, app):
        provider = SettingsProvider(ttl_seconds=300, clock=FakeClock())
        first = provider.get_settings()
        _set_value('bonus_xp', 'accuracy_80', 25)

        assert provider.get_settings() is first

        provider.invalidate()
        assert provider.get_settings().bonus_xp['accuracy_80'] == 25

    def test_refresh_reloads_immediately(self, app):
        provider = SettingsProvider(ttl_seconds=300, clock=FakeClock())
        provider.get_settings()
        _set_value('level_thresholds', 'overall', 800)

        refreshed = provider.refresh()

        assert refreshed.level_thresholds['overall'] == 800
        assert provider.get_settings() is refreshed

    def test_invalidate_during_read_returns_the_snapshot_in_hand(self, app):
        clock = InvalidatingClock()
        provider = SettingsProvider(ttl_seconds=300, clock=clock)
        clock.provider = provider
        first = provider.get_settings()

        clock.armed = True
        assert provider.get_settings() is first

        _set_value('quiz_xp', 'basic', 13)
        assert provider.get_settings().quiz_xp['basic'] == 13

    def test_storage_failure_returns_defaults(self, app, monkeypatch):
        provider = SettingsProvider(ttl_seconds=300, clock=FakeClock())
        _set_value('quiz_xp', 'basic', 11)
        monkeypatch.setattr(RewardSetting, 'query', BrokenQuery())

        settings = provider.get_settings()

        assert settings.source == 'defaults'
        assert settings.quiz_xp['basic'] == 10

    def test_degraded_defaults_are_not_cached(self, app, monkeypatch):
        provider = SettingsProvider(ttl_seconds=300, clock=FakeClock())
        _set_value('quiz_xp', 'basic', 11)

        monkeypatch.setattr(RewardSetting, 'query', BrokenQuery())
        assert provider.get_settings().source == 'defaults'

        monkeypatch.undo()
        settings = provider.get_settings()
        assert settings.source == 'database'
        assert settings.quiz_xp['basic'] == 11


class TestUpdates:

    def test_update_setting_refreshes_app_provider(self, app):
        provider = get_settings_provider()
        assert provider.get_settings().skp['daily_streak'] == 10

        provider.update_setting('skp', 'daily_streak', 15)

        assert provider.get_settings().skp['daily_streak'] == 15

    def test_update_creates_new_key(self, app):
        setting = get_settings_provider().update_setting('quiz_xp', 'master', 80, description='Top tier')

        assert setting.setting_id is not None
        assert get_settings_provider().get_settings().quiz_xp['master'] == 80

    @pytest.mark.parametrize('category, key, value', [
        ('unknown', 'basic', 10),
        ('quiz_xp', 'basic', -1),
        ('quiz_xp', 'basic', 'ten'),
        ('quiz_xp', 'basic', True),
        ('level_thresholds', 'overall', 0),
        ('quiz_xp', ' ', 10),
    ])
    def test_invalid_updates_rejected(self, app, category, key, value):
        with pytest.raises(ValidationError):
            get_settings_provider().update_setting(category, key, value)
