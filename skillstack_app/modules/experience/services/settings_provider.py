"""Reward settings loaded from the database, cached with a TTL."""

from __future__ import annotations

import copy
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from flask import Flask, current_app
from sqlalchemy.exc import SQLAlchemyError

from skillstack_app.core.defaults import (
    DEFAULT_REWARD_SETTINGS,
    SETTING_CATEGORIES,
    SETTING_DESCRIPTIONS,
)
from skillstack_app.core.exceptions import SettingsUnavailable, ValidationError
from skillstack_app.core.signals import reward_settings_changed
from skillstack_app.extensions import db
from skillstack_app.models import RewardSetting

from ..schemas import RewardSettings


def build_reward_settings(overrides: Optional[dict] = None, source: str = 'defaults') -> RewardSettings:
    """Defaults merged with ``overrides`` (``{category: {key: value}}``)."""

    merged = copy.deepcopy(DEFAULT_REWARD_SETTINGS)
    for category, values in (overrides or {}).items():
        merged.setdefault(category, {}).update(values)
    return RewardSettings(
        quiz_xp=merged['quiz_xp'],
        course_xp=merged['course_xp'],
        bonus_xp=merged['bonus_xp'],
        level_thresholds=merged['level_thresholds'],
        skp=merged['skp'],
        source=source,
        loaded_at=datetime.now(timezone.utc),
    )


class SettingsProvider:
    """Reward settings read from the database and cached for ``ttl_seconds``.

    One instance lives in ``app.extensions['reward_settings']``. Readers get
    the cached snapshot while it is younger than ``ttl_seconds``; a refresh is
    serialised by a lock so concurrent readers never reload twice.
    """

    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # (settings, loaded_at), swapped as one reference so readers never see half of it
        self._snapshot: Optional[Tuple[RewardSettings, float]] = None

    def _fresh(self, snapshot: Optional[Tuple[RewardSettings, float]]) -> Optional[RewardSettings]:
        if snapshot is None:
            return None
        settings, loaded_at = snapshot
        if self._clock() - loaded_at < self.ttl_seconds:
            return settings
        return None

    def get_settings(self) -> RewardSettings:
        """Return current reward settings. Never raises: falls back to defaults."""

        settings = self._fresh(self._snapshot)
        if settings is not None:
            return settings

        with self._lock:
            settings = self._fresh(self._snapshot)
            if settings is not None:
                return settings

            try:
                settings = self._load_from_storage()
            except SettingsUnavailable as exc:
                current_app.logger.warning(
                    "Reward settings unavailable (%s), running on default values.", exc.message
                )
                return build_reward_settings(source='defaults')

            self._snapshot = (settings, self._clock())
            return settings

    def _load_from_storage(self) -> RewardSettings:
        try:
            rows = RewardSetting.query.filter_by(is_active=True).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise SettingsUnavailable(str(exc)) from exc

        overrides: dict = {}
        for row in rows:
            if row.category not in SETTING_CATEGORIES:
                current_app.logger.debug("Ignoring reward setting in unknown category %s", row.category)
                continue
            overrides.setdefault(row.category, {})[row.key] = row.value

        source = 'database' if overrides else 'defaults'
        return build_reward_settings(overrides, source=source)

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next read reloads from storage."""

        self._snapshot = None

    def refresh(self) -> RewardSettings:
        self.invalidate()
        return self.get_settings()

    def ensure_defaults(self) -> int:
        """Insert a row for every default setting that has none. Returns the number created."""

        created = 0
        for category, values in DEFAULT_REWARD_SETTINGS.items():
            for key, value in values.items():
                if RewardSetting.query.filter_by(category=category, key=key).first():
                    continue
                db.session.add(RewardSetting(
                    category=category,
                    key=key,
                    value=value,
                    is_active=True,
                    description=SETTING_DESCRIPTIONS.get((category, key)),
                ))
                created += 1

        if created:
            db.session.commit()
            current_app.logger.info("Seeded %s default reward settings.", created)
        return created

    def update_setting(
        self,
        category: str,
        key: str,
        value,
        is_active: bool = True,
        description: Optional[str] = None
    ) -> RewardSetting:
        """Insert or update one reward setting, then drop the cache."""

        errors = {}
        if category not in SETTING_CATEGORIES:
            errors['category'] = f"must be one of {', '.join(SETTING_CATEGORIES)}"
        if not key or not str(key).strip():
            errors['key'] = 'required'
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            numeric = None
        if numeric is None or isinstance(value, bool) or numeric < 0:
            errors['value'] = 'must be a non-negative number'
        elif category == 'level_thresholds' and numeric <= 0:
            errors['value'] = 'level thresholds must be greater than zero'
        if errors:
            raise ValidationError('Invalid reward setting', errors=errors)

        key = str(key).strip()
        try:
            setting = RewardSetting.query.filter_by(category=category, key=key).first()
            if setting is None:
                setting = RewardSetting(category=category, key=key)
                db.session.add(setting)
            setting.value = numeric
            setting.is_active = bool(is_active)
            if description is not None:
                setting.description = description
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.error(
                "Failed to update reward setting %s.%s", category, key, exc_info=True
            )
            raise

        self.invalidate()
        reward_settings_changed.send(None, category=category, key=key, value=numeric)
        return setting


def init_settings_provider(app: Flask, ttl_seconds: int = 300) -> SettingsProvider:
    """Create the provider and attach it to the app."""

    provider = SettingsProvider(ttl_seconds=ttl_seconds)
    app.extensions["reward_settings"] = provider
    return provider


def get_settings_provider() -> SettingsProvider:
    return current_app.extensions["reward_settings"]
