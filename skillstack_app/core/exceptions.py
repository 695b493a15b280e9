"""
Exception hierarchy for the SkillStack reward engine.

Flask-free so the pure logic layer can raise these as well; the HTTP mapping
is registered by ``core.error_handlers``. Each class carries the status code
and error code it is answered with, and the level it is logged at.
"""

import logging
from typing import Any, Dict, Optional


class SkillStackError(Exception):
    """Base class. ``details`` ends up verbatim in the JSON error body."""

    code = 'UNKNOWN_ERROR'
    status_code = 500
    log_level = logging.ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            'success': False,
            'message': self.message,
            'code': self.code,
            'details': self.details,
        }


class ValidationError(SkillStackError):
    """Malformed submission or setting. ``errors`` maps field paths to messages."""

    code = 'VALIDATION_ERROR'
    status_code = 400
    log_level = logging.INFO

    def __init__(self, message: str = 'Validation failed', errors: Optional[Dict[str, str]] = None):
        self.errors = dict(errors or {})
        super().__init__(message, {'errors': self.errors} if self.errors else None)


class DuplicateEventError(SkillStackError):
    """The event is already in the ledger. Callers answer with ``entry`` instead of failing."""

    code = 'DUPLICATE_EVENT'
    status_code = 200
    log_level = logging.INFO

    def __init__(self, entry, message: str = 'Event already recorded'):
        self.entry = entry
        super().__init__(message, {'event_id': getattr(entry, 'event_id', None)})


class SettingsUnavailable(SkillStackError):
    code = 'SETTINGS_UNAVAILABLE'
    status_code = 503
    log_level = logging.WARNING

    def __init__(self, message: str = 'Reward settings unavailable'):
        super().__init__(message)


class StorageTransactionError(SkillStackError):
    """A write was rolled back in full. Retrying with the same event id is safe."""

    code = 'STORAGE_TRANSACTION_FAILED'
    status_code = 503

    def __init__(self, message: str = 'Storage transaction failed', retryable: bool = True):
        self.retryable = retryable
        super().__init__(message, {'retryable': retryable})


class InvariantViolation(SkillStackError):
    """Ledger and aggregates disagree, or the user is frozen until they are reconciled."""

    code = 'INVARIANT_VIOLATION'
    status_code = 409
    log_level = logging.CRITICAL

    def __init__(self, message: str = 'Ledger invariant violated', user_id: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.user_id = user_id
        payload = dict(details or {})
        if user_id is not None:
            payload.setdefault('user_id', user_id)
        super().__init__(message, payload)
