from .settings_provider import SettingsProvider, get_settings_provider, init_settings_provider
from .aggregate_updater import AggregateUpdater
from .ledger_writer import LedgerWriter
from .streak_engine import StreakEngine
from .stats_service import StatsService
from .audit_service import AuditService
from .ingestion_service import IngestionService

__all__ = [
    'SettingsProvider',
    'get_settings_provider',
    'init_settings_provider',
    'AggregateUpdater',
    'LedgerWriter',
    'StreakEngine',
    'StatsService',
    'AuditService',
    'IngestionService',
]
