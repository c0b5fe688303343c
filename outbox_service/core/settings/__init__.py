"""Modular Pydantic Settings v2 configuration.

Each concern has its own settings class and environment prefix:
- APP_: service identity
- DB_: database connection
- RABBIT_: message broker
- LOG_: logging
- OUTBOX_: retry budget and relay limits
- SCHEDULER_: job schedules

Import settings via cached loaders:
    from outbox_service.core.settings import get_outbox_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .loader import (
    clear_settings_cache,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_outbox_settings,
    get_rabbit_settings,
    get_scheduler_settings,
)
from .logs import LoggingSettings
from .outbox import OutboxSettings
from .postgres import PostgresSettings
from .rabbit import RabbitSettings
from .scheduler import SchedulerSettings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "OutboxSettings",
    "PostgresSettings",
    "RabbitSettings",
    "SchedulerSettings",
    "clear_settings_cache",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_outbox_settings",
    "get_rabbit_settings",
    "get_scheduler_settings",
]
