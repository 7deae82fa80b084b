"""
Composition root.

Builds every component once, with explicit dependencies, and restores the
widget schedule on process startup.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

import httpx

from .config.loader import AppSettings
from .core.cache import CacheStore, UsageFetcher
from .core.credentials import CredentialStore, load_or_create_key
from .log import get_logger
from .storage.models import FetchResult
from .storage.repository import KeyValueStore, SqliteKeyValueStore
from .widget.bridge import WidgetBridge, select_bridge
from .widget.config_store import WidgetConfigStore
from .widget.publisher import WidgetDataPublisher
from .widget.scheduler import SchedulerState, WidgetScheduler


@dataclass
class UsageApp:
    """All wired components of one process."""
    settings: AppSettings
    store: KeyValueStore
    credentials: CredentialStore
    cache: CacheStore
    bridge: WidgetBridge
    config_store: WidgetConfigStore
    publisher: WidgetDataPublisher
    scheduler: WidgetScheduler
    logger: logging.Logger

    async def startup(self) -> SchedulerState:
        """Re-register the widget refresh if the persisted config enables it.

        The host scheduler registration is not guaranteed to survive a cold
        start, so this runs on every process start.
        """
        state = await self.scheduler.restore()
        self.logger.debug(f"Widget scheduler state after startup: {state.value}")
        return state

    async def get_data(self, force_refresh: bool = False) -> FetchResult:
        return await self.cache.get_data(force_refresh=force_refresh)


def build_app(
    settings: AppSettings,
    native: Any = None,
    store: Optional[KeyValueStore] = None,
    key: Optional[bytes] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    logger: Optional[logging.Logger] = None
) -> UsageApp:
    """Wire the application from settings.

    Args:
        settings: Loaded application settings
        native: Native widget module exposed by the host, if any
        store: Key-value store override; defaults to SQLite at settings.storage.db_path
        key: Fernet key override; defaults to the key file at settings.storage.key_path
        transport: HTTP transport override, used by tests
        logger: Logger passed to every component

    Returns:
        A ready UsageApp
    """
    logger = logger or get_logger()
    store = store or SqliteKeyValueStore(settings.storage.db_path)
    key = key or load_or_create_key(settings.storage.key_path)

    credentials = CredentialStore(store, key, logger=logger)
    fetcher = UsageFetcher(settings, transport=transport, logger=logger)
    cache = CacheStore(
        store,
        credentials,
        fetcher,
        ttl=timedelta(minutes=settings.cache.ttl_minutes),
        logger=logger,
    )
    bridge = select_bridge(settings.widget.platform, native, logger=logger)
    config_store = WidgetConfigStore(store, logger=logger)
    publisher = WidgetDataPublisher(store, bridge, logger=logger)
    scheduler = WidgetScheduler(cache, publisher, bridge, config_store, logger=logger)

    return UsageApp(
        settings=settings,
        store=store,
        credentials=credentials,
        cache=cache,
        bridge=bridge,
        config_store=config_store,
        publisher=publisher,
        scheduler=scheduler,
        logger=logger,
    )
