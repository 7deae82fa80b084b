"""
Widget refresh scheduling.

Actual timing is delegated to the host OS background-task facility through
the widget bridge; this process keeps no timer of its own. The SCHEDULED
state mirrors a registration that lives outside the process, so the
composition root re-invokes start() after a cold start.
"""

import logging
import sqlite3
from enum import Enum
from typing import Optional

from ..core.cache import CacheStore
from ..log import get_logger
from ..storage.models import WidgetConfig
from .bridge import WidgetBridge
from .config_store import WidgetConfigStore
from .publisher import WidgetDataPublisher


class SchedulerState(Enum):
    """Registration state of the recurring widget refresh."""
    STOPPED = "stopped"
    SCHEDULED = "scheduled"


class WidgetScheduler:
    """Registers, re-registers and cancels the recurring widget refresh."""

    def __init__(
        self,
        cache: CacheStore,
        publisher: WidgetDataPublisher,
        bridge: WidgetBridge,
        config_store: WidgetConfigStore,
        logger: Optional[logging.Logger] = None
    ):
        self.cache = cache
        self.publisher = publisher
        self.bridge = bridge
        self.config_store = config_store
        self.logger = logger or get_logger(__name__)
        self.state = SchedulerState.STOPPED
        self.interval_minutes: Optional[int] = None

    @property
    def is_scheduled(self) -> bool:
        return self.state == SchedulerState.SCHEDULED

    async def start(self, config: WidgetConfig, refresh: bool = True) -> SchedulerState:
        """Publish once and register the recurring refresh.

        A disabled config is a no-op and leaves the scheduler STOPPED.

        Args:
            config: Widget configuration to schedule with
            refresh: Run the immediate publish before registering

        Returns:
            The resulting state
        """
        if not config.enabled:
            self.logger.info("Widget scheduler is disabled")
            return self.state

        if refresh:
            await self.refresh_now()

        if await self.bridge.schedule_update(config.update_interval_minutes):
            self.state = SchedulerState.SCHEDULED
            self.interval_minutes = config.update_interval_minutes
            self.logger.info(
                f"Widget scheduler started with {config.update_interval_minutes} minute interval"
            )
        else:
            self.state = SchedulerState.STOPPED
            self.interval_minutes = None
            self.logger.warning("Failed to start widget scheduler")
        return self.state

    async def stop(self) -> SchedulerState:
        """Cancel the recurring refresh. Stopping while STOPPED does nothing."""
        if self.state != SchedulerState.SCHEDULED:
            return self.state

        if not await self.bridge.cancel_scheduled_update():
            self.logger.warning("Native scheduler did not confirm cancellation")
        self.state = SchedulerState.STOPPED
        self.interval_minutes = None
        self.logger.info("Widget scheduler stopped")
        return self.state

    async def apply_config(self, config: WidgetConfig) -> WidgetConfig:
        """Persist a settings change and move the scheduler to match it.

        Disabling a previously enabled config cancels the host registration
        even when this process never started the scheduler, since the
        registration may belong to an earlier process.

        Returns:
            The config as stored
        """
        previous = await self.config_store.get()
        stored = await self.config_store.set(config)

        if not stored.enabled:
            if self.is_scheduled:
                await self.stop()
            elif previous.enabled:
                if not await self.bridge.cancel_scheduled_update():
                    self.logger.warning("Native scheduler did not confirm cancellation")
                self.logger.info("Cancelled widget refresh registered by an earlier process")
        elif not self.is_scheduled:
            await self.start(stored)
        elif self.interval_minutes != stored.update_interval_minutes:
            self.logger.info(
                f"Rescheduling widget refresh: {self.interval_minutes} -> "
                f"{stored.update_interval_minutes} minutes"
            )
            await self.stop()
            await self.start(stored, refresh=False)
        return stored

    async def restore(self, refresh: bool = True) -> SchedulerState:
        """Re-register from the persisted config, e.g. after a process restart."""
        config = await self.config_store.get()
        if not config.enabled:
            return self.state
        return await self.start(config, refresh=refresh)

    async def refresh_now(self) -> bool:
        """Force a pipeline fetch and publish the result to the widget.

        Returns:
            True when a snapshot was fetched and published
        """
        result = await self.cache.get_data(force_refresh=True)
        if not result.success or result.snapshot is None:
            self.logger.warning(f"Widget refresh failed: {result.error}")
            return False

        try:
            return await self.publisher.publish(result.snapshot)
        except (sqlite3.Error, OSError) as e:
            self.logger.error(f"Failed to store widget data: {e}")
            return False
