"""
Widget configuration persistence.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Callable, Optional

from ..log import get_logger
from ..storage.models import WidgetConfig
from ..storage.repository import KeyValueStore

WIDGET_CONFIG_KEY = "widget_config"
WIDGET_DATA_KEY = "widget_data"
LAST_UPDATE_KEY = "widget_last_update"


class WidgetConfigStore:
    """Reads and writes WidgetConfig, independently of the usage cache."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None
    ):
        self.store = store
        self.clock = clock
        self.logger = logger or get_logger(__name__)

    async def get(self) -> WidgetConfig:
        """Return the stored config, or the defaults when none is readable."""
        try:
            raw = await self.store.get(WIDGET_CONFIG_KEY)
        except (sqlite3.Error, OSError) as e:
            self.logger.error(f"Failed to read widget config: {e}")
            return WidgetConfig()

        if not raw:
            return WidgetConfig()
        try:
            return WidgetConfig.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            self.logger.error(f"Stored widget config is invalid, using defaults: {e}")
            return WidgetConfig()

    async def set(self, config: WidgetConfig) -> WidgetConfig:
        """Persist config, stamping last_updated.

        Returns:
            The config as stored
        """
        stamped = WidgetConfig(
            enabled=config.enabled,
            update_interval_minutes=config.update_interval_minutes,
            show_mini_widget=config.show_mini_widget,
            show_main_widget=config.show_main_widget,
            last_updated=self.clock(),
        )
        await self.store.set(WIDGET_CONFIG_KEY, json.dumps(stamped.to_dict()))
        return stamped

    async def reset(self) -> None:
        """Remove the config, the published widget data and the last-update stamp."""
        await self.store.remove_many([WIDGET_CONFIG_KEY, WIDGET_DATA_KEY, LAST_UPDATE_KEY])
        self.logger.info("Widget configuration reset")
