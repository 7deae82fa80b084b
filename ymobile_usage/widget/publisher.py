"""
Widget data publishing.

Persists the widget-scoped projection of each new snapshot and asks the
native surface to redraw.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Optional

from ..log import get_logger
from ..storage.models import UsageSnapshot, WidgetProjection
from ..storage.repository import KeyValueStore
from .bridge import WidgetBridge
from .config_store import LAST_UPDATE_KEY, WIDGET_DATA_KEY


class WidgetDataPublisher:
    """Writes the WidgetProjection and notifies the widget bridge.

    Publishing the same snapshot twice is safe; it simply redraws.
    """

    def __init__(
        self,
        store: KeyValueStore,
        bridge: WidgetBridge,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None
    ):
        self.store = store
        self.bridge = bridge
        self.clock = clock
        self.logger = logger or get_logger(__name__)

    async def publish(self, snapshot: UsageSnapshot) -> bool:
        """Persist the projection of snapshot and trigger a redraw.

        Args:
            snapshot: A complete snapshot from the pipeline

        Returns:
            True when the native surface accepted the update

        Raises:
            sqlite3.Error, OSError: If the projection cannot be stored
        """
        projection = WidgetProjection.from_snapshot(snapshot)
        await self.store.set(WIDGET_DATA_KEY, json.dumps(projection.to_payload()))
        await self.store.set(LAST_UPDATE_KEY, self.clock().isoformat())

        updated = await self.bridge.update_widget_data(projection)
        if updated:
            self.logger.info(f"Widget updated: {projection.percentage}% used")
        else:
            self.logger.warning("Widget data stored but the native surface was not updated")
        return updated

    async def get_widget_data(self) -> Optional[WidgetProjection]:
        raw = await self.store.get(WIDGET_DATA_KEY)
        if not raw:
            return None
        try:
            return WidgetProjection.from_payload(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error(f"Stored widget data is invalid: {e}")
            return None

    async def get_last_update_time(self) -> Optional[datetime]:
        raw = await self.store.get(LAST_UPDATE_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            self.logger.error(f"Stored last update time is invalid: {raw!r}")
            return None

    async def reload(self) -> bool:
        """Redraw the widget without new data."""
        return await self.bridge.reload()
