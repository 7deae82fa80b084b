"""
Native widget bridge.

The home-screen widget is drawn by native code outside this process. A
WidgetBridge wraps the native module exposed by the host and hides which
platform it runs on; the implementation is chosen once at composition time.
A missing native module is a soft failure: calls log a warning and return
False.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..config.loader import WidgetPlatform
from ..log import get_logger
from ..storage.models import WidgetProjection


class WidgetBridge(ABC):
    """Capability for talking to the native widget surface."""

    @abstractmethod
    async def update_widget_data(self, projection: WidgetProjection) -> bool:
        """Hand new data to the widget and trigger a redraw."""

    @abstractmethod
    async def reload(self) -> bool:
        """Redraw the widget with the data it already has."""

    @abstractmethod
    async def schedule_update(self, interval_minutes: int) -> bool:
        """Register a recurring background refresh with the host scheduler."""

    @abstractmethod
    async def cancel_scheduled_update(self) -> bool:
        """Cancel the recurring background refresh."""


class NullWidgetBridge(WidgetBridge):
    """Bridge for hosts without a widget surface. Every call returns False."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)

    async def update_widget_data(self, projection: WidgetProjection) -> bool:
        self.logger.debug("No widget surface; skipping update")
        return False

    async def reload(self) -> bool:
        return False

    async def schedule_update(self, interval_minutes: int) -> bool:
        self.logger.debug("No widget surface; skipping schedule")
        return False

    async def cancel_scheduled_update(self) -> bool:
        return False


class NativeWidgetBridge(WidgetBridge):
    """Shared plumbing for bridges backed by a host native module.

    The native module may expose plain or async methods.
    """

    platform = WidgetPlatform.NONE

    def __init__(self, native: Any = None, logger: Optional[logging.Logger] = None):
        self.native = native
        self.logger = logger or get_logger(__name__)

    def is_available(self) -> bool:
        return self.native is not None

    async def _call(self, method: str, *args: Any) -> bool:
        if not self.is_available():
            self.logger.warning("WidgetBridge is not available")
            return False
        try:
            result = getattr(self.native, method)(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.logger.error(f"Native widget call {method} failed on {self.platform.value}: {e}")
            return False
        return True

    async def schedule_update(self, interval_minutes: int) -> bool:
        return await self._call("scheduleUpdate", interval_minutes)

    async def cancel_scheduled_update(self) -> bool:
        return await self._call("cancelScheduledUpdate")


class IOSWidgetBridge(NativeWidgetBridge):
    """WidgetKit: data goes to the shared app group, then timelines reload."""

    platform = WidgetPlatform.IOS

    async def update_widget_data(self, projection: WidgetProjection) -> bool:
        if not await self._call("updateWidgetData", projection.to_payload()):
            return False
        return await self.reload()

    async def reload(self) -> bool:
        return await self._call("reloadAllTimelines")


class AndroidWidgetBridge(NativeWidgetBridge):
    """App widget: data is already in shared preferences, send an update broadcast."""

    platform = WidgetPlatform.ANDROID

    async def update_widget_data(self, projection: WidgetProjection) -> bool:
        return await self.reload()

    async def reload(self) -> bool:
        return await self._call("updateWidget")


def select_bridge(
    platform: WidgetPlatform,
    native: Any = None,
    logger: Optional[logging.Logger] = None
) -> WidgetBridge:
    """Pick the bridge implementation for the host platform."""
    if platform == WidgetPlatform.IOS:
        return IOSWidgetBridge(native, logger=logger)
    if platform == WidgetPlatform.ANDROID:
        return AndroidWidgetBridge(native, logger=logger)
    return NullWidgetBridge(logger=logger)
