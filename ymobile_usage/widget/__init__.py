"""
Widget publishing and scheduling for Y!mobile Usage.

Bridges the latest usage snapshot to the native home-screen widget.
"""

from .bridge import AndroidWidgetBridge, IOSWidgetBridge, NullWidgetBridge, WidgetBridge, select_bridge
from .config_store import WidgetConfigStore
from .publisher import WidgetDataPublisher
from .scheduler import SchedulerState, WidgetScheduler

__all__ = [
    "AndroidWidgetBridge",
    "IOSWidgetBridge",
    "NullWidgetBridge",
    "SchedulerState",
    "WidgetBridge",
    "WidgetConfigStore",
    "WidgetDataPublisher",
    "WidgetScheduler",
    "select_bridge",
]
