"""
Lifecycle event publishing for the SOS workflow

UI layers and notification banners subscribe here instead of the
workflow reaching into any global state.
"""

import logging
from typing import Any, Callable, Dict, List

from lifeline.models.emergency import LifecycleEvent


LifecycleListener = Callable[[LifecycleEvent, Dict[str, Any]], None]


class LifecycleEmitter:
    """Synchronous publish/subscribe for lifecycle events"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._listeners: Dict[LifecycleEvent, List[LifecycleListener]] = {}
        self._global_listeners: List[LifecycleListener] = []

    def subscribe(self, event: LifecycleEvent, listener: LifecycleListener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def subscribe_all(self, listener: LifecycleListener) -> None:
        self._global_listeners.append(listener)

    def unsubscribe(self, listener: LifecycleListener) -> None:
        """Remove a listener from every event it was registered for"""
        for listeners in self._listeners.values():
            while listener in listeners:
                listeners.remove(listener)
        while listener in self._global_listeners:
            self._global_listeners.remove(listener)

    def emit(self, event: LifecycleEvent, /, **payload) -> None:
        """Deliver an event; listener errors are logged and never propagate"""
        for listener in self._listeners.get(event, []) + self._global_listeners:
            try:
                listener(event, payload)
            except Exception as e:
                self.logger.error(f"Error in {event.value} listener: {e}")
