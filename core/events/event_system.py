"""
Publish-subscribe event bus.

Used for diagnostic signals raised by the update pipeline (self-healing
downloads, apply failures, timeouts) so analytics or UI layers can observe
them without the pipeline importing either.
"""
from typing import Any, Callable, Dict, List, Optional
import threading
from collections import defaultdict
from core.logging.logger import get_logger
from core.events.event_types import Event, Subscription

logger = get_logger('EventSystem')


class EventSystem:
    """
    Thread-safe event bus with priority-ordered subscriptions.

    Events may be published from IO worker threads; handlers run on the
    publishing thread while the bus lock is held.
    """

    def __init__(self, max_history: int = 1000):
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._subscription_map: Dict[str, Subscription] = {}
        self._event_history: List[Event] = []
        self._max_history = max_history
        self._lock = threading.RLock()

    def subscribe(
        self,
        event_type: str,
        callback: Callable[[Event], None],
        priority: int = 50,
        filter_fn: Optional[Callable[[Event], bool]] = None,
    ) -> str:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Type of event to subscribe to
            callback: Function to call when event is published
            priority: Priority (higher = called earlier), default 50
            filter_fn: Optional filter function

        Returns:
            str: Subscription ID for unsubscribing

        Raises:
            ValueError: If callback is not callable or event_type is blank
        """
        if not callable(callback):
            raise ValueError("Callback must be callable")
        self._validate_event_type(event_type)

        subscription = Subscription(callback, event_type, priority, filter_fn)
        with self._lock:
            self._subscriptions[event_type].append(subscription)
            self._subscriptions[event_type].sort()
            self._subscription_map[subscription.id] = subscription

        logger.debug(f"New subscription: {subscription.id} for {event_type} (priority={priority})")
        return subscription.id

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription. Unknown ids are logged and ignored."""
        with self._lock:
            subscription = self._subscription_map.pop(subscription_id, None)
            if subscription is None:
                logger.warning(f"Unsubscribe called with unknown id: {subscription_id}")
                return

            subscription.active = False
            remaining = [s for s in self._subscriptions.get(subscription.event_type, [])
                         if s.id != subscription_id]
            if remaining:
                self._subscriptions[subscription.event_type] = remaining
            else:
                self._subscriptions.pop(subscription.event_type, None)

    def publish(self, event_type: str, data: Any = None, source: Any = None) -> Event:
        """
        Publish an event to all subscribers in priority order.

        A failing handler is logged and does not stop delivery to the others.

        Returns:
            Event: The published event object
        """
        self._validate_event_type(event_type)
        event = Event(event_type, data, source)

        with self._lock:
            for subscription in list(self._subscriptions.get(event_type, [])):
                if event.is_handled:
                    break
                try:
                    subscription(event)
                except Exception as e:
                    logger.error(f"Error in event handler for {event_type}: {e}", exc_info=True)

            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history = self._event_history[-self._max_history:]

        return event

    def get_event_history(self, limit: int = 100,
                          event_type: Optional[str] = None) -> List[Event]:
        """Return the most recent events, optionally of a single type."""
        with self._lock:
            history = self._event_history
            if event_type is not None:
                history = [e for e in history if e.event_type == event_type]
            return history[-limit:]

    def clear(self) -> None:
        """Clear all subscriptions and history."""
        with self._lock:
            self._subscriptions.clear()
            self._subscription_map.clear()
            self._event_history.clear()

    def get_subscription_count(self) -> int:
        with self._lock:
            return len(self._subscription_map)

    @staticmethod
    def _validate_event_type(event_type: str) -> None:
        if not isinstance(event_type, str) or not event_type.strip():
            raise ValueError("event_type must be a non-empty string")
