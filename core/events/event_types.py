"""
Event type definitions for the content blocker sync tool.
"""
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


@dataclass
class Event:
    """A published event."""
    event_type: str
    data: Any = None
    source: Any = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    timestamp: float = field(default_factory=time.time)
    is_handled: bool = False

    def mark_handled(self):
        """Stop delivery to lower-priority subscribers."""
        self.is_handled = True


@dataclass
class Subscription:
    """Subscription to an event type."""
    callback: Callable[[Event], None]
    event_type: str
    priority: int = 0
    filter_fn: Optional[Callable[[Event], bool]] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    active: bool = True

    def __call__(self, event: Event) -> None:
        if self.filter_fn is None or self.filter_fn(event):
            self.callback(event)

    def __lt__(self, other: 'Subscription') -> bool:
        # Higher priority sorts first
        return self.priority > other.priority


class EventType:
    """Event type constants."""
    # Update run lifecycle
    CHECK_COMPLETED = "content_blocker.check.completed"
    CHECK_TIMEOUT = "content_blocker.check.timeout"
    APPLY_COMPLETED = "content_blocker.apply.completed"
    APPLY_FAILED = "content_blocker.apply.failed"

    # Self-healing downloads: the ETag matched but the local store was empty
    ETAG_STORE_OOS_DISCONNECT_ME_FIX = "etag_store.oos.disconnect_me_fix"
    ETAG_STORE_OOS_EASYLIST_FIX = "etag_store.oos.easylist_fix"

    # Derived state
    ENTITY_MAPPING_REBUILT = "entity_mapping.rebuilt"
    HTTPS_UPGRADE_RELOADED = "https_upgrade.reloaded"
