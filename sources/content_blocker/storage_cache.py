"""
StorageCache - owner of every content blocker store.

Responsibilities:
    - Persist a staged feed payload into the store for its FeedKind
    - Rebuild derived state after an update (entity mapping snapshot,
      live HTTPS-upgrade state)
    - Answer the loader's self-healing question: which stores are empty
"""
from pathlib import Path
from typing import Callable, Dict, Optional

from core.events import EventSystem, EventType
from core.logging.logger import get_logger
from core.logging.tags import TAG_CACHE
from sources.content_blocker.https_upgrade import HTTPSUpgrade, HTTPSUpgradePersistence
from sources.content_blocker.models import (
    BloomFilterPayload,
    FeedKind,
    Payload,
    RawPayload,
    WhitelistPayload,
)
from sources.content_blocker.parser import DecodeError
from sources.content_blocker.stores import (
    DisconnectMeStore,
    EasylistStore,
    EntityMapping,
    EntityMappingStore,
    SurrogateStore,
)

logger = get_logger(__name__)


class StorageCache:
    """Persists feed updates; implements StorageCacheUpdating and EtagOOSCheckStore."""

    def __init__(
        self,
        data_dir: Path,
        https_upgrade: Optional[HTTPSUpgrade] = None,
        event_system: Optional[EventSystem] = None,
    ):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._event_system = event_system

        self.easylist_store = EasylistStore(self.data_dir)
        self.surrogate_store = SurrogateStore(self.data_dir)
        self.disconnect_me_store = DisconnectMeStore(self.data_dir)
        self.https_upgrade_store = HTTPSUpgradePersistence(self.data_dir)
        self.entity_mapping_store = EntityMappingStore(self.data_dir)
        self.https_upgrade = https_upgrade or HTTPSUpgrade(self.https_upgrade_store)

        # Replaced, never mutated: readers grab the reference and keep a
        # consistent snapshot even while an update swaps in a new one.
        self._entity_mapping = EntityMapping(self.entity_mapping_store)

        self._handlers: Dict[FeedKind, Callable[[Payload], bool]] = {
            FeedKind.TRACKER_WHITELIST: self._update_trackers_whitelist,
            FeedKind.DISCONNECT_LIST: self._update_disconnect_me,
            FeedKind.HTTPS_WHITELIST: self._update_https_whitelist,
            FeedKind.BLOOM_FILTER: self._update_bloom_filter,
            FeedKind.SURROGATES: self._update_surrogates,
            FeedKind.ENTITY_LIST: self._update_entity_list,
        }

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def entity_mapping(self) -> EntityMapping:
        return self._entity_mapping

    @property
    def has_data(self) -> bool:
        return self.disconnect_me_store.has_data and self.easylist_store.has_data

    @property
    def has_disconnect_me_data(self) -> bool:
        return self.disconnect_me_store.has_data

    @property
    def has_easylist_data(self) -> bool:
        return self.easylist_store.has_data

    def remove_legacy_data(self) -> None:
        self.easylist_store.remove_legacy_lists()

    # ------------------------------------------------------------------
    # Update dispatch
    # ------------------------------------------------------------------

    def update(self, kind: FeedKind, payload: Payload) -> bool:
        """Persist payload for kind. Returns False for unknown kinds or wrong shapes."""
        handler = self._handlers.get(kind)
        if handler is None:
            logger.warning(f"{TAG_CACHE} No store for {kind.value}")
            return False
        return handler(payload)

    def _update_trackers_whitelist(self, payload: Payload) -> bool:
        if not isinstance(payload, RawPayload):
            return False
        return self.easylist_store.persist_easylist_whitelist(payload.data)

    def _update_disconnect_me(self, payload: Payload) -> bool:
        if not isinstance(payload, RawPayload):
            return False
        try:
            self.disconnect_me_store.persist(payload.data)
        except (DecodeError, OSError) as e:
            logger.warning(f"{TAG_CACHE} Disconnect list rejected: {e}")
            return False
        return True

    def _update_https_whitelist(self, payload: Payload) -> bool:
        if not isinstance(payload, WhitelistPayload):
            return False
        return self.https_upgrade_store.persist_whitelist(payload.domains)

    def _update_bloom_filter(self, payload: Payload) -> bool:
        if not isinstance(payload, BloomFilterPayload):
            return False
        result = self.https_upgrade_store.persist_bloom_filter(payload.specification, payload.data)
        if result:
            self.https_upgrade.load_data()
            self._publish(EventType.HTTPS_UPGRADE_RELOADED)
        return result

    def _update_surrogates(self, payload: Payload) -> bool:
        if not isinstance(payload, RawPayload):
            return False
        return self.surrogate_store.parse_and_persist(payload.data)

    def _update_entity_list(self, payload: Payload) -> bool:
        if not isinstance(payload, RawPayload):
            return False
        result = self.entity_mapping_store.persist(payload.data)
        if result:
            self._entity_mapping = EntityMapping(self.entity_mapping_store)
            self._publish(EventType.ENTITY_MAPPING_REBUILT, len(self._entity_mapping))
        return result

    def _publish(self, event_type: str, data=None) -> None:
        if self._event_system is not None:
            self._event_system.publish(event_type, data=data, source=self)
