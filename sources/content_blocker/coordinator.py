"""
ContentBlockerLoader - fetch coordination and the apply phase.

Responsibilities:
    - Fan out one fetch chain per top-level feed onto the IO pool
    - Fan in on a CompletionBarrier: every chain signals exactly once, when
      its last step is done, however many requests it made
    - Skip feeds whose ETag matches the stored one, unless the store behind
      the disconnect list / tracker whitelist is empty (self-healing)
    - Two-step bloom filter fetch, skipping the body when the spec is unchanged
    - Apply staged updates feed by feed; commit an ETag only once its feed
      has been persisted
"""
import threading
from typing import Any, Callable, List, Optional, Tuple

from core.events import EventSystem, EventType
from core.logging.logger import get_logger
from core.logging.tags import TAG_LOADER
from core.threading.manager import ThreadManager
from sources.content_blocker.constants import SIMPLE_FEEDS
from sources.content_blocker.https_upgrade import HTTPSUpgradePersistence
from sources.content_blocker.interfaces import (
    ETagStorage,
    EtagOOSCheckStore,
    RemoteFeedSource,
    StorageCacheUpdating,
)
from sources.content_blocker.models import (
    BloomFilterPayload,
    FeedKind,
    FetchSuccess,
    PendingUpdates,
    RawPayload,
    WhitelistPayload,
)
from sources.content_blocker.parser import DecodeError, HTTPSUpgradeParser

logger = get_logger(__name__)


# Feeds re-downloaded despite a matching ETag when their store is empty:
# kind -> (EtagOOSCheckStore attribute, diagnostic event)
SELF_HEALING_CHECKS = {
    FeedKind.DISCONNECT_LIST: ("has_disconnect_me_data", EventType.ETAG_STORE_OOS_DISCONNECT_ME_FIX),
    FeedKind.TRACKER_WHITELIST: ("has_easylist_data", EventType.ETAG_STORE_OOS_EASYLIST_FIX),
}


class ChainCountError(RuntimeError):
    """More completion signals arrived than the feed source declared chains."""


class CompletionBarrier:
    """Releases waiters once ``expected`` signals have arrived."""

    def __init__(self, expected: int):
        if expected < 0:
            raise ValueError("expected must be >= 0")
        self._expected = expected
        self._count = 0
        self._cond = threading.Condition()

    @property
    def expected(self) -> int:
        return self._expected

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def signal(self) -> None:
        """
        Raises:
            ChainCountError: every expected signal has already arrived
        """
        with self._cond:
            if self._count >= self._expected:
                raise ChainCountError(
                    f"completion signal {self._count + 1} exceeds {self._expected} expected chains"
                )
            self._count += 1
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until all signals arrived. Returns False if timeout elapsed first."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count >= self._expected, timeout=timeout)


class ContentBlockerLoader:
    """Checks every content blocker feed for updates and applies them.

    Usage::

        loader = ContentBlockerLoader(etag_storage, cache.https_upgrade_store,
                                      thread_manager=thread_manager)
        if loader.check_for_updates(cache, ContentBlockerRequest()):
            loader.apply_update(cache)
    """

    def __init__(
        self,
        etag_storage: ETagStorage,
        https_upgrade_store: HTTPSUpgradePersistence,
        thread_manager: Optional[ThreadManager] = None,
        event_system: Optional[EventSystem] = None,
        legacy_cleanup: Optional[Callable[[], Any]] = None,
        chain_timeout: Optional[float] = None,
    ):
        """
        Args:
            etag_storage: Last-applied ETag per feed
            https_upgrade_store: Source of the persisted bloom filter spec
            thread_manager: Runs fetch chains concurrently on its IO pool.
                Without one, chains run one after another on the caller thread.
            event_system: Receives diagnostic events
            legacy_cleanup: Called at the start of every check
            chain_timeout: Seconds to wait for all chains. None waits forever,
                so a fetch that never returns blocks check_for_updates.
        """
        self._etag_storage = etag_storage
        self._https_upgrade_store = https_upgrade_store
        self._thread_manager = thread_manager
        self._event_system = event_system
        self._legacy_cleanup = legacy_cleanup
        self._chain_timeout = chain_timeout
        self._run_lock = threading.Lock()
        self._pending = PendingUpdates()
        self._timed_out = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def pending_updates(self) -> PendingUpdates:
        return self._pending

    @property
    def has_updates(self) -> bool:
        return len(self._pending) > 0

    @property
    def timed_out(self) -> bool:
        """True if the last check gave up waiting on at least one chain."""
        return self._timed_out

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check_for_updates(self, store: EtagOOSCheckStore, data_source: RemoteFeedSource) -> bool:
        """Fetch every feed and stage the ones that changed.

        Returns True if at least one feed was staged. Fetch and decode
        failures only drop the affected feed.

        Raises:
            RuntimeError: a check or apply is already running on this loader
            ChainCountError: data_source.chain_count does not match the
                number of fetch chains
        """
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("ContentBlockerLoader is already running")
        try:
            if self._legacy_cleanup is not None:
                self._legacy_cleanup()

            pending = PendingUpdates()
            self._pending = pending
            self._timed_out = False

            barrier = CompletionBarrier(data_source.chain_count)
            self._start_requests(barrier, pending, store, data_source)

            if not barrier.wait(timeout=self._chain_timeout):
                self._timed_out = True
                logger.error(
                    f"{TAG_LOADER} Timed out after {self._chain_timeout}s: "
                    f"{barrier.count}/{barrier.expected} chains completed"
                )
                self._publish(EventType.CHECK_TIMEOUT,
                              {"completed": barrier.count, "expected": barrier.expected})
            pending.seal()

            logger.info(f"{TAG_LOADER} completed {len(pending)}")
            self._publish(EventType.CHECK_COMPLETED, pending.kinds)
            return len(pending) > 0
        finally:
            self._run_lock.release()

    def apply_update(self, cache: StorageCacheUpdating) -> List[FeedKind]:
        """Persist every staged feed. Returns the kinds applied successfully.

        Raises:
            RuntimeError: a check is running on this loader
        """
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("ContentBlockerLoader is already running")
        try:
            applied: List[FeedKind] = []
            for kind, payload in self._pending.items():
                try:
                    result = cache.update(kind, payload)
                except Exception:
                    logger.exception(f"{TAG_LOADER} Store raised while applying {kind.value}")
                    result = False

                if not result:
                    logger.warning(f"{TAG_LOADER} Failed to apply update to {kind.value}")
                    self._publish(EventType.APPLY_FAILED, kind)
                    continue

                applied.append(kind)
                etag = self._pending.etag_for(kind)
                if etag is not None:
                    try:
                        self._etag_storage.set(etag, kind)
                    except OSError as e:
                        logger.error(f"{TAG_LOADER} Could not store etag for {kind.value}: {e}")

            self._publish(EventType.APPLY_COMPLETED, applied)
            return applied
        finally:
            self._run_lock.release()

    # ------------------------------------------------------------------
    # Fetch chains
    # ------------------------------------------------------------------

    def _start_requests(self, barrier: CompletionBarrier, pending: PendingUpdates,
                        store: EtagOOSCheckStore, data_source: RemoteFeedSource) -> None:
        """
        Raises:
            ChainCountError: the feed source declares a different number of
                chains than there are feeds; nothing is dispatched
        """
        chains: List[Tuple[str, Callable, tuple]] = [
            (kind.value, self._request, (kind, pending, store, data_source)) for kind in SIMPLE_FEEDS
        ]
        chains.append(("https_upgrade", self._request_https_upgrade, (pending, data_source)))
        chains.append(("https_whitelist", self._request_https_whitelist, (pending, data_source)))

        if len(chains) != barrier.expected:
            raise ChainCountError(
                f"{len(chains)} fetch chains but the feed source declares {barrier.expected}"
            )

        if self._thread_manager is None:
            logger.warning(f"{TAG_LOADER} No ThreadManager, fetching feeds sequentially")

        for name, chain, args in chains:
            self._dispatch(name, barrier, chain, *args)

    def _dispatch(self, name: str, barrier: CompletionBarrier, chain: Callable, *args) -> None:
        def _task():
            try:
                chain(*args)
            except Exception:
                logger.exception(f"{TAG_LOADER} Chain {name} failed")
            finally:
                barrier.signal()

        if self._thread_manager is None:
            _task()
        else:
            self._thread_manager.submit_io_task(_task, task_id=f"content_blocker_{name}")

    def _request(self, kind: FeedKind, pending: PendingUpdates,
                 store: EtagOOSCheckStore, data_source: RemoteFeedSource) -> None:
        response = data_source.fetch(kind)
        if not isinstance(response, FetchSuccess):
            logger.info(f"{TAG_LOADER} No update for {kind.value}: fetch failed")
            return

        is_cached = response.etag is not None and self._etag_storage.etag(kind) == response.etag
        pending.record_etag(kind, response.etag)

        if not is_cached:
            pending.stage(kind, RawPayload(response.data))
            return

        check = SELF_HEALING_CHECKS.get(kind)
        if check is None:
            logger.debug(f"{TAG_LOADER} {kind.value} unchanged")
            return

        attribute, event_type = check
        if not getattr(store, attribute):
            logger.warning(f"{TAG_LOADER} {kind.value} etag matches but store is empty, out of sync: reloading")
            pending.stage(kind, RawPayload(response.data))
            self._publish(event_type, kind)

    def _request_https_upgrade(self, pending: PendingUpdates, data_source: RemoteFeedSource) -> None:
        response = data_source.fetch(FeedKind.BLOOM_FILTER_SPEC)
        if not isinstance(response, FetchSuccess):
            return

        try:
            specification = HTTPSUpgradeParser.convert_bloom_filter_specification(response.data)
        except DecodeError as e:
            logger.warning(f"{TAG_LOADER} Bloom filter spec rejected: {e}")
            return

        stored = self._https_upgrade_store.bloom_filter_specification()
        if stored is not None and stored == specification:
            logger.info(f"{TAG_LOADER} Bloom filter already downloaded")
            return

        response = data_source.fetch(FeedKind.BLOOM_FILTER)
        if not isinstance(response, FetchSuccess):
            return
        pending.stage(FeedKind.BLOOM_FILTER, BloomFilterPayload(specification, response.data))

    def _request_https_whitelist(self, pending: PendingUpdates, data_source: RemoteFeedSource) -> None:
        kind = FeedKind.HTTPS_WHITELIST
        response = data_source.fetch(kind)
        if not isinstance(response, FetchSuccess):
            return

        is_cached = response.etag is not None and self._etag_storage.etag(kind) == response.etag
        if is_cached:
            return

        try:
            whitelist = HTTPSUpgradeParser.convert_whitelist(response.data)
        except DecodeError as e:
            logger.warning(f"{TAG_LOADER} HTTPS whitelist rejected: {e}")
            return

        pending.stage(kind, WhitelistPayload(tuple(whitelist)))
        pending.record_etag(kind, response.etag)

    def _publish(self, event_type: str, data: Any = None) -> None:
        if self._event_system is not None:
            self._event_system.publish(event_type, data=data, source=self)
