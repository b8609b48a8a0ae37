"""
HTTPS upgrade data: persistence and live runtime state.

HTTPSUpgradePersistence stores the bloom filter (spec + body) and the
whitelist of hosts that must never be upgraded. HTTPSUpgrade holds the
in-memory snapshot the browser consults; load_data() rebuilds it from the
store and publishes it with a single reference swap.
"""
import hashlib
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Tuple

from core.logging.logger import get_logger
from core.logging.tags import TAG_HTTPS, TAG_STORE
from sources.content_blocker.constants import (
    BLOOM_FILTER_FILE,
    BLOOM_FILTER_SPEC_FILE,
    HTTPS_WHITELIST_FILE,
)
from sources.content_blocker.models import BloomFilterSpecification
from sources.content_blocker.parser import DecodeError, HTTPSUpgradeParser
from sources.content_blocker.stores import atomic_write

logger = get_logger(__name__)


class HTTPSUpgradePersistence:
    """Bloom filter and whitelist files under the data directory."""

    def __init__(self, data_dir: Path):
        data_dir = Path(data_dir)
        self._spec_file = data_dir / BLOOM_FILTER_SPEC_FILE
        self._bloom_file = data_dir / BLOOM_FILTER_FILE
        self._whitelist_file = data_dir / HTTPS_WHITELIST_FILE
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Bloom filter
    # ------------------------------------------------------------------

    def bloom_filter_specification(self) -> Optional[BloomFilterSpecification]:
        """Return the spec of the persisted filter, or None if there is none."""
        with self._lock:
            try:
                raw = self._spec_file.read_bytes()
            except FileNotFoundError:
                return None
        try:
            return HTTPSUpgradeParser.convert_bloom_filter_specification(raw)
        except DecodeError as e:
            logger.warning(f"{TAG_STORE} Stored bloom filter spec unreadable: {e}")
            return None

    def persist_bloom_filter(self, specification: BloomFilterSpecification, data: bytes) -> bool:
        """Store spec and body together. Rejects a body whose SHA-256 differs."""
        digest = hashlib.sha256(data).hexdigest()
        if digest != specification.sha256:
            logger.warning(f"{TAG_STORE} Bloom filter checksum mismatch ({digest} != {specification.sha256})")
            return False

        spec_json = json.dumps({
            "totalEntries": specification.total_entries,
            "errorRate": specification.error_rate,
            "sha256": specification.sha256,
        }).encode("utf-8")
        try:
            with self._lock:
                # Body first: a spec on disk always describes the body next to it
                atomic_write(self._bloom_file, data)
                atomic_write(self._spec_file, spec_json)
        except OSError as e:
            logger.error(f"{TAG_STORE} Failed to store bloom filter: {e}")
            return False
        return True

    def bloom_filter(self) -> Optional[Tuple[BloomFilterSpecification, bytes]]:
        specification = self.bloom_filter_specification()
        if specification is None:
            return None
        with self._lock:
            try:
                data = self._bloom_file.read_bytes()
            except FileNotFoundError:
                return None
        return specification, data

    # ------------------------------------------------------------------
    # Whitelist
    # ------------------------------------------------------------------

    def persist_whitelist(self, domains: Iterable[str]) -> bool:
        body = json.dumps({"data": sorted(set(domains))}).encode("utf-8")
        try:
            with self._lock:
                atomic_write(self._whitelist_file, body)
        except OSError as e:
            logger.error(f"{TAG_STORE} Failed to store https whitelist: {e}")
            return False
        return True

    def whitelist(self) -> FrozenSet[str]:
        with self._lock:
            try:
                raw = self._whitelist_file.read_bytes()
            except FileNotFoundError:
                return frozenset()
        try:
            return frozenset(HTTPSUpgradeParser.convert_whitelist(raw))
        except DecodeError as e:
            logger.warning(f"{TAG_STORE} Stored https whitelist unreadable: {e}")
            return frozenset()

    def has_whitelisted_domain(self, domain: str) -> bool:
        return domain.lower() in self.whitelist()


@dataclass(frozen=True)
class HTTPSUpgradeState:
    specification: Optional[BloomFilterSpecification]
    bloom_filter: Optional[bytes]
    whitelist: FrozenSet[str]

    @property
    def has_bloom_filter(self) -> bool:
        return self.bloom_filter is not None


class HTTPSUpgrade:
    """Live HTTPS-upgrade state shared with request handling."""

    def __init__(self, store: HTTPSUpgradePersistence):
        self._store = store
        self._lock = threading.Lock()
        self._state = HTTPSUpgradeState(None, None, frozenset())

    @property
    def state(self) -> HTTPSUpgradeState:
        with self._lock:
            return self._state

    def load_data(self) -> HTTPSUpgradeState:
        """Rebuild the snapshot from the store and publish it."""
        bloom = self._store.bloom_filter()
        state = HTTPSUpgradeState(
            specification=bloom[0] if bloom else None,
            bloom_filter=bloom[1] if bloom else None,
            whitelist=self._store.whitelist(),
        )
        with self._lock:
            self._state = state
        logger.info(
            f"{TAG_HTTPS} Loaded (bloom filter: {state.has_bloom_filter}, "
            f"whitelist: {len(state.whitelist)} hosts)"
        )
        return state

    def is_whitelisted(self, host: str) -> bool:
        return host.lower() in self.state.whitelist
