"""
Content blocker data model.

FeedKind names every remote feed. Fetch results and staged payloads are small
frozen dataclasses; PendingUpdates is the accumulator one update run writes
into from several IO threads at once.
"""
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from core.logging.logger import get_logger
from core.logging.tags import TAG_LOADER

logger = get_logger(__name__)


class FeedKind(Enum):
    """Remote feeds. The value is the stable id used in the ETag store."""
    ENTITY_LIST = "entitylist"
    DISCONNECT_LIST = "disconnectme"
    TRACKER_WHITELIST = "trackersWhitelist"
    SURROGATES = "surrogates"
    BLOOM_FILTER_SPEC = "httpsBloomFilterSpec"
    BLOOM_FILTER = "httpsBloomFilter"
    HTTPS_WHITELIST = "httpsWhitelist"


# ---------------------------------------------------------------------------
# Fetch results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchSuccess:
    etag: Optional[str]
    data: bytes


@dataclass(frozen=True)
class FetchFailure:
    reason: Optional[str] = None


FetchResult = Union[FetchSuccess, FetchFailure]


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BloomFilterSpecification:
    """Describes a bloom filter body; two specs are equal when all fields are."""
    total_entries: int
    error_rate: float
    sha256: str


@dataclass(frozen=True)
class RawPayload:
    """Undecoded feed body, handed to the store that owns the format."""
    data: bytes


@dataclass(frozen=True)
class WhitelistPayload:
    domains: Tuple[str, ...]


@dataclass(frozen=True)
class BloomFilterPayload:
    specification: BloomFilterSpecification
    data: bytes


Payload = Union[RawPayload, WhitelistPayload, BloomFilterPayload]

PAYLOAD_TYPES = {
    FeedKind.ENTITY_LIST: RawPayload,
    FeedKind.DISCONNECT_LIST: RawPayload,
    FeedKind.TRACKER_WHITELIST: RawPayload,
    FeedKind.SURROGATES: RawPayload,
    FeedKind.HTTPS_WHITELIST: WhitelistPayload,
    FeedKind.BLOOM_FILTER: BloomFilterPayload,
}


class PayloadTypeError(TypeError):
    """Raised when a payload is staged under a kind that expects another shape."""


def check_payload(kind: FeedKind, payload: Payload) -> None:
    expected = PAYLOAD_TYPES.get(kind)
    if expected is None:
        raise PayloadTypeError(f"{kind.value} is never staged")
    if not isinstance(payload, expected):
        raise PayloadTypeError(
            f"{kind.value} expects {expected.__name__}, got {type(payload).__name__}"
        )


# ---------------------------------------------------------------------------
# Run accumulator
# ---------------------------------------------------------------------------

class PendingUpdates:
    """Payloads and ETags collected during one update run.

    Each fetch chain writes only its own kinds, but the maps are still
    guarded by a lock. Once sealed, further writes are dropped: a chain that
    outlives a timed-out run cannot leak into the result.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[FeedKind, Payload] = {}
        self._etags: Dict[FeedKind, str] = {}
        self._sealed = False

    def stage(self, kind: FeedKind, payload: Payload) -> bool:
        """Stage a payload for apply. Returns False if the run is sealed.

        Raises:
            PayloadTypeError: payload shape does not match the kind
        """
        check_payload(kind, payload)
        with self._lock:
            if self._sealed:
                logger.warning(f"{TAG_LOADER} Dropping late update for {kind.value}")
                return False
            self._data[kind] = payload
        return True

    def record_etag(self, kind: FeedKind, etag: Optional[str]) -> None:
        """Remember the ETag a fetch returned. Tag-less responses record nothing."""
        if etag is None:
            return
        with self._lock:
            if not self._sealed:
                self._etags[kind] = etag

    def seal(self) -> None:
        with self._lock:
            self._sealed = True

    @property
    def sealed(self) -> bool:
        with self._lock:
            return self._sealed

    def payload_for(self, kind: FeedKind) -> Optional[Payload]:
        with self._lock:
            return self._data.get(kind)

    def etag_for(self, kind: FeedKind) -> Optional[str]:
        with self._lock:
            return self._etags.get(kind)

    def items(self) -> List[Tuple[FeedKind, Payload]]:
        with self._lock:
            return list(self._data.items())

    @property
    def kinds(self) -> List[FeedKind]:
        with self._lock:
            return list(self._data)

    def __contains__(self, kind: object) -> bool:
        with self._lock:
            return kind in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
