"""
Scripted collaborators and sample feed bodies for content blocker tests.
"""
import hashlib
import json
import threading
from typing import Dict, List, Optional

from sources.content_blocker.constants import TOP_LEVEL_CHAIN_COUNT
from sources.content_blocker.interfaces import RemoteFeedSource
from sources.content_blocker.models import FeedKind, FetchFailure, FetchResult, FetchSuccess


# ---------------------------------------------------------------------------
# Sample feed bodies
# ---------------------------------------------------------------------------

ENTITY_LIST = json.dumps({
    "Google": {"properties": ["google.com", "youtube.com"], "resources": ["doubleclick.net"]},
    "Facebook": {"properties": ["facebook.com"], "resources": ["fbcdn.net"]},
}).encode("utf-8")

DISCONNECT_LIST = json.dumps({
    "categories": {
        "Advertising": [{"Google": {"http://www.google.com/": ["doubleclick.net", "googleadservices.com"]}}],
        "Social": [{"Facebook": {"http://www.facebook.com/": ["facebook.net"]}}],
    }
}).encode("utf-8")

TRACKER_WHITELIST = b"! comment\n@@||example.com/ads.js$domain=example.org\n"

SURROGATES = (
    b"# surrogates\n"
    b"google-analytics.com/ga.js application/javascript\n"
    b"(function() { window._gaq = []; })();\n"
    b"\n"
    b"googletagservices.com/gpt.js application/javascript\n"
    b"(function() { window.googletag = {}; })();\n"
)

BLOOM_FILTER = b"\x01\x02\x03\x04bloom"


def bloom_spec_body(data: bytes = BLOOM_FILTER, total_entries: int = 1000,
                    error_rate: float = 0.0001) -> bytes:
    return json.dumps({
        "totalEntries": total_entries,
        "errorRate": error_rate,
        "sha256": hashlib.sha256(data).hexdigest(),
    }).encode("utf-8")


HTTPS_WHITELIST = json.dumps({"data": ["Broken.example", "legacy.example.org"]}).encode("utf-8")


def default_responses() -> Dict[FeedKind, FetchResult]:
    """Every feed answers with a fresh body and a distinct ETag."""
    return {
        FeedKind.ENTITY_LIST: FetchSuccess("etag-entity", ENTITY_LIST),
        FeedKind.DISCONNECT_LIST: FetchSuccess("etag-disconnect", DISCONNECT_LIST),
        FeedKind.TRACKER_WHITELIST: FetchSuccess("etag-easylist", TRACKER_WHITELIST),
        FeedKind.SURROGATES: FetchSuccess("etag-surrogates", SURROGATES),
        FeedKind.BLOOM_FILTER_SPEC: FetchSuccess("etag-bloom-spec", bloom_spec_body()),
        FeedKind.BLOOM_FILTER: FetchSuccess("etag-bloom", BLOOM_FILTER),
        FeedKind.HTTPS_WHITELIST: FetchSuccess("etag-https-whitelist", HTTPS_WHITELIST),
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeFeedSource(RemoteFeedSource):
    """Scripted feed source. Unscripted kinds fail."""

    def __init__(self, responses: Optional[Dict[FeedKind, FetchResult]] = None,
                 chain_count: int = TOP_LEVEL_CHAIN_COUNT,
                 block: Optional[Dict[FeedKind, threading.Event]] = None):
        self.responses = dict(responses if responses is not None else default_responses())
        self._chain_count = chain_count
        self._block = block or {}
        self._lock = threading.Lock()
        self.fetched: List[FeedKind] = []

    @property
    def chain_count(self) -> int:
        return self._chain_count

    @property
    def request_count(self) -> int:
        with self._lock:
            return len(self.fetched)

    def fetch(self, kind: FeedKind) -> FetchResult:
        with self._lock:
            self.fetched.append(kind)
        gate = self._block.get(kind)
        if gate is not None:
            gate.wait()
        return self.responses.get(kind, FetchFailure("not scripted"))


class FakeStore:
    """EtagOOSCheckStore with settable emptiness flags."""

    def __init__(self, has_disconnect_me_data: bool = True, has_easylist_data: bool = True):
        self.has_disconnect_me_data = has_disconnect_me_data
        self.has_easylist_data = has_easylist_data


class FakeCache:
    """StorageCacheUpdating recording every update; kinds in `failing` return False."""

    def __init__(self, failing=(), raising=()):
        self.failing = set(failing)
        self.raising = set(raising)
        self.updates = []

    def update(self, kind, payload) -> bool:
        self.updates.append((kind, payload))
        if kind in self.raising:
            raise RuntimeError(f"store for {kind.value} exploded")
        return kind not in self.failing


class FakeBloomSpecStore:
    """Stands in for HTTPSUpgradePersistence.bloom_filter_specification()."""

    def __init__(self, specification=None):
        self.specification = specification

    def bloom_filter_specification(self):
        return self.specification


