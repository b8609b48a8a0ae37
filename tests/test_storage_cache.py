"""
Tests for StorageCache and the file-backed stores behind it.
"""
import pytest

from core.events import EventType
from sources.content_blocker.constants import LEGACY_EASYLIST_FILES
from sources.content_blocker.etag_store import MemoryETagStorage
from sources.content_blocker.interfaces import EtagOOSCheckStore, StorageCacheUpdating
from sources.content_blocker.coordinator import ContentBlockerLoader
from sources.content_blocker.models import (
    BloomFilterPayload,
    BloomFilterSpecification,
    FeedKind,
    RawPayload,
    WhitelistPayload,
)
from sources.content_blocker.parser import HTTPSUpgradeParser
from sources.content_blocker.storage_cache import StorageCache
from tests._feed_fakes import (
    BLOOM_FILTER,
    DISCONNECT_LIST,
    ENTITY_LIST,
    SURROGATES,
    TRACKER_WHITELIST,
    FakeFeedSource,
    bloom_spec_body,
)


def bloom_payload(data: bytes = BLOOM_FILTER) -> BloomFilterPayload:
    spec = HTTPSUpgradeParser.convert_bloom_filter_specification(bloom_spec_body(data))
    return BloomFilterPayload(spec, data)


class TestEmptyCache:

    def test_new_cache_has_no_data(self, data_dir):
        cache = StorageCache(data_dir)
        assert cache.has_data is False
        assert cache.has_disconnect_me_data is False
        assert cache.has_easylist_data is False
        assert len(cache.entity_mapping) == 0

    def test_creates_data_dir(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        StorageCache(target)
        assert target.is_dir()

    def test_satisfies_loader_protocols(self, data_dir):
        cache = StorageCache(data_dir)
        assert isinstance(cache, StorageCacheUpdating)
        assert isinstance(cache, EtagOOSCheckStore)


class TestUpdateDispatch:

    def test_disconnect_list(self, data_dir):
        cache = StorageCache(data_dir)
        assert cache.update(FeedKind.DISCONNECT_LIST, RawPayload(DISCONNECT_LIST)) is True
        assert cache.has_disconnect_me_data is True

        tracker = cache.disconnect_me_store.trackers["doubleclick.net"]
        assert tracker.category == "Advertising"
        assert tracker.network == "Google"

    def test_malformed_disconnect_list_is_rejected(self, data_dir):
        cache = StorageCache(data_dir)
        assert cache.update(FeedKind.DISCONNECT_LIST, RawPayload(b"{}")) is False
        assert cache.has_disconnect_me_data is False

    def test_tracker_whitelist(self, data_dir):
        cache = StorageCache(data_dir)
        assert cache.update(FeedKind.TRACKER_WHITELIST, RawPayload(TRACKER_WHITELIST)) is True
        assert cache.has_easylist_data is True
        assert cache.easylist_store.rules == ["@@||example.com/ads.js$domain=example.org"]

    def test_has_data_needs_both_lists(self, data_dir):
        cache = StorageCache(data_dir)
        cache.update(FeedKind.DISCONNECT_LIST, RawPayload(DISCONNECT_LIST))
        assert cache.has_data is False
        cache.update(FeedKind.TRACKER_WHITELIST, RawPayload(TRACKER_WHITELIST))
        assert cache.has_data is True

    def test_surrogates(self, data_dir):
        cache = StorageCache(data_dir)
        assert cache.update(FeedKind.SURROGATES, RawPayload(SURROGATES)) is True
        assert set(cache.surrogate_store.surrogates) == {
            "google-analytics.com/ga.js",
            "googletagservices.com/gpt.js",
        }

    def test_entity_list_rebuilds_mapping(self, data_dir, event_system):
        cache = StorageCache(data_dir, event_system=event_system)
        before = cache.entity_mapping

        assert cache.update(FeedKind.ENTITY_LIST, RawPayload(ENTITY_LIST)) is True
        assert cache.entity_mapping is not before
        assert len(before) == 0
        assert cache.entity_mapping.entity_for("www.youtube.com") == "Google"
        assert cache.entity_mapping.entity_for("static.fbcdn.net") == "Facebook"
        assert cache.entity_mapping.entity_for("example.com") is None

        rebuilt = event_system.get_event_history(event_type=EventType.ENTITY_MAPPING_REBUILT)
        assert [e.data for e in rebuilt] == [5]

    def test_bad_entity_list_keeps_mapping(self, data_dir):
        cache = StorageCache(data_dir)
        cache.update(FeedKind.ENTITY_LIST, RawPayload(ENTITY_LIST))
        mapping = cache.entity_mapping

        assert cache.update(FeedKind.ENTITY_LIST, RawPayload(b"not json")) is False
        assert cache.entity_mapping is mapping

    def test_https_whitelist(self, data_dir):
        cache = StorageCache(data_dir)
        payload = WhitelistPayload(("broken.example", "legacy.example.org"))
        assert cache.update(FeedKind.HTTPS_WHITELIST, payload) is True
        assert cache.https_upgrade_store.has_whitelisted_domain("Broken.Example") is True

    def test_bloom_filter_reloads_https_upgrade(self, data_dir, event_system):
        cache = StorageCache(data_dir, event_system=event_system)
        assert cache.https_upgrade.state.has_bloom_filter is False

        payload = bloom_payload()
        assert cache.update(FeedKind.BLOOM_FILTER, payload) is True
        assert cache.https_upgrade_store.bloom_filter_specification() == payload.specification
        assert cache.https_upgrade.state.bloom_filter == BLOOM_FILTER
        assert len(event_system.get_event_history(event_type=EventType.HTTPS_UPGRADE_RELOADED)) == 1

    def test_bloom_filter_checksum_mismatch(self, data_dir):
        cache = StorageCache(data_dir)
        spec = BloomFilterSpecification(total_entries=10, error_rate=0.01, sha256="00" * 32)
        assert cache.update(FeedKind.BLOOM_FILTER, BloomFilterPayload(spec, BLOOM_FILTER)) is False
        assert cache.https_upgrade_store.bloom_filter_specification() is None

    @pytest.mark.parametrize("kind, payload", [
        (FeedKind.HTTPS_WHITELIST, RawPayload(b"{}")),
        (FeedKind.ENTITY_LIST, WhitelistPayload(("a.example",))),
        (FeedKind.BLOOM_FILTER, RawPayload(BLOOM_FILTER)),
    ])
    def test_wrong_payload_shape(self, data_dir, kind, payload):
        cache = StorageCache(data_dir)
        assert cache.update(kind, payload) is False

    def test_unknown_kind(self, data_dir):
        cache = StorageCache(data_dir)
        assert cache.update(FeedKind.BLOOM_FILTER_SPEC, RawPayload(b"{}")) is False


class TestLegacyCleanup:

    def test_removes_legacy_easylists(self, data_dir):
        for name in LEGACY_EASYLIST_FILES:
            (data_dir / name).write_text("! old list")
        cache = StorageCache(data_dir)

        cache.remove_legacy_data()
        assert not any((data_dir / name).exists() for name in LEGACY_EASYLIST_FILES)
        assert cache.easylist_store.remove_legacy_lists() == 0


class TestEndToEnd:
    """Loader against real stores."""

    def test_second_run_is_cached(self, data_dir):
        cache = StorageCache(data_dir)
        etags = MemoryETagStorage()
        loader = ContentBlockerLoader(etags, cache.https_upgrade_store,
                                      legacy_cleanup=cache.remove_legacy_data)

        assert loader.check_for_updates(cache, FakeFeedSource()) is True
        assert len(loader.apply_update(cache)) == 6
        assert cache.has_data is True

        source = FakeFeedSource()
        assert loader.check_for_updates(cache, source) is False
        assert FeedKind.BLOOM_FILTER not in source.fetched

    def test_deleted_list_heals_on_next_run(self, data_dir):
        cache = StorageCache(data_dir)
        loader = ContentBlockerLoader(MemoryETagStorage(), cache.https_upgrade_store)
        loader.check_for_updates(cache, FakeFeedSource())
        loader.apply_update(cache)

        cache.disconnect_me_store.path.unlink()

        assert loader.check_for_updates(cache, FakeFeedSource()) is True
        assert loader.pending_updates.kinds == [FeedKind.DISCONNECT_LIST]
        assert loader.apply_update(cache) == [FeedKind.DISCONNECT_LIST]
        assert cache.has_disconnect_me_data is True
