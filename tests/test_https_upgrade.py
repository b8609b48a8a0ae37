"""
Tests for HTTPS-upgrade persistence and runtime state.
"""
import hashlib

from sources.content_blocker.https_upgrade import HTTPSUpgrade, HTTPSUpgradePersistence
from sources.content_blocker.models import BloomFilterSpecification


def spec_for(data: bytes) -> BloomFilterSpecification:
    return BloomFilterSpecification(total_entries=42, error_rate=0.001,
                                    sha256=hashlib.sha256(data).hexdigest())


def test_empty_store(data_dir):
    store = HTTPSUpgradePersistence(data_dir)
    assert store.bloom_filter_specification() is None
    assert store.bloom_filter() is None
    assert store.whitelist() == frozenset()


def test_bloom_filter_round_trip(data_dir):
    store = HTTPSUpgradePersistence(data_dir)
    spec = spec_for(b"filter")
    assert store.persist_bloom_filter(spec, b"filter") is True
    assert store.bloom_filter() == (spec, b"filter")


def test_checksum_mismatch_keeps_previous(data_dir):
    store = HTTPSUpgradePersistence(data_dir)
    good = spec_for(b"old")
    store.persist_bloom_filter(good, b"old")

    assert store.persist_bloom_filter(spec_for(b"new"), b"tampered") is False
    assert store.bloom_filter() == (good, b"old")


def test_unreadable_spec_is_none(data_dir):
    store = HTTPSUpgradePersistence(data_dir)
    (data_dir / "https-bloom-spec.json").write_text("garbage")
    assert store.bloom_filter_specification() is None


def test_runtime_state_swaps_on_load(data_dir):
    store = HTTPSUpgradePersistence(data_dir)
    upgrade = HTTPSUpgrade(store)
    initial = upgrade.state
    assert initial.has_bloom_filter is False

    store.persist_bloom_filter(spec_for(b"bits"), b"bits")
    store.persist_whitelist(["Skip.Example"])
    assert upgrade.is_whitelisted("skip.example") is False

    state = upgrade.load_data()
    assert upgrade.state is state
    assert state.has_bloom_filter is True
    assert upgrade.is_whitelisted("SKIP.example") is True
    # Old snapshot is untouched
    assert initial.whitelist == frozenset()
