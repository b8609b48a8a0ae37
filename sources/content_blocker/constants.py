"""
Content blocker constants - endpoints, file names, network settings.

Centralised here so every sub-module imports from one place.
"""
from sources.content_blocker.models import FeedKind

# ---------------------------------------------------------------------------
# Remote endpoints
# ---------------------------------------------------------------------------
DEFAULT_ENDPOINTS = {
    FeedKind.DISCONNECT_LIST: "https://duckduckgo.com/contentblocking.js?l=disconnect",
    FeedKind.TRACKER_WHITELIST: "https://duckduckgo.com/contentblocking/trackers-whitelist.txt",
    FeedKind.ENTITY_LIST: "https://duckduckgo.com/contentblocking.js?l=entitylist2",
    FeedKind.SURROGATES: "https://duckduckgo.com/contentblocking.js?l=surrogates",
    FeedKind.BLOOM_FILTER_SPEC: "https://staticcdn.duckduckgo.com/https/https-mobile-bloom-spec.json",
    FeedKind.BLOOM_FILTER: "https://staticcdn.duckduckgo.com/https/https-mobile-bloom.bin",
    FeedKind.HTTPS_WHITELIST: "https://staticcdn.duckduckgo.com/https/https-mobile-whitelist.json",
}

# Feeds fetched on their own, one chain each
SIMPLE_FEEDS = (
    FeedKind.ENTITY_LIST,
    FeedKind.DISCONNECT_LIST,
    FeedKind.TRACKER_WHITELIST,
    FeedKind.SURROGATES,
)

# Four simple feeds + bloom spec/filter pair + HTTPS whitelist
TOP_LEVEL_CHAIN_COUNT = len(SIMPLE_FEEDS) + 2

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------
DEFAULT_TIMEOUT_SECONDS = 30
ETAG_HEADER = "ETag"

# ---------------------------------------------------------------------------
# On-disk layout (relative to the data directory)
# ---------------------------------------------------------------------------
ETAG_FILE = "etags.json"
DISCONNECT_ME_FILE = "disconnectme.json"
EASYLIST_WHITELIST_FILE = "easylistWhitelist.txt"
SURROGATES_FILE = "surrogate.js"
ENTITY_LIST_FILE = "entitylist.json"
BLOOM_FILTER_SPEC_FILE = "https-bloom-spec.json"
BLOOM_FILTER_FILE = "https-bloom.bin"
HTTPS_WHITELIST_FILE = "https-whitelist.json"

# Files written by releases that still downloaded the full easylists
LEGACY_EASYLIST_FILES = (
    "easylist.txt",
    "easylistPrivacy.txt",
    "easylistPrivacyWhitelist.txt",
)
