"""Content blocker feeds: fetch, stage, persist."""

from .coordinator import ChainCountError, CompletionBarrier, ContentBlockerLoader
from .etag_store import JSONETagStorage, MemoryETagStorage
from .https_upgrade import HTTPSUpgrade, HTTPSUpgradePersistence
from .interfaces import ETagStorage, EtagOOSCheckStore, RemoteFeedSource, StorageCacheUpdating
from .models import (
    BloomFilterPayload,
    BloomFilterSpecification,
    FeedKind,
    FetchFailure,
    FetchSuccess,
    PendingUpdates,
    RawPayload,
    WhitelistPayload,
)
from .parser import DecodeError
from .request import ContentBlockerRequest
from .storage_cache import StorageCache

__all__ = [
    'ChainCountError', 'CompletionBarrier', 'ContentBlockerLoader',
    'JSONETagStorage', 'MemoryETagStorage',
    'HTTPSUpgrade', 'HTTPSUpgradePersistence',
    'ETagStorage', 'EtagOOSCheckStore', 'RemoteFeedSource', 'StorageCacheUpdating',
    'BloomFilterPayload', 'BloomFilterSpecification', 'FeedKind', 'FetchFailure',
    'FetchSuccess', 'PendingUpdates', 'RawPayload', 'WhitelistPayload',
    'DecodeError', 'ContentBlockerRequest', 'StorageCache',
]
