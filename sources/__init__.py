"""Remote data sources for content blocker sync."""

from .content_blocker import ContentBlockerLoader, ContentBlockerRequest, StorageCache

__all__ = ['ContentBlockerLoader', 'ContentBlockerRequest', 'StorageCache']
