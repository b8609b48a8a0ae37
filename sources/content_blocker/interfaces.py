"""
Collaborator interfaces for the update pipeline.

The loader only talks to these; concrete transports, ETag stores and
persistence layers are swapped freely (tests use in-memory fakes).
"""
from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from sources.content_blocker.models import FeedKind, FetchResult, Payload


class RemoteFeedSource(ABC):
    """Fetches one feed per call."""

    @abstractmethod
    def fetch(self, kind: FeedKind) -> FetchResult:
        """
        Perform one fetch. Blocking; the loader calls it from IO threads.

        Must not raise for transport errors: return FetchFailure instead.
        """

    @property
    @abstractmethod
    def chain_count(self) -> int:
        """Number of top-level chains the loader waits for in one run."""

    @property
    def request_count(self) -> int:
        """Number of fetches issued so far. Sources may leave this at 0."""
        return 0


class ETagStorage(ABC):
    """Last-applied ETag per feed."""

    @abstractmethod
    def etag(self, kind: FeedKind) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, etag: str, kind: FeedKind) -> None:
        ...


@runtime_checkable
class EtagOOSCheckStore(Protocol):
    """Emptiness snapshot of the two stores covered by self-healing."""

    @property
    def has_disconnect_me_data(self) -> bool:
        ...

    @property
    def has_easylist_data(self) -> bool:
        ...


@runtime_checkable
class StorageCacheUpdating(Protocol):
    """Persists one decoded feed. Returns True when the data was stored."""

    def update(self, kind: FeedKind, payload: Payload) -> bool:
        ...
