"""
ContentBlockerRequest - HTTP transport for the remote feeds.

Responsibilities:
    - One GET per fetch via requests, with the configured timeout
    - Surface the response ETag header alongside the body
    - Map every transport problem to FetchFailure; never raise
    - Count issued requests (thread-safe; chains fetch concurrently)
"""
import threading
from typing import Mapping, Optional

import requests

from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_REQUEST
from sources.content_blocker.constants import (
    DEFAULT_ENDPOINTS,
    DEFAULT_TIMEOUT_SECONDS,
    ETAG_HEADER,
    TOP_LEVEL_CHAIN_COUNT,
)
from sources.content_blocker.interfaces import RemoteFeedSource
from sources.content_blocker.models import FeedKind, FetchFailure, FetchResult, FetchSuccess
from versioning import DEFAULT_USER_AGENT

logger = get_logger(__name__)


class ContentBlockerRequest(RemoteFeedSource):
    """Fetches content blocker feeds over HTTPS."""

    def __init__(
        self,
        endpoints: Optional[Mapping[FeedKind, str]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: Optional[str] = None,
    ):
        self._endpoints = {**DEFAULT_ENDPOINTS, **(endpoints or {})}
        self.timeout = timeout
        self._user_agent = user_agent or DEFAULT_USER_AGENT
        self._count_lock = threading.Lock()
        self._request_count = 0

    @property
    def chain_count(self) -> int:
        return TOP_LEVEL_CHAIN_COUNT

    @property
    def request_count(self) -> int:
        with self._count_lock:
            return self._request_count

    def url_for(self, kind: FeedKind) -> str:
        return self._endpoints[kind]

    def fetch(self, kind: FeedKind) -> FetchResult:
        url = self.url_for(kind)
        with self._count_lock:
            self._request_count += 1

        try:
            resp = requests.get(
                url,
                timeout=self.timeout,
                headers={"User-Agent": self._user_agent},
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"{TAG_REQUEST} Failed to fetch {kind.value}: {e}")
            return FetchFailure(str(e))

        data = resp.content
        if not data:
            logger.warning(f"{TAG_REQUEST} Empty response for {kind.value}")
            return FetchFailure("empty response")

        etag = resp.headers.get(ETAG_HEADER)
        if is_verbose_logging():
            logger.debug(f"{TAG_REQUEST} {kind.value}: {len(data)} bytes, etag={etag}")
        return FetchSuccess(etag=etag, data=data)
