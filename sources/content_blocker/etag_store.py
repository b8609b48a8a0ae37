"""
ETag persistence.

JSONETagStorage keeps the last-applied ETag of every feed in one small JSON
file so a restart does not re-download unchanged lists.
"""
import json
import threading
from pathlib import Path
from typing import Dict, Optional

from core.logging.logger import get_logger
from core.logging.tags import TAG_STORE
from sources.content_blocker.interfaces import ETagStorage
from sources.content_blocker.models import FeedKind
from sources.content_blocker.stores import atomic_write

logger = get_logger(__name__)


class MemoryETagStorage(ETagStorage):
    """Process-lifetime ETag store."""

    def __init__(self, initial: Optional[Dict[FeedKind, str]] = None):
        self._lock = threading.Lock()
        self._etags: Dict[FeedKind, str] = dict(initial or {})

    def etag(self, kind: FeedKind) -> Optional[str]:
        with self._lock:
            return self._etags.get(kind)

    def set(self, etag: str, kind: FeedKind) -> None:
        with self._lock:
            self._etags[kind] = etag


class JSONETagStorage(ETagStorage):
    """ETag store persisted as ``{feed id: etag}`` JSON."""

    def __init__(self, path: Path):
        self._file = Path(path)
        self._lock = threading.Lock()
        self._etags: Dict[str, str] = {}
        self._load()

    def etag(self, kind: FeedKind) -> Optional[str]:
        with self._lock:
            return self._etags.get(kind.value)

    def set(self, etag: str, kind: FeedKind) -> None:
        with self._lock:
            self._etags[kind.value] = etag
            self._save(dict(self._etags))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if not self._file.exists():
            return
        try:
            with open(self._file, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            # A corrupt file only costs one full download of every feed
            logger.warning(f"{TAG_STORE} ETag load failed, starting empty: {e}")
            return
        if isinstance(raw, dict):
            self._etags = {k: v for k, v in raw.items() if isinstance(v, str)}
        logger.debug(f"{TAG_STORE} Loaded {len(self._etags)} etags")

    def _save(self, snapshot: Dict[str, str]) -> None:
        atomic_write(self._file, json.dumps(snapshot, sort_keys=True).encode("utf-8"))
