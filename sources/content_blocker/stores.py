"""
File-backed tracker data stores.

Responsibilities:
    - Persist each block list under the data directory with atomic writes
      (temp file -> os.replace) so readers never see a half-written list
    - Report emptiness (has_data) for the loader's self-healing check
    - Decode on persist so a malformed body is rejected before it replaces
      the last good copy
    - Remove files left behind by the legacy full-easylist downloads
"""
import os
import tempfile
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from core.logging.logger import get_logger
from core.logging.tags import TAG_STORE
from sources.content_blocker.constants import (
    DISCONNECT_ME_FILE,
    EASYLIST_WHITELIST_FILE,
    ENTITY_LIST_FILE,
    LEGACY_EASYLIST_FILES,
    SURROGATES_FILE,
)
from sources.content_blocker.parser import BlockerListParser, DecodeError, DisconnectTracker

logger = get_logger(__name__)


def atomic_write(path: Path, data: bytes) -> None:
    """Write bytes to path via a temp file and rename.

    Raises:
        OSError: the write or rename failed; the temp file is removed
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".tmp.{path.name}.", dir=path.parent)
    temp_file = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(temp_file, path)
    except OSError:
        _safe_unlink(temp_file)
        raise


def _safe_unlink(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"{TAG_STORE} Could not remove {path.name}: {e}")


class _FileStore:
    """One file under the data directory."""

    def __init__(self, data_dir: Path, file_name: str):
        self._path = Path(data_dir) / file_name

    @property
    def path(self) -> Path:
        return self._path

    @property
    def has_data(self) -> bool:
        try:
            return self._path.stat().st_size > 0
        except OSError:
            return False

    def read(self) -> Optional[bytes]:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            return None


class DisconnectMeStore(_FileStore):
    """Disconnect tracker list, keyed by tracker domain."""

    def __init__(self, data_dir: Path):
        super().__init__(data_dir, DISCONNECT_ME_FILE)
        self._trackers: Optional[Mapping[str, DisconnectTracker]] = None

    def persist(self, data: bytes) -> None:
        """
        Raises:
            DecodeError: body is not a disconnect list
            OSError: write failed
        """
        trackers = BlockerListParser.parse_disconnect_list(data)
        atomic_write(self._path, data)
        self._trackers = MappingProxyType(trackers)
        logger.info(f"{TAG_STORE} Disconnect list stored ({len(trackers)} trackers)")

    @property
    def trackers(self) -> Mapping[str, DisconnectTracker]:
        if self._trackers is None:
            data = self.read()
            try:
                parsed = BlockerListParser.parse_disconnect_list(data) if data else {}
            except DecodeError as e:
                logger.warning(f"{TAG_STORE} Stored disconnect list unreadable: {e}")
                parsed = {}
            self._trackers = MappingProxyType(parsed)
        return self._trackers


class EasylistStore(_FileStore):
    """Tracker whitelist in easylist rule syntax."""

    def __init__(self, data_dir: Path):
        super().__init__(data_dir, EASYLIST_WHITELIST_FILE)
        self._data_dir = Path(data_dir)

    def persist_easylist_whitelist(self, data: bytes) -> bool:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"{TAG_STORE} Tracker whitelist is not UTF-8")
            return False
        if not text.strip():
            return False
        try:
            atomic_write(self._path, data)
        except OSError as e:
            logger.error(f"{TAG_STORE} Failed to store tracker whitelist: {e}")
            return False
        return True

    @property
    def rules(self) -> List[str]:
        data = self.read()
        if not data:
            return []
        return [line.strip() for line in data.decode("utf-8", errors="replace").splitlines()
                if line.strip() and not line.startswith("!")]

    def remove_legacy_lists(self) -> int:
        """Delete the full easylists older releases downloaded. Returns count removed."""
        removed = 0
        for name in LEGACY_EASYLIST_FILES:
            legacy = self._data_dir / name
            if legacy.exists():
                _safe_unlink(legacy)
                removed += 1
        if removed:
            logger.info(f"{TAG_STORE} Removed {removed} legacy easylist files")
        return removed


class SurrogateStore(_FileStore):
    """Replacement scripts served in place of blocked trackers."""

    def __init__(self, data_dir: Path):
        super().__init__(data_dir, SURROGATES_FILE)
        self._surrogates: Optional[Mapping[str, str]] = None

    def parse_and_persist(self, data: bytes) -> bool:
        try:
            surrogates = BlockerListParser.parse_surrogates(data)
            atomic_write(self._path, data)
        except (DecodeError, OSError) as e:
            logger.warning(f"{TAG_STORE} Surrogates rejected: {e}")
            return False
        self._surrogates = MappingProxyType(surrogates)
        return True

    @property
    def surrogates(self) -> Mapping[str, str]:
        if self._surrogates is None:
            data = self.read()
            try:
                parsed = BlockerListParser.parse_surrogates(data) if data else {}
            except DecodeError:
                parsed = {}
            self._surrogates = MappingProxyType(parsed)
        return self._surrogates


class EntityMappingStore(_FileStore):
    """Downloaded entity list (which company owns which domain)."""

    def __init__(self, data_dir: Path):
        super().__init__(data_dir, ENTITY_LIST_FILE)
        self._lock = threading.Lock()

    def persist(self, data: bytes) -> bool:
        try:
            BlockerListParser.parse_entity_list(data)
        except DecodeError as e:
            logger.warning(f"{TAG_STORE} Entity list rejected: {e}")
            return False
        try:
            with self._lock:
                atomic_write(self._path, data)
        except OSError as e:
            logger.error(f"{TAG_STORE} Failed to store entity list: {e}")
            return False
        return True

    def load(self) -> Optional[bytes]:
        with self._lock:
            return self.read()


class EntityMapping:
    """Immutable domain -> entity snapshot built from an EntityMappingStore.

    Rebuilt as a new object after every entity list update; holders of an
    older instance keep a consistent view.
    """

    def __init__(self, store: EntityMappingStore):
        data = store.load()
        mapping: Dict[str, str] = {}
        if data:
            try:
                mapping = BlockerListParser.parse_entity_list(data)
            except DecodeError as e:
                logger.warning(f"{TAG_STORE} Stored entity list unreadable: {e}")
        self._entities: Mapping[str, str] = MappingProxyType(mapping)

    def __len__(self) -> int:
        return len(self._entities)

    def entity_for(self, host: str) -> Optional[str]:
        """Return the owning entity, trying parent domains down to the TLD+1."""
        parts = host.lower().strip(".").split(".")
        for i in range(len(parts) - 1):
            entity = self._entities.get(".".join(parts[i:]))
            if entity is not None:
                return entity
        return None
