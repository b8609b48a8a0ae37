"""
Settings manager for the content blocker sync tool.

Settings live in a single JSON file with nested sections and are addressed
with dotted keys ('network.timeout_seconds'). Missing keys fall back to the
defaults below, so a partial or absent file is always usable.
"""
from typing import Any, Dict, Mapping, Optional
import copy
import json
import threading
from pathlib import Path

from core.logging.logger import get_logger
from core.logging.tags import TAG_SETTINGS
from versioning import DEFAULT_USER_AGENT

logger = get_logger('SettingsManager')


DEFAULT_SETTINGS: Dict[str, Any] = {
    'network': {
        'timeout_seconds': 30,
        'user_agent': DEFAULT_USER_AGENT,
        # Per-feed URL overrides keyed by FeedKind value
        'endpoints': {},
    },
    'storage': {
        # Empty means ~/.content_blocker
        'data_dir': '',
    },
    'updates': {
        'io_workers': 6,
        # None waits for every fetch chain indefinitely
        'chain_timeout_seconds': None,
    },
    'logging': {
        'debug': False,
        'verbose': False,
        'dir': '',
    },
}


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class SettingsManager:
    """
    Centralized settings management backed by a JSON file.

    Read-only at runtime: the file is edited by hand and loaded once.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize the settings manager.

        Args:
            path: JSON settings file. When None, settings are memory-only.
        """
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._settings: Dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)
        self.load()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Args:
            key: Setting key in dot notation (e.g., 'network.timeout_seconds')
            default: Default value if key not found

        Returns:
            Setting value or default
        """
        with self._lock:
            node: Any = self._settings
            for part in key.split('.'):
                if not isinstance(node, dict) or part not in node:
                    return default
                node = node[part]
            return copy.deepcopy(node)

    @staticmethod
    def to_bool(value: Any, default: bool = False) -> bool:
        """Normalize a stored setting value to bool.

        Accepts common string forms ("true", "1", "yes", "on") as True and
        ("false", "0", "no", "off") as False.
        """
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            v = value.strip().lower()
            if v in ("true", "1", "yes", "on"):
                return True
            if v in ("false", "0", "no", "off"):
                return False
            return default
        if value is None:
            return default
        return bool(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self.to_bool(self.get(key, default), default)

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        """Return a numeric setting as float, or default when unset/invalid."""
        value = self.get(key, default)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"{TAG_SETTINGS} Invalid number for {key}: {value!r}")
            return default

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load settings from the JSON file, layered over the defaults.

        An unreadable or malformed file is logged and ignored.
        """
        if self._path is None or not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning(f"{TAG_SETTINGS} Failed to load {self._path}: {e}")
            return
        if not isinstance(raw, dict):
            logger.warning(f"{TAG_SETTINGS} Ignoring {self._path}: top level is not an object")
            return
        with self._lock:
            self._settings = _deep_merge(DEFAULT_SETTINGS, raw)
        logger.debug(f"{TAG_SETTINGS} Settings loaded from {self._path}")

