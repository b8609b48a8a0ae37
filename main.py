"""
content-blocker-sync - Main Entry Point

Checks every content blocker feed for updates and persists the changed ones.
"""
import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from core.events import EventSystem
from core.logging.logger import get_log_dir, get_logger, setup_logging
from core.settings.settings_manager import SettingsManager
from core.threading.manager import ThreadManager, ThreadPoolType
from sources.content_blocker import (
    ContentBlockerLoader,
    ContentBlockerRequest,
    FeedKind,
    JSONETagStorage,
    StorageCache,
)
from sources.content_blocker.constants import ETAG_FILE
from versioning import APP_DESCRIPTION, APP_NAME, APP_VERSION

logger = get_logger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".content_blocker"
SETTINGS_FILE_NAME = "settings.json"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_APPLY_FAILED = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog=APP_NAME, description=APP_DESCRIPTION)
    parser.add_argument("--config", type=Path, default=None,
                        help=f"Settings file (default: <data dir>/{SETTINGS_FILE_NAME})")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help=f"Directory holding the block lists (default: {DEFAULT_DATA_DIR})")
    parser.add_argument("--debug", "-d", action="store_true", help="Debug logging to the console")
    parser.add_argument("--verbose", "-v", action="store_true", help="Per-request debug logging")
    parser.add_argument("--check-only", action="store_true",
                        help="Report pending updates without persisting them")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    return parser.parse_args(argv)


def resolve_data_dir(args: argparse.Namespace, settings: SettingsManager) -> Path:
    """--data-dir wins over storage.data_dir, which wins over the home default."""
    if args.data_dir is not None:
        return args.data_dir
    configured = settings.get('storage.data_dir', '')
    return Path(configured).expanduser() if configured else DEFAULT_DATA_DIR


def endpoint_overrides(settings: SettingsManager) -> Dict[FeedKind, str]:
    """Translate network.endpoints ({feed id: url}) into FeedKind keys."""
    overrides: Dict[FeedKind, str] = {}
    for feed_id, url in (settings.get('network.endpoints', {}) or {}).items():
        try:
            overrides[FeedKind(feed_id)] = url
        except ValueError:
            logger.warning(f"Ignoring endpoint override for unknown feed {feed_id!r}")
    return overrides


def run_update(settings: SettingsManager, data_dir: Path, check_only: bool = False) -> int:
    """Run one check (and apply unless check_only). Returns an exit code."""
    event_system = EventSystem()
    thread_manager = ThreadManager(config={
        ThreadPoolType.IO: int(settings.get('updates.io_workers', ThreadManager.DEFAULT_IO_WORKERS)),
    })
    straggler_wait = True
    try:
        cache = StorageCache(data_dir, event_system=event_system)
        etag_storage = JSONETagStorage(data_dir / ETAG_FILE)
        data_source = ContentBlockerRequest(
            endpoints=endpoint_overrides(settings),
            timeout=settings.get_float('network.timeout_seconds', 30.0),
            user_agent=settings.get('network.user_agent') or None,
        )
        loader = ContentBlockerLoader(
            etag_storage,
            cache.https_upgrade_store,
            thread_manager=thread_manager,
            event_system=event_system,
            legacy_cleanup=cache.remove_legacy_data,
            chain_timeout=settings.get_float('updates.chain_timeout_seconds'),
        )

        has_updates = loader.check_for_updates(cache, data_source)
        # Chains still stuck in a fetch after a timeout are abandoned
        straggler_wait = not loader.timed_out
        staged = [kind.value for kind in loader.pending_updates.kinds]
        logger.info(f"Check finished after {data_source.request_count} requests, staged: {staged or 'nothing'}")

        if not has_updates or check_only:
            return EXIT_OK

        applied = loader.apply_update(cache)
        failed = len(staged) - len(applied)
        logger.info(f"Applied {len(applied)} of {len(staged)} updates")
        return EXIT_APPLY_FAILED if failed else EXIT_OK
    finally:
        thread_manager.shutdown(wait=straggler_wait)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for content-blocker-sync."""
    args = parse_args(argv)

    data_dir_hint = args.data_dir or DEFAULT_DATA_DIR
    settings = SettingsManager(args.config or data_dir_hint / SETTINGS_FILE_NAME)

    data_dir = resolve_data_dir(args, settings)
    log_dir = settings.get('logging.dir', '')
    setup_logging(
        debug=args.debug or settings.get_bool('logging.debug'),
        verbose=args.verbose or settings.get_bool('logging.verbose'),
        log_dir=Path(log_dir).expanduser() if log_dir else data_dir / "logs",
    )

    logger.info("=" * 60)
    logger.info(f"{APP_NAME} {APP_VERSION} Starting")
    logger.info("=" * 60)
    logger.debug(f"Log directory: {get_log_dir()}")

    exit_code = EXIT_OK
    try:
        logger.info(f"Data directory: {data_dir}")
        exit_code = run_update(settings, data_dir, check_only=args.check_only)
    except Exception as e:
        logger.exception(f"Fatal error in main: {e}")
        exit_code = EXIT_FATAL

    logger.info("=" * 60)
    logger.info(f"{APP_NAME} Exiting (code={exit_code})")
    logger.info("=" * 60)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
