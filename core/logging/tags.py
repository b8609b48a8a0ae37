"""Standard logging tags for consistent log filtering.

Every content-blocker module prefixes its log lines with one of these so a
single sync run can be followed through the rotating log file with grep.

Usage:
    from core.logging.tags import TAG_LOADER
    logger.info(f"{TAG_LOADER} completed {count}")
"""

# =============================================================================
# Update pipeline
# =============================================================================

TAG_LOADER = "[CB_LOADER]"
"""Fetch coordination, caching decisions and the apply phase."""

TAG_REQUEST = "[CB_REQUEST]"
"""HTTP transport for the remote feeds."""

TAG_CACHE = "[CB_CACHE]"
"""StorageCache dispatch and derived-state rebuilds."""

TAG_STORE = "[CB_STORE]"
"""File-backed domain stores and the ETag store."""

TAG_HTTPS = "[HTTPS_UPGRADE]"
"""Live HTTPS-upgrade state reloads."""

# =============================================================================
# Infrastructure
# =============================================================================

TAG_THREADING = "[THREADING]"
"""Thread pool lifecycle and task failures."""

TAG_SETTINGS = "[SETTINGS]"
"""Settings file load/save."""
