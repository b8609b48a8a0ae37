"""Centralised version and naming information for content-blocker-sync.

Single source of truth for the application version and the User-Agent the
HTTP feed source sends, so packaging and runtime never disagree.
"""
from __future__ import annotations


APP_NAME: str = "content-blocker-sync"
APP_VERSION: str = "1.2.0"
APP_DESCRIPTION: str = "Keeps tracker block lists, entity mappings and HTTPS-upgrade data in sync with their remote feeds."
DEFAULT_USER_AGENT: str = f"{APP_NAME}/{APP_VERSION}"


__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
    "DEFAULT_USER_AGENT",
]
