"""Utility modules."""

from mcserver_link.utils.paths import AppPaths, get_app_paths
from mcserver_link.utils.release_checker import ReleaseChecker, ReleaseInfo, compare_versions
from mcserver_link.utils.status_client import (
    StatusClient,
    fetch_status_sync,
    validate_base_url,
    validate_base_url_sync,
)
from mcserver_link.utils.storage import KeyValueStore, MemoryStore
from mcserver_link.utils.text_processor import deep_normalize, process_motd

__all__ = [
    "AppPaths",
    "get_app_paths",
    "ReleaseChecker",
    "ReleaseInfo",
    "compare_versions",
    "StatusClient",
    "fetch_status_sync",
    "validate_base_url",
    "validate_base_url_sync",
    "KeyValueStore",
    "MemoryStore",
    "deep_normalize",
    "process_motd",
]
