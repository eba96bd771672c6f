"""Application settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from mcserver_link.utils.storage import MemoryStore

logger = logging.getLogger(__name__)

REFRESH_INTERVALS = (30, 60, 120, 300)
THEME_MODES = ("system", "light", "dark")


def normalize_base_url(url: str) -> str:
    """Trim whitespace and a trailing slash from a base URL."""
    url = url.strip()
    return url[:-1] if url.endswith("/") else url


@dataclass(frozen=True)
class AppSettings:
    """User settings. Field names double as storage keys."""

    show_player_count: bool = True
    show_motd: bool = True
    blur_ip_address: bool = False
    auto_refresh: bool = False
    haptic_feedback: bool = True
    refresh_interval: int = 30
    history_server_url: str = ""
    theme_mode: str = "system"

    @property
    def history_configured(self) -> bool:
        """Check if a history backend URL is set."""
        return bool(self.history_server_url)


SettingsListener = Callable[[AppSettings], None]


class SettingsStore:
    """Typed access to settings kept in a key-value store.

    Each setter validates its value, writes it through to the store and then
    notifies subscribers with the new AppSettings.
    """

    def __init__(self, store: MemoryStore) -> None:
        """Initialize settings store.

        Args:
            store: Backing key-value store
        """
        self._store = store
        self._listeners: list[SettingsListener] = []
        self._settings = self._read()

    def _read(self) -> AppSettings:
        """Read settings from the backing store, keeping defaults for bad values."""
        defaults = AppSettings()
        values: dict[str, Any] = {}
        for f in fields(AppSettings):
            default = getattr(defaults, f.name)
            value = self._store.get(f.name, default)
            if type(value) is not type(default):
                logger.warning("Ignoring stored %s=%r, using default", f.name, value)
                value = default
            values[f.name] = value

        if values["refresh_interval"] not in REFRESH_INTERVALS:
            values["refresh_interval"] = defaults.refresh_interval
        if values["theme_mode"] not in THEME_MODES:
            values["theme_mode"] = defaults.theme_mode
        return AppSettings(**values)

    def reload(self) -> AppSettings:
        """Re-read settings from the backing store.

        Returns:
            Fresh settings
        """
        self._settings = self._read()
        return self._settings

    @property
    def settings(self) -> AppSettings:
        """Get current settings."""
        return self._settings

    @property
    def history_server_url(self) -> str:
        """Get the configured history backend URL ('' when unset)."""
        return self._settings.history_server_url

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register a change listener.

        Args:
            listener: Called with the new settings after every change

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, key: str, value: Any) -> None:
        self._store.set(key, value)
        self._settings = replace(self._settings, **{key: value})
        for listener in list(self._listeners):
            try:
                listener(self._settings)
            except Exception:
                logger.exception("Settings listener failed after %s changed", key)

    def set_show_player_count(self, value: bool) -> None:
        self._update("show_player_count", bool(value))

    def set_show_motd(self, value: bool) -> None:
        self._update("show_motd", bool(value))

    def set_blur_ip_address(self, value: bool) -> None:
        self._update("blur_ip_address", bool(value))

    def set_auto_refresh(self, value: bool) -> None:
        self._update("auto_refresh", bool(value))

    def set_haptic_feedback(self, value: bool) -> None:
        self._update("haptic_feedback", bool(value))

    def set_refresh_interval(self, seconds: int) -> None:
        """Set the auto-refresh interval.

        Args:
            seconds: One of REFRESH_INTERVALS

        Raises:
            ValueError: If the interval is not supported
        """
        if seconds not in REFRESH_INTERVALS:
            raise ValueError(f"Unsupported refresh interval: {seconds}")
        self._update("refresh_interval", int(seconds))

    def set_history_server_url(self, url: str) -> None:
        """Set the history backend URL. An empty string clears it."""
        self._update("history_server_url", normalize_base_url(url))

    def set_theme_mode(self, mode: str) -> None:
        if mode not in THEME_MODES:
            raise ValueError(f"Unsupported theme mode: {mode}")
        self._update("theme_mode", mode)
