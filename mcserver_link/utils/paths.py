"""Path management for MC Server Link.

Handles data directories following OS conventions:
- AppData/Local/MCServerLink (Windows), Application Support (macOS), XDG (Linux)
- Portable mode - Use app install directory if portable.txt exists
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


class AppPaths:
    """Manages application paths following OS conventions."""

    APP_NAME = "MCServerLink"

    def __init__(self, base_dir: Path | None = None) -> None:
        """Initialize application paths.

        Args:
            base_dir: Explicit data directory, overrides OS conventions
        """
        self._portable_mode = base_dir is None and self._detect_portable_mode()
        self._data_dir = base_dir if base_dir is not None else self._get_data_dir()

    def _detect_portable_mode(self) -> bool:
        """Check if portable.txt exists in the app directory."""
        return (self.get_app_install_dir() / "portable.txt").exists()

    def _get_data_dir(self) -> Path:
        """Get data directory based on OS and portable mode.

        Returns:
            Path to the data directory
        """
        if self._portable_mode:
            return self.get_app_install_dir() / "data"

        if sys.platform == "win32":
            return Path(os.path.expandvars(r"%LOCALAPPDATA%")) / self.APP_NAME
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / self.APP_NAME

        xdg_config = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
        return Path(xdg_config) / self.APP_NAME

    @staticmethod
    def get_app_install_dir() -> Path:
        """Get the application installation directory.

        Returns:
            Path to app install directory
        """
        if getattr(sys, "frozen", False):
            return Path(sys.executable).parent
        return Path(__file__).parent.parent.parent

    def get_data_dir(self) -> Path:
        """Get the data directory."""
        return self._data_dir

    def get_preferences_file(self) -> Path:
        """Get preferences file path.

        Returns:
            Path to preferences.yaml, which holds settings and the server list
        """
        return self._data_dir / "preferences.yaml"

    def ensure_directories(self) -> None:
        """Create the data directory if it doesn't exist."""
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def is_portable_mode(self) -> bool:
        """Check if running in portable mode."""
        return self._portable_mode


# Global instance
_app_paths: AppPaths | None = None


def get_app_paths() -> AppPaths:
    """Get the global AppPaths instance.

    Returns:
        AppPaths instance
    """
    global _app_paths
    if _app_paths is None:
        _app_paths = AppPaths()
    return _app_paths
