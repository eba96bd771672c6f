"""Top-level controller wiring services together for a UI shell."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from PySide6.QtCore import QObject, Signal

from mcserver_link.services.auto_refresh import AutoRefreshScheduler
from mcserver_link.services.history_service import HistoryService
from mcserver_link.services.server_service import ServerService
from mcserver_link.services.status_service import StatusService
from mcserver_link.settings import SettingsStore
from mcserver_link.utils.paths import get_app_paths
from mcserver_link.utils.status_client import StatusClient
from mcserver_link.utils.storage import KeyValueStore

if TYPE_CHECKING:
    from mcserver_link.models import RefreshState, ServerRecord, TimeWindow
    from mcserver_link.services.history_service import HistoryView
    from mcserver_link.services.refresh_coordinator import RefreshCoordinator
    from mcserver_link.services.server_service import SyncResult
    from mcserver_link.settings import AppSettings
    from mcserver_link.utils.paths import AppPaths
    from mcserver_link.utils.release_checker import ReleaseChecker, ReleaseInfo
    from mcserver_link.utils.storage import MemoryStore

logger = logging.getLogger(__name__)


class AppController(QObject):
    """Owns the settings, server list, refresh coordinators and scheduler.

    Constructed once by the application. The shell calls on_start() when the
    app launches, on_background()/on_foreground() on lifecycle changes and
    shutdown() on exit.
    """

    # Signals
    servers_loaded = Signal(list)  # list[ServerRecord]
    server_added = Signal(object, bool)  # ServerRecord, synced
    server_updated = Signal(object, bool)  # ServerRecord, synced
    server_deleted = Signal(str)  # server_id
    status_changed = Signal(str, object)  # server_id, RefreshState
    settings_changed = Signal(object)  # AppSettings

    def __init__(
        self,
        store: MemoryStore,
        client: StatusClient | None = None,
        release_checker: ReleaseChecker | None = None,
    ) -> None:
        """Initialize app controller.

        Args:
            store: Key-value store for settings and the server list
            client: Status client, created from the settings when omitted
            release_checker: Optional checker for app updates
        """
        super().__init__()
        self._settings = SettingsStore(store)
        self._client = client or StatusClient(self._settings)
        self._server_service = ServerService(store, self._client)
        self._status_service = StatusService(self._client)
        self._history_service = HistoryService(self._client)
        self._scheduler = AutoRefreshScheduler(self._status_service.coordinators)
        self._release_checker = release_checker
        self._listener_handles: dict[str, Callable[[], None]] = {}
        self._tasks: set[asyncio.Task] = set()

        self._settings.subscribe(self._on_settings_changed)

    @classmethod
    def from_paths(cls, app_paths: AppPaths | None = None, **kwargs: Any) -> AppController:
        """Create a controller backed by the preferences file.

        Args:
            app_paths: Paths manager, the global one when omitted
            **kwargs: Passed to the constructor

        Returns:
            AppController
        """
        app_paths = app_paths or get_app_paths()
        app_paths.ensure_directories()
        return cls(KeyValueStore(app_paths.get_preferences_file()), **kwargs)

    @property
    def settings_store(self) -> SettingsStore:
        return self._settings

    @property
    def settings(self) -> AppSettings:
        return self._settings.settings

    @property
    def scheduler(self) -> AutoRefreshScheduler:
        return self._scheduler

    @property
    def client(self) -> StatusClient:
        return self._client

    def get_servers(self) -> list[ServerRecord]:
        """Get the saved servers in display order."""
        return self._server_service.get_servers()

    def get_coordinator(self, server_id: str) -> RefreshCoordinator | None:
        """Get the refresh coordinator for a server."""
        return self._status_service.get(server_id)

    # Lifecycle

    async def on_start(self) -> list[ServerRecord]:
        """Load servers, arm auto-refresh and run the first refresh.

        Returns:
            Loaded servers
        """
        servers = self.load_servers()
        self._scheduler.reconfigure(self._settings.settings)
        await self._status_service.refresh_all(foreground=True)
        return servers

    def on_foreground(self) -> None:
        """Re-read settings and restart auto-refresh."""
        settings = self._settings.reload()
        self._scheduler.reconfigure(settings)

    def on_background(self) -> None:
        """Suspend auto-refresh while the app is not visible."""
        self._scheduler.stop()

    async def shutdown(self) -> None:
        """Stop timers, wait for pending work and close the HTTP session."""
        self._scheduler.stop()
        await self._scheduler.wait_idle()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._client.close()

    # Servers

    def load_servers(self) -> list[ServerRecord]:
        """Load the saved list and start tracking every server.

        Returns:
            Loaded servers
        """
        servers = self._server_service.load()
        for server_id in list(self._listener_handles):
            self._untrack(server_id)
        self._status_service.sync(servers)
        for record in servers:
            self._track(record)
        self.servers_loaded.emit(servers)
        return servers

    def _track(self, record: ServerRecord) -> RefreshCoordinator:
        coordinator = self._status_service.get_or_create(record)
        if record.id not in self._listener_handles:
            server_id = record.id

            def forward(state: RefreshState) -> None:
                self.status_changed.emit(server_id, state)

            self._listener_handles[server_id] = coordinator.subscribe(forward)
        return coordinator

    def _untrack(self, server_id: str) -> None:
        unsubscribe = self._listener_handles.pop(server_id, None)
        if unsubscribe is not None:
            unsubscribe()
        self._status_service.remove(server_id)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def add_server(self, record: ServerRecord) -> SyncResult:
        """Add a server, mirror it to the history backend and start loading it.

        Args:
            record: New server

        Returns:
            SyncResult
        """
        result = await self._server_service.add_server(record)
        coordinator = self._track(record)
        self.server_added.emit(record, result.synced)
        self._spawn(coordinator.refresh(foreground=True))
        return result

    async def edit_server(self, record: ServerRecord) -> SyncResult:
        """Save an edited server and reload its status.

        Args:
            record: Edited server

        Returns:
            SyncResult
        """
        result = await self._server_service.edit_server(record)
        coordinator = self._track(record)
        self.server_updated.emit(record, result.synced)
        self._spawn(coordinator.refresh(foreground=True))
        return result

    async def delete_server(self, server_id: str) -> SyncResult:
        """Delete a server and stop tracking it.

        Args:
            server_id: Server ID

        Returns:
            SyncResult usable with restore_server()
        """
        result = await self._server_service.delete_server(server_id)
        self._untrack(server_id)
        self.server_deleted.emit(server_id)
        return result

    async def restore_server(self, record: ServerRecord, index: int) -> SyncResult:
        """Undo a delete.

        Args:
            record: Deleted server
            index: Its former position

        Returns:
            SyncResult
        """
        result = await self._server_service.restore_server(record, index)
        coordinator = self._track(record)
        self.server_added.emit(record, result.synced)
        self._spawn(coordinator.refresh(foreground=True))
        return result

    # Status and history

    async def refresh(self, server_id: str, foreground: bool = True) -> RefreshState | None:
        """Refresh one server.

        Returns:
            Resulting state, or None if the server is not tracked
        """
        coordinator = self._status_service.get(server_id)
        if coordinator is None:
            return None
        return await coordinator.refresh(foreground)

    async def refresh_all(self, foreground: bool = True) -> dict[str, RefreshState]:
        """Refresh every server (pull-to-refresh)."""
        return await self._status_service.refresh_all(foreground)

    async def load_history(self, server_id: str, window: TimeWindow) -> HistoryView:
        """Load chart data for a server.

        Raises:
            KeyError: If the server does not exist
            HistoryNotConfiguredError: If no history URL is configured
        """
        record = self._server_service.get_server_by_id(server_id)
        if record is None:
            raise KeyError(server_id)
        return await self._history_service.load(record, window)

    # Settings

    async def set_history_server_url(self, url: str, validate: bool = True) -> bool:
        """Store a new history backend URL.

        Args:
            url: Base URL, or "" to turn history off
            validate: Check /health before storing

        Returns:
            True if the URL was stored
        """
        if url.strip() and validate and not await self._client.validate_base_url(url):
            logger.info("Rejected history server URL %s", url)
            return False
        self._settings.set_history_server_url(url)
        return True

    async def check_for_update(self, local_version: str) -> ReleaseInfo | None:
        """Look for a newer release without blocking the loop.

        Returns:
            Newer release, or None when up to date or no checker is configured
        """
        if self._release_checker is None:
            return None
        return await asyncio.to_thread(self._release_checker.check, local_version)

    def _on_settings_changed(self, settings: AppSettings) -> None:
        if self._scheduler.is_running or settings.auto_refresh:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running loop; auto-refresh picks up settings on next foreground")
            else:
                if (
                    settings.auto_refresh != self._scheduler.is_running
                    or settings.refresh_interval != self._scheduler.interval_seconds
                ):
                    self._scheduler.reconfigure(settings)
        self.settings_changed.emit(settings)
