"""Per-server status refresh state machine."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from mcserver_link.models import RefreshPhase, RefreshState

if TYPE_CHECKING:
    from mcserver_link.models import ServerRecord, ServerStatusSnapshot
    from mcserver_link.utils.status_client import StatusClient

logger = logging.getLogger(__name__)

StateListener = Callable[[RefreshState], None]


class RefreshCoordinator:
    """Owns the refresh state of one tracked server.

    The state starts as LOADING and moves to SUCCESS or ERROR after each
    fetch. A foreground refresh shows LOADING and drops the cached snapshot;
    a silent refresh leaves the visible state alone until it resolves and keeps
    the last good snapshot around when it fails.

    Every fetch is numbered. A response older than one already applied is
    dropped, and starting a foreground refresh drops every response still in
    flight from before it.
    """

    def __init__(self, record: ServerRecord, client: StatusClient) -> None:
        """Initialize coordinator.

        Args:
            record: Server to track
            client: Status client used for fetches
        """
        self._record = record
        self._client = client
        self._state = RefreshState.loading()
        self._last_known_good: ServerStatusSnapshot | None = None
        self._listeners: list[StateListener] = []
        self._sequence = 0
        self._applied_sequence = 0
        self._in_flight = 0
        self._foreground_task: asyncio.Task[RefreshState] | None = None

    @property
    def record(self) -> ServerRecord:
        return self._record

    @property
    def server_id(self) -> str:
        return self._record.id

    @property
    def state(self) -> RefreshState:
        """Get the current state."""
        return self._state

    @property
    def snapshot(self) -> ServerStatusSnapshot | None:
        """Get the snapshot of the current state (None unless SUCCESS)."""
        return self._state.snapshot

    @property
    def error(self) -> str | None:
        """Get the error message of the current state (None unless ERROR)."""
        return self._state.error

    @property
    def last_known_good(self) -> ServerStatusSnapshot | None:
        """Get the last successfully fetched snapshot.

        Survives silent refresh failures; cleared by foreground refreshes.
        """
        return self._last_known_good

    @property
    def display_snapshot(self) -> ServerStatusSnapshot | None:
        """Get the snapshot the UI should render, if any."""
        if self._state.phase is RefreshPhase.SUCCESS:
            return self._state.snapshot
        if self._state.phase is RefreshPhase.ERROR:
            return self._last_known_good
        return None

    @property
    def is_loading(self) -> bool:
        """Check if a foreground refresh is showing its spinner."""
        return self._state.phase is RefreshPhase.LOADING

    @property
    def in_flight(self) -> int:
        """Get the number of fetches currently awaiting a response."""
        return self._in_flight

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener.

        Args:
            listener: Called with the new state after every transition

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def rebind(self, record: ServerRecord) -> None:
        """Point the coordinator at an edited version of the same server.

        Args:
            record: Edited record

        Raises:
            ValueError: If the record belongs to a different server
        """
        if record.id != self._record.id:
            raise ValueError(f"Cannot rebind coordinator for {self._record.id} to {record.id}")
        self._record = record

    def _set_state(self, state: RefreshState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed for %s", self._record.name)

    async def refresh(self, foreground: bool = True) -> RefreshState:
        """Fetch the current status. Never raises.

        A foreground refresh issued while another foreground refresh is in
        flight joins it instead of sending a second request.

        Args:
            foreground: Show LOADING and clear the cache first

        Returns:
            State after this refresh resolved
        """
        if not foreground:
            return await self._fetch(foreground=False)

        if self._foreground_task is not None and not self._foreground_task.done():
            return await asyncio.shield(self._foreground_task)

        self._applied_sequence = self._sequence
        self._last_known_good = None
        self._set_state(RefreshState.loading())
        self._foreground_task = asyncio.ensure_future(self._fetch(foreground=True))
        return await asyncio.shield(self._foreground_task)

    async def _fetch(self, foreground: bool) -> RefreshState:
        self._sequence += 1
        sequence = self._sequence
        record = self._record
        self._in_flight += 1
        try:
            snapshot = await self._client.fetch_status_for(record)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if sequence <= self._applied_sequence:
                logger.debug("Dropping stale error for %s", record.name)
                return self._state
            self._applied_sequence = sequence
            message = str(e) or type(e).__name__
            if foreground:
                logger.info("Refresh of %s failed: %s", record.name, message)
            else:
                logger.warning("Background refresh of %s failed: %s", record.name, message)
            self._set_state(RefreshState.failure(message))
            return self._state
        finally:
            self._in_flight -= 1

        if sequence <= self._applied_sequence:
            logger.debug("Dropping stale status for %s", record.name)
            return self._state

        self._applied_sequence = sequence
        self._last_known_good = snapshot
        self._set_state(RefreshState.success(snapshot))
        return self._state
