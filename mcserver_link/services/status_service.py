"""Status service holding one refresh coordinator per tracked server."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from mcserver_link.services.refresh_coordinator import RefreshCoordinator

if TYPE_CHECKING:
    from mcserver_link.models import RefreshState, ServerRecord
    from mcserver_link.utils.status_client import StatusClient


class StatusService:
    """Service for managing per-server refresh coordinators."""

    def __init__(self, client: StatusClient) -> None:
        """Initialize status service.

        Args:
            client: Status client shared by all coordinators
        """
        self._client = client
        self._coordinators: dict[str, RefreshCoordinator] = {}

    def get(self, server_id: str) -> RefreshCoordinator | None:
        """Get the coordinator for a server.

        Args:
            server_id: Server ID

        Returns:
            Coordinator or None if the server is not tracked
        """
        return self._coordinators.get(server_id)

    def get_or_create(self, record: ServerRecord) -> RefreshCoordinator:
        """Get or create the coordinator for a server.

        An existing coordinator is rebound to the given record so edits are
        picked up by the next refresh.

        Args:
            record: Server record

        Returns:
            Coordinator (existing or newly created)
        """
        coordinator = self._coordinators.get(record.id)
        if coordinator is None:
            coordinator = RefreshCoordinator(record, self._client)
            self._coordinators[record.id] = coordinator
        else:
            coordinator.rebind(record)
        return coordinator

    def remove(self, server_id: str) -> None:
        """Stop tracking a server.

        Args:
            server_id: Server ID
        """
        self._coordinators.pop(server_id, None)

    def coordinators(self) -> list[RefreshCoordinator]:
        """Get all coordinators, in the order servers were added."""
        return list(self._coordinators.values())

    def sync(self, records: list[ServerRecord]) -> None:
        """Track exactly the given servers.

        Args:
            records: Servers that should have coordinators
        """
        wanted = {record.id for record in records}
        for server_id in list(self._coordinators):
            if server_id not in wanted:
                del self._coordinators[server_id]
        for record in records:
            self.get_or_create(record)

    async def refresh_all(self, foreground: bool = True) -> dict[str, RefreshState]:
        """Refresh every tracked server concurrently.

        Args:
            foreground: Passed to each coordinator

        Returns:
            Dictionary mapping server IDs to their resulting state
        """
        coordinators = self.coordinators()
        results = await asyncio.gather(*(c.refresh(foreground) for c in coordinators))
        return {c.server_id: state for c, state in zip(coordinators, results)}

    def clear(self) -> None:
        """Drop all coordinators."""
        self._coordinators.clear()
