"""Server service for managing the saved server list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mcserver_link.models import ServerRecord

if TYPE_CHECKING:
    from mcserver_link.utils.status_client import StatusClient
    from mcserver_link.utils.storage import MemoryStore

logger = logging.getLogger(__name__)

SERVERS_KEY = "servers"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a list change. synced is False if the history backend
    did not take the change (or none is configured)."""

    record: ServerRecord
    synced: bool
    index: int = -1


class ServerService:
    """Service for server CRUD operations.

    The local list is the source of truth and is saved before the history
    backend is contacted, so a backend failure never loses a change.
    """

    def __init__(self, store: MemoryStore, client: StatusClient) -> None:
        """Initialize server service.

        Args:
            store: Key-value store holding the list under SERVERS_KEY
            client: Status client used to mirror changes to the history backend
        """
        self._store = store
        self._client = client
        self._servers: list[ServerRecord] = []

    def load(self) -> list[ServerRecord]:
        """Load the saved server list.

        Returns:
            List of server records in saved order
        """
        servers: list[ServerRecord] = []
        for entry in self._store.get(SERVERS_KEY, []) or []:
            try:
                servers.append(ServerRecord.from_dict(entry))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable saved server %r: %s", entry, e)
        self._servers = servers
        return list(self._servers)

    def _save(self) -> None:
        self._store.set(SERVERS_KEY, [server.to_dict() for server in self._servers])

    def get_servers(self) -> list[ServerRecord]:
        """Get all loaded servers."""
        return list(self._servers)

    def get_server_by_id(self, server_id: str) -> ServerRecord | None:
        """Get server by ID.

        Args:
            server_id: Server ID to find

        Returns:
            Server record or None if not found
        """
        for server in self._servers:
            if server.id == server_id:
                return server
        return None

    def _index_of(self, server_id: str) -> int:
        for index, server in enumerate(self._servers):
            if server.id == server_id:
                return index
        raise KeyError(server_id)

    async def add_server(self, record: ServerRecord) -> SyncResult:
        """Append a server and register it with the history backend.

        Args:
            record: New server

        Returns:
            SyncResult

        Raises:
            ValueError: If a server with the same id already exists
        """
        if self.get_server_by_id(record.id) is not None:
            raise ValueError(f"Server already exists: {record.id}")

        self._servers.append(record)
        self._save()
        synced = await self._client.register_server(record)
        if not synced:
            logger.info("Added %s locally; history backend not updated", record.name)
        return SyncResult(record, synced, len(self._servers) - 1)

    async def edit_server(self, record: ServerRecord) -> SyncResult:
        """Replace a server with its edited version.

        Args:
            record: Edited server, same id as the stored one

        Returns:
            SyncResult

        Raises:
            KeyError: If no server has that id
        """
        index = self._index_of(record.id)
        previous = self._servers[index]
        self._servers[index] = record
        self._save()
        synced = await self._client.update_server(record, previous.address)
        if not synced:
            logger.info("Updated %s locally; history backend not updated", record.name)
        return SyncResult(record, synced, index)

    async def delete_server(self, server_id: str) -> SyncResult:
        """Remove a server.

        Args:
            server_id: Server ID to delete

        Returns:
            SyncResult whose index can be passed to restore_server() for undo

        Raises:
            KeyError: If no server has that id
        """
        index = self._index_of(server_id)
        record = self._servers.pop(index)
        self._save()
        synced = await self._client.delete_server(record.address)
        return SyncResult(record, synced, index)

    async def restore_server(self, record: ServerRecord, index: int) -> SyncResult:
        """Put a deleted server back at its old position.

        Args:
            record: Server returned by delete_server()
            index: Position to restore to, clamped to the list

        Returns:
            SyncResult
        """
        if self.get_server_by_id(record.id) is not None:
            raise ValueError(f"Server already exists: {record.id}")

        index = max(0, min(index, len(self._servers)))
        self._servers.insert(index, record)
        self._save()
        synced = await self._client.register_server(record)
        return SyncResult(record, synced, index)
