"""Services module for business logic."""

from mcserver_link.services.auto_refresh import AutoRefreshScheduler
from mcserver_link.services.history_service import HistoryService, HistoryView
from mcserver_link.services.refresh_coordinator import RefreshCoordinator
from mcserver_link.services.server_service import ServerService, SyncResult
from mcserver_link.services.status_service import StatusService

__all__ = [
    "AutoRefreshScheduler",
    "HistoryService",
    "HistoryView",
    "RefreshCoordinator",
    "ServerService",
    "StatusService",
    "SyncResult",
]
