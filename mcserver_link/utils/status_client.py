"""HTTP client for the status lookup API and the optional history backend."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from mcserver_link.errors import (
    HistoryFetchError,
    HistoryNotConfiguredError,
    McServerLinkError,
    NetworkUnavailableError,
    ParseError,
    RequestTimeoutError,
    StatusFetchError,
)
from mcserver_link.models import (
    HistorySample,
    HistorySeries,
    Motd,
    Player,
    PlayerList,
    ServerRecord,
    ServerStatusSnapshot,
    ServerVariant,
    TimeWindow,
)
from mcserver_link.settings import normalize_base_url
from mcserver_link.utils.text_processor import deep_normalize, encoding_info, looks_misencoded

if TYPE_CHECKING:
    from mcserver_link.settings import SettingsStore

logger = logging.getLogger(__name__)

STATUS_API_URL = "https://api.mcstatus.io/v2/status/"
DEFAULT_TIMEOUT = 10.0
VALIDATION_TIMEOUT = 5.0
DEFAULT_HISTORY_LIMIT = 100_000
MAX_PLAYER_SAMPLE = 12

_NULL_TEXT = "null"


def _text_field(value: Any) -> str:
    return "" if value is None else str(value)


def _choose_motd_source(clean: str, raw: str) -> str:
    """Prefer the clean MOTD, fall back to raw, skipping empty and "null"."""
    for candidate in (clean, raw):
        if candidate and candidate != _NULL_TEXT:
            return candidate
    return ""


def parse_motd(data: dict[str, Any]) -> Motd:
    """Build a Motd with a normalized display text.

    Args:
        data: The "motd" object of a status response

    Returns:
        Motd instance
    """
    raw = _text_field(data.get("raw"))
    clean = _text_field(data.get("clean"))
    source = _choose_motd_source(clean, raw)
    if source and looks_misencoded(source):
        logger.debug("Repairing garbled MOTD: %s", encoding_info(source))
    return Motd(
        raw=raw,
        clean=clean,
        html=_text_field(data.get("html")),
        display_text=deep_normalize(source),
    )


def _parse_players(data: dict[str, Any]) -> PlayerList:
    sample: list[Player] | None = None
    entries = data.get("list")
    if isinstance(entries, list):
        sample = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            uuid = entry.get("uuid")
            name = entry.get("name_clean") or entry.get("name_raw")
            if uuid is None or name is None:
                continue
            sample.append(Player(uuid=str(uuid), name=str(name)))
            if len(sample) >= MAX_PLAYER_SAMPLE:
                break

    return PlayerList(
        online=int(data.get("online") or 0),
        max=int(data.get("max") or 0),
        sample=tuple(sample) if sample is not None else None,
    )


def parse_status(data: Any) -> ServerStatusSnapshot:
    """Map a status lookup response to a snapshot.

    Args:
        data: Decoded JSON body

    Returns:
        ServerStatusSnapshot

    Raises:
        ParseError: If the body is not a status object
    """
    if not isinstance(data, dict):
        raise ParseError("Status response is not a JSON object")

    try:
        version = data.get("version")
        version_label = None
        if isinstance(version, dict):
            version_label = version.get("name_clean") or version.get("name")

        players = data.get("players")
        motd = data.get("motd")
        return ServerStatusSnapshot(
            online=bool(data.get("online", False)),
            ip_address=data.get("ip_address"),
            version_label=version_label,
            players=_parse_players(players) if isinstance(players, dict) else None,
            motd=parse_motd(motd) if isinstance(motd, dict) else None,
            icon_base64=data.get("icon"),
        )
    except (TypeError, ValueError) as e:
        raise ParseError(f"Unexpected status response: {e}") from e


def parse_history(data: Any, ip: str = "", port: str = "") -> HistorySeries:
    """Map a history response to a series, dropping malformed samples.

    Args:
        data: Decoded JSON body
        ip: Fallback ip when the body has none
        port: Fallback port when the body has none

    Returns:
        HistorySeries with samples in the order received

    Raises:
        ParseError: If the body is not a JSON object
    """
    if not isinstance(data, dict):
        raise ParseError("History response is not a JSON object")

    samples: list[HistorySample] = []
    skipped = 0
    for item in data.get("data") or []:
        try:
            timestamp = item["timestamp"]
            player_count = item["playerCount"]
            if isinstance(timestamp, bool) or isinstance(player_count, bool):
                raise TypeError("boolean is not a number")
            samples.append(HistorySample(int(timestamp), int(player_count)))
        except (KeyError, TypeError, ValueError):
            skipped += 1

    if skipped:
        logger.debug("Skipped %d malformed history samples", skipped)

    return HistorySeries(
        ip=str(data.get("ip") or ip),
        port=str(data.get("port") or port),
        samples=samples,
    )


class StatusClient:
    """Async client for server status, history and backend registration.

    Use as an async context manager, or call close() when done. An injected
    session is used as-is and left open.
    """

    def __init__(
        self,
        settings: SettingsStore | None = None,
        status_base_url: str = STATUS_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Settings store providing the history backend URL
            status_base_url: Status lookup API base URL
            timeout: Timeout in seconds for status and history requests
            session: Optional externally managed session
        """
        self._settings = settings
        self._status_base_url = normalize_base_url(status_base_url)
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> StatusClient:
        """Enter async context."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        await self.close()

    async def close(self) -> None:
        """Close the owned session."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={"Accept": "application/json"})
            self._owns_session = True
        return self._session

    @property
    def history_url(self) -> str:
        """Get the history backend URL, read from settings on every access."""
        if self._settings is None:
            return ""
        return normalize_base_url(self._settings.history_server_url)

    async def _request(
        self, method: str, url: str, timeout: float | None = None, **kwargs: Any
    ) -> tuple[int, str]:
        """Send a request and read the body.

        Returns:
            Tuple of (status_code, body_text)

        Raises:
            RequestTimeoutError: If the request timed out
            NetworkUnavailableError: If the connection failed
        """
        session = self._ensure_session()
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)
        try:
            async with session.request(method, url, timeout=client_timeout, **kwargs) as response:
                return response.status, await response.text()
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"{method} {url} timed out") from e
        except aiohttp.ClientError as e:
            raise NetworkUnavailableError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _decode(body: str) -> Any:
        try:
            return json.loads(body)
        except ValueError as e:
            raise ParseError(f"Invalid JSON response: {e}") from e

    async def fetch_status(
        self, address: str, variant: ServerVariant, port: int | None = None
    ) -> ServerStatusSnapshot:
        """Fetch the live status of a server.

        Args:
            address: Hostname or IP
            variant: Server edition, selects the API path
            port: Optional port appended as address:port

        Returns:
            ServerStatusSnapshot

        Raises:
            StatusFetchError: On a non-200 response
            ParseError: If the body cannot be read
            RequestTimeoutError, NetworkUnavailableError: On transport failure
        """
        full_address = f"{address}:{port}" if port is not None else address
        url = f"{self._status_base_url}/{variant.value}/{full_address}"

        status, body = await self._request("GET", url)
        if status != 200:
            raise StatusFetchError(status)
        return parse_status(self._decode(body))

    async def fetch_status_for(self, record: ServerRecord) -> ServerStatusSnapshot:
        """Fetch the live status of a stored server."""
        return await self.fetch_status(record.address, record.variant, port=record.port)

    async def fetch_history(
        self,
        address: str,
        port: int | str,
        window: TimeWindow = TimeWindow.ONE_DAY,
        limit: int = DEFAULT_HISTORY_LIMIT,
        now_ms: int | None = None,
    ) -> HistorySeries:
        """Fetch player count history for a server.

        Args:
            address: Server address as registered with the backend
            port: Server port
            window: Time range ending now
            limit: Maximum number of samples
            now_ms: Override for the current time in UTC milliseconds

        Returns:
            HistorySeries, unsorted

        Raises:
            HistoryNotConfiguredError: If no history URL is set (no request is made)
            HistoryFetchError: On a non-200 response
        """
        base = self.history_url
        if not base:
            raise HistoryNotConfiguredError()

        start, end = window.bounds(now_ms)
        params = {"start": str(start), "end": str(end), "limit": str(limit)}
        status, body = await self._request("GET", f"{base}/history/{address}/{port}", params=params)
        if status != 200:
            raise HistoryFetchError(status)
        return parse_history(self._decode(body), ip=address, port=str(port))

    async def _backend_call(self, method: str, path: str, payload: dict | None = None) -> tuple[int, Any]:
        status, body = await self._request(method, f"{self.history_url}{path}", json=payload)
        data = None
        if status == 200:
            data = self._decode(body)
        return status, data

    @staticmethod
    def _succeeded(data: Any) -> bool:
        return isinstance(data, dict) and data.get("success") is True

    async def register_server(self, record: ServerRecord) -> bool:
        """Register a server with the history backend.

        An HTTP 409 (already registered) counts as success. Never raises.

        Args:
            record: Server to register

        Returns:
            True if the backend now knows the server
        """
        if not self.history_url:
            return False

        payload = {
            "name": record.name,
            "ip": record.address,
            "port": record.port,
            "type": record.variant.api_code,
        }
        try:
            status, data = await self._backend_call("POST", "/servers/add", payload)
        except (McServerLinkError, ValueError) as e:
            logger.warning("Registering %s with history backend failed: %s", record.name, e)
            return False

        if status == 409:
            return True
        return status == 200 and self._succeeded(data)

    async def update_server(self, record: ServerRecord, previous_address: str) -> bool:
        """Update a server on the history backend.

        The backend knows the server by its address before the edit, so the
        request goes to previous_address. A 404 falls back to registering.
        Never raises.

        Args:
            record: Server after the edit
            previous_address: Address before the edit

        Returns:
            True if the backend accepted the change
        """
        if not self.history_url:
            return False

        payload = {
            "name": record.name,
            "ip": record.address,
            "port": record.port,
            "type": record.variant.api_code,
        }
        try:
            status, data = await self._backend_call("PUT", f"/servers/{previous_address}", payload)
        except (McServerLinkError, ValueError) as e:
            logger.warning("Updating %s on history backend failed: %s", record.name, e)
            return False

        if status == 404:
            return await self.register_server(record)
        return status == 200 and self._succeeded(data)

    async def delete_server(self, address: str) -> bool:
        """Remove a server from the history backend. Never raises.

        Args:
            address: Server address

        Returns:
            True if the backend confirmed the deletion
        """
        if not self.history_url:
            return False

        try:
            status, data = await self._backend_call("DELETE", f"/servers/{address}")
        except (McServerLinkError, ValueError) as e:
            logger.warning("Deleting %s from history backend failed: %s", address, e)
            return False
        return status == 200 and self._succeeded(data)

    async def validate_base_url(self, url: str, timeout: float = VALIDATION_TIMEOUT) -> bool:
        """Check that url points at a healthy history backend.

        Args:
            url: Candidate base URL, trailing slash allowed
            timeout: Timeout in seconds

        Returns:
            True only if GET <url>/health answers 200 with {"status": "ok"}
        """
        url = normalize_base_url(url)
        if not url:
            return False

        try:
            status, body = await self._request("GET", f"{url}/health", timeout=timeout)
            if status != 200:
                return False
            data = self._decode(body)
        except (McServerLinkError, ValueError) as e:
            logger.debug("History URL %s failed validation: %s", url, e)
            return False
        return isinstance(data, dict) and data.get("status") == "ok"


async def validate_base_url(url: str, timeout: float = VALIDATION_TIMEOUT) -> bool:
    """Check a history backend URL with a throwaway client.

    Args:
        url: Candidate base URL
        timeout: Timeout in seconds

    Returns:
        True if the backend reports healthy
    """
    async with StatusClient() as client:
        return await client.validate_base_url(url, timeout)


async def fetch_status(
    address: str, variant: ServerVariant, port: int | None = None, timeout: float = DEFAULT_TIMEOUT
) -> ServerStatusSnapshot:
    """Fetch one server status with a throwaway client."""
    async with StatusClient(timeout=timeout) as client:
        return await client.fetch_status(address, variant, port)


def _run(coro):
    try:
        return asyncio.run(coro)
    except RuntimeError:
        # If event loop is already running, create a new one
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()


def fetch_status_sync(
    address: str, variant: ServerVariant, port: int | None = None, timeout: float = DEFAULT_TIMEOUT
) -> ServerStatusSnapshot:
    """Synchronous wrapper for fetching one server status.

    Args:
        address: Hostname or IP
        variant: Server edition
        port: Optional port
        timeout: Timeout in seconds

    Returns:
        ServerStatusSnapshot
    """
    return _run(fetch_status(address, variant, port, timeout))


def validate_base_url_sync(url: str, timeout: float = VALIDATION_TIMEOUT) -> bool:
    """Synchronous wrapper for validate_base_url()."""
    return _run(validate_base_url(url, timeout))
