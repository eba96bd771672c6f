"""Tests for the status and history HTTP client."""

from unittest.mock import MagicMock

import pytest

from mcserver_link.errors import (
    HistoryFetchError,
    HistoryNotConfiguredError,
    NetworkUnavailableError,
    ParseError,
    RequestTimeoutError,
    StatusFetchError,
)
from mcserver_link.models import ServerRecord, ServerVariant, TimeWindow
from mcserver_link.settings import SettingsStore
from mcserver_link.utils.status_client import (
    MAX_PLAYER_SAMPLE,
    StatusClient,
    parse_history,
    parse_motd,
    parse_status,
)
from mcserver_link.utils.storage import MemoryStore

STATUS_PATH = "/status/java/mc.example.com:25565"
HISTORY_PATH = "/api/history/mc.example.com/25565"

STATUS_BODY = {
    "online": True,
    "ip_address": "203.0.113.7",
    "version": {"name_raw": "§a1.20.4", "name_clean": "1.20.4"},
    "players": {
        "online": 3,
        "max": 100,
        "list": [
            {"uuid": "a", "name_raw": "§cAlice", "name_clean": "Alice"},
            {"uuid": "b", "name_raw": "Bob", "name_clean": "Bob"},
        ],
    },
    "motd": {"raw": "§6Welcome", "clean": "Welcome", "html": "<span>Welcome</span>"},
    "icon": "data:image/png;base64,aWNvbg==",
}


class TestParsing:
    def test_parse_status(self):
        snapshot = parse_status(STATUS_BODY)
        assert snapshot.online is True
        assert snapshot.ip_address == "203.0.113.7"
        assert snapshot.version_label == "1.20.4"
        assert snapshot.players.online == 3
        assert [p.name for p in snapshot.players.sample] == ["Alice", "Bob"]
        assert snapshot.motd.display_text == "Welcome"
        assert snapshot.icon_bytes() == b"icon"

    def test_parse_offline_server(self):
        snapshot = parse_status({"online": False})
        assert snapshot.online is False
        assert snapshot.players is None
        assert snapshot.motd is None

    def test_parse_status_rejects_non_object(self):
        with pytest.raises(ParseError):
            parse_status(["online"])

    def test_parse_status_bad_player_count(self):
        with pytest.raises(ParseError):
            parse_status({"online": True, "players": {"online": "many"}})

    def test_player_sample_is_capped(self):
        players = [{"uuid": str(i), "name_clean": f"p{i}"} for i in range(30)]
        snapshot = parse_status({"online": True, "players": {"online": 30, "max": 50, "list": players}})
        assert len(snapshot.players.sample) == MAX_PLAYER_SAMPLE

    def test_motd_prefers_clean(self):
        assert parse_motd({"raw": "§aRaw", "clean": "Clean"}).display_text == "Clean"

    @pytest.mark.parametrize("clean", ["", "null", None])
    def test_motd_falls_back_to_raw(self, clean):
        assert parse_motd({"raw": "§aRaw text", "clean": clean}).display_text == "Raw text"

    def test_motd_repairs_escapes(self):
        assert parse_motd({"clean": "\\u6B22\\u8FCE"}).display_text == "欢迎"

    def test_parse_history_skips_malformed(self):
        series = parse_history(
            {
                "ip": "mc.example.com",
                "port": 25565,
                "data": [
                    {"timestamp": 100, "playerCount": 2},
                    {"timestamp": 200},
                    {"timestamp": "soon", "playerCount": 1},
                    {"timestamp": 300, "playerCount": True},
                    "garbage",
                    {"timestamp": 400, "playerCount": 9},
                ],
            }
        )
        assert series.port == "25565"
        assert [(s.timestamp, s.player_count) for s in series.samples] == [(100, 2), (400, 9)]


class TestFetchStatus:
    @pytest.mark.asyncio
    async def test_success(self, backend, client, record):
        backend.respond("GET", STATUS_PATH, body=STATUS_BODY)
        snapshot = await client.fetch_status_for(record)
        assert snapshot.version_label == "1.20.4"

    @pytest.mark.asyncio
    async def test_without_port(self, backend, client):
        backend.respond("GET", "/status/bedrock/play.example.net", body={"online": False})
        snapshot = await client.fetch_status("play.example.net", ServerVariant.BEDROCK_EDITION)
        assert snapshot.online is False

    @pytest.mark.asyncio
    async def test_non_200(self, backend, client, record):
        backend.respond("GET", STATUS_PATH, status=500, body={"error": "boom"})
        with pytest.raises(StatusFetchError) as exc_info:
            await client.fetch_status_for(record)
        assert exc_info.value.code == 500

    @pytest.mark.asyncio
    async def test_invalid_json(self, backend, client, record):
        backend.respond("GET", STATUS_PATH, body="<html>")
        with pytest.raises(ParseError):
            await client.fetch_status_for(record)

    @pytest.mark.asyncio
    async def test_timeout(self, backend, settings_store, record):
        backend.respond("GET", STATUS_PATH, body=STATUS_BODY, delay=1.0)
        async with StatusClient(settings_store, status_base_url=f"{backend.base_url}/status", timeout=0.1) as client:
            with pytest.raises(RequestTimeoutError):
                await client.fetch_status_for(record)

    @pytest.mark.asyncio
    async def test_connection_refused(self, record):
        async with StatusClient(status_base_url="http://127.0.0.1:1") as client:
            with pytest.raises(NetworkUnavailableError):
                await client.fetch_status_for(record)


class TestFetchHistory:
    @pytest.mark.asyncio
    async def test_sends_window_and_limit(self, backend, client):
        backend.respond(
            "GET",
            HISTORY_PATH,
            body={"ip": "mc.example.com", "port": "25565", "data": [{"timestamp": 5, "playerCount": 1}]},
        )
        series = await client.fetch_history("mc.example.com", 25565, TimeWindow.SIX_HOURS, now_ms=100_000_000)

        assert len(series.samples) == 1
        (request,) = backend.requests_to(HISTORY_PATH)
        assert request.query == {
            "start": str(100_000_000 - 6 * 3_600_000),
            "end": "100000000",
            "limit": "100000",
        }

    @pytest.mark.asyncio
    async def test_non_200(self, backend, client):
        backend.respond("GET", HISTORY_PATH, status=404, body={"error": "unknown server"})
        with pytest.raises(HistoryFetchError) as exc_info:
            await client.fetch_history("mc.example.com", 25565)
        assert exc_info.value.code == 404

    @pytest.mark.asyncio
    async def test_not_configured_makes_no_request(self):
        session = MagicMock()
        client = StatusClient(SettingsStore(MemoryStore()), session=session)
        with pytest.raises(HistoryNotConfiguredError):
            await client.fetch_history("mc.example.com", 25565)
        session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_url_read_on_every_call(self, backend, client, settings_store):
        settings_store.set_history_server_url("")
        with pytest.raises(HistoryNotConfiguredError):
            await client.fetch_history("mc.example.com", 25565)
        assert backend.requests == []


class TestBackendRegistration:
    @pytest.mark.asyncio
    async def test_register(self, backend, client, record):
        backend.respond("POST", "/api/servers/add", body={"success": True})
        assert await client.register_server(record) is True
        (request,) = backend.requests_to("/api/servers/add")
        assert request.payload == {"name": "Hypixel", "ip": "mc.example.com", "port": 25565, "type": "JE"}

    @pytest.mark.asyncio
    async def test_register_conflict_counts_as_success(self, backend, client, record):
        backend.respond("POST", "/api/servers/add", status=409, body={"error": "exists"})
        assert await client.register_server(record) is True

    @pytest.mark.asyncio
    async def test_register_rejected(self, backend, client, record):
        backend.respond("POST", "/api/servers/add", body={"success": False})
        assert await client.register_server(record) is False

    @pytest.mark.asyncio
    async def test_register_without_url(self, record):
        client = StatusClient(SettingsStore(MemoryStore()), session=MagicMock())
        assert await client.register_server(record) is False

    @pytest.mark.asyncio
    async def test_update_targets_previous_address(self, backend, client, record):
        backend.respond("PUT", "/api/servers/old.example.com", body={"success": True})
        assert await client.update_server(record, "old.example.com") is True
        (request,) = backend.requests_to("/api/servers/old.example.com")
        assert request.payload["ip"] == "mc.example.com"

    @pytest.mark.asyncio
    async def test_update_unknown_falls_back_to_register(self, backend, client, record):
        backend.respond("PUT", "/api/servers/old.example.com", status=404, body={"error": "missing"})
        backend.respond("POST", "/api/servers/add", body={"success": True})
        assert await client.update_server(record, "old.example.com") is True
        assert len(backend.requests_to("/api/servers/add")) == 1

    @pytest.mark.asyncio
    async def test_delete(self, backend, client):
        backend.respond("DELETE", "/api/servers/mc.example.com", body={"success": True})
        assert await client.delete_server("mc.example.com") is True

    @pytest.mark.asyncio
    async def test_server_error_is_swallowed(self, backend, client):
        backend.respond("DELETE", "/api/servers/mc.example.com", status=500, body="oops")
        assert await client.delete_server("mc.example.com") is False

    @pytest.mark.asyncio
    async def test_network_error_is_swallowed(self, record):
        store = SettingsStore(MemoryStore())
        store.set_history_server_url("http://127.0.0.1:1")
        async with StatusClient(store) as client:
            assert await client.register_server(record) is False


class TestValidateBaseUrl:
    @pytest.mark.asyncio
    async def test_healthy(self, backend, client):
        backend.respond("GET", "/health", body={"status": "ok"})
        assert await client.validate_base_url(backend.base_url + "/") is True

    @pytest.mark.asyncio
    async def test_degraded(self, backend, client):
        backend.respond("GET", "/health", body={"status": "degraded"})
        assert await client.validate_base_url(backend.base_url) is False

    @pytest.mark.asyncio
    async def test_not_json(self, backend, client):
        backend.respond("GET", "/health", body="ok")
        assert await client.validate_base_url(backend.base_url) is False

    @pytest.mark.asyncio
    async def test_missing_endpoint(self, backend, client):
        assert await client.validate_base_url(backend.base_url) is False

    @pytest.mark.asyncio
    async def test_empty(self, client):
        assert await client.validate_base_url("  ") is False


def test_record_endpoint_used_for_status_path():
    record = ServerRecord(id="x", name="x", address="play.example.net", port=19133, variant=ServerVariant.BEDROCK_EDITION)
    assert record.endpoint == "play.example.net:19133"
