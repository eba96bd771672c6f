"""Data models for MC Server Link."""

from __future__ import annotations

import base64
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class ServerVariant(Enum):
    """Minecraft server edition."""

    JAVA_EDITION = "java"
    BEDROCK_EDITION = "bedrock"

    @property
    def default_port(self) -> int:
        """Get the default port for this edition."""
        return 25565 if self is ServerVariant.JAVA_EDITION else 19132

    @property
    def api_code(self) -> str:
        """Get the edition code used by the history backend."""
        return "JE" if self is ServerVariant.JAVA_EDITION else "BE"

    @property
    def display_name(self) -> str:
        """Get human readable edition name."""
        return "Java Edition" if self is ServerVariant.JAVA_EDITION else "Bedrock Edition"

    @classmethod
    def from_value(cls, value: Any) -> ServerVariant:
        """Parse a stored edition value, falling back to Java Edition.

        Args:
            value: Stored value ("java", "bedrock", or an enum member name)

        Returns:
            Matching ServerVariant
        """
        if isinstance(value, ServerVariant):
            return value
        for variant in cls:
            if value in (variant.value, variant.name):
                return variant
        return cls.JAVA_EDITION


@dataclass(frozen=True)
class ServerRecord:
    """A monitored server as entered by the user."""

    id: str
    name: str
    address: str
    port: int = 25565
    variant: ServerVariant = ServerVariant.JAVA_EDITION

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")

    @classmethod
    def create(
        cls,
        name: str,
        address: str,
        port: int | None = None,
        variant: ServerVariant = ServerVariant.JAVA_EDITION,
    ) -> ServerRecord:
        """Create a new record with a fresh id.

        Args:
            name: Display label
            address: Hostname or IP
            port: Port, or None for the edition default
            variant: Server edition

        Returns:
            New ServerRecord
        """
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            address=address.strip(),
            port=port if port is not None else variant.default_port,
            variant=variant,
        )

    def with_changes(self, **changes: Any) -> ServerRecord:
        """Return an edited copy. The id never changes."""
        changes.pop("id", None)
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a storable dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "port": self.port,
            "type": self.variant.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerRecord:
        """Create from a stored dictionary.

        Args:
            data: Dictionary as produced by to_dict()

        Returns:
            ServerRecord instance
        """
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            name=data.get("name", ""),
            address=data.get("address", ""),
            port=int(data.get("port", 25565)),
            variant=ServerVariant.from_value(data.get("type")),
        )

    @property
    def endpoint(self) -> str:
        """Get address in host:port form."""
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class Player:
    """A player from the online sample."""

    uuid: str
    name: str


@dataclass(frozen=True)
class PlayerList:
    """Player counts and an optional sample of online players."""

    online: int
    max: int
    sample: tuple[Player, ...] | None = None

    @property
    def player_count(self) -> str:
        """Get formatted player count."""
        return f"{self.online}/{self.max}"


@dataclass(frozen=True)
class Motd:
    """Message of the day in the forms the status API provides."""

    raw: str = ""
    clean: str = ""
    html: str = ""
    display_text: str = ""


@dataclass(frozen=True)
class ServerStatusSnapshot:
    """Most recent known state of a server."""

    online: bool
    ip_address: str | None = None
    version_label: str | None = None
    players: PlayerList | None = None
    motd: Motd | None = None
    icon_base64: str | None = None

    def icon_bytes(self) -> bytes | None:
        """Decode the favicon, dropping any data URI prefix.

        Returns:
            PNG bytes, or None when there is no usable icon
        """
        if not self.icon_base64:
            return None
        payload = self.icon_base64
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]
        try:
            return base64.b64decode(payload)
        except ValueError:
            return None


class TimeWindow(Enum):
    """Selectable history chart time range."""

    ONE_HOUR = "1h"
    SIX_HOURS = "6h"
    ONE_DAY = "24h"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"

    @property
    def hours(self) -> int:
        """Get the window length in hours."""
        return _WINDOW_HOURS[self]

    @property
    def label_count(self) -> int:
        """Get the number of X axis labels to render."""
        if self is TimeWindow.ONE_DAY:
            return 8
        if self is TimeWindow.SEVEN_DAYS:
            return 7
        return 6

    @property
    def time_label_format(self) -> str:
        """Get the strftime format for X axis labels."""
        if self in (TimeWindow.SEVEN_DAYS, TimeWindow.THIRTY_DAYS):
            return "%m-%d"
        return "%H:%M"

    def bounds(self, now_ms: int | None = None) -> tuple[int, int]:
        """Get (start, end) in UTC milliseconds, ending now.

        Args:
            now_ms: Override for the current time, in UTC milliseconds

        Returns:
            Tuple of (start_ms, end_ms)
        """
        end = now_ms if now_ms is not None else int(time.time() * 1000)
        return end - self.hours * 3_600_000, end

    @classmethod
    def from_label(cls, label: str) -> TimeWindow:
        """Look up a window by its label.

        Raises:
            ValueError: If the label is not one of 1h, 6h, 24h, 7d, 30d
        """
        return cls(label)


_WINDOW_HOURS = {
    TimeWindow.ONE_HOUR: 1,
    TimeWindow.SIX_HOURS: 6,
    TimeWindow.ONE_DAY: 24,
    TimeWindow.SEVEN_DAYS: 168,
    TimeWindow.THIRTY_DAYS: 720,
}


@dataclass(frozen=True)
class HistorySample:
    """One recorded player count."""

    timestamp: int  # UTC milliseconds
    player_count: int

    @property
    def local_datetime(self) -> datetime:
        """Get the sample time in the local timezone."""
        return datetime.fromtimestamp(self.timestamp / 1000).astimezone()


@dataclass
class HistorySeries:
    """Player count history for one server, unordered as received."""

    ip: str
    port: str
    samples: list[HistorySample] = field(default_factory=list)


class RefreshPhase(Enum):
    """Refresh state machine phase."""

    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class RefreshState:
    """Current refresh state of one server."""

    phase: RefreshPhase
    snapshot: ServerStatusSnapshot | None = None
    error: str | None = None

    @classmethod
    def loading(cls) -> RefreshState:
        return cls(RefreshPhase.LOADING)

    @classmethod
    def success(cls, snapshot: ServerStatusSnapshot) -> RefreshState:
        return cls(RefreshPhase.SUCCESS, snapshot=snapshot)

    @classmethod
    def failure(cls, message: str) -> RefreshState:
        return cls(RefreshPhase.ERROR, error=message)


@dataclass(frozen=True)
class ChartConfiguration:
    """Axis parameters for rendering a history chart."""

    min_y: float
    max_y: float
    y_interval: float
    x_label_interval: int
    label_count: int
    time_label_format: str
