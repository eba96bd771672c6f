"""History service: turns player count history into chart-ready data."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from mcserver_link.models import ChartConfiguration, HistorySample, TimeWindow

if TYPE_CHECKING:
    from mcserver_link.models import ServerRecord
    from mcserver_link.utils.status_client import StatusClient

logger = logging.getLogger(__name__)

TOOLTIP_FORMAT = "%Y-%m-%d %H:%M"


@dataclass(frozen=True)
class YAxis:
    """Y axis bounds and grid interval."""

    min_y: float
    max_y: float
    interval: float


@dataclass(frozen=True)
class XAxis:
    """X axis labelling parameters."""

    label_count: int
    label_format: str
    label_interval: int


@dataclass(frozen=True)
class HistoryView:
    """Loaded history for one window. chart is None when there are no samples."""

    window: TimeWindow
    samples: tuple[HistorySample, ...]
    chart: ChartConfiguration | None

    @property
    def is_empty(self) -> bool:
        return not self.samples


def select_window(label: str, now_ms: int | None = None) -> tuple[int, int]:
    """Get the (start, end) UTC milliseconds for a window label.

    Args:
        label: One of 1h, 6h, 24h, 7d, 30d
        now_ms: Override for the current time

    Returns:
        Tuple of (start_ms, end_ms)

    Raises:
        ValueError: If the label is unknown
    """
    return TimeWindow.from_label(label).bounds(now_ms)


def sort_ascending(samples: Sequence[HistorySample]) -> list[HistorySample]:
    """Return a new list sorted by timestamp. Equal timestamps keep their order."""
    return sorted(samples, key=lambda s: s.timestamp)


def _require_samples(samples: Sequence[HistorySample]) -> None:
    if not samples:
        raise ValueError("History series is empty; show the empty state instead")


def compute_y_axis(samples: Sequence[HistorySample]) -> YAxis:
    """Compute Y bounds and grid interval from the player counts.

    Args:
        samples: Non-empty series

    Returns:
        YAxis

    Raises:
        ValueError: If samples is empty
    """
    _require_samples(samples)
    counts = [s.player_count for s in samples]
    low = float(min(counts))
    high = float(max(counts))
    spread = high - low

    if spread == 0:
        return YAxis(min_y=max(low - 5, 0.0), max_y=low + 10, interval=2.0)
    if spread < 10:
        return YAxis(min_y=max(low - 2, 0.0), max_y=high + 2, interval=1.0)

    padding = spread * 0.1
    return YAxis(min_y=max(low - padding, 0.0), max_y=high + padding, interval=spread / 5)


def compute_x_axis(samples: Sequence[HistorySample], window: TimeWindow) -> XAxis:
    """Compute label count, format and stride for the time axis.

    Args:
        samples: Series to label
        window: Selected time window

    Returns:
        XAxis
    """
    label_count = window.label_count
    interval = 1
    if len(samples) > label_count:
        interval = max(math.floor(len(samples) / (label_count - 1)), 1)
    return XAxis(label_count=label_count, label_format=window.time_label_format, label_interval=interval)


def build_chart(samples: Sequence[HistorySample], window: TimeWindow) -> ChartConfiguration:
    """Build the chart configuration for a series.

    Args:
        samples: Non-empty series, any order
        window: Selected time window

    Returns:
        ChartConfiguration

    Raises:
        ValueError: If samples is empty
    """
    _require_samples(samples)
    y_axis = compute_y_axis(samples)
    x_axis = compute_x_axis(samples, window)
    return ChartConfiguration(
        min_y=y_axis.min_y,
        max_y=y_axis.max_y,
        y_interval=y_axis.interval,
        x_label_interval=x_axis.label_interval,
        label_count=x_axis.label_count,
        time_label_format=x_axis.label_format,
    )


def max_x(samples: Sequence[HistorySample]) -> float:
    """Get the right edge of the X axis for index-based plotting."""
    return float(len(samples) - 1) if len(samples) > 1 else 1.0


def format_axis_label(samples: Sequence[HistorySample], index: int, window: TimeWindow) -> str:
    """Format the X axis label for a sample index.

    Args:
        samples: Sorted series
        index: Sample index on the X axis
        window: Selected time window

    Returns:
        Label text, or "" for an index outside the series
    """
    if index < 0 or index >= len(samples):
        return ""
    return samples[index].local_datetime.strftime(window.time_label_format)


def format_tooltip(sample: HistorySample) -> str:
    """Format the touch tooltip for a sample."""
    return f"{sample.local_datetime.strftime(TOOLTIP_FORMAT)}\n{sample.player_count} players"


class HistoryService:
    """Loads history from the backend and prepares it for charting."""

    def __init__(self, client: StatusClient) -> None:
        """Initialize history service.

        Args:
            client: Status client used for history requests
        """
        self._client = client

    async def load(self, record: ServerRecord, window: TimeWindow, now_ms: int | None = None) -> HistoryView:
        """Load and prepare history for a server.

        Args:
            record: Server to load history for
            window: Selected time window
            now_ms: Override for the current time

        Returns:
            HistoryView with sorted samples

        Raises:
            HistoryNotConfiguredError: If no history URL is configured
            HistoryFetchError, RequestTimeoutError, NetworkUnavailableError, ParseError
        """
        series = await self._client.fetch_history(record.address, record.port, window, now_ms=now_ms)
        samples = tuple(sort_ascending(series.samples))
        logger.debug("Loaded %d history samples for %s (%s)", len(samples), record.name, window.value)

        chart = build_chart(samples, window) if samples else None
        return HistoryView(window=window, samples=samples, chart=chart)
