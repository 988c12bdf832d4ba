"""
Time Window Selection

Pure helpers that cut a time-ordered point sequence down to a viewing window.
Series are kept sorted by the store, so selection is two binary searches and
a slice.
"""

from bisect import bisect_left, bisect_right
from datetime import datetime, timedelta
from operator import attrgetter
from typing import Any, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

import pandas as pd
import pytz

from .errors import InvalidWindowError
from .models import StancePoint, TimeRange, to_utc

P = TypeVar("P")

WINDOW_DURATIONS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}
CUSTOM_WINDOW = "custom"

WindowSpec = Union[str, TimeRange]

_timestamp = attrgetter("timestamp")


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def as_time_range(value: Any) -> TimeRange:
    """Coerce a TimeRange, a (start, end) pair or a {"start", "end"} mapping."""
    if isinstance(value, TimeRange):
        return value
    if isinstance(value, Mapping):
        if set(value) != {"start", "end"}:
            raise InvalidWindowError(
                f"Custom range mapping needs start and end keys, got {sorted(value)}"
            )
        return TimeRange(value["start"], value["end"])
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return TimeRange(value[0], value[1])
    raise InvalidWindowError(f"Cannot use {value!r} as a custom time range")


def resolve_window(
    window: WindowSpec,
    custom_range: Optional[TimeRange] = None,
    now: Optional[datetime] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn a window descriptor into inclusive (start, end) bounds.

    Args:
        window: Preset name ("24h", "7d", "30d", "all"), "custom" or a TimeRange
        custom_range: Range used when window is "custom"
        now: Reference time for presets, defaults to the current UTC time

    Returns:
        (start, end) tuple; both are None for "all"

    Raises:
        InvalidWindowError: Unknown preset, or "custom" without a usable range
    """
    if isinstance(window, TimeRange):
        return window.start, window.end

    if window == CUSTOM_WINDOW:
        if custom_range is None:
            raise InvalidWindowError("Custom window selected without a custom range")
        custom_range = as_time_range(custom_range)
        return custom_range.start, custom_range.end

    if window not in WINDOW_DURATIONS:
        raise InvalidWindowError(
            f"Unknown time window {window!r}, expected one of "
            f"{sorted(WINDOW_DURATIONS) + [CUSTOM_WINDOW]}"
        )

    duration = WINDOW_DURATIONS[window]
    if duration is None:
        return None, None

    end = to_utc(now) if now is not None else utc_now()
    return end - duration, end


def slice_between(
    points: Sequence[P], start: Optional[datetime], end: Optional[datetime]
) -> List[P]:
    """Points with start <= timestamp <= end; None bounds are open."""
    lo = 0 if start is None else bisect_left(points, start, key=_timestamp)
    hi = len(points) if end is None else bisect_right(points, end, key=_timestamp)
    return list(points[lo:hi])


def filter_by_window(
    points: Sequence[P],
    window: WindowSpec,
    custom_range: Optional[TimeRange] = None,
    now: Optional[datetime] = None,
) -> List[P]:
    """
    Select the points of a time-ordered sequence that fall inside a window.

    Bounds are inclusive and order is preserved. Empty input yields an empty
    list for any valid window.
    """
    start, end = resolve_window(window, custom_range, now)
    if not points:
        return []
    return slice_between(points, start, end)


def downsample_daily(points: Sequence[StancePoint]) -> List[StancePoint]:
    """
    Collapse a stance series to one point per UTC day.

    Each day's point carries the mean stance and mean confidence of that day,
    stamped at 12:00 UTC. Days without points are skipped.
    """
    if not points:
        return []

    df = pd.DataFrame(
        {
            "timestamp": [p.timestamp for p in points],
            "stance": [p.stance for p in points],
            "confidence": [p.confidence for p in points],
        }
    )
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)

    daily = df.set_index("timestamp").resample("1D").mean().dropna()

    return [
        StancePoint(
            timestamp=day + timedelta(hours=12),
            stance=min(1.0, max(-1.0, row["stance"])),
            confidence=min(1.0, max(0.0, row["confidence"])),
        )
        for day, row in daily.iterrows()
    ]
