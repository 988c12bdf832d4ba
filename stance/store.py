"""
In-memory Time Series Store

Holds one ordered stance series per (voice, topic) and one mindshare series
per voice. Writers come from a single ingestion pipeline; readers get
immutable tuple snapshots.

Every write bumps a per-series version counter. Flip events are not computed
on write: the store remembers the last scan per series together with the
versions it was computed from and recomputes lazily on the next read. When
only appends happened since that scan, detection resumes from the scan's
settled cursor instead of starting over.
"""

import logging
import threading
from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime
from operator import attrgetter
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from .errors import DuplicateTimestampError, OutOfOrderError, ValidationError
from .flips import FlipDetector, FlipScan
from .models import (
    MindsharePoint,
    MindshareSeries,
    StancePoint,
    VoiceStanceSeries,
    to_utc,
)

logger = logging.getLogger(__name__)

_timestamp = attrgetter("timestamp")

SeriesKey = Tuple[str, str]


@dataclass(frozen=True)
class ChangeNotice:
    """Sent to subscribers after every successful write."""

    kind: str  # 'stance', 'mindshare' or 'prune'
    voice_id: Optional[str]
    topic_id: Optional[str]
    revision: int


class _Series:
    """Mutable point list plus its version counters."""

    __slots__ = ("points", "version", "rewrite_version")

    def __init__(self):
        self.points: List[Any] = []
        self.version = 0
        # Version of the last write that was not a plain append
        self.rewrite_version = 0


@dataclass(frozen=True)
class _FlipCacheEntry:
    stance_version: int
    rewrite_version: int
    mindshare_version: int
    scan: FlipScan


class TimeSeriesStore:
    """Versioned in-memory storage for stance and mindshare series."""

    def __init__(
        self,
        detector: Optional[FlipDetector] = None,
        strict: bool = True,
        duplicate_policy: str = "reject",
    ):
        """
        Initialize the store.

        Args:
            detector: Flip detector used for lazily computed flip events
            strict: Reject points older than the newest point of their series
            duplicate_policy: 'reject' or 'last_write_wins' for repeated timestamps
        """
        if duplicate_policy not in ("reject", "last_write_wins"):
            raise ValueError(f"Unknown duplicate policy: {duplicate_policy!r}")

        self.detector = detector or FlipDetector()
        self.strict = strict
        self.duplicate_policy = duplicate_policy
        self.revision = 0

        self._stance: Dict[SeriesKey, _Series] = {}
        self._mindshare: Dict[str, _Series] = {}
        self._flip_cache: Dict[SeriesKey, _FlipCacheEntry] = {}
        self._voices_by_topic: Dict[str, Set[str]] = {}
        self._topics_by_voice: Dict[str, Set[str]] = {}
        self._subscribers: List[Callable[[ChangeNotice], None]] = []
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings) -> "TimeSeriesStore":
        return cls(
            detector=FlipDetector.from_settings(settings),
            strict=settings.strict_order,
            duplicate_policy=settings.duplicate_policy,
        )

    # ---- writes ----

    def append_stance(
        self, voice_id: str, topic_id: str, point: Union[StancePoint, Dict[str, Any]]
    ) -> int:
        """
        Append a stance point to the (voice, topic) series.

        Returns:
            New version of the series

        Raises:
            ValidationError: Value out of range or malformed payload
            OutOfOrderError: Point older than the series head (strict mode)
            DuplicateTimestampError: Repeated timestamp under the reject policy
        """
        point = self._coerce(point, StancePoint)
        key = (voice_id, topic_id)

        with self._lock:
            series = self._stance.get(key) or _Series()
            self._write(series, point, key)
            if key not in self._stance:
                self._stance[key] = series
                self._voices_by_topic.setdefault(topic_id, set()).add(voice_id)
                self._topics_by_voice.setdefault(voice_id, set()).add(topic_id)
            self.revision += 1
            notice = ChangeNotice("stance", voice_id, topic_id, self.revision)
            version = series.version

        self._notify(notice)
        return version

    def append_mindshare(
        self, voice_id: str, point: Union[MindsharePoint, Dict[str, Any]]
    ) -> int:
        """Append a mindshare point to the voice's series. Same contract as append_stance."""
        point = self._coerce(point, MindsharePoint)

        with self._lock:
            series = self._mindshare.get(voice_id) or _Series()
            self._write(series, point, voice_id)
            self._mindshare.setdefault(voice_id, series)
            self.revision += 1
            notice = ChangeNotice("mindshare", voice_id, None, self.revision)
            version = series.version

        self._notify(notice)
        return version

    def prune_before(self, cutoff: datetime) -> int:
        """
        Drop every point older than cutoff (retention hook for external policies).

        Series left empty are removed. Returns the number of points dropped.
        """
        cutoff = to_utc(cutoff)
        removed = 0

        with self._lock:
            for key, series in list(self._stance.items()):
                dropped = self._drop_older(series, cutoff)
                removed += dropped
                if not series.points:
                    self._forget_stance(key)

            for voice_id, series in list(self._mindshare.items()):
                removed += self._drop_older(series, cutoff)
                if not series.points:
                    # A recreated series restarts at version 1
                    del self._mindshare[voice_id]
                    for topic_id in self._topics_by_voice.get(voice_id, ()):
                        self._flip_cache.pop((voice_id, topic_id), None)

            if not removed:
                return 0
            self.revision += 1
            notice = ChangeNotice("prune", None, None, self.revision)

        logger.info(f"Pruned {removed} points older than {cutoff.isoformat()}")
        self._notify(notice)
        return removed

    # ---- reads ----

    def get_stance_series(self, voice_id: str, topic_id: str) -> Optional[VoiceStanceSeries]:
        """Snapshot of a stance series with its flip events, or None if unknown."""
        key = (voice_id, topic_id)
        with self._lock:
            series = self._stance.get(key)
            if series is None:
                return None
            points = tuple(series.points)
            version = series.version
            rewrite_version = series.rewrite_version
            mindshare = self._mindshare.get(voice_id)
            ms_points = tuple(mindshare.points) if mindshare else ()
            ms_version = mindshare.version if mindshare else 0
            cached = self._flip_cache.get(key)

        if (
            cached is not None
            and cached.stance_version == version
            and cached.mindshare_version == ms_version
        ):
            scan = cached.scan
        else:
            resume = None
            if (
                cached is not None
                and cached.rewrite_version == rewrite_version
                and cached.mindshare_version == ms_version
            ):
                resume = cached.scan
            scan = self.detector.scan(voice_id, topic_id, points, ms_points, resume=resume)
            self._remember_scan(key, _FlipCacheEntry(version, rewrite_version, ms_version, scan))

        return VoiceStanceSeries(
            voice_id=voice_id,
            topic_id=topic_id,
            points=points,
            flip_events=scan.events,
            version=version,
        )

    def get_mindshare_series(self, voice_id: str) -> Optional[MindshareSeries]:
        """Snapshot of a voice's mindshare series, or None if unknown."""
        with self._lock:
            series = self._mindshare.get(voice_id)
            if series is None:
                return None
            return MindshareSeries(voice_id, tuple(series.points), series.version)

    def stance_points(self, voice_id: str, topic_id: str) -> Tuple[StancePoint, ...]:
        """Raw stance points without flip detection; empty when unknown."""
        with self._lock:
            series = self._stance.get((voice_id, topic_id))
            return tuple(series.points) if series else ()

    def mindshare_points(self, voice_id: str) -> Tuple[MindsharePoint, ...]:
        with self._lock:
            series = self._mindshare.get(voice_id)
            return tuple(series.points) if series else ()

    def stance_version(self, voice_id: str, topic_id: str) -> int:
        with self._lock:
            series = self._stance.get((voice_id, topic_id))
            return series.version if series else 0

    def mindshare_version(self, voice_id: str) -> int:
        with self._lock:
            series = self._mindshare.get(voice_id)
            return series.version if series else 0

    def voices_for_topic(self, topic_id: str) -> List[str]:
        with self._lock:
            return sorted(self._voices_by_topic.get(topic_id, ()))

    def topics_for_voice(self, voice_id: str) -> List[str]:
        with self._lock:
            return sorted(self._topics_by_voice.get(voice_id, ()))

    def voice_ids(self) -> List[str]:
        with self._lock:
            return sorted(set(self._topics_by_voice) | set(self._mindshare))

    def topic_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._voices_by_topic)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "stance_series": len(self._stance),
                "mindshare_series": len(self._mindshare),
                "stance_points": sum(len(s.points) for s in self._stance.values()),
                "mindshare_points": sum(len(s.points) for s in self._mindshare.values()),
                "voices": len(set(self._topics_by_voice) | set(self._mindshare)),
                "topics": len(self._voices_by_topic),
                "revision": self.revision,
            }

    # ---- observers ----

    def subscribe(self, callback: Callable[[ChangeNotice], None]) -> Callable[[], None]:
        """
        Register a callback invoked after every successful write.

        Returns:
            Function that removes the callback again
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ---- internals ----

    @staticmethod
    def _coerce(point, point_type):
        if isinstance(point, point_type):
            return point
        if isinstance(point, dict):
            return point_type.from_mapping(point)
        raise ValidationError(
            f"Expected {point_type.__name__} or mapping, got {type(point).__name__}"
        )

    def _write(self, series: _Series, point, key) -> None:
        """Place point in series; raises before touching the series on conflict."""
        points = series.points

        if not points or point.timestamp > points[-1].timestamp:
            points.append(point)
            series.version += 1
            return

        if self.strict and point.timestamp < points[-1].timestamp:
            raise OutOfOrderError(key, point.timestamp, points[-1].timestamp)

        idx = bisect_left(points, point.timestamp, key=_timestamp)
        if points[idx].timestamp == point.timestamp:
            if self.duplicate_policy == "reject":
                raise DuplicateTimestampError(key, point.timestamp)
            points[idx] = point
            logger.debug(f"Replaced point at {point.timestamp.isoformat()} for {key}")
        else:
            points.insert(idx, point)

        series.version += 1
        series.rewrite_version = series.version

    @staticmethod
    def _drop_older(series: _Series, cutoff: datetime) -> int:
        idx = bisect_left(series.points, cutoff, key=_timestamp)
        if idx:
            del series.points[:idx]
            series.version += 1
            series.rewrite_version = series.version
        return idx

    def _forget_stance(self, key: SeriesKey) -> None:
        voice_id, topic_id = key
        del self._stance[key]
        self._flip_cache.pop(key, None)
        self._voices_by_topic[topic_id].discard(voice_id)
        if not self._voices_by_topic[topic_id]:
            del self._voices_by_topic[topic_id]
        self._topics_by_voice[voice_id].discard(topic_id)
        if not self._topics_by_voice[voice_id]:
            del self._topics_by_voice[voice_id]

    def _remember_scan(self, key: SeriesKey, entry: _FlipCacheEntry) -> None:
        with self._lock:
            series = self._stance.get(key)
            if series is None:
                return
            current = self._flip_cache.get(key)
            if current is None or current.stance_version <= entry.stance_version:
                self._flip_cache[key] = entry

    def _notify(self, notice: ChangeNotice) -> None:
        for callback in list(self._subscribers):
            try:
                callback(notice)
            except Exception as e:
                logger.error(f"Store subscriber {callback!r} failed on {notice.kind}: {e}")
