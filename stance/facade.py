"""
Query Facade

Public read API over the store for presentation layers. Besides the read
operations it keeps the caller's viewing state: the selected time window and
the set of voices being compared. Derived views are memoised per store
revision, so repeated reads between writes do not recompute anything.
"""

import logging
import threading
from datetime import datetime
from itertools import combinations
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .annotations import ComparisonAnnotator
from .catalog import Catalog
from .correlation import correlate_points
from .distribution import DistributionAggregator, latest_at, stance_label
from .errors import InvalidWindowError
from .models import (
    Annotation,
    LagCorrelation,
    MindshareSeries,
    StanceFlipEvent,
    StanceRing,
    Topic,
    TimeRange,
    TopicDistribution,
    Voice,
    VoiceStanceSeries,
    to_utc,
)
from .settings import EngineSettings
from .store import ChangeNotice, TimeSeriesStore
from .windows import CUSTOM_WINDOW, WindowSpec, resolve_window, slice_between, utc_now

logger = logging.getLogger(__name__)


class QueryFacade:
    """Read-only query surface of the stance engine."""

    def __init__(
        self,
        store: Optional[TimeSeriesStore] = None,
        catalog: Optional[Catalog] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.settings = settings or EngineSettings()
        self.store = store or TimeSeriesStore.from_settings(self.settings)
        self.catalog = catalog or Catalog()
        self.aggregator = DistributionAggregator.from_settings(self.store, self.settings)
        self.annotator = ComparisonAnnotator.from_settings(self.settings)

        self._time_window: str = self.settings.default_time_window
        self._custom_time_range: Optional[TimeRange] = None
        self._compared_voice_ids: List[str] = []

        self._derived: Dict[Tuple, Any] = {}
        self._derived_revision = -1
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, store: Optional[TimeSeriesStore] = None) -> "QueryFacade":
        """Build a facade from config/engine.yml and config/catalog.yml."""
        settings = EngineSettings.load()
        return cls(store=store, catalog=Catalog.load(), settings=settings)

    # ---- reference data ----

    @property
    def voices(self) -> List[Voice]:
        return self.catalog.voices

    @property
    def topics(self) -> List[Topic]:
        return self.catalog.topics

    # ---- viewing window ----

    @property
    def time_window(self) -> str:
        return self._time_window

    @property
    def custom_time_range(self) -> Optional[TimeRange]:
        return self._custom_time_range

    def set_time_window(self, window: WindowSpec) -> None:
        """Select a preset window; a TimeRange selects a custom range."""
        if isinstance(window, TimeRange):
            self.set_custom_time_range(window)
            return
        if window == CUSTOM_WINDOW:
            raise InvalidWindowError("Use set_custom_time_range to select a custom window")
        resolve_window(window)
        self._time_window = window
        self._custom_time_range = None

    def set_custom_time_range(
        self, start: Union[TimeRange, datetime, str], end: Union[datetime, str, None] = None
    ) -> None:
        """Select a custom window, given as a TimeRange or as start and end."""
        time_range = start if isinstance(start, TimeRange) else TimeRange(start, end)
        self._time_window = CUSTOM_WINDOW
        self._custom_time_range = time_range

    def _bounds(
        self, window: Optional[WindowSpec], now: Optional[datetime]
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        if window is None:
            window = self._time_window
        return resolve_window(window, self._custom_time_range, now)

    # ---- compare selection ----

    @property
    def compared_voice_ids(self) -> List[str]:
        return list(self._compared_voice_ids)

    def set_compared_voices(self, voice_ids: Sequence[str]) -> None:
        unique = list(dict.fromkeys(voice_ids))
        self._compared_voice_ids = unique[: self.settings.max_compared_voices]

    def add_to_compare(self, voice_id: str) -> bool:
        """Add a voice to the comparison; False when present or the selection is full."""
        if voice_id in self._compared_voice_ids:
            return False
        if len(self._compared_voice_ids) >= self.settings.max_compared_voices:
            return False
        self._compared_voice_ids.append(voice_id)
        return True

    def remove_from_compare(self, voice_id: str) -> None:
        self._compared_voice_ids = [v for v in self._compared_voice_ids if v != voice_id]

    def clear_compare(self) -> None:
        self._compared_voice_ids = []

    # ---- reads ----

    def get_voice_stance_series(
        self,
        voice_id: str,
        topic_id: str,
        window: Optional[WindowSpec] = None,
        now: Optional[datetime] = None,
    ) -> Optional[VoiceStanceSeries]:
        """
        Stance series of a voice on a topic, cut to a window.

        Flips are detected on the full series; only events whose t0 falls in
        the window are returned. None when the pair has no data.
        """
        series = self.store.get_stance_series(voice_id, topic_id)
        if series is None:
            return None

        start, end = self._bounds(window, now)
        return VoiceStanceSeries(
            voice_id=voice_id,
            topic_id=topic_id,
            points=tuple(slice_between(series.points, start, end)),
            flip_events=tuple(_events_between(series.flip_events, start, end)),
            version=series.version,
        )

    def get_voice_mindshare_series(
        self,
        voice_id: str,
        window: Optional[WindowSpec] = None,
        now: Optional[datetime] = None,
    ) -> Optional[MindshareSeries]:
        series = self.store.get_mindshare_series(voice_id)
        if series is None:
            return None

        start, end = self._bounds(window, now)
        return MindshareSeries(
            voice_id=voice_id,
            points=tuple(slice_between(series.points, start, end)),
            version=series.version,
        )

    def get_topic_distribution(
        self, topic_id: str, as_of: Optional[datetime] = None
    ) -> Optional[TopicDistribution]:
        as_of = to_utc(as_of) if as_of is not None else None
        return self._memo(
            ("distribution", topic_id, as_of),
            lambda: self.aggregator.get_topic_distribution(topic_id, as_of),
        )

    def get_flip_events_for_topic(
        self,
        topic_id: str,
        window: Optional[WindowSpec] = None,
        now: Optional[datetime] = None,
    ) -> List[StanceFlipEvent]:
        """All flips on a topic ordered by t0, then voice id."""
        events = self._memo(("topic_flips", topic_id), lambda: self._topic_flips(topic_id))
        start, end = self._bounds(window, now)
        return _events_between(events, start, end)

    def get_flip_events_for_voice(
        self,
        voice_id: str,
        window: Optional[WindowSpec] = None,
        now: Optional[datetime] = None,
    ) -> List[StanceFlipEvent]:
        """All flips of a voice across topics ordered by t0, then topic id."""
        events = []
        for topic_id in self.store.topics_for_voice(voice_id):
            series = self.store.get_stance_series(voice_id, topic_id)
            if series is not None:
                events.extend(series.flip_events)
        events.sort(key=lambda e: (e.t0, e.topic_id))
        start, end = self._bounds(window, now)
        return _events_between(events, start, end)

    def get_compare_annotations(
        self,
        topic_id: str,
        voice_ids: Optional[Sequence[str]] = None,
        window: Optional[WindowSpec] = None,
        now: Optional[datetime] = None,
    ) -> List[Annotation]:
        """Comparison annotations for voices on a topic (defaults to the compare selection)."""
        if voice_ids is None:
            voice_ids = self._compared_voice_ids
        voice_ids = list(dict.fromkeys(voice_ids))
        flips = self.get_flip_events_for_topic(topic_id, window, now)
        correlations = {
            (voice_a, voice_b): self.get_voice_correlation(topic_id, voice_a, voice_b, window, now)
            for voice_a, voice_b in combinations(voice_ids, 2)
        }
        return self.annotator.generate_compare_annotations(
            flips, voice_ids, labels=self.catalog.voice_labels(), correlations=correlations
        )

    def get_voice_correlation(
        self,
        topic_id: str,
        voice_a: str,
        voice_b: str,
        window: Optional[WindowSpec] = None,
        now: Optional[datetime] = None,
    ) -> Optional[LagCorrelation]:
        """
        Lagged correlation of two voices' stance on a topic.

        A positive lag_hours means voice_b moves first. None when either voice
        has no stance data in the window or the two never overlap.
        """
        start, end = self._bounds(window, now)
        return self._memo(
            ("voice_correlation", topic_id, voice_a, voice_b, start, end),
            lambda: self._correlate(
                self.store.stance_points(voice_a, topic_id),
                "stance",
                self.store.stance_points(voice_b, topic_id),
                "stance",
                start,
                end,
            ),
        )

    def get_stance_mindshare_correlation(
        self,
        voice_id: str,
        topic_id: str,
        window: Optional[WindowSpec] = None,
        now: Optional[datetime] = None,
    ) -> Optional[LagCorrelation]:
        """How a voice's mindshare tracks its stance; a positive lag means stance moves first."""
        start, end = self._bounds(window, now)
        return self._memo(
            ("mindshare_correlation", voice_id, topic_id, start, end),
            lambda: self._correlate(
                self.store.mindshare_points(voice_id),
                "mindshare",
                self.store.stance_points(voice_id, topic_id),
                "stance",
                start,
                end,
            ),
        )

    def get_stance_ring(
        self, voice_id: str, topic_id: str, now: Optional[datetime] = None
    ) -> Optional[StanceRing]:
        """Latest stance of a voice on a topic plus whether it flipped recently."""
        series = self.store.get_stance_series(voice_id, topic_id)
        if series is None or series.latest is None:
            return None

        now = to_utc(now) if now is not None else utc_now()
        recent_start = now - self.settings.recent_flip_window
        recent = [e for e in series.flip_events if recent_start <= e.t0 <= now]
        last_flip = series.flip_events[-1] if series.flip_events else None

        return StanceRing(
            voice_id=voice_id,
            topic_id=topic_id,
            stance=series.latest.stance,
            confidence=series.latest.confidence,
            label=stance_label(series.latest.stance, self.settings.neutral_band),
            has_recent_flip=bool(recent),
            flip_direction=last_flip.direction if last_flip else None,
        )

    def get_top_voices_by_mindshare(
        self, limit: int = 10, as_of: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Voices ranked by their latest mindshare."""
        as_of = to_utc(as_of) if as_of is not None else None
        ranked = self._memo(("top_voices", limit, as_of), lambda: self._top_voices(limit, as_of))
        return [dict(r) for r in ranked]

    def subscribe(self, callback: Callable[[ChangeNotice], None]) -> Callable[[], None]:
        """Register an observer for store writes; returns the unsubscribe function."""
        return self.store.subscribe(callback)

    # ---- internals ----

    def _memo(self, key: Tuple, compute: Callable[[], Any]) -> Any:
        revision = self.store.revision
        with self._lock:
            if revision != self._derived_revision:
                self._derived = {}
                self._derived_revision = revision
            if key in self._derived:
                return self._derived[key]

        value = compute()
        with self._lock:
            if self._derived_revision == revision:
                self._derived[key] = value
        return value

    def _correlate(
        self,
        left: Sequence,
        left_field: str,
        right: Sequence,
        right_field: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> Optional[LagCorrelation]:
        left = slice_between(left, start, end)
        right = slice_between(right, start, end)
        if not left or not right:
            return None
        return correlate_points(
            left, left_field, right, right_field, self.settings.correlation_lag_hours
        )

    def _topic_flips(self, topic_id: str) -> List[StanceFlipEvent]:
        events = []
        for voice_id in self.store.voices_for_topic(topic_id):
            series = self.store.get_stance_series(voice_id, topic_id)
            if series is not None:
                events.extend(series.flip_events)
        events.sort(key=lambda e: (e.t0, e.voice_id))
        return events

    def _top_voices(self, limit: int, as_of: Optional[datetime]) -> List[Dict[str, Any]]:
        ranked = []
        for voice_id in self.store.voice_ids():
            point = latest_at(self.store.mindshare_points(voice_id), as_of)
            if point is None:
                continue
            ranked.append(
                {
                    "voice_id": voice_id,
                    "display_name": self.catalog.voice_name(voice_id),
                    "mindshare": point.mindshare,
                }
            )
        ranked.sort(key=lambda r: (-r["mindshare"], r["voice_id"]))
        return ranked[:limit]


def _events_between(
    events: Sequence[StanceFlipEvent], start: Optional[datetime], end: Optional[datetime]
) -> List[StanceFlipEvent]:
    return [
        e
        for e in events
        if (start is None or e.t0 >= start) and (end is None or e.t0 <= end)
    ]
