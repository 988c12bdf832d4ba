"""
Stance Flip Detection

Walks a stance series with a "settled" reference point and emits a flip
whenever a confident point moves far enough away from it:

1. The settled point starts as the first point of the series
2. A point flips when |stance - settled.stance| >= flip_threshold and its
   confidence >= min_confidence
3. A flip moves the settled point to the flipping point

Each point takes part in at most one flip, so events never overlap, and the
result depends only on the point sequence (plus the voice's mindshare series
for delta_mindshare). Scans can resume from a previous scan's cursor, which
keeps the cost of an append proportional to the new points only.
"""

import logging
from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime
from operator import attrgetter
from typing import List, Optional, Sequence, Tuple

from .models import MindsharePoint, StanceFlipEvent, StancePoint

logger = logging.getLogger(__name__)

FLOAT_TOLERANCE = 1e-9

_timestamp = attrgetter("timestamp")


@dataclass(frozen=True)
class FlipScan:
    """Result of a scan plus the cursor needed to continue it."""

    processed: int
    settled_index: int
    events: Tuple[StanceFlipEvent, ...] = ()


EMPTY_SCAN = FlipScan(processed=0, settled_index=-1)


def flip_event_id(voice_id: str, topic_id: str, t0: datetime) -> str:
    return f"flip-{voice_id}-{topic_id}-{t0:%Y%m%dT%H%M%S%f}"


def nearest_mindshare(
    points: Sequence[MindsharePoint], timestamp: datetime
) -> Optional[float]:
    """
    Mindshare value closest in time to timestamp.

    Ties go to the earlier point. Returns None for an empty series.
    """
    if not points:
        return None

    idx = bisect_left(points, timestamp, key=_timestamp)
    if idx == 0:
        return points[0].mindshare
    if idx == len(points):
        return points[-1].mindshare

    before = points[idx - 1]
    after = points[idx]
    if timestamp - before.timestamp <= after.timestamp - timestamp:
        return before.mindshare
    return after.mindshare


class FlipDetector:
    """Threshold-based stance flip detector."""

    def __init__(self, flip_threshold: float = 0.3, min_confidence: float = 0.4):
        self.flip_threshold = flip_threshold
        self.min_confidence = min_confidence

    @classmethod
    def from_settings(cls, settings) -> "FlipDetector":
        return cls(
            flip_threshold=settings.flip_threshold,
            min_confidence=settings.min_confidence,
        )

    def is_flip(self, settled: StancePoint, point: StancePoint) -> bool:
        moved = abs(point.stance - settled.stance) >= self.flip_threshold - FLOAT_TOLERANCE
        return moved and point.confidence >= self.min_confidence

    def scan(
        self,
        voice_id: str,
        topic_id: str,
        points: Sequence[StancePoint],
        mindshare: Sequence[MindsharePoint] = (),
        resume: Optional[FlipScan] = None,
    ) -> FlipScan:
        """
        Scan a stance series for flips.

        Args:
            voice_id: Voice the series belongs to
            topic_id: Topic the series belongs to
            points: Time-ordered stance points
            mindshare: Time-ordered mindshare points of the voice
            resume: Scan of a prefix of `points` to continue from. Only valid
                when `points` extends that prefix and `mindshare` is unchanged.

        Returns:
            FlipScan with all events of the series and the updated cursor
        """
        if not points:
            return EMPTY_SCAN

        if resume is not None and 0 < resume.processed <= len(points):
            settled_index = resume.settled_index
            events: List[StanceFlipEvent] = list(resume.events)
            start = resume.processed
        else:
            settled_index = 0
            events = []
            start = 1

        for i in range(start, len(points)):
            point = points[i]
            settled = points[settled_index]
            if not self.is_flip(settled, point):
                continue

            events.append(self._build_event(voice_id, topic_id, settled, point, mindshare))
            settled_index = i

        if len(points) - start > 0:
            logger.debug(
                f"Scanned {len(points) - start} new points for {voice_id}/{topic_id}: "
                f"{len(events)} flips total"
            )

        return FlipScan(processed=len(points), settled_index=settled_index, events=tuple(events))

    def detect(
        self,
        voice_id: str,
        topic_id: str,
        points: Sequence[StancePoint],
        mindshare: Sequence[MindsharePoint] = (),
    ) -> List[StanceFlipEvent]:
        """Detect all flips of a stance series from scratch."""
        return list(self.scan(voice_id, topic_id, points, mindshare).events)

    def _build_event(
        self,
        voice_id: str,
        topic_id: str,
        settled: StancePoint,
        point: StancePoint,
        mindshare: Sequence[MindsharePoint],
    ) -> StanceFlipEvent:
        delta_mindshare = None
        if mindshare:
            delta_mindshare = nearest_mindshare(mindshare, point.timestamp) - nearest_mindshare(
                mindshare, settled.timestamp
            )

        return StanceFlipEvent(
            id=flip_event_id(voice_id, topic_id, point.timestamp),
            voice_id=voice_id,
            topic_id=topic_id,
            t0=point.timestamp,
            stance_before=settled.stance,
            stance_after=point.stance,
            delta_stance=point.stance - settled.stance,
            delta_mindshare=delta_mindshare,
        )
