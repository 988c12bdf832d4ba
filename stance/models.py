"""
Stance Engine Data Model

Immutable value types shared by the store, the detectors and the query layer.
Points are validated when they are constructed, so anything that made it into
a series is known to be in range.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

import pytz

from .errors import InvalidRangeError, ValidationError

# Annotation types
FLIP_FIRST = "flip_first"
MINDSHARE_SURGE = "mindshare_surge"
BRIDGE = "bridge"
CORRELATION = "correlation"
ANNOTATION_TYPES = (FLIP_FIRST, MINDSHARE_SURGE, BRIDGE, CORRELATION)


def to_utc(value: Any) -> datetime:
    """
    Normalise a timestamp to a timezone-aware UTC datetime.

    Accepts datetimes (naive values are taken as UTC), pandas Timestamps and
    ISO-8601 strings (a trailing "Z" is allowed).
    """
    if hasattr(value, "to_pydatetime"):
        value = value.to_pydatetime()

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(f"Malformed timestamp: {value!r}") from e

    if not isinstance(value, datetime):
        raise ValidationError(f"Unsupported timestamp type: {type(value).__name__}")

    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def _check_range(name: str, value: Any, low: float, high: float) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got bool")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e

    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite, got {number}")
    if number < low or number > high:
        raise ValidationError(f"{name}={number} outside [{low}, {high}]")
    return number


def _require(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    raise ValidationError(f"Missing field: {names[0]}")


@dataclass(frozen=True)
class Voice:
    """A tracked voice (creator, commentator, outlet)."""

    voice_id: str
    display_name: str
    category: str = "other"
    avatar_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice_id": self.voice_id,
            "display_name": self.display_name,
            "category": self.category,
            "avatar_url": self.avatar_url,
        }


@dataclass(frozen=True)
class Topic:
    """A tracked topic."""

    topic_id: str
    label: str
    category: str = "politics"

    def to_dict(self) -> Dict[str, Any]:
        return {"topic_id": self.topic_id, "label": self.label, "category": self.category}


@dataclass(frozen=True)
class StancePoint:
    """A voice's measured stance on a topic at one instant."""

    timestamp: datetime
    stance: float
    confidence: float

    def __post_init__(self):
        object.__setattr__(self, "timestamp", to_utc(self.timestamp))
        object.__setattr__(self, "stance", _check_range("stance", self.stance, -1.0, 1.0))
        object.__setattr__(
            self, "confidence", _check_range("confidence", self.confidence, 0.0, 1.0)
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StancePoint":
        """Build a point from a loosely-typed payload ("conf" is accepted for confidence)."""
        return cls(
            timestamp=_require(data, "timestamp"),
            stance=_require(data, "stance"),
            confidence=_require(data, "confidence", "conf"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "stance": self.stance,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class MindsharePoint:
    """A voice's share of tracked attention (0-100) at one instant."""

    timestamp: datetime
    mindshare: float

    def __post_init__(self):
        object.__setattr__(self, "timestamp", to_utc(self.timestamp))
        object.__setattr__(
            self, "mindshare", _check_range("mindshare", self.mindshare, 0.0, 100.0)
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MindsharePoint":
        return cls(
            timestamp=_require(data, "timestamp"),
            mindshare=_require(data, "mindshare"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "mindshare": self.mindshare}


@dataclass(frozen=True)
class StanceFlipEvent:
    """A detected threshold-crossing change in a voice's stance on a topic."""

    id: str
    voice_id: str
    topic_id: str
    t0: datetime
    stance_before: float
    stance_after: float
    delta_stance: float
    delta_mindshare: Optional[float]  # None when the voice has no mindshare data

    @property
    def direction(self) -> str:
        return "positive" if self.delta_stance > 0 else "negative"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "voice_id": self.voice_id,
            "topic_id": self.topic_id,
            "t0": self.t0.isoformat(),
            "stance_before": self.stance_before,
            "stance_after": self.stance_after,
            "delta_stance": self.delta_stance,
            "delta_mindshare": self.delta_mindshare,
        }


@dataclass(frozen=True)
class VoiceStanceSeries:
    """Snapshot of one (voice, topic) stance series and its flip events."""

    voice_id: str
    topic_id: str
    points: Tuple[StancePoint, ...]
    flip_events: Tuple[StanceFlipEvent, ...]
    version: int = 0

    @property
    def latest(self) -> Optional[StancePoint]:
        return self.points[-1] if self.points else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice_id": self.voice_id,
            "topic_id": self.topic_id,
            "points": [p.to_dict() for p in self.points],
            "flip_events": [e.to_dict() for e in self.flip_events],
        }


@dataclass(frozen=True)
class MindshareSeries:
    """Snapshot of one voice's mindshare series."""

    voice_id: str
    points: Tuple[MindsharePoint, ...]
    version: int = 0

    @property
    def latest(self) -> Optional[MindsharePoint]:
        return self.points[-1] if self.points else None

    def to_dict(self) -> Dict[str, Any]:
        return {"voice_id": self.voice_id, "points": [p.to_dict() for p in self.points]}


@dataclass(frozen=True)
class StanceDistribution:
    """Voice counts per stance bucket."""

    against: int = 0
    neutral: int = 0
    for_: int = 0

    @property
    def total(self) -> int:
        return self.against + self.neutral + self.for_

    def to_dict(self) -> Dict[str, int]:
        return {"against": self.against, "neutral": self.neutral, "for": self.for_}


@dataclass(frozen=True)
class VoiceStanding:
    """A voice's current stance and mindshare on a topic."""

    voice_id: str
    stance: float
    mindshare: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {"voice_id": self.voice_id, "mindshare": self.mindshare, "stance": self.stance}


@dataclass(frozen=True)
class TopicDistribution:
    """Stance distribution and mindshare-weighted consensus for a topic."""

    topic_id: str
    distribution: StanceDistribution
    mindshare_weighted_stance: Optional[float]
    top_voices: Tuple[VoiceStanding, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "distribution": self.distribution.to_dict(),
            "mindshare_weighted_stance": self.mindshare_weighted_stance,
            "top_voices": [v.to_dict() for v in self.top_voices],
        }


@dataclass(frozen=True)
class TimeRange:
    """Inclusive custom time range."""

    start: datetime
    end: datetime

    def __post_init__(self):
        start = to_utc(self.start)
        end = to_utc(self.end)
        if start > end:
            raise InvalidRangeError(
                f"Range start {start.isoformat()} is after end {end.isoformat()}"
            )
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def contains(self, timestamp: datetime) -> bool:
        return self.start <= timestamp <= self.end

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class Annotation:
    """A cross-voice comparison note attached to a point in time."""

    type: str
    voices: Tuple[str, ...]
    timestamp: datetime
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "voices": list(self.voices),
            "timestamp": self.timestamp.isoformat(),
            "text": self.text,
        }


@dataclass(frozen=True)
class LagCorrelation:
    """Best-lag Pearson correlation between two series on an hourly grid.

    A positive lag_hours means the second series leads the first.
    """

    lag_hours: int
    correlation: float
    samples: int
    start: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lag_hours": self.lag_hours,
            "correlation": self.correlation,
            "samples": self.samples,
            "start": self.start.isoformat() if self.start else None,
        }


@dataclass(frozen=True)
class StanceRing:
    """Current stance summary of a voice on a topic, for badge-style displays."""

    voice_id: str
    topic_id: str
    stance: float
    confidence: float
    label: str
    has_recent_flip: bool = False
    flip_direction: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice_id": self.voice_id,
            "topic_id": self.topic_id,
            "stance": self.stance,
            "confidence": self.confidence,
            "label": self.label,
            "has_recent_flip": self.has_recent_flip,
            "flip_direction": self.flip_direction,
        }
