"""
Topic Stance Distribution

Summarises where the voices on a topic currently stand:
1. Take each voice's most recent stance point (optionally as of a past time)
2. Bucket it into against / neutral / for
3. Weight stances by the voice's current mindshare for a consensus value
"""

import logging
from bisect import bisect_right
from collections import Counter
from datetime import datetime
from operator import attrgetter
from typing import List, Optional, Sequence, TypeVar

from .models import StanceDistribution, TopicDistribution, VoiceStanding, to_utc

logger = logging.getLogger(__name__)

P = TypeVar("P")

_timestamp = attrgetter("timestamp")

AGAINST = "against"
NEUTRAL = "neutral"
FOR = "for"

STRONG_STANCE = 0.6


def classify_stance(stance: float, neutral_band: float = 0.1) -> str:
    """Bucket a stance value: below -band is against, above +band is for."""
    if stance < -neutral_band:
        return AGAINST
    if stance > neutral_band:
        return FOR
    return NEUTRAL


def stance_label(stance: float, neutral_band: float = 0.1) -> str:
    """Human-readable label for a stance value."""
    if stance < -STRONG_STANCE:
        return "Strongly Against"
    if stance < -neutral_band:
        return "Against"
    if stance > STRONG_STANCE:
        return "Strongly For"
    if stance > neutral_band:
        return "For"
    return "Neutral"


def latest_at(points: Sequence[P], as_of: Optional[datetime] = None) -> Optional[P]:
    """Most recent point at or before as_of (the last point when as_of is None)."""
    if not points:
        return None
    if as_of is None:
        return points[-1]
    idx = bisect_right(points, as_of, key=_timestamp)
    return points[idx - 1] if idx else None


class DistributionAggregator:
    """Computes per-topic stance distributions from the store."""

    def __init__(self, store, neutral_band: float = 0.1, top_voices_limit: int = 10):
        self.store = store
        self.neutral_band = neutral_band
        self.top_voices_limit = top_voices_limit

    @classmethod
    def from_settings(cls, store, settings) -> "DistributionAggregator":
        return cls(
            store,
            neutral_band=settings.neutral_band,
            top_voices_limit=settings.top_voices_limit,
        )

    def current_standings(
        self, topic_id: str, as_of: Optional[datetime] = None
    ) -> List[VoiceStanding]:
        """Latest stance and mindshare of every voice with data on the topic."""
        as_of = to_utc(as_of) if as_of is not None else None
        standings = []

        for voice_id in self.store.voices_for_topic(topic_id):
            point = latest_at(self.store.stance_points(voice_id, topic_id), as_of)
            if point is None:
                continue
            share = latest_at(self.store.mindshare_points(voice_id), as_of)
            standings.append(
                VoiceStanding(
                    voice_id=voice_id,
                    stance=point.stance,
                    mindshare=share.mindshare if share else None,
                )
            )

        return standings

    def get_topic_distribution(
        self, topic_id: str, as_of: Optional[datetime] = None
    ) -> Optional[TopicDistribution]:
        """
        Stance distribution and mindshare-weighted stance for a topic.

        Args:
            topic_id: Topic to summarise
            as_of: Only consider points at or before this time

        Returns:
            TopicDistribution, or None when no voice has data for the topic
        """
        standings = self.current_standings(topic_id, as_of)
        if not standings:
            logger.debug(f"No stance data for topic {topic_id}")
            return None

        buckets = Counter(classify_stance(s.stance, self.neutral_band) for s in standings)

        weighted = [s for s in standings if s.mindshare is not None]
        total_mindshare = sum(s.mindshare for s in weighted)
        if total_mindshare > 0:
            consensus = sum(s.stance * s.mindshare for s in weighted) / total_mindshare
            consensus = max(-1.0, min(1.0, consensus))
        else:
            consensus = None

        # Voices without mindshare sort last
        top_voices = sorted(
            standings,
            key=lambda s: (s.mindshare is None, -(s.mindshare or 0.0), s.voice_id),
        )[: self.top_voices_limit]

        return TopicDistribution(
            topic_id=topic_id,
            distribution=StanceDistribution(
                against=buckets[AGAINST],
                neutral=buckets[NEUTRAL],
                for_=buckets[FOR],
            ),
            mindshare_weighted_stance=consensus,
            top_voices=tuple(top_voices),
        )
