"""
Voice Comparison Annotations

Cross-references the flip events of several voices on one topic and produces
notes for a side-by-side comparison: who flipped first, which flips moved
mindshare, which flips landed close enough together to suggest a common
trigger, and which voices track each other at a lag.
"""

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .models import (
    BRIDGE,
    CORRELATION,
    FLIP_FIRST,
    MINDSHARE_SURGE,
    Annotation,
    LagCorrelation,
    StanceFlipEvent,
)

logger = logging.getLogger(__name__)

_TYPE_ORDER = {FLIP_FIRST: 0, BRIDGE: 1, MINDSHARE_SURGE: 2, CORRELATION: 3}


def format_lag(delta: timedelta) -> str:
    hours = delta.total_seconds() / 3600
    if hours < 48:
        return f"{hours:.0f}h"
    return f"{hours / 24:.1f}d"


class ComparisonAnnotator:
    """Builds comparison annotations from flip events."""

    def __init__(
        self,
        bridge_window: timedelta = timedelta(hours=48),
        surge_threshold: float = 2.0,
        correlation_threshold: float = 0.5,
    ):
        self.bridge_window = bridge_window
        self.surge_threshold = surge_threshold
        self.correlation_threshold = correlation_threshold

    @classmethod
    def from_settings(cls, settings) -> "ComparisonAnnotator":
        return cls(
            bridge_window=settings.bridge_window,
            surge_threshold=settings.surge_threshold,
            correlation_threshold=settings.correlation_threshold,
        )

    def generate_compare_annotations(
        self,
        flip_events: Iterable[StanceFlipEvent],
        voice_ids: Iterable[str],
        labels: Optional[Mapping[str, str]] = None,
        correlations: Optional[Mapping[Tuple[str, str], Optional[LagCorrelation]]] = None,
    ) -> List[Annotation]:
        """
        Annotate the flips of the given voices.

        Args:
            flip_events: Candidate flip events (usually all flips on one topic)
            voice_ids: Voices being compared; other voices' flips are ignored
            labels: Optional voice_id -> display name mapping for the texts
            correlations: Optional (voice_a, voice_b) -> stance correlation of
                the pair, where a positive lag means voice_b leads

        Returns:
            Annotations sorted by timestamp, then voice id, then type
        """
        wanted = set(voice_ids)
        flips = sorted(
            (f for f in flip_events if f.voice_id in wanted),
            key=lambda f: (f.t0, f.voice_id, f.id),
        )

        labels = labels or {}
        annotations = []
        if flips:
            annotations = (
                self._flip_first(flips, labels)
                + self._bridges(flips, labels)
                + self._surges(flips, labels)
            )
        if correlations:
            annotations += self._correlations(correlations, wanted, labels)
        annotations.sort(key=lambda a: (a.timestamp, a.voices[0], _TYPE_ORDER[a.type]))

        logger.debug(f"Generated {len(annotations)} annotations from {len(flips)} flips")
        return annotations

    def _flip_first(
        self, flips: Sequence[StanceFlipEvent], labels: Mapping[str, str]
    ) -> List[Annotation]:
        firsts: Dict[str, StanceFlipEvent] = {}
        for flip in flips:
            firsts.setdefault(flip.voice_id, flip)

        leader = flips[0]
        leader_name = labels.get(leader.voice_id, leader.voice_id)
        annotations = []
        for voice_id, flip in firsts.items():
            name = labels.get(voice_id, voice_id)
            if flip is leader:
                text = f"{name} flipped first"
            else:
                text = f"{name} flipped {format_lag(flip.t0 - leader.t0)} after {leader_name}"
            annotations.append(Annotation(FLIP_FIRST, (voice_id,), flip.t0, text))
        return annotations

    def _bridges(
        self, flips: Sequence[StanceFlipEvent], labels: Mapping[str, str]
    ) -> List[Annotation]:
        # A flip joins the current chain when it lands within the bridge
        # window of the previous flip.
        chains: List[List[StanceFlipEvent]] = []
        for flip in flips:
            if chains and flip.t0 - chains[-1][-1].t0 <= self.bridge_window:
                chains[-1].append(flip)
            else:
                chains.append([flip])

        annotations = []
        for chain in chains:
            voices = sorted({f.voice_id for f in chain})
            if len(voices) < 2:
                continue

            span = chain[-1].t0 - chain[0].t0
            names = ", ".join(labels.get(v, v) for v in voices)
            if span <= self.bridge_window:
                text = f"{names} flipped within {format_lag(span)} of each other"
            else:
                text = f"{names} flipped in a chain over {format_lag(span)}"
            annotations.append(Annotation(BRIDGE, tuple(voices), chain[0].t0, text))
        return annotations

    def _surges(
        self, flips: Sequence[StanceFlipEvent], labels: Mapping[str, str]
    ) -> List[Annotation]:
        annotations = []
        for flip in flips:
            if flip.delta_mindshare is None:
                continue
            if abs(flip.delta_mindshare) <= self.surge_threshold:
                continue
            name = labels.get(flip.voice_id, flip.voice_id)
            annotations.append(
                Annotation(
                    MINDSHARE_SURGE,
                    (flip.voice_id,),
                    flip.t0,
                    f"{name}: {flip.delta_mindshare:+.1f} mindshare points around the flip",
                )
            )
        return annotations

    def _correlations(
        self,
        correlations: Mapping[Tuple[str, str], Optional[LagCorrelation]],
        wanted: Set[str],
        labels: Mapping[str, str],
    ) -> List[Annotation]:
        annotations = []
        for (voice_a, voice_b), result in correlations.items():
            if voice_a not in wanted or voice_b not in wanted:
                continue
            # A zero correlation means there was not enough overlap to measure
            if result is None or result.start is None or result.correlation == 0.0:
                continue
            if abs(result.correlation) < self.correlation_threshold:
                continue

            name_a = labels.get(voice_a, voice_a)
            name_b = labels.get(voice_b, voice_b)
            r = f"r={result.correlation:+.2f}"
            lag = format_lag(timedelta(hours=abs(result.lag_hours)))
            if result.lag_hours > 0:
                text = f"{name_a} trails {name_b} by {lag} ({r})"
            elif result.lag_hours < 0:
                text = f"{name_b} trails {name_a} by {lag} ({r})"
            elif result.correlation > 0:
                text = f"{name_a} and {name_b} move together ({r})"
            else:
                text = f"{name_a} and {name_b} move in opposition ({r})"

            annotations.append(
                Annotation(CORRELATION, tuple(sorted((voice_a, voice_b))), result.start, text)
            )
        return annotations
