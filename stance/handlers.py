"""
Service Handlers

Stateless request handlers with the JSON shapes of the stance service routes:

    GET /voices/{voice_id}/topics/{topic_id}/stance?window=7d  -> stance_handler
    GET /topics/{topic_id}/distribution                        -> distribution_handler
    GET /topics/{topic_id}/flips                               -> flips_handler
    GET /compare?topic=&voices=a,b,c                           -> compare_handler

Handlers never raise for missing data: an unknown voice or topic yields the
same shape with empty contents. They do not touch the facade's selection
state, so repeated calls against an unchanged store give identical payloads.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .facade import QueryFacade

DEFAULT_WINDOW = "7d"


def _split_ids(voices: Union[str, List[str], None]) -> List[str]:
    if voices is None:
        return []
    if isinstance(voices, str):
        voices = voices.split(",")
    return [v.strip() for v in voices if v and v.strip()]


def stance_handler(
    facade: QueryFacade,
    voice_id: str,
    topic_id: str,
    window: str = DEFAULT_WINDOW,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Stance points and flips of one voice on one topic."""
    series = facade.get_voice_stance_series(voice_id, topic_id, window=window, now=now)
    if series is None:
        return {"voice_id": voice_id, "topic_id": topic_id, "points": [], "flip_events": []}
    return series.to_dict()


def distribution_handler(
    facade: QueryFacade, topic_id: str, as_of: Optional[datetime] = None
) -> Dict[str, Any]:
    """Stance distribution of a topic."""
    distribution = facade.get_topic_distribution(topic_id, as_of=as_of)
    if distribution is None:
        return {
            "topic_id": topic_id,
            "distribution": {"against": 0, "neutral": 0, "for": 0},
            "mindshare_weighted_stance": None,
            "top_voices": [],
        }
    return distribution.to_dict()


def flips_handler(
    facade: QueryFacade,
    topic_id: str,
    window: str = "all",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """All flip events on a topic."""
    events = facade.get_flip_events_for_topic(topic_id, window=window, now=now)
    return {"topic_id": topic_id, "flip_events": [e.to_dict() for e in events]}


def compare_handler(
    facade: QueryFacade,
    topic: str,
    voices: Union[str, List[str], None],
    window: str = "all",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Flip events and annotations for a set of voices on a topic."""
    voice_ids = _split_ids(voices)
    events = [
        e
        for e in facade.get_flip_events_for_topic(topic, window=window, now=now)
        if e.voice_id in voice_ids
    ]
    annotations = facade.get_compare_annotations(topic, voice_ids, window=window, now=now)
    return {
        "topic_id": topic,
        "voices": voice_ids,
        "flip_events": [e.to_dict() for e in events],
        "annotations": [a.to_dict() for a in annotations],
    }
