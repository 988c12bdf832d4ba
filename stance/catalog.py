"""
Voice/Topic Reference Catalog

Static reference data used for labeling. The catalog never gates data: a
series may exist for a voice the catalog does not know about.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config import load_catalog_config

from .errors import ValidationError
from .models import Topic, Voice

logger = logging.getLogger(__name__)

VOICE_CATEGORIES = ("politics", "culture", "music", "gaming", "tech", "media", "sports", "other")
TOPIC_CATEGORIES = ("politics", "foreign_policy", "culture", "tech", "economy", "social", "media")


class Catalog:
    """Registry of known voices and topics."""

    def __init__(
        self,
        voices: Iterable[Voice] = (),
        topics: Iterable[Topic] = (),
        voice_categories: Iterable[str] = VOICE_CATEGORIES,
        topic_categories: Iterable[str] = TOPIC_CATEGORIES,
    ):
        self.voice_categories = tuple(voice_categories)
        self.topic_categories = tuple(topic_categories)
        self._voices: Dict[str, Voice] = {}
        self._topics: Dict[str, Topic] = {}
        for voice in voices:
            self.upsert_voice(voice)
        for topic in topics:
            self.upsert_topic(topic)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Catalog":
        """Build a catalog from the structure of catalog.yml."""
        try:
            voices = [Voice(**row) for row in data.get("voices") or []]
            topics = [Topic(**row) for row in data.get("topics") or []]
        except TypeError as e:
            raise ValidationError(f"Malformed catalog entry: {e}") from e

        return cls(
            voices=voices,
            topics=topics,
            voice_categories=data.get("voice_categories") or VOICE_CATEGORIES,
            topic_categories=data.get("topic_categories") or TOPIC_CATEGORIES,
        )

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Catalog":
        """Load the catalog from catalog.yml."""
        catalog = cls.from_mapping(load_catalog_config(config_path))
        logger.info(
            f"Loaded catalog with {len(catalog.voices)} voices and {len(catalog.topics)} topics"
        )
        return catalog

    def upsert_voice(self, voice: Voice) -> None:
        if voice.category not in self.voice_categories:
            raise ValidationError(f"Unknown voice category {voice.category!r} for {voice.voice_id}")
        self._voices[voice.voice_id] = voice

    def upsert_topic(self, topic: Topic) -> None:
        if topic.category not in self.topic_categories:
            raise ValidationError(f"Unknown topic category {topic.category!r} for {topic.topic_id}")
        self._topics[topic.topic_id] = topic

    def get_voice(self, voice_id: str) -> Optional[Voice]:
        return self._voices.get(voice_id)

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        return self._topics.get(topic_id)

    @property
    def voices(self) -> List[Voice]:
        return sorted(self._voices.values(), key=lambda v: v.voice_id)

    @property
    def topics(self) -> List[Topic]:
        return sorted(self._topics.values(), key=lambda t: t.topic_id)

    def voice_name(self, voice_id: str) -> str:
        """Display name for a voice, falling back to its id."""
        voice = self._voices.get(voice_id)
        return voice.display_name if voice else voice_id

    def topic_label(self, topic_id: str) -> str:
        topic = self._topics.get(topic_id)
        return topic.label if topic else topic_id

    def voice_labels(self) -> Dict[str, str]:
        return {voice_id: v.display_name for voice_id, v in self._voices.items()}
