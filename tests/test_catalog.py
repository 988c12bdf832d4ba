"""
Unit tests for the voice/topic catalog.
"""

import pytest

from stance.catalog import Catalog
from stance.errors import ValidationError
from stance.models import Topic, Voice


class TestCatalog:
    """Test cases for Catalog class."""

    def test_load_shipped_catalog(self):
        """Test loading config/catalog.yml."""
        catalog = Catalog.load()

        assert len(catalog.voices) == 13
        assert catalog.get_voice("candace-owens").category == "politics"
        assert catalog.topic_label("israel-gaza") == "Israel-Gaza Conflict"

    def test_sorted_collections(self, catalog):
        """Test that voices and topics are listed by id."""
        assert [v.voice_id for v in catalog.voices] == ["alice", "bob", "carol"]
        assert [t.topic_id for t in catalog.topics] == ["crypto", "ukraine-aid"]

    def test_label_fallbacks(self, catalog):
        """Test that unknown ids label as themselves."""
        assert catalog.voice_name("alice") == "Alice"
        assert catalog.voice_name("zed") == "zed"
        assert catalog.topic_label("unknown-topic") == "unknown-topic"
        assert catalog.get_voice("zed") is None

    def test_upsert_replaces(self, catalog):
        """Test that upserting an existing id replaces the entry."""
        catalog.upsert_voice(Voice("alice", "Alice A.", "media"))

        assert catalog.voice_name("alice") == "Alice A."
        assert len(catalog.voices) == 3

    def test_unknown_category(self, catalog):
        """Test category validation."""
        with pytest.raises(ValidationError):
            catalog.upsert_voice(Voice("dave", "Dave", "astrology"))
        with pytest.raises(ValidationError):
            catalog.upsert_topic(Topic("mars", "Mars", "space"))

    def test_from_mapping_malformed(self):
        """Test that malformed entries raise ValidationError."""
        with pytest.raises(ValidationError):
            Catalog.from_mapping({"voices": [{"voice_id": "x", "name": "X"}]})

    def test_from_mapping_custom_categories(self):
        """Test catalogs with their own category lists."""
        catalog = Catalog.from_mapping(
            {
                "voice_categories": ["space"],
                "voices": [{"voice_id": "x", "display_name": "X", "category": "space"}],
            }
        )

        assert catalog.voice_labels() == {"x": "X"}
