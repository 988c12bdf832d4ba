"""
Unit tests for topic stance distributions.
"""

import numpy as np
import pytest

from stance.distribution import (
    DistributionAggregator,
    classify_stance,
    latest_at,
    stance_label,
)
from tests.conftest import at, mindshare_point, stance_point


class TestClassification:
    """Test cases for stance buckets and labels."""

    @pytest.mark.parametrize(
        "stance,expected",
        [(-1.0, "against"), (-0.11, "against"), (-0.1, "neutral"), (0.0, "neutral"),
         (0.1, "neutral"), (0.11, "for"), (1.0, "for")],
    )
    def test_classify_stance(self, stance, expected):
        """Test bucket boundaries with the default neutral band."""
        assert classify_stance(stance) == expected

    @pytest.mark.parametrize(
        "stance,expected",
        [(-0.8, "Strongly Against"), (-0.3, "Against"), (0.05, "Neutral"),
         (0.4, "For"), (0.9, "Strongly For")],
    )
    def test_stance_label(self, stance, expected):
        assert stance_label(stance) == expected

    def test_latest_at(self):
        """Test as-of lookup of the most recent point."""
        points = [stance_point(0, 0.1), stance_point(5, 0.2), stance_point(10, 0.3)]

        assert latest_at(points).stance == 0.3
        assert latest_at(points, at(5)).stance == 0.2
        assert latest_at(points, at(7)).stance == 0.2
        assert latest_at(points, at(-1)) is None
        assert latest_at([], at(5)) is None


class TestDistributionAggregator:
    """Test cases for DistributionAggregator class."""

    @pytest.fixture
    def aggregator(self, store):
        """Create an aggregator over the shared store."""
        return DistributionAggregator(store)

    def test_weighted_stance(self, store, aggregator):
        """Test counts and mindshare weighting for two opposed voices."""
        store.append_stance("alice", "crypto", stance_point(0, 0.5))
        store.append_mindshare("alice", mindshare_point(0, 10.0))
        store.append_stance("bob", "crypto", stance_point(0, -0.5))
        store.append_mindshare("bob", mindshare_point(0, 30.0))

        result = aggregator.get_topic_distribution("crypto")

        assert result.distribution.to_dict() == {"against": 1, "neutral": 0, "for": 1}
        assert result.mindshare_weighted_stance == pytest.approx(-0.25)
        assert [v.voice_id for v in result.top_voices] == ["bob", "alice"]

    def test_unknown_topic(self, aggregator):
        """Test that topics without data give None."""
        assert aggregator.get_topic_distribution("crypto") is None

    def test_uses_latest_point(self, store, aggregator):
        """Test that only the most recent point of each voice counts."""
        store.append_stance("alice", "crypto", stance_point(0, -0.9))
        store.append_stance("alice", "crypto", stance_point(5, 0.9))

        result = aggregator.get_topic_distribution("crypto")

        assert result.distribution.to_dict() == {"against": 0, "neutral": 0, "for": 1}

    def test_as_of(self, store, aggregator):
        """Test distributions as of a past time."""
        store.append_stance("alice", "crypto", stance_point(0, -0.9))
        store.append_stance("alice", "crypto", stance_point(5, 0.9))
        store.append_stance("bob", "crypto", stance_point(3, 0.0))

        result = aggregator.get_topic_distribution("crypto", as_of=at(1))

        assert result.distribution.to_dict() == {"against": 1, "neutral": 0, "for": 0}
        assert aggregator.get_topic_distribution("crypto", as_of=at(-1)) is None

    def test_voice_without_mindshare(self, store, aggregator):
        """Test that voices without mindshare count but carry no weight."""
        store.append_stance("alice", "crypto", stance_point(0, 0.5))
        store.append_mindshare("alice", mindshare_point(0, 10.0))
        store.append_stance("bob", "crypto", stance_point(0, -0.5))

        result = aggregator.get_topic_distribution("crypto")

        assert result.distribution.total == 2
        assert result.mindshare_weighted_stance == pytest.approx(0.5)
        assert [v.voice_id for v in result.top_voices] == ["alice", "bob"]
        assert result.top_voices[1].mindshare is None

    def test_no_mindshare_at_all(self, store, aggregator):
        """Test that the weighted stance is absent without mindshare."""
        store.append_stance("alice", "crypto", stance_point(0, 0.5))

        assert aggregator.get_topic_distribution("crypto").mindshare_weighted_stance is None

    def test_zero_mindshare_no_division(self, store, aggregator):
        """Test that an all-zero mindshare total yields None."""
        store.append_stance("alice", "crypto", stance_point(0, 0.5))
        store.append_mindshare("alice", mindshare_point(0, 0.0))
        store.append_stance("bob", "crypto", stance_point(0, -0.5))
        store.append_mindshare("bob", mindshare_point(0, 0.0))

        assert aggregator.get_topic_distribution("crypto").mindshare_weighted_stance is None

    def test_completeness_and_bounds(self, store, aggregator):
        """Test that every voice lands in one bucket and weighting stays in range."""
        rng = np.random.default_rng(3)
        for i in range(40):
            voice_id = f"voice-{i:02d}"
            store.append_stance(voice_id, "crypto", stance_point(0, float(rng.uniform(-1, 1))))
            store.append_mindshare(voice_id, mindshare_point(0, float(rng.uniform(0, 100))))

        result = aggregator.get_topic_distribution("crypto")

        assert result.distribution.total == 40
        assert -1.0 <= result.mindshare_weighted_stance <= 1.0

    def test_top_voices_limit_and_ties(self, store):
        """Test top voice ordering with a limit and equal mindshare."""
        aggregator = DistributionAggregator(store, top_voices_limit=2)
        for voice_id, share in (("carol", 5.0), ("bob", 20.0), ("alice", 20.0)):
            store.append_stance(voice_id, "crypto", stance_point(0, 0.0))
            store.append_mindshare(voice_id, mindshare_point(0, share))

        result = aggregator.get_topic_distribution("crypto")

        assert [v.voice_id for v in result.top_voices] == ["alice", "bob"]
        assert result.distribution.total == 3
