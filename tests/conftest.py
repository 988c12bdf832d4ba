"""Shared fixtures for stance engine tests."""

from datetime import datetime, timedelta

import pytest
import pytz

from stance.catalog import Catalog
from stance.models import MindsharePoint, StancePoint, Topic, Voice
from stance.store import TimeSeriesStore

BASE_TIME = datetime(2024, 3, 1, tzinfo=pytz.utc)


def at(hours: float) -> datetime:
    """Timestamp `hours` after BASE_TIME."""
    return BASE_TIME + timedelta(hours=hours)


def stance_point(hours: float, stance: float, confidence: float = 0.8) -> StancePoint:
    return StancePoint(at(hours), stance, confidence)


def mindshare_point(hours: float, mindshare: float) -> MindsharePoint:
    return MindsharePoint(at(hours), mindshare)


@pytest.fixture
def store():
    """Create an empty strict TimeSeriesStore."""
    return TimeSeriesStore()


@pytest.fixture
def catalog():
    """Create a small catalog."""
    return Catalog(
        voices=[
            Voice("alice", "Alice", "politics"),
            Voice("bob", "Bob", "media"),
            Voice("carol", "Carol", "tech"),
        ],
        topics=[
            Topic("ukraine-aid", "Ukraine Aid", "foreign_policy"),
            Topic("crypto", "Cryptocurrency", "tech"),
        ],
    )
