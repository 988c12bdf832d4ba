"""
Demo data seeder for the stance engine

This script populates a store with synthetic stance and mindshare series for
development and demos. Series follow a mean-reverting random walk around an
ideological baseline; a handful of scripted flips are injected together with
the mindshare response they trigger.
"""

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from .catalog import Catalog
from .models import MindsharePoint, StancePoint, to_utc
from .store import TimeSeriesStore
from .windows import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlipScenario:
    voice_id: str
    topic_id: str
    flip_day: int
    stance_before: float
    stance_after: float
    mindshare_response: str  # 'surge', 'drop' or 'neutral'
    lag_hours: int


FLIP_SCENARIOS = [
    FlipScenario("candace-owens", "israel-gaza", 12, 0.7, -0.5, "surge", 24),
    FlipScenario("tucker-carlson", "ukraine-aid", 8, 0.2, -0.8, "surge", 12),
    FlipScenario("elon-musk", "ai-regulation", 18, -0.6, 0.4, "surge", 6),
    FlipScenario("joe-rogan", "vaccines", 22, -0.3, 0.1, "neutral", 48),
    FlipScenario("destiny", "trans-rights", 15, 0.8, 0.1, "drop", 24),
    FlipScenario("andrew-tate", "crypto", 20, -0.4, 0.9, "surge", 8),
]

CLUSTERS = {
    "right": {"candace-owens", "ben-shapiro", "tucker-carlson", "andrew-tate"},
    "left": {"kyle-kulinski", "hasan-piker"},
    "tech": {"elon-musk", "marc-andreessen"},
}

# Baseline stance per topic and cluster; voices outside CLUSTERS are independent
TOPIC_BASELINES = {
    "ukraine-aid": {"right": -0.3, "left": 0.5, "independent": 0.0, "tech": 0.2},
    "israel-gaza": {"right": 0.7, "left": -0.5, "independent": 0.0, "tech": 0.2},
    "immigration": {"right": -0.8, "left": 0.6, "independent": -0.2, "tech": -0.1},
    "ai-regulation": {"right": -0.4, "left": 0.3, "independent": 0.0, "tech": -0.6},
    "free-speech": {"right": 0.9, "left": 0.2, "independent": 0.7, "tech": 0.8},
    "trans-rights": {"right": -0.9, "left": 0.9, "independent": 0.0, "tech": 0.1},
    "climate-policy": {"right": -0.7, "left": 0.8, "independent": 0.2, "tech": 0.3},
    "crypto": {"right": 0.5, "left": -0.2, "independent": 0.3, "tech": 0.8},
    "economy": {"right": -0.5, "left": 0.3, "independent": 0.0, "tech": 0.2},
    "vaccines": {"right": -0.6, "left": 0.5, "independent": -0.2, "tech": 0.1},
    "media-trust": {"right": -0.8, "left": -0.3, "independent": -0.5, "tech": -0.4},
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _cluster(voice_id: str) -> str:
    for name, members in CLUSTERS.items():
        if voice_id in members:
            return name
    return "independent"


class DemoSeeder:
    """Generates reproducible synthetic series into a store."""

    def __init__(
        self,
        store: TimeSeriesStore,
        catalog: Catalog,
        days: int = 30,
        step_hours: int = 6,
        seed: int = 42,
        now: Optional[datetime] = None,
    ):
        """
        Initialize the seeder.

        Args:
            store: Store that receives the points
            catalog: Voices and topics to generate series for
            days: Length of the generated history
            step_hours: Spacing between consecutive points
            seed: Random seed, the same seed yields the same data
            now: End of the generated history, defaults to the current hour
        """
        self.store = store
        self.catalog = catalog
        self.days = days
        self.step_hours = step_hours
        self.rng = random.Random(seed)

        end = to_utc(now) if now is not None else utc_now()
        end = end.replace(minute=0, second=0, microsecond=0)
        self.start = end - timedelta(days=days)

    def _timestamps(self):
        for hour in range(0, self.days * 24, self.step_hours):
            yield hour, self.start + timedelta(hours=hour)

    def seed_mindshare(self, voice_id: str, rank: int) -> int:
        """Seed the mindshare series of one voice; rank 0 is the most prominent."""
        base = 100 / math.pow(rank + 1, 1.2)
        flips = [f for f in FLIP_SCENARIOS if f.voice_id == voice_id]
        count = 0

        for hour, timestamp in self._timestamps():
            value = base * (1 + self.rng.gauss(0, 0.15))
            value *= 0.7 + 0.3 * math.sin((hour % 24 - 6) * math.pi / 12)
            if self.rng.random() < 0.05:
                value *= 1.5 + self.rng.random() * 1.5

            for flip in flips:
                since = hour - flip.flip_day * 24
                if flip.lag_hours <= since < flip.lag_hours + 72:
                    strength = math.sin((since - flip.lag_hours) / 72 * math.pi)
                    if flip.mindshare_response == "surge":
                        value *= 1 + strength * 1.5
                    elif flip.mindshare_response == "drop":
                        value *= 1 - strength * 0.4

            self.store.append_mindshare(
                voice_id, MindsharePoint(timestamp, _clamp(value, 0.01, 100.0))
            )
            count += 1

        return count

    def seed_stance(self, voice_id: str, topic_id: str) -> int:
        """Seed one stance series, applying a scripted flip where one exists."""
        baseline = TOPIC_BASELINES.get(topic_id, {}).get(_cluster(voice_id), 0.0)
        baseline = _clamp(baseline + self.rng.gauss(0, 0.15), -1.0, 1.0)
        volatility = self.rng.random() * 0.1 + 0.02
        flip = next(
            (f for f in FLIP_SCENARIOS if f.voice_id == voice_id and f.topic_id == topic_id),
            None,
        )

        current = baseline
        count = 0
        for hour, timestamp in self._timestamps():
            day = hour // 24
            if flip:
                current = flip.stance_after if day >= flip.flip_day else flip.stance_before
            elif hour % 24 == 0:
                # Daily random walk with mean reversion
                drift = (baseline - current) * 0.1
                current = _clamp(current + drift + self.rng.gauss(0, volatility), -1.0, 1.0)

            stance = _clamp(current + self.rng.gauss(0, volatility * 0.3), -1.0, 1.0)
            confidence = 0.5 + self.rng.random() * 0.4
            self.store.append_stance(voice_id, topic_id, StancePoint(timestamp, stance, confidence))
            count += 1

        return count

    def run(self) -> Dict[str, int]:
        """Seed every catalog voice on every catalog topic."""
        stats = {"voices": 0, "stance_points": 0, "mindshare_points": 0}

        for rank, voice in enumerate(self.catalog.voices):
            stats["mindshare_points"] += self.seed_mindshare(voice.voice_id, rank)
            for topic in self.catalog.topics:
                stats["stance_points"] += self.seed_stance(voice.voice_id, topic.topic_id)
            stats["voices"] += 1

        logger.info(
            f"Seeded {stats['stance_points']} stance and {stats['mindshare_points']} "
            f"mindshare points for {stats['voices']} voices"
        )
        return stats


def seed_demo_data(
    store: TimeSeriesStore,
    catalog: Catalog,
    seed: int = 42,
    now: Optional[datetime] = None,
    **kwargs,
) -> Dict[str, int]:
    """Fill a store with the demo dataset."""
    return DemoSeeder(store, catalog, seed=seed, now=now, **kwargs).run()
