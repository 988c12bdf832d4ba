"""
Lagged Time-Series Correlation

Relates two series that move on the same clock:
1. Resample each point series to an hourly grid (mean per hour, time
   interpolation across empty hours)
2. Keep the hours both series cover
3. Shift one series against the other and keep the lag with the strongest
   Pearson correlation

Used to check whether one voice's stance trails another's, and whether a
voice's mindshare follows its stance.
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

import pandas as pd

from .models import LagCorrelation, to_utc

logger = logging.getLogger(__name__)

MIN_OVERLAP = 3


def cross_correlate(
    series_a: Sequence[float], series_b: Sequence[float], max_lag: int = 48
) -> Tuple[int, float]:
    """
    Find the lag with the largest absolute Pearson correlation.

    Both inputs are sampled on the same grid and compared position by
    position. At lag k, series_a[i + k] is paired with series_b[i], so a
    positive lag means series_b leads series_a by k steps.

    Args:
        series_a: First series
        series_b: Second series
        max_lag: Largest shift tried in either direction

    Returns:
        (lag, correlation). (0, 0.0) when the common length is below
        2 * max_lag or no shift leaves two varying series. Ties go to the
        shorter lag.
    """
    if max_lag < 0:
        raise ValueError(f"max_lag must not be negative, got {max_lag}")

    a = pd.Series(list(series_a), dtype=float)
    b = pd.Series(list(series_b), dtype=float)
    n = min(len(a), len(b))
    if n < max(2 * max_lag, MIN_OVERLAP):
        return 0, 0.0
    a = a.iloc[:n]
    b = b.iloc[:n]

    best_lag, best_corr = 0, 0.0
    for lag in sorted(range(-max_lag, max_lag + 1), key=lambda k: (abs(k), k)):
        shifted = b.shift(lag)
        mask = a.notna() & shifted.notna()
        x, y = a[mask], shifted[mask]
        if len(x) < MIN_OVERLAP or x.nunique() < 2 or y.nunique() < 2:
            continue

        corr = float(x.corr(y))
        if abs(corr) > abs(best_corr):
            best_lag, best_corr = lag, corr

    return best_lag, best_corr


def hourly_series(points: Iterable, field: str) -> pd.Series:
    """Resample the given attribute of time-ordered points to one value per hour."""
    points = list(points)
    if not points:
        return pd.Series(dtype=float)

    series = pd.Series(
        [getattr(p, field) for p in points],
        index=pd.to_datetime([p.timestamp for p in points], utc=True),
        dtype=float,
    )
    return series.resample("1h").mean().interpolate(method="time")


def correlate_series(
    left: pd.Series, right: pd.Series, max_lag_hours: int = 48
) -> Optional[LagCorrelation]:
    """
    Best-lag correlation of two hourly series over the hours they share.

    Returns None when the series do not overlap. A positive lag means the
    right series leads.
    """
    frame = pd.concat({"left": left, "right": right}, axis=1, join="inner").dropna()
    if frame.empty:
        return None

    lag, corr = cross_correlate(frame["left"], frame["right"], max_lag_hours)
    logger.debug(f"Correlated {len(frame)} hourly samples: lag={lag}h r={corr:.3f}")
    return LagCorrelation(
        lag_hours=lag,
        correlation=corr,
        samples=len(frame),
        start=to_utc(frame.index[0]),
    )


def correlate_points(
    left: Iterable, left_field: str, right: Iterable, right_field: str, max_lag_hours: int = 48
) -> Optional[LagCorrelation]:
    """Hourly-resample two point series and correlate them."""
    return correlate_series(
        hourly_series(left, left_field), hourly_series(right, right_field), max_lag_hours
    )
