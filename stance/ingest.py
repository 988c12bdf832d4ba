"""
Bulk Ingestion

Loads pre-computed stance and mindshare points from CSV files or DataFrames
into a TimeSeriesStore. Rows are sorted by timestamp before appending, and
rows the store rejects are counted and logged instead of aborting the load.

Expected columns:
    stance:    voice_id, topic_id, timestamp, stance, confidence
    mindshare: voice_id, timestamp, mindshare
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Union

import pandas as pd

from .errors import OutOfOrderError, ValidationError
from .models import MindsharePoint, StancePoint
from .store import TimeSeriesStore

logger = logging.getLogger(__name__)

STANCE_COLUMNS = ["voice_id", "topic_id", "timestamp", "stance", "confidence"]
MINDSHARE_COLUMNS = ["voice_id", "timestamp", "mindshare"]


def _check_columns(df: pd.DataFrame, required) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValidationError(f"Missing columns: {missing}")


def _prepare(df: pd.DataFrame, required) -> pd.DataFrame:
    _check_columns(df, required)
    df = df[required].copy()
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    # Stable sort keeps the file order of rows sharing a timestamp
    return df.sort_values("timestamp", kind="mergesort")


def load_stance_frame(store: TimeSeriesStore, df: pd.DataFrame) -> Dict[str, Any]:
    """
    Append every row of a stance DataFrame to the store.

    Returns:
        Dictionary with load statistics
    """
    start_time = time.time()
    if df.empty:
        logger.warning("No stance rows to load")
        return _result(0, 0, 0, start_time)

    df = _prepare(df, STANCE_COLUMNS)
    loaded = rejected = 0

    for row in df.itertuples(index=False):
        try:
            if pd.isna(row.timestamp):
                raise ValidationError("Missing or unparseable timestamp")
            point = StancePoint(row.timestamp, row.stance, row.confidence)
            store.append_stance(str(row.voice_id), str(row.topic_id), point)
            loaded += 1
        except (ValidationError, OutOfOrderError) as e:
            rejected += 1
            logger.warning(f"Rejected stance row for {row.voice_id}/{row.topic_id}: {e}")

    logger.info(f"Loaded {loaded} stance points, rejected {rejected}")
    return _result(len(df), loaded, rejected, start_time)


def load_mindshare_frame(store: TimeSeriesStore, df: pd.DataFrame) -> Dict[str, Any]:
    """Append every row of a mindshare DataFrame to the store."""
    start_time = time.time()
    if df.empty:
        logger.warning("No mindshare rows to load")
        return _result(0, 0, 0, start_time)

    df = _prepare(df, MINDSHARE_COLUMNS)
    loaded = rejected = 0

    for row in df.itertuples(index=False):
        try:
            if pd.isna(row.timestamp):
                raise ValidationError("Missing or unparseable timestamp")
            point = MindsharePoint(row.timestamp, row.mindshare)
            store.append_mindshare(str(row.voice_id), point)
            loaded += 1
        except (ValidationError, OutOfOrderError) as e:
            rejected += 1
            logger.warning(f"Rejected mindshare row for {row.voice_id}: {e}")

    logger.info(f"Loaded {loaded} mindshare points, rejected {rejected}")
    return _result(len(df), loaded, rejected, start_time)


def load_csv(
    store: TimeSeriesStore, path: Union[str, Path], kind: str = "stance"
) -> Dict[str, Any]:
    """
    Run the ingestion pipeline for one CSV file.

    Args:
        store: Store to append to
        path: CSV file path
        kind: 'stance' or 'mindshare'

    Returns:
        Dictionary with pipeline results; success is False when the file
        could not be read at all
    """
    start_time = time.time()
    loaders = {"stance": load_stance_frame, "mindshare": load_mindshare_frame}
    if kind not in loaders:
        raise ValueError(f"Unknown series kind: {kind!r}")

    try:
        df = pd.read_csv(path)
        return loaders[kind](store, df)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        logger.error(f"Failed to load {kind} points from {path}: {e}")
        return {
            "success": False,
            "error": str(e),
            "execution_time": time.time() - start_time,
        }


def _result(rows: int, loaded: int, rejected: int, start_time: float) -> Dict[str, Any]:
    execution_time = time.time() - start_time
    return {
        "success": True,
        "rows_read": rows,
        "points_loaded": loaded,
        "rejected": rejected,
        "execution_time": execution_time,
        "points_per_second": loaded / execution_time if execution_time > 0 else 0,
    }
