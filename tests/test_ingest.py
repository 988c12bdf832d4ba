"""
Unit tests for bulk ingestion.
"""

import pandas as pd
import pytest

from stance.errors import ValidationError
from stance.ingest import load_csv, load_mindshare_frame, load_stance_frame
from tests.conftest import at


@pytest.fixture
def stance_df():
    """Stance rows in shuffled order."""
    return pd.DataFrame(
        {
            "voice_id": ["alice", "alice", "bob", "alice"],
            "topic_id": ["crypto"] * 4,
            "timestamp": [
                "2024-03-01T02:00:00Z",
                "2024-03-01T00:00:00Z",
                "2024-03-01T01:00:00Z",
                "2024-03-01T01:00:00Z",
            ],
            "stance": [0.4, -0.5, 0.1, -0.4],
            "confidence": [0.8, 0.8, 0.9, 0.8],
        }
    )


class TestLoadStanceFrame:
    """Test cases for stance DataFrame ingestion."""

    def test_rows_sorted_before_append(self, store, stance_df):
        """Test that unsorted rows load without ordering errors."""
        result = load_stance_frame(store, stance_df)

        assert result["success"] is True
        assert result["rows_read"] == 4
        assert result["points_loaded"] == 4
        assert result["rejected"] == 0
        assert [p.timestamp for p in store.stance_points("alice", "crypto")] == [at(0), at(1), at(2)]
        assert len(store.get_stance_series("alice", "crypto").flip_events) == 1

    def test_invalid_rows_counted(self, store, stance_df):
        """Test that bad rows are rejected and counted."""
        stance_df.loc[0, "stance"] = 1.7
        stance_df.loc[2, "timestamp"] = "not a timestamp"

        result = load_stance_frame(store, stance_df)

        assert result["points_loaded"] == 2
        assert result["rejected"] == 2
        assert store.get_stance_series("bob", "crypto") is None

    def test_duplicates_rejected(self, store, stance_df):
        """Test that duplicate timestamps are rejected under the default policy."""
        duplicated = pd.concat([stance_df, stance_df.iloc[[1]]], ignore_index=True)

        result = load_stance_frame(store, duplicated)

        assert result["points_loaded"] == 4
        assert result["rejected"] == 1

    def test_missing_columns(self, store):
        """Test that frames without required columns raise."""
        with pytest.raises(ValidationError, match="confidence"):
            load_stance_frame(
                store,
                pd.DataFrame({"voice_id": ["a"], "topic_id": ["t"], "timestamp": ["2024-03-01"], "stance": [0.1]}),
            )

    def test_empty_frame(self, store):
        """Test loading an empty frame."""
        result = load_stance_frame(store, pd.DataFrame())

        assert result["success"] is True
        assert result["points_loaded"] == 0


class TestLoadMindshare:
    """Test cases for mindshare ingestion."""

    def test_mindshare_frame(self, store):
        """Test mindshare rows with one out-of-range value."""
        df = pd.DataFrame(
            {
                "voice_id": ["alice", "alice", "bob"],
                "timestamp": ["2024-03-01T01:00:00Z", "2024-03-01T00:00:00Z", "2024-03-01T00:00:00Z"],
                "mindshare": [12.5, 10.0, 140.0],
            }
        )

        result = load_mindshare_frame(store, df)

        assert result["points_loaded"] == 2
        assert result["rejected"] == 1
        assert [p.mindshare for p in store.mindshare_points("alice")] == [10.0, 12.5]


class TestLoadCsv:
    """Test cases for CSV ingestion."""

    def test_load_csv(self, store, stance_df, tmp_path):
        """Test loading a stance CSV file."""
        path = tmp_path / "stance.csv"
        stance_df.to_csv(path, index=False)

        result = load_csv(store, path)

        assert result["success"] is True
        assert result["points_loaded"] == 4

    def test_missing_file(self, store, tmp_path):
        """Test that unreadable files report failure."""
        result = load_csv(store, tmp_path / "missing.csv")

        assert result["success"] is False
        assert "error" in result

    def test_unknown_kind(self, store, tmp_path):
        """Test that unknown series kinds raise."""
        with pytest.raises(ValueError):
            load_csv(store, tmp_path / "x.csv", kind="sentiment")
