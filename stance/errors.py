"""Exceptions raised by the stance engine."""


class StanceEngineError(Exception):
    """Base class for all stance engine errors."""


class ValidationError(StanceEngineError, ValueError):
    """A point or descriptor carries an out-of-range or malformed value."""


class OutOfOrderError(StanceEngineError):
    """A point is older than the newest point of its series (strict mode)."""

    def __init__(self, series_key, timestamp, last_timestamp):
        self.series_key = series_key
        self.timestamp = timestamp
        self.last_timestamp = last_timestamp
        super().__init__(
            f"Point at {timestamp.isoformat()} for {series_key} is older than "
            f"the last stored point at {last_timestamp.isoformat()}"
        )


class DuplicateTimestampError(OutOfOrderError):
    """A point repeats the timestamp of the newest point (reject policy)."""

    def __init__(self, series_key, timestamp):
        self.series_key = series_key
        self.timestamp = timestamp
        self.last_timestamp = timestamp
        StanceEngineError.__init__(
            self,
            f"Duplicate timestamp {timestamp.isoformat()} for {series_key}",
        )


class InvalidRangeError(StanceEngineError, ValueError):
    """A custom time range starts after it ends."""


class InvalidWindowError(StanceEngineError, ValueError):
    """A time window descriptor is not recognised."""


class ConfigurationError(StanceEngineError, ValueError):
    """Engine settings are invalid."""
