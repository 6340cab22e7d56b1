"""
Time Axis Continuity
====================
Restores a regular sampling grid by inserting the timestamps a logger
dropped. Inserted rows carry NaN in every channel so the downstream steps
(gap filling, MRD) see missing samples rather than a jump in time.
"""

import logging
import numpy as np
from typing import Tuple

from eddystream.processing.timeseries import TimeSeries

logger = logging.getLogger(__name__)


class MakeContinuous:
    """
    Inserts missing timestamps at a fixed step.

    Gaps up to `max_gap_minutes` are filled with NaN rows; longer gaps are
    left as they are and logged.
    """

    def __init__(self, step_size_ms: int = 50, max_gap_minutes: float = 5.0):
        """
        Args:
            step_size_ms: Expected sampling interval in milliseconds (50 ms = 20 Hz)
            max_gap_minutes: Longest gap to fill
        """
        if step_size_ms <= 0:
            raise ValueError(f"step_size_ms must be positive, got {step_size_ms}")
        if max_gap_minutes <= 0:
            raise ValueError(f"max_gap_minutes must be positive, got {max_gap_minutes}")
        self.step_size_ms = step_size_ms
        self.max_gap_minutes = max_gap_minutes

    def _step_and_limit(self, timestamps: np.ndarray):
        if np.issubdtype(timestamps.dtype, np.datetime64):
            step = np.timedelta64(self.step_size_ms, 'ms')
            limit = np.timedelta64(int(round(self.max_gap_minutes * 60000)), 'ms')
        else:
            step = self.step_size_ms / 1000.0
            limit = self.max_gap_minutes * 60.0
        return step, limit

    def apply(self, series: TimeSeries) -> Tuple[TimeSeries, int]:
        """
        Insert NaN rows for missing timestamps.

        Args:
            series: Input series (datetime64 or seconds axis)

        Returns:
            Tuple of (new series, number of inserted rows)
        """
        timestamps = series.timestamps
        if len(series) <= 1:
            return series, 0

        step, limit = self._step_and_limit(timestamps)
        diffs = np.diff(timestamps)

        inserted = []
        positions = []
        for i in np.flatnonzero(diffs > step):
            if diffs[i] > limit:
                logger.warning(
                    "Skipping gap of %.2f min after sample %d (max %.2f min)",
                    (diffs[i] / step) * self.step_size_ms / 60000.0, i, self.max_gap_minutes
                )
                continue
            # Steps strictly inside (t[i], t[i+1]); rounding absorbs float jitter
            n_missing = int(np.ceil(np.round(diffs[i] / step, 6))) - 1
            if n_missing < 1:
                continue
            inserted.append(timestamps[i] + step * np.arange(1, n_missing + 1))
            positions.append(np.full(n_missing, i + 1))

        if not inserted:
            return series, 0

        new_times = np.concatenate(inserted)
        at = np.concatenate(positions)
        continuous = TimeSeries(
            timestamps=np.insert(timestamps, at, new_times),
            channels={name: np.insert(values, at, np.nan) for name, values in series.channels.items()}
        )
        return continuous, int(new_times.size)


def make_continuous(
    series: TimeSeries,
    step_size_ms: int = 50,
    max_gap_minutes: float = 5.0
) -> TimeSeries:
    """
    Convenience function to restore a regular time axis.

    Args:
        series: Input series
        step_size_ms: Expected sampling interval in milliseconds
        max_gap_minutes: Longest gap to fill

    Returns:
        New series with NaN rows inserted
    """
    continuous, _ = MakeContinuous(step_size_ms, max_gap_minutes).apply(series)
    return continuous
