"""
Gap Detection & Block Scanning
==============================
Sampling period resolution, O(1) gap queries over index ranges, and the
sliding block enumeration used by the MRD engine.
"""

import numpy as np
from typing import Iterator, NamedTuple

from eddystream.processing.timeseries import timestamps_to_seconds


def sampling_period(timestamps: np.ndarray) -> float:
    """
    Nominal time step in seconds, taken from the first two timestamps.

    Returns 0.0 when fewer than two timestamps are available.
    """
    seconds = timestamps_to_seconds(timestamps)
    if seconds.size < 2:
        return 0.0
    return float(seconds[1] - seconds[0])


class GapIndex:
    """
    Prefix-sum index over inter-sample gaps.

    A gap is flagged between samples i and i+1 when their time difference
    exceeds the threshold. Only range queries are exposed.
    """

    def __init__(self, timestamps: np.ndarray, threshold_seconds: float):
        """
        Args:
            timestamps: Time axis (datetime64 or seconds)
            threshold_seconds: Largest tolerated step between two samples
        """
        seconds = timestamps_to_seconds(timestamps)
        self.threshold_seconds = float(threshold_seconds)
        self._n = int(seconds.size)

        flags = np.diff(seconds) > self.threshold_seconds
        # _prefix[k] = number of flagged gaps among the first k sample pairs
        prefix = np.zeros(max(self._n, 1), dtype=np.int64)
        if flags.size:
            prefix[1:] = np.cumsum(flags)
        prefix.setflags(write=False)
        self._prefix = prefix

    def __len__(self) -> int:
        return self._n

    @property
    def gap_count(self) -> int:
        """Total number of flagged gaps in the series."""
        return int(self._prefix[-1])

    def has_gap(self, start: int, stop: int) -> bool:
        """
        True if a flagged gap lies strictly inside the block [start, stop).

        Gaps between samples i and i+1 count for start <= i < stop - 1.
        """
        if start < 0 or stop > self._n or stop <= start:
            raise IndexError(f"Invalid block [{start}, {stop}) for {self._n} samples")
        return bool(self._prefix[stop - 1] - self._prefix[start] > 0)


class Block(NamedTuple):
    """Candidate MRD block over the half-open index range [start, stop)."""
    start: int
    stop: int
    mid: int
    valid: bool


def scan_blocks(
    n_samples: int,
    block_length: int,
    shift: int,
    gap_index: GapIndex
) -> Iterator[Block]:
    """
    Enumerate candidate blocks at starts 0, shift, 2*shift, ...

    Every theoretical position is yielded, flagged valid or not, so callers
    can either drop invalid blocks or keep a placeholder for them. When the
    block is longer than the series a single block spanning the whole series
    is yielded instead.

    Args:
        n_samples: Series length
        block_length: Samples per block (2^M)
        shift: Samples between successive block starts
        gap_index: Gap index built over the same time axis

    Yields:
        Block tuples in time order
    """
    if shift < 1:
        raise ValueError(f"shift must be >= 1, got {shift}")
    if n_samples < 1:
        return

    if block_length > n_samples:
        yield Block(
            start=0,
            stop=n_samples,
            mid=(n_samples - 1) // 2,
            valid=not gap_index.has_gap(0, n_samples)
        )
        return

    half = (block_length - 1) // 2
    for start in range(0, n_samples - block_length + 1, shift):
        stop = start + block_length
        yield Block(
            start=start,
            stop=stop,
            mid=start + half,
            valid=not gap_index.has_gap(start, stop)
        )
