"""
Gap Filling Module
==================
Interpolates short runs of missing samples (NaN) left behind by the
plausibility limits and the despiker.
"""

import logging
import numpy as np
from typing import Dict, Iterable, List, Optional, Tuple
from scipy import interpolate

from eddystream.processing.timeseries import TimeSeries

logger = logging.getLogger(__name__)


class GapFiller:
    """
    Fills runs of at most `max_gap_size` consecutive NaN samples.

    Each run is interpolated from its nearest valid neighbours (one per side
    for linear, two per side for quadratic/cubic). A run with a valid
    neighbour on one side only is filled with that value; longer runs are
    left missing.
    """

    # Valid neighbours collected on each side of a gap
    POINTS_NEEDED = {'linear': 1, 'quadratic': 2, 'cubic': 2}
    # Minimum points scipy needs for each spline order
    MIN_POINTS = {'linear': 2, 'quadratic': 3, 'cubic': 4}

    def __init__(
        self,
        max_gap_size: int = 10,
        method: str = 'linear',
        variables: Optional[Iterable[str]] = None
    ):
        """
        Args:
            max_gap_size: Longest run of missing samples to fill
            method: Interpolation method ('linear', 'quadratic', 'cubic')
            variables: Channels to fill (default: all channels of the series)
        """
        if method not in self.POINTS_NEEDED:
            raise ValueError(f"Unknown interpolation method: {method}")
        self.max_gap_size = max_gap_size
        self.method = method
        self.variables = list(variables) if variables is not None else None

    @staticmethod
    def find_gap_runs(values: np.ndarray) -> List[Tuple[int, int]]:
        """Half-open [start, stop) index ranges of consecutive NaN samples."""
        missing = np.isnan(values).astype(np.int8)
        edges = np.diff(np.concatenate(([0], missing, [0])))
        starts = np.flatnonzero(edges == 1)
        stops = np.flatnonzero(edges == -1)
        return list(zip(starts.tolist(), stops.tolist()))

    def _neighbours(self, values: np.ndarray, start: int, stop: int) -> np.ndarray:
        needed = self.POINTS_NEEDED[self.method]
        before = np.flatnonzero(~np.isnan(values[:start]))[-needed:]
        after = stop + np.flatnonzero(~np.isnan(values[stop:]))[:needed]
        return np.concatenate((before, after))

    def fill_channel(self, seconds: np.ndarray, values: np.ndarray) -> Tuple[np.ndarray, int]:
        """
        Fill short gaps in one channel.

        Args:
            seconds: Time array (seconds)
            values: Value array (not modified)

        Returns:
            Tuple of (filled copy, number of samples filled)
        """
        filled = np.array(values, dtype=float)
        n_filled = 0

        for start, stop in self.find_gap_runs(filled):
            if stop - start > self.max_gap_size:
                continue

            neighbours = self._neighbours(filled, start, stop)
            if neighbours.size == 0:
                continue
            if neighbours[-1] < start:
                # Trailing edge gap: forward fill
                filled[start:stop] = filled[neighbours[-1]]
                n_filled += stop - start
                continue
            if neighbours[0] >= stop:
                # Leading edge gap: backward fill
                filled[start:stop] = filled[neighbours[0]]
                n_filled += stop - start
                continue

            kind = self.method if neighbours.size >= self.MIN_POINTS[self.method] else 'linear'
            interp_func = interpolate.interp1d(
                seconds[neighbours],
                filled[neighbours],
                kind=kind,
                fill_value='extrapolate',
                bounds_error=False,
                assume_sorted=True
            )
            filled[start:stop] = interp_func(seconds[start:stop])
            n_filled += stop - start

        return filled, n_filled

    def apply(self, series: TimeSeries) -> Tuple[TimeSeries, Dict[str, int]]:
        """
        Fill short gaps in the configured channels.

        Returns:
            Tuple of (new series, {channel: samples filled})
        """
        seconds = series.seconds()
        updates = {}
        counts = {}

        for name in (self.variables if self.variables is not None else series.names):
            if name not in series:
                logger.debug("Variable %s not found, skipping gap filling", name)
                continue
            updates[name], counts[name] = self.fill_channel(seconds, series.channel(name))

        return series.with_channels(updates), counts


def fill_gaps(
    series: TimeSeries,
    max_gap_size: int = 10,
    method: str = 'linear'
) -> TimeSeries:
    """
    Convenience function to fill short gaps in every channel.

    Args:
        series: Input series
        max_gap_size: Longest run of missing samples to fill
        method: Interpolation method

    Returns:
        New series with short gaps filled
    """
    filler = GapFiller(max_gap_size=max_gap_size, method=method)
    filled, _ = filler.apply(series)
    return filled
