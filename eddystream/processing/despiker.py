"""
De-spiking Module (MAD Algorithm)
=================================
Removes sensor glitches using Median Absolute Deviation (MAD).
Missing samples (NaN) are ignored by the statistics and never flagged.
"""

import logging
import numpy as np
from typing import Tuple, Optional, Dict, Iterable
from dataclasses import dataclass, field

from eddystream.processing.timeseries import TimeSeries

logger = logging.getLogger(__name__)


@dataclass
class DespikeResult:
    """Results from de-spiking operation."""
    original: np.ndarray = field(repr=False)
    cleaned: np.ndarray = field(repr=False)
    spike_mask: np.ndarray = field(repr=False)
    spike_count: int
    spike_pct: float
    spike_indices: np.ndarray = field(repr=False)


class Despiker:
    """
    Removes spikes from time-series data using MAD algorithm.

    MAD = median(|x - median(x)|)
    threshold = median +/- k * MAD * 1.4826

    The 1.4826 factor makes MAD consistent with standard deviation
    for normally distributed data.
    """

    # Scale factor to make MAD consistent with std for normal distributions
    MAD_SCALE = 1.4826

    REPLACE_METHODS = ('nan', 'interpolate', 'median')

    def __init__(
        self,
        threshold: float = 3.5,
        window_size: Optional[int] = None,
        replace_method: str = 'nan'
    ):
        """
        Initialize the despiker.

        Args:
            threshold: Number of MAD units for spike detection (3.5 is common)
            window_size: Rolling window size for local MAD calculation
                        None = use global MAD
            replace_method: How to replace spikes:
                           'nan' - mark as missing (left to gap filling)
                           'interpolate' - linear interpolation in time
                           'median' - replace with median
        """
        if replace_method not in self.REPLACE_METHODS:
            raise ValueError(f"Unknown replace method: {replace_method}")
        self.threshold = threshold
        self.window_size = window_size
        self.replace_method = replace_method

    def calculate_mad(self, data: np.ndarray) -> Tuple[float, float]:
        """
        Calculate the Median Absolute Deviation, ignoring NaN.

        Args:
            data: Input array

        Returns:
            Tuple of (median, MAD); both NaN if no valid samples
        """
        valid = data[~np.isnan(data)]
        if valid.size == 0:
            return np.nan, np.nan
        median = np.median(valid)
        mad = np.median(np.abs(valid - median))
        return median, mad

    def _bounds(self, median: float, mad: float) -> Tuple[float, float]:
        half_width = self.threshold * mad * self.MAD_SCALE
        return median - half_width, median + half_width

    def detect_spikes(self, values: np.ndarray) -> np.ndarray:
        """
        Detect spikes in the data.

        Args:
            values: Array of sensor values

        Returns:
            Boolean mask where True indicates a spike
        """
        if self.window_size is None:
            # Global MAD calculation
            median, mad = self.calculate_mad(values)
            if not mad > 0:
                # No variation (or no data), no spikes
                return np.zeros(len(values), dtype=bool)

            lower, upper = self._bounds(median, mad)
            with np.errstate(invalid='ignore'):
                return (values < lower) | (values > upper)

        # Rolling window MAD calculation
        spike_mask = np.zeros(len(values), dtype=bool)
        half_window = self.window_size // 2

        for i in range(len(values)):
            if np.isnan(values[i]):
                continue
            start = max(0, i - half_window)
            end = min(len(values), i + half_window + 1)

            median, mad = self.calculate_mad(values[start:end])
            if not mad > 0:
                continue

            lower, upper = self._bounds(median, mad)
            if values[i] < lower or values[i] > upper:
                spike_mask[i] = True

        return spike_mask

    def replace_spikes(
        self,
        seconds: np.ndarray,
        values: np.ndarray,
        spike_mask: np.ndarray
    ) -> np.ndarray:
        """
        Replace detected spikes.

        Args:
            seconds: Time array (seconds)
            values: Value array
            spike_mask: Boolean mask of spikes

        Returns:
            Cleaned values array
        """
        cleaned = values.copy()

        if not np.any(spike_mask):
            return cleaned

        good = ~spike_mask & ~np.isnan(values)

        if self.replace_method == 'nan':
            cleaned[spike_mask] = np.nan

        elif self.replace_method == 'median':
            cleaned[spike_mask] = np.median(values[good]) if good.any() else np.nan

        elif self.replace_method == 'interpolate':
            if good.sum() < 2:
                # Not enough good points to interpolate
                cleaned[spike_mask] = np.nan
            else:
                cleaned[spike_mask] = np.interp(
                    seconds[spike_mask],
                    seconds[good],
                    values[good]
                )

        return cleaned

    def despike(self, seconds: np.ndarray, values: np.ndarray) -> DespikeResult:
        """
        Detect and remove spikes from the data.

        Args:
            seconds: Time array (seconds)
            values: Value array

        Returns:
            DespikeResult with cleaned data and spike statistics
        """
        values = np.asarray(values, dtype=float)
        spike_mask = self.detect_spikes(values)
        cleaned = self.replace_spikes(seconds, values, spike_mask)

        spike_indices = np.flatnonzero(spike_mask)
        spike_count = len(spike_indices)
        spike_pct = 100.0 * spike_count / len(values) if len(values) > 0 else 0.0

        return DespikeResult(
            original=values,
            cleaned=cleaned,
            spike_mask=spike_mask,
            spike_count=spike_count,
            spike_pct=spike_pct,
            spike_indices=spike_indices
        )


def despike_channel(
    seconds: np.ndarray,
    values: np.ndarray,
    threshold: float = 3.5,
    window_size: Optional[int] = None
) -> Tuple[np.ndarray, int, float]:
    """
    Convenience function to despike a channel.

    Args:
        seconds: Time array (seconds)
        values: Value array
        threshold: MAD threshold
        window_size: Optional rolling window size

    Returns:
        Tuple of (cleaned_values, spike_count, spike_pct)
    """
    despiker = Despiker(threshold=threshold, window_size=window_size)
    result = despiker.despike(seconds, values)
    return result.cleaned, result.spike_count, result.spike_pct


def despike_series(
    series: TimeSeries,
    channels: Optional[Iterable[str]] = None,
    despiker: Optional[Despiker] = None
) -> Tuple[TimeSeries, Dict[str, DespikeResult]]:
    """
    Despike channels of a series.

    Args:
        series: Input series (not modified)
        channels: Channels to despike (default: all); absent ones are skipped
        despiker: Configured Despiker (default settings if omitted)

    Returns:
        Tuple of (new series, {channel: DespikeResult})
    """
    despiker = despiker or Despiker()
    seconds = series.seconds()
    results: Dict[str, DespikeResult] = {}

    for name in (channels if channels is not None else series.names):
        if name not in series:
            logger.debug("Variable %s not found, skipping despiking", name)
            continue
        results[name] = despiker.despike(seconds, series.channel(name))
        if results[name].spike_count:
            logger.debug("%s: %d spikes removed", name, results[name].spike_count)

    cleaned = series.with_channels({name: r.cleaned for name, r in results.items()})
    return cleaned, results
