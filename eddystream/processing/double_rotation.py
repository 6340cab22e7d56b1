"""
Double Rotation Module
======================
Aligns sonic anemometer wind components with the mean streamline.

Per averaging block:
1. First rotation (theta, about z): mean(v) = 0
2. Second rotation (phi, about y): mean(w) = 0
"""

import logging
import numpy as np
from typing import List, NamedTuple, Tuple

from eddystream.processing.gaps import sampling_period
from eddystream.processing.timeseries import TimeSeries

logger = logging.getLogger(__name__)


class RotationAngles(NamedTuple):
    theta: float
    phi: float


def block_indices(n_samples: int, block_size: int) -> List[Tuple[int, int]]:
    """
    Half-open [start, stop) ranges of consecutive blocks.

    The last block absorbs the remainder; a series shorter than one block
    is a single block.
    """
    indices = []
    start = 0
    while start + block_size <= n_samples:
        indices.append((start, start + block_size))
        start += block_size

    if indices:
        indices[-1] = (indices[-1][0], n_samples)
    elif n_samples > 0:
        indices.append((0, n_samples))
    return indices


def rotate_block(u: np.ndarray, v: np.ndarray, w: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, RotationAngles]:
    """
    Apply the double rotation to one block of wind data.

    Returns:
        Tuple of (u_rot, v_rot, w_rot, angles)
    """
    theta = np.arctan2(np.nanmean(v), np.nanmean(u))
    cos_t, sin_t = np.cos(theta), np.sin(theta)
    u1 = u * cos_t + v * sin_t
    v1 = -u * sin_t + v * cos_t

    phi = np.arctan2(np.nanmean(w), np.nanmean(u1))
    cos_p, sin_p = np.cos(phi), np.sin(phi)
    u2 = u1 * cos_p + w * sin_p
    w2 = -u1 * sin_p + w * cos_p

    return u2, v1, w2, RotationAngles(float(theta), float(phi))


class WindDoubleRotation:
    """Double rotation of the wind vector over fixed-duration blocks."""

    def __init__(
        self,
        block_duration_minutes: float = 30.0,
        Ux: str = 'Ux',
        Uy: str = 'Uy',
        Uz: str = 'Uz'
    ):
        if block_duration_minutes <= 0:
            raise ValueError("block_duration_minutes must be positive")
        self.block_duration_minutes = block_duration_minutes
        self.Ux = Ux
        self.Uy = Uy
        self.Uz = Uz

    def block_size(self, series: TimeSeries) -> int:
        """Number of samples per block from the nominal sampling period."""
        dt = sampling_period(series.timestamps)
        if dt <= 0:
            raise ValueError("Need at least 2 time points to determine the sampling period")
        return max(1, int(round(self.block_duration_minutes * 60.0 / dt)))

    def apply(self, series: TimeSeries) -> Tuple[TimeSeries, List[RotationAngles]]:
        """
        Rotate the wind components of a series.

        Returns:
            Tuple of (new series, rotation angles per block). The series is
            returned unchanged when a wind component is missing.
        """
        for name in (self.Ux, self.Uy, self.Uz):
            if name not in series:
                logger.warning("Variable %s not found in data, skipping double rotation", name)
                return series, []

        size = self.block_size(series)
        u = series.channel(self.Ux)
        v = series.channel(self.Uy)
        w = series.channel(self.Uz)
        u_out, v_out, w_out = np.empty_like(u), np.empty_like(v), np.empty_like(w)
        angles = []

        blocks = block_indices(len(series), size)
        for start, stop in blocks:
            u_out[start:stop], v_out[start:stop], w_out[start:stop], block_angles = rotate_block(
                u[start:stop], v[start:stop], w[start:stop]
            )
            angles.append(block_angles)

        logger.info("Double rotation applied to %d blocks of %d samples", len(blocks), size)
        rotated = series.with_channels({self.Ux: u_out, self.Uy: v_out, self.Uz: w_out})
        return rotated, angles
