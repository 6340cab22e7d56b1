"""
Multi-Resolution Decomposition (MRD)
====================================
Orthogonal multiresolution covariance of two co-sampled signals over sliding,
gap-aware blocks of 2^M samples (Howell & Mahrt 1997; Vickers & Mahrt 2003).

For each block the coarsest window means are removed first, so variance
attributed to a coarse scale is never counted again at a finer one:

    for s = M .. Mx+1:
        split the block into 2^(M-s) windows of 2^s samples
        subtract each window's mean (NaN ignored) from the working copy
        mean[s] = average of mean_a[w] * mean_b[w] over defined windows
        std[s]  = sample std (ddof=1) of the same products
"""

import logging
import warnings
import numpy as np
from typing import List, NamedTuple, Optional, Tuple
from dataclasses import dataclass, field

from eddystream.processing.timeseries import TimeSeries
from eddystream.processing.gaps import GapIndex, sampling_period, scan_blocks

logger = logging.getLogger(__name__)

# Small smoothing window of the normalization series (samples)
NORMALIZATION_WINDOW = 2 ** 11
# Number of finest scales summed for the normalization factor
NORMALIZATION_SCALES = 11


class MRDError(ValueError):
    """Base class for decomposition failures."""


class ChannelNotFoundError(MRDError):
    """A requested channel is absent from the series."""

    def __init__(self, channel: str, available: List[str]):
        self.channel = channel
        self.available = list(available)
        super().__init__(
            f"Channel '{channel}' not found in series (available: {', '.join(self.available) or 'none'})"
        )


class InsufficientSamplesError(MRDError):
    """Too few samples to resolve a sampling period."""


class NoValidBlocksError(MRDError):
    """Every candidate block contained a disallowed gap."""


class OversizedBlockWarning(UserWarning):
    """Block length exceeds the series; a single degenerate block is used."""


@dataclass(frozen=True)
class MRDConfig:
    """Decomposition parameters."""
    M: int = 11                  # block length = 2^M samples
    Mx: int = 0                  # lowest retained scale exponent (0 = all)
    shift: int = 256             # samples between block starts
    a: str = "Uz"
    b: str = "Ts"
    gap_threshold: float = 10.0  # seconds
    normalize: bool = False
    regular_grid: bool = False

    def __post_init__(self):
        if self.M < 1:
            raise ValueError(f"M must be >= 1, got {self.M}")
        if not 0 <= self.Mx < self.M:
            raise ValueError(f"Mx must satisfy 0 <= Mx < M, got Mx={self.Mx}, M={self.M}")
        if self.shift < 1:
            raise ValueError(f"shift must be >= 1, got {self.shift}")
        if not self.gap_threshold > 0:
            raise ValueError(f"gap_threshold must be positive, got {self.gap_threshold}")

    @property
    def block_length(self) -> int:
        return 2 ** self.M


@dataclass(frozen=True, eq=False)
class MRDResult:
    """
    Decomposition output. Arrays are read-only copies.

    Row i of `mean` and `std` holds scale s = i + 1 (window of 2^s samples);
    columns follow `block_times`.
    """
    scales: np.ndarray = field(repr=False)
    mean: np.ndarray = field(repr=False)
    std: np.ndarray = field(repr=False)
    block_times: np.ndarray = field(repr=False)
    block_starts: np.ndarray = field(repr=False)
    valid: np.ndarray = field(repr=False)
    sampling_period: float
    config: MRDConfig
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ('scales', 'mean', 'std', 'block_times', 'block_starts', 'valid'):
            arr = np.array(getattr(self, name))
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def __repr__(self):
        return (
            f"MRDResult(scales={self.scales.size}, blocks={self.nblocks}, "
            f"valid={int(self.valid.sum())}, dt={self.sampling_period:g}s)"
        )

    @property
    def nblocks(self) -> int:
        return int(self.mean.shape[1])

    def scale_index(self, scale: int) -> int:
        """Row index of scale exponent `scale` (1..M)."""
        if not 1 <= scale <= self.config.M:
            raise IndexError(f"Scale must be in 1..{self.config.M}, got {scale}")
        return scale - 1

    def summary(self):
        """Per-scale median and quartiles across blocks."""
        from eddystream.processing.mrd_stats import summarize_scales
        return summarize_scales(self)


class WindowMeans(NamedTuple):
    """Window means with an explicit definedness mask (no valid sample = undefined)."""
    values: np.ndarray
    defined: np.ndarray


def window_means(buffer: np.ndarray, window_length: int) -> WindowMeans:
    """
    NaN-skipping mean of each contiguous window of `window_length` samples.

    Args:
        buffer: 1-D array whose length is a multiple of window_length
        window_length: Samples per window

    Returns:
        WindowMeans; undefined windows carry NaN in `values`
    """
    windows = buffer.reshape(-1, window_length)
    present = ~np.isnan(windows)
    counts = present.sum(axis=1)
    sums = np.where(present, windows, 0.0).sum(axis=1)

    defined = counts > 0
    values = np.full(counts.shape, np.nan)
    np.divide(sums, counts, out=values, where=defined)
    return WindowMeans(values=values, defined=defined)


def remove_window_means(buffer: np.ndarray, window_length: int) -> WindowMeans:
    """
    Subtract each window's own mean from its samples, in place.

    Missing samples stay missing. `buffer` must be C-contiguous so the
    windowed view writes through to it.

    Returns:
        The window means that were removed
    """
    if not buffer.flags.c_contiguous:
        raise ValueError("Working buffer must be C-contiguous")

    means = window_means(buffer, window_length)
    windows = buffer.reshape(-1, window_length)
    windows -= np.where(means.defined, means.values, 0.0)[:, np.newaxis]
    return means


def scale_statistics(means_a: WindowMeans, means_b: WindowMeans) -> Tuple[float, float]:
    """
    Mean and sample std of window-mean products for one scale.

    Only windows where both means are defined contribute. Both statistics are
    NaN when fewer than two windows contribute.
    """
    both = means_a.defined & means_b.defined
    products = means_a.values[both] * means_b.values[both]
    if products.size > 1:
        return float(products.sum() / products.size), float(products.std(ddof=1))
    return np.nan, np.nan


class MRDWorkspace:
    """Two-row working buffer (signal a, signal b) reused across blocks."""

    def __init__(self, M: int):
        self.M = M
        self.buffer = np.empty((2, 2 ** M))

    def load(self, a_block: np.ndarray, b_block: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Copy one block into the buffer, padding the tail with NaN."""
        n = a_block.size
        self.buffer.fill(np.nan)
        self.buffer[0, :n] = a_block
        self.buffer[1, :n] = b_block
        return self.buffer[0], self.buffer[1]


def decompose_block(
    a_block: np.ndarray,
    b_block: np.ndarray,
    M: int,
    Mx: int = 0,
    workspace: Optional[MRDWorkspace] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Decompose one block, coarsest scale first.

    Args:
        a_block: First signal, 2^M samples (shorter blocks are NaN-padded)
        b_block: Second signal, same length as a_block
        M: Maximum scale exponent
        Mx: Scales 1..Mx are not computed and stay NaN
        workspace: Optional reusable buffer; a private one is allocated if omitted

    Returns:
        Tuple of (mean, std) vectors of length M, index s-1 for scale s
    """
    a_block = np.asarray(a_block, dtype=float)
    b_block = np.asarray(b_block, dtype=float)
    if a_block.shape != b_block.shape:
        raise ValueError(f"Block shapes differ: {a_block.shape} vs {b_block.shape}")
    if a_block.size > 2 ** M:
        raise ValueError(f"Block of {a_block.size} samples exceeds 2^M={2 ** M}")

    if workspace is None or workspace.M != M:
        workspace = MRDWorkspace(M)
    working_a, working_b = workspace.load(a_block, b_block)

    mean_col = np.full(M, np.nan)
    std_col = np.full(M, np.nan)
    for scale in range(M, Mx, -1):
        window_length = 2 ** scale
        means_a = remove_window_means(working_a, window_length)
        means_b = remove_window_means(working_b, window_length)
        mean_col[scale - 1], std_col[scale - 1] = scale_statistics(means_a, means_b)

    return mean_col, std_col


def moving_average_centered(x: np.ndarray, window: int) -> np.ndarray:
    """
    Centered moving average over [i - window//2, i + window//2].

    NaN values are skipped; the window is clipped at the array edges and a
    single valid sample is enough (NaN otherwise).
    """
    x = np.asarray(x, dtype=float)
    n = x.size
    half = window // 2

    present = ~np.isnan(x)
    csum = np.concatenate(([0.0], np.cumsum(np.where(present, x, 0.0))))
    ccount = np.concatenate(([0], np.cumsum(present)))

    idx = np.arange(n)
    lo = np.maximum(idx - half, 0)
    hi = np.minimum(idx + half, n - 1) + 1
    sums = csum[hi] - csum[lo]
    counts = ccount[hi] - ccount[lo]

    out = np.full(n, np.nan)
    np.divide(sums, counts, out=out, where=counts > 0)
    return out


def normalization_series(a: np.ndarray, b: np.ndarray, block_length: int) -> np.ndarray:
    """Product a*b smoothed by two cascaded centered moving averages."""
    product = np.asarray(a, dtype=float) * np.asarray(b, dtype=float)
    smoothed = moving_average_centered(product, NORMALIZATION_WINDOW)
    return moving_average_centered(smoothed, block_length)


def normalize_column(mean_col: np.ndarray, reference: float) -> np.ndarray:
    """
    Rescale one block's mean column by the low-scale sum over `reference`.

    The column is returned unchanged when the factor is not finite or zero.
    """
    n_low = min(NORMALIZATION_SCALES, mean_col.size)
    with np.errstate(divide='ignore', invalid='ignore'):
        factor = np.nansum(mean_col[:n_low]) / reference
    if np.isfinite(factor) and factor != 0.0:
        return mean_col / factor
    return mean_col


def decompose(config: MRDConfig, series: TimeSeries) -> MRDResult:
    """
    Run the MRD of channels `config.a` and `config.b` over a series.

    The series is never modified.

    Args:
        config: Decomposition parameters
        series: Series holding both channels on one time axis

    Returns:
        MRDResult

    Raises:
        ChannelNotFoundError: a channel is missing
        InsufficientSamplesError: fewer than two samples or non-positive time step
        NoValidBlocksError: no block is free of gaps
    """
    for name in (config.a, config.b):
        if name not in series:
            raise ChannelNotFoundError(name, series.names)

    n_samples = len(series)
    if n_samples < 2:
        raise InsufficientSamplesError(f"Need at least 2 samples for MRD, got {n_samples}")

    dt = sampling_period(series.timestamps)
    if not dt > 0:
        raise InsufficientSamplesError(f"Cannot resolve a sampling period (dt={dt})")

    a = series.channel(config.a)
    b = series.channel(config.b)
    block_length = config.block_length

    diagnostics: List[str] = []
    if block_length > n_samples:
        message = (
            f"Block length 2^M={block_length} exceeds data length {n_samples}; "
            f"using a single block"
        )
        warnings.warn(message, OversizedBlockWarning, stacklevel=2)
        logger.warning(message)
        diagnostics.append(message)

    gap_index = GapIndex(series.timestamps, config.gap_threshold)
    reference = normalization_series(a, b, block_length) if config.normalize else None
    workspace = MRDWorkspace(config.M)

    mean_cols: List[np.ndarray] = []
    std_cols: List[np.ndarray] = []
    starts: List[int] = []
    mids: List[int] = []
    valid: List[bool] = []
    n_gap_blocks = 0

    for block in scan_blocks(n_samples, block_length, config.shift, gap_index):
        if block.valid:
            mean_col, std_col = decompose_block(
                a[block.start:block.stop],
                b[block.start:block.stop],
                config.M,
                config.Mx,
                workspace
            )
            if reference is not None:
                mean_col = normalize_column(mean_col, reference[block.mid])
        else:
            n_gap_blocks += 1
            if not config.regular_grid:
                continue
            mean_col = np.full(config.M, np.nan)
            std_col = np.full(config.M, np.nan)

        mean_cols.append(mean_col)
        std_cols.append(std_col)
        starts.append(block.start)
        mids.append(block.mid)
        valid.append(block.valid)

    if n_gap_blocks:
        logger.info(
            "%d of %d MRD blocks contain gaps > %gs",
            n_gap_blocks, n_gap_blocks + sum(valid), config.gap_threshold
        )

    if not any(valid):
        raise NoValidBlocksError(
            f"No MRD block computed: all {n_gap_blocks} candidate blocks contain gaps "
            f"> {config.gap_threshold}s"
        )

    return MRDResult(
        scales=2.0 ** np.arange(1, config.M + 1) * dt,
        mean=np.column_stack(mean_cols),
        std=np.column_stack(std_cols),
        block_times=series.timestamps[np.array(mids, dtype=int)],
        block_starts=np.array(starts, dtype=int),
        valid=np.array(valid, dtype=bool),
        sampling_period=dt,
        config=config,
        warnings=tuple(diagnostics)
    )


class OrthogonalMRD:
    """
    MRD pipeline step.

    Holds the configuration, runs `decompose` and keeps the latest result.
    A missing channel is logged and leaves `results` as None; other
    decomposition errors propagate.
    """

    def __init__(self, config: Optional[MRDConfig] = None, **kwargs):
        """
        Args:
            config: Full configuration; if omitted, kwargs are passed to MRDConfig
        """
        self.config = config if config is not None else MRDConfig(**kwargs)
        self.results: Optional[MRDResult] = None

    def run(self, series: TimeSeries) -> Optional[MRDResult]:
        """Decompose `series` and store the result."""
        self.results = None
        try:
            self.results = decompose(self.config, series)
        except ChannelNotFoundError as e:
            logger.warning("%s, skipping MRD", e)
        return self.results

    def get_results(self) -> Optional[MRDResult]:
        """Latest result, or None if not computed."""
        return self.results
