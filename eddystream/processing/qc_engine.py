"""
Quality Control Engine
======================
Physical plausibility limits and automated quality checks for
high-frequency sonic anemometer / gas analyzer data.
"""

import logging
import numpy as np
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum

from eddystream.processing.timeseries import TimeSeries

logger = logging.getLogger(__name__)


class Limit(NamedTuple):
    """Inclusive plausibility range."""
    min: float
    max: float


DEFAULT_LIMITS: Dict[str, Limit] = {
    'Ux': Limit(-100.0, 100.0),   # m/s
    'Uy': Limit(-100.0, 100.0),   # m/s
    'Uz': Limit(-50.0, 50.0),     # m/s
    'Ts': Limit(-50.0, 50.0),     # degC, sonic temperature
    'CO2': Limit(0.0, np.inf),
    'H2O': Limit(0.0, np.inf),
    'T': Limit(-50.0, 50.0),      # degC
    'P': Limit(0.0, np.inf),
}


class PhysicsBoundsCheck:
    """
    Discards physically implausible values.

    Finite values outside a channel's limits become NaN; NaN and inf are left
    untouched. Channels without a configured limit are skipped.
    """

    def __init__(self, **limits: Tuple[float, float]):
        """
        Args:
            **limits: Overrides, e.g. Ts=(-40, 45); keys must be known variables
        """
        self.limits = dict(DEFAULT_LIMITS)
        for key, value in limits.items():
            if key not in DEFAULT_LIMITS:
                raise ValueError(
                    f"Invalid limit key: {key} (valid keys: {', '.join(DEFAULT_LIMITS)})"
                )
            self.limits[key] = Limit(*value)

    def check_channel(self, name: str, values: np.ndarray) -> Tuple[np.ndarray, int]:
        """
        Apply one channel's limits.

        Returns:
            Tuple of (cleaned copy, number of discarded samples)
        """
        limit = self.limits[name]
        cleaned = np.array(values, dtype=float)
        outside = np.isfinite(cleaned) & ((cleaned < limit.min) | (cleaned > limit.max))
        n_discarded = int(outside.sum())
        if n_discarded:
            cleaned[outside] = np.nan
            logger.debug(
                "Plausibility limits for '%s': discarding %d records outside [%g, %g]",
                name, n_discarded, limit.min, limit.max
            )
        return cleaned, n_discarded

    def apply(self, series: TimeSeries) -> Tuple[TimeSeries, Dict[str, int]]:
        """
        Apply limits to every channel that has one.

        Returns:
            Tuple of (new series, {channel: discarded count})
        """
        updates = {}
        discarded = {}
        for name in series.names:
            if name not in self.limits:
                logger.debug("Skipping limit check for '%s' (no configured bounds)", name)
                continue
            updates[name], discarded[name] = self.check_channel(name, series.channel(name))
        return series.with_channels(updates), discarded


class QCStatus(Enum):
    """QC check status."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    SKIP = "skip"


@dataclass
class QCCheck:
    """Result of a single QC check."""
    rule_name: str
    rule_code: str
    status: QCStatus
    measured_value: Optional[float]
    threshold_warn: Optional[float]
    threshold_fail: Optional[float]
    details: str
    channel: Optional[str] = None


@dataclass
class QCSummary:
    """Overall QC summary for a series."""
    overall_status: QCStatus
    checks: List[QCCheck] = field(default_factory=list)
    total_checks: int = 0
    passed_checks: int = 0
    warning_checks: int = 0
    failed_checks: int = 0
    skipped_checks: int = 0
    critical_issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def add_check(self, check: QCCheck):
        """Add a check result and update counts."""
        self.checks.append(check)
        self.total_checks += 1

        if check.status == QCStatus.PASS:
            self.passed_checks += 1
        elif check.status == QCStatus.WARN:
            self.warning_checks += 1
        elif check.status == QCStatus.FAIL:
            self.failed_checks += 1
            self.critical_issues.append(f"{check.rule_code}: {check.details}")
        else:
            self.skipped_checks += 1

    def finalize(self):
        """Determine overall status based on checks."""
        if self.failed_checks > 0:
            self.overall_status = QCStatus.FAIL
        elif self.warning_checks > 0:
            self.overall_status = QCStatus.WARN
        else:
            self.overall_status = QCStatus.PASS

    def to_dict(self) -> Dict:
        """Flat dictionary for reports and API responses."""
        return {
            'overall_status': self.overall_status.value,
            'total_checks': self.total_checks,
            'passed_checks': self.passed_checks,
            'warning_checks': self.warning_checks,
            'failed_checks': self.failed_checks,
            'skipped_checks': self.skipped_checks,
            'critical_issues': list(self.critical_issues),
            'recommendations': list(self.recommendations),
        }


def _grade(value: float, warn: float, fail: float) -> QCStatus:
    if value >= fail:
        return QCStatus.FAIL
    if value >= warn:
        return QCStatus.WARN
    return QCStatus.PASS


class QCEngine:
    """
    Runs automated quality checks on a cleaned series.

    Checks include:
    - Missing data (NaN percentage per channel)
    - Plausibility limit violations
    - Spike percentage
    - Timestamp gaps longer than the MRD gap threshold
    - Flatline (sensor stuck at a constant value)
    """

    DEFAULT_THRESHOLDS = {
        'missing_warn': 1.0,       # % missing samples for warning
        'missing_fail': 5.0,       # % missing samples for failure
        'bounds_warn': 0.1,        # % out-of-bounds samples for warning
        'bounds_fail': 1.0,        # % out-of-bounds samples for failure
        'spike_warn': 0.5,         # % spikes for warning
        'spike_fail': 2.0,         # % spikes for failure
        'gap_warn': 1,             # number of gaps for warning
        'gap_fail': 5,             # more gaps than this fail
        'flatline_duration': 1.0,  # seconds of constant value = flatline
    }

    def __init__(self, thresholds: Optional[Dict[str, float]] = None):
        """
        Args:
            thresholds: Optional dict of threshold overrides
        """
        self.thresholds = {**self.DEFAULT_THRESHOLDS}
        if thresholds:
            self.thresholds.update(thresholds)

    def check_missing_data(self, values: np.ndarray, channel: Optional[str] = None) -> QCCheck:
        """Percentage of NaN samples in a channel."""
        warn, fail = self.thresholds['missing_warn'], self.thresholds['missing_fail']
        if values.size == 0:
            return QCCheck("Missing Data Check", "MISS-DATA", QCStatus.SKIP, None,
                           warn, fail, "No samples to check", channel)

        missing_pct = 100.0 * np.isnan(values).sum() / values.size
        status = _grade(missing_pct, warn, fail)
        details = f"{channel}: {missing_pct:.2f}% samples missing"
        return QCCheck("Missing Data Check", "MISS-DATA", status, missing_pct,
                       warn, fail, details, channel)

    def check_bounds(self, discarded: int, total_samples: int, channel: Optional[str] = None) -> QCCheck:
        """Percentage of samples discarded by the plausibility limits."""
        warn, fail = self.thresholds['bounds_warn'], self.thresholds['bounds_fail']
        if total_samples == 0:
            return QCCheck("Plausibility Limits", "BOUNDS", QCStatus.SKIP, None,
                           warn, fail, "No samples to check", channel)

        bounds_pct = 100.0 * discarded / total_samples
        status = _grade(bounds_pct, warn, fail)
        details = f"{channel}: {discarded} samples ({bounds_pct:.3f}%) outside physical limits"
        return QCCheck("Plausibility Limits", "BOUNDS", status, bounds_pct,
                       warn, fail, details, channel)

    def check_spikes(self, spike_count: int, total_samples: int, channel: Optional[str] = None) -> QCCheck:
        """Percentage of samples flagged as spikes."""
        warn, fail = self.thresholds['spike_warn'], self.thresholds['spike_fail']
        if total_samples == 0:
            return QCCheck("Spike Detection", "SPIKE-DET", QCStatus.SKIP, None,
                           warn, fail, "No samples to check", channel)

        spike_pct = 100.0 * spike_count / total_samples
        status = _grade(spike_pct, warn, fail)
        if status == QCStatus.FAIL:
            details = f"{channel}: {spike_pct:.2f}% spikes ({spike_count} samples) - sensor issue"
        else:
            details = f"{channel}: {spike_pct:.3f}% spikes detected"
        return QCCheck("Spike Detection", "SPIKE-DET", status, spike_pct,
                       warn, fail, details, channel)

    def check_timestamp_gaps(self, seconds: np.ndarray, gap_threshold: float) -> QCCheck:
        """
        Count time steps longer than `gap_threshold` seconds.

        Such gaps invalidate every MRD block that spans them.
        """
        warn, fail = self.thresholds['gap_warn'], self.thresholds['gap_fail']
        if seconds.size < 2:
            return QCCheck("Timestamp Gaps", "TS-GAP", QCStatus.SKIP, None,
                           warn, fail, "Insufficient timestamps for gap check")

        dt = np.diff(seconds)
        gaps = dt[dt > gap_threshold]
        num_gaps = int(gaps.size)

        if num_gaps > fail:
            status = QCStatus.FAIL
            details = f"{num_gaps} gaps > {gap_threshold:g}s (max: {gaps.max():.3f}s) - check logger"
        elif num_gaps >= warn:
            status = QCStatus.WARN
            details = f"{num_gaps} gaps > {gap_threshold:g}s (max: {gaps.max():.3f}s)"
        else:
            status = QCStatus.PASS
            details = "No timestamp gaps detected"

        return QCCheck("Timestamp Gaps", "TS-GAP", status, float(num_gaps),
                       warn, fail, details)

    def check_flatline(self, seconds: np.ndarray, values: np.ndarray, channel: Optional[str] = None) -> QCCheck:
        """Longest run of identical consecutive values, in seconds."""
        threshold = self.thresholds['flatline_duration']
        if values.size < 10:
            return QCCheck("Flatline Detection", "FLAT-DET", QCStatus.SKIP, None,
                           None, threshold, "Insufficient data for flatline check", channel)

        # NaN comparisons are False, so missing samples break runs
        is_constant = np.abs(np.diff(values)) < 1e-10
        padded = np.concatenate(([False], is_constant, [False])).astype(np.int8)
        edges = np.diff(padded)
        run_starts = np.flatnonzero(edges == 1)
        run_ends = np.flatnonzero(edges == -1)
        max_run = int((run_ends - run_starts).max()) if run_starts.size else 0

        dt = float(np.median(np.diff(seconds)))
        max_duration = max_run * dt

        if max_duration >= threshold:
            status = QCStatus.FAIL
            details = f"{channel}: flatline of {max_duration:.2f}s - sensor failure"
        else:
            status = QCStatus.PASS
            details = f"{channel}: no significant flatlines (max: {max_duration:.3f}s)"

        return QCCheck("Flatline Detection", "FLAT-DET", status, max_duration,
                       None, threshold, details, channel)

    def run_all_checks(
        self,
        series: TimeSeries,
        channels: Optional[Iterable[str]] = None,
        spike_counts: Optional[Dict[str, int]] = None,
        bounds_counts: Optional[Dict[str, int]] = None,
        gap_threshold: float = 10.0
    ) -> QCSummary:
        """
        Run all QC checks on a series.

        Args:
            series: Series to check
            channels: Channels to check (default: all)
            spike_counts: Optional spikes per channel from the despiker
            bounds_counts: Optional discarded samples per channel from the limits check
            gap_threshold: Gap length (seconds) reported as a timestamp gap

        Returns:
            QCSummary with all check results
        """
        summary = QCSummary(overall_status=QCStatus.PASS)
        seconds = series.seconds()

        summary.add_check(self.check_timestamp_gaps(seconds, gap_threshold))

        for name in (channels if channels is not None else series.names):
            if name not in series:
                summary.add_check(QCCheck(
                    "Missing Data Check", "MISS-DATA", QCStatus.SKIP, None, None, None,
                    f"Channel '{name}' not present", name
                ))
                continue

            values = series.channel(name)
            summary.add_check(self.check_missing_data(values, name))

            if bounds_counts and name in bounds_counts:
                summary.add_check(self.check_bounds(bounds_counts[name], values.size, name))

            if spike_counts and name in spike_counts:
                summary.add_check(self.check_spikes(spike_counts[name], values.size, name))

            summary.add_check(self.check_flatline(seconds, values, name))

        if summary.failed_checks > 0:
            summary.recommendations.append("Review sensor diagnostics and installation")
            summary.recommendations.append("Treat flux and MRD results of this period with caution")

        if summary.warning_checks > 0:
            summary.recommendations.append("Data may require manual review before use")

        summary.finalize()
        return summary


def run_qc(
    series: TimeSeries,
    spike_counts: Optional[Dict[str, int]] = None,
    gap_threshold: float = 10.0
) -> QCSummary:
    """
    Convenience function to run QC checks with default thresholds.

    Args:
        series: Series to check
        spike_counts: Optional spikes per channel
        gap_threshold: Gap length in seconds

    Returns:
        QCSummary
    """
    engine = QCEngine()
    return engine.run_all_checks(series, spike_counts=spike_counts, gap_threshold=gap_threshold)
