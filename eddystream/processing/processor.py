"""
Processing Pipeline Orchestrator
================================
Orchestrates all processing steps:
continuity → diagnostics → bounds check → despike → gap filling → double rotation → MRD → QC.
"""

import logging
from typing import Dict, List, Optional, Any
from datetime import datetime
from dataclasses import dataclass, field

from eddystream.processing.timeseries import TimeSeries
from eddystream.processing.continuity import MakeContinuous
from eddystream.processing.diagnostics import DiagnosticsMask
from eddystream.processing.qc_engine import PhysicsBoundsCheck, QCEngine, QCSummary
from eddystream.processing.despiker import Despiker, despike_series
from eddystream.processing.interpolation import GapFiller
from eddystream.processing.double_rotation import WindDoubleRotation, RotationAngles
from eddystream.processing.mrd import MRDConfig, MRDError, MRDResult, decompose

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Complete processing results for a series."""
    # Cleaned data
    series: TimeSeries = field(repr=False)

    # Per-channel step counters
    inserted_samples: int = 0
    diagnostic_counts: Dict[str, int] = field(default_factory=dict)
    bounds_counts: Dict[str, int] = field(default_factory=dict)
    spike_counts: Dict[str, int] = field(default_factory=dict)
    filled_counts: Dict[str, int] = field(default_factory=dict)
    total_spikes: int = 0

    # Rotation angles per block
    rotation_angles: List[RotationAngles] = field(default_factory=list, repr=False)

    # MRD
    mrd: Optional[MRDResult] = None
    mrd_error: Optional[str] = None

    # QC summary
    qc_summary: Optional[QCSummary] = None

    # Processing metadata
    processing_time_ms: float = 0.0
    sample_count: int = 0

    def to_statistics_dict(self) -> Dict[str, Any]:
        """Flat summary of the run."""
        stats = {
            'total_samples': self.sample_count,
            'inserted_samples': self.inserted_samples,
            'diagnostic_flagged': sum(self.diagnostic_counts.values()),
            'spike_count': self.total_spikes,
            'bounds_discarded': sum(self.bounds_counts.values()),
            'gap_filled': sum(self.filled_counts.values()),
            'rotation_blocks': len(self.rotation_angles),
        }

        if self.mrd is not None:
            stats.update({
                'mrd_blocks': self.mrd.nblocks,
                'mrd_valid_blocks': int(self.mrd.valid.sum()),
            })
        if self.mrd_error:
            stats['mrd_error'] = self.mrd_error
        if self.qc_summary:
            stats['qc_status'] = self.qc_summary.overall_status.value

        return stats


class FluxProcessor:
    """
    Orchestrates the processing pipeline for a sonic/gas analyzer series.

    Pipeline:
    1. Continuity → Insert NaN rows for dropped timestamps
    2. Diagnostics → Mask records the sensor flagged
    3. Bounds → Discard physically implausible values
    4. Despike → Remove sensor glitches using MAD
    5. Gap filling → Interpolate short runs of missing samples
    6. Rotation → Align wind with the mean streamline
    7. MRD → Multi-resolution decomposition of the covariance
    8. QC → Run quality checks

    Any step set to None is skipped.
    """

    def __init__(
        self,
        bounds: Optional[PhysicsBoundsCheck] = None,
        despiker: Optional[Despiker] = None,
        gap_filler: Optional[GapFiller] = None,
        rotation: Optional[WindDoubleRotation] = None,
        mrd_config: Optional[MRDConfig] = None,
        qc_engine: Optional[QCEngine] = None,
        continuity: Optional[MakeContinuous] = None,
        diagnostics: Optional[DiagnosticsMask] = None
    ):
        self.continuity = continuity
        self.diagnostics = diagnostics
        self.bounds = bounds
        self.despiker = despiker
        self.gap_filler = gap_filler
        self.rotation = rotation
        self.mrd_config = mrd_config
        self.qc_engine = qc_engine

    @classmethod
    def default(cls, mrd_config: Optional[MRDConfig] = None) -> "FluxProcessor":
        """Processor with every step enabled at default settings."""
        return cls(
            bounds=PhysicsBoundsCheck(),
            despiker=Despiker(),
            gap_filler=GapFiller(),
            rotation=WindDoubleRotation(),
            mrd_config=mrd_config or MRDConfig(),
            qc_engine=QCEngine()
        )

    def process(self, series: TimeSeries) -> ProcessingResult:
        """
        Process a series through the configured pipeline.

        Args:
            series: Input series (not modified)

        Returns:
            ProcessingResult
        """
        start_time = datetime.now()
        data = series.copy()
        result = ProcessingResult(series=data, sample_count=len(data))

        # Step 1: Regular time axis
        if self.continuity is not None:
            data, result.inserted_samples = self.continuity.apply(data)
            logger.info("Continuity inserted %d rows", result.inserted_samples)

        # Step 2: Sensor diagnostics
        if self.diagnostics is not None:
            data, result.diagnostic_counts = self.diagnostics.apply(data)
            logger.info("Diagnostics flagged %d records", sum(result.diagnostic_counts.values()))

        # Step 3: Physical limits
        if self.bounds is not None:
            data, result.bounds_counts = self.bounds.apply(data)
            logger.info("Bounds check discarded %d values", sum(result.bounds_counts.values()))

        # Step 4: Despike
        if self.despiker is not None:
            data, despike_results = despike_series(data, despiker=self.despiker)
            result.spike_counts = {name: r.spike_count for name, r in despike_results.items()}
            result.total_spikes = sum(result.spike_counts.values())
            logger.info("Despiking removed %d spikes", result.total_spikes)

        # Step 5: Gap filling
        if self.gap_filler is not None:
            data, result.filled_counts = self.gap_filler.apply(data)
            logger.info("Gap filling interpolated %d values", sum(result.filled_counts.values()))

        # Step 6: Double rotation
        if self.rotation is not None:
            data, result.rotation_angles = self.rotation.apply(data)

        # Step 7: MRD
        if self.mrd_config is not None:
            try:
                result.mrd = decompose(self.mrd_config, data)
            except MRDError as e:
                logger.warning("MRD failed: %s", e)
                result.mrd_error = str(e)

        # Step 8: QC
        if self.qc_engine is not None:
            gap_threshold = self.mrd_config.gap_threshold if self.mrd_config else MRDConfig.gap_threshold
            result.qc_summary = self.qc_engine.run_all_checks(
                data,
                spike_counts=result.spike_counts,
                bounds_counts=result.bounds_counts,
                gap_threshold=gap_threshold
            )

        result.series = data
        result.processing_time_ms = (datetime.now() - start_time).total_seconds() * 1000
        return result


def process_series(
    series: TimeSeries,
    mrd_config: Optional[MRDConfig] = None
) -> ProcessingResult:
    """
    Convenience function to process a series with all steps enabled.

    Args:
        series: Input series
        mrd_config: MRD parameters (defaults if omitted)

    Returns:
        ProcessingResult
    """
    processor = FluxProcessor.default(mrd_config)
    return processor.process(series)


if __name__ == "__main__":
    from eddystream.simulator.sonic_simulator import SonicRunConfiguration, SonicSimulator

    logging.basicConfig(level=logging.INFO)
    print("Testing Processing Pipeline")
    print("=" * 60)

    config = SonicRunConfiguration(duration_s=900.0, sample_rate_hz=10.0, seed=42)
    series = SonicSimulator(config).generate()
    print(f"Created {len(series)} samples across {len(series.names)} channels")

    result = process_series(series, MRDConfig(M=11, shift=512, a='Uz', b='Ts'))

    print(f"\nProcessing Results:")
    print(f"  Samples: {result.sample_count:,}")
    print(f"  Processing time: {result.processing_time_ms:.1f}ms")
    print(f"  Total spikes detected: {result.total_spikes}")
    print(f"  Rotation blocks: {len(result.rotation_angles)}")

    if result.mrd is not None:
        print(f"\nMRD: {result.mrd.nblocks} blocks, scales {result.mrd.scales[0]:.1f}s - {result.mrd.scales[-1]:.1f}s")
    else:
        print(f"\nMRD failed: {result.mrd_error}")

    if result.qc_summary:
        print(f"\nQC Summary:")
        print(f"  Overall: {result.qc_summary.overall_status.value.upper()}")
        print(f"  Passed: {result.qc_summary.passed_checks}/{result.qc_summary.total_checks}")
