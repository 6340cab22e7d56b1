"""
Processing Module
=================
Time-series processing for eddy covariance sensor data.

Modules:
- timeseries: Time axis plus named channels, delimited file reader
- continuity: Insert NaN rows for dropped timestamps
- diagnostics: Mask records flagged by the sensor
- gaps: Sampling period, gap index and MRD block scanning
- mrd: Orthogonal multi-resolution decomposition
- mrd_stats: Per-scale summaries and export
- qc_engine: Physical limits and automated quality control checks
- despiker: Remove sensor glitches using MAD algorithm
- interpolation: Fill short gaps
- double_rotation: Align wind with the mean streamline
- processor: Pipeline orchestration
"""

from eddystream.processing.timeseries import (
    TimeSeries,
    read_series,
    timestamps_to_seconds
)

from eddystream.processing.continuity import (
    MakeContinuous,
    make_continuous
)

from eddystream.processing.diagnostics import (
    DiagnosticRule,
    DiagnosticsMask
)

from eddystream.processing.gaps import (
    Block,
    GapIndex,
    sampling_period,
    scan_blocks
)

from eddystream.processing.mrd import (
    MRDConfig,
    MRDResult,
    MRDError,
    ChannelNotFoundError,
    InsufficientSamplesError,
    NoValidBlocksError,
    OversizedBlockWarning,
    OrthogonalMRD,
    decompose,
    decompose_block
)

from eddystream.processing.mrd_stats import (
    ScaleSummary,
    summarize_scales,
    write_mrd_summary
)

from eddystream.processing.despiker import (
    Despiker,
    DespikeResult,
    despike_channel,
    despike_series
)

from eddystream.processing.qc_engine import (
    Limit,
    PhysicsBoundsCheck,
    QCEngine,
    QCCheck,
    QCSummary,
    QCStatus,
    run_qc
)

from eddystream.processing.interpolation import (
    GapFiller,
    fill_gaps
)

from eddystream.processing.double_rotation import (
    RotationAngles,
    WindDoubleRotation
)

from eddystream.processing.processor import (
    FluxProcessor,
    ProcessingResult,
    process_series
)

__all__ = [
    # Data model
    'TimeSeries',
    'read_series',
    'timestamps_to_seconds',

    # Continuity and sensor diagnostics
    'MakeContinuous',
    'make_continuous',
    'DiagnosticRule',
    'DiagnosticsMask',

    # Gaps
    'Block',
    'GapIndex',
    'sampling_period',
    'scan_blocks',

    # MRD
    'MRDConfig',
    'MRDResult',
    'MRDError',
    'ChannelNotFoundError',
    'InsufficientSamplesError',
    'NoValidBlocksError',
    'OversizedBlockWarning',
    'OrthogonalMRD',
    'decompose',
    'decompose_block',
    'ScaleSummary',
    'summarize_scales',
    'write_mrd_summary',

    # Despiker
    'Despiker',
    'DespikeResult',
    'despike_channel',
    'despike_series',

    # QC Engine
    'Limit',
    'PhysicsBoundsCheck',
    'QCEngine',
    'QCCheck',
    'QCSummary',
    'QCStatus',
    'run_qc',

    # Gap filling and rotation
    'GapFiller',
    'fill_gaps',
    'RotationAngles',
    'WindDoubleRotation',

    # Processor
    'FluxProcessor',
    'ProcessingResult',
    'process_series',
]
