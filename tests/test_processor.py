import numpy as np
import pytest

from eddystream.processing.mrd import MRDConfig
from eddystream.processing.processor import FluxProcessor, process_series
from eddystream.processing.continuity import MakeContinuous
from eddystream.processing.despiker import Despiker
from eddystream.processing.diagnostics import DiagnosticsMask
from eddystream.processing.interpolation import GapFiller
from eddystream.processing.timeseries import TimeSeries
from eddystream.processing.qc_engine import QCEngine, QCStatus
from eddystream.simulator.sonic_simulator import SonicRunConfiguration, SonicSimulator, inject_time_gap


@pytest.fixture
def sonic_series():
    config = SonicRunConfiguration(duration_s=600.0, sample_rate_hz=10.0, spike_probability=0.002, seed=11)
    return SonicSimulator(config).generate()


def test_full_pipeline(sonic_series):
    result = process_series(sonic_series, MRDConfig(M=10, shift=512))

    assert result.sample_count == 6000
    assert result.total_spikes > 0
    assert len(result.rotation_angles) == 1
    assert result.mrd is not None
    assert result.mrd_error is None
    assert result.mrd.mean.shape == (10, 10)
    assert result.qc_summary is not None
    assert result.processing_time_ms >= 0

    # short dropouts and spikes are interpolated away
    assert not np.isnan(result.series.channel("Uz")).any()
    # rotated vertical wind has zero mean
    assert np.mean(result.series.channel("Uz")) == pytest.approx(0.0, abs=1e-9)


def test_input_series_untouched(sonic_series):
    uz = sonic_series.channel("Uz").copy()
    process_series(sonic_series, MRDConfig(M=10, shift=512))
    np.testing.assert_array_equal(sonic_series.channel("Uz"), uz)


def test_mrd_failure_is_recorded(sonic_series):
    result = process_series(sonic_series, MRDConfig(M=10, shift=512, a="CH4"))
    assert result.mrd is None
    assert "CH4" in result.mrd_error
    assert "mrd_error" in result.to_statistics_dict()


def test_no_valid_blocks_recorded():
    series = SonicSimulator(SonicRunConfiguration(duration_s=100.0, sample_rate_hz=10.0, seed=2)).generate()
    series = inject_time_gap(series, index=500, seconds=60.0)
    result = FluxProcessor(mrd_config=MRDConfig(M=10, shift=256)).process(series)
    assert result.mrd is None
    assert result.mrd_error


def test_steps_can_be_skipped(sonic_series):
    processor = FluxProcessor(despiker=Despiker(), qc_engine=QCEngine())
    result = processor.process(sonic_series)

    assert result.mrd is None and result.mrd_error is None
    assert result.rotation_angles == []
    assert result.filled_counts == {}
    assert result.qc_summary.overall_status in (QCStatus.PASS, QCStatus.WARN, QCStatus.FAIL)
    # wind not rotated
    assert np.nanmean(result.series.channel("Ux")) > 1.0


def test_statistics_dict(sonic_series):
    stats = process_series(sonic_series, MRDConfig(M=10, shift=512)).to_statistics_dict()
    assert stats['total_samples'] == 6000
    assert stats['mrd_blocks'] == 10
    assert stats['mrd_valid_blocks'] == 10
    assert 'qc_status' in stats


def test_continuity_and_diagnostics_steps():
    timestamps = np.datetime64("2024-06-01T00:00:00", "ns") + np.array([0, 50, 100, 200, 250]) * np.timedelta64(1, "ms")
    series = TimeSeries(timestamps=timestamps, channels={
        "diag_sonic": [0.0, 0.0, 70.0, 0.0, 0.0],
        "Uz": [0.1, 0.2, 0.3, 0.5, 0.6],
        "Ts": [20.0, 20.1, 20.2, 20.3, 20.4],
    })
    processor = FluxProcessor(
        continuity=MakeContinuous(step_size_ms=50),
        diagnostics=DiagnosticsMask.csat3(),
        gap_filler=GapFiller(),
    )
    result = processor.process(series)

    assert result.inserted_samples == 1
    assert result.diagnostic_counts == {"diag_sonic": 1}
    assert len(result.series) == 6
    # masked record and inserted row are interpolated
    np.testing.assert_allclose(result.series.channel("Uz"), [0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
    stats = result.to_statistics_dict()
    assert stats["inserted_samples"] == 1
    assert stats["diagnostic_flagged"] == 1


def test_qc_without_mrd_uses_default_gap_threshold():
    series = SonicSimulator(SonicRunConfiguration(duration_s=60.0, sample_rate_hz=10.0, seed=3)).generate()
    series = inject_time_gap(series, index=300, seconds=MRDConfig.gap_threshold + 1.0)
    result = FluxProcessor(qc_engine=QCEngine()).process(series)
    gap_check = next(c for c in result.qc_summary.checks if c.rule_code == "TS-GAP")
    assert gap_check.measured_value == 1.0
