import numpy as np
import pytest

from eddystream.processing.despiker import Despiker, despike_channel, despike_series
from eddystream.processing.timeseries import TimeSeries


@pytest.fixture
def spiky():
    rng = np.random.default_rng(3)
    seconds = np.arange(500) * 0.1
    values = rng.normal(0.0, 0.1, 500)
    values[[50, 300]] = [5.0, -4.0]
    return seconds, values


def test_detects_injected_spikes(spiky):
    seconds, values = spiky
    result = Despiker().despike(seconds, values)
    assert 50 in result.spike_indices
    assert 300 in result.spike_indices
    assert np.isnan(result.cleaned[[50, 300]]).all()
    assert result.spike_pct == pytest.approx(100.0 * result.spike_count / 500)


def test_original_values_untouched(spiky):
    seconds, values = spiky
    Despiker().despike(seconds, values)
    assert values[50] == 5.0


def test_nan_is_never_a_spike(spiky):
    seconds, values = spiky
    values = values.copy()
    values[10:20] = np.nan
    mask = Despiker().detect_spikes(values)
    assert not mask[10:20].any()


def test_constant_signal_has_no_spikes():
    assert not Despiker().detect_spikes(np.ones(50)).any()


def test_interpolate_replacement():
    seconds = np.arange(9, dtype=float)
    values = np.array([0.0, 0.1, -0.1, 0.0, 10.0, 0.0, 0.1, -0.1, 0.0])
    result = Despiker(replace_method='interpolate').despike(seconds, values)
    assert result.spike_count == 1
    assert result.cleaned[4] == pytest.approx(0.0)


def test_median_replacement():
    values = np.array([1.0, 1.1, 0.9, 1.0, 50.0, 1.0, 1.1, 0.9])
    result = Despiker(replace_method='median').despike(np.arange(8.0), values)
    assert result.cleaned[4] == pytest.approx(1.0)


def test_rolling_window(spiky):
    seconds, values = spiky
    result = Despiker(window_size=51).despike(seconds, values)
    assert result.spike_mask[50]
    assert result.spike_mask[300]


def test_unknown_replace_method():
    with pytest.raises(ValueError):
        Despiker(replace_method='zero')


def test_despike_channel(spiky):
    seconds, values = spiky
    cleaned, count, pct = despike_channel(seconds, values)
    assert count >= 2
    assert np.isnan(cleaned[50])


def test_despike_series_skips_absent_channels(spiky):
    seconds, values = spiky
    series = TimeSeries(timestamps=seconds, channels={"Uz": values, "Ts": np.full(500, 20.0)})
    cleaned, results = despike_series(series, channels=["Uz", "CO2"])
    assert set(results) == {"Uz"}
    assert np.isnan(cleaned.channel("Uz")[50])
    np.testing.assert_array_equal(cleaned.channel("Ts"), series.channel("Ts"))
