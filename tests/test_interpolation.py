import numpy as np
import pytest

from eddystream.processing.interpolation import GapFiller, fill_gaps
from eddystream.processing.timeseries import TimeSeries

nan = np.nan


def test_find_gap_runs():
    runs = GapFiller.find_gap_runs(np.array([nan, 1.0, nan, nan, 2.0, nan]))
    assert runs == [(0, 1), (2, 4), (5, 6)]


def test_linear_fill():
    seconds = np.arange(6, dtype=float)
    filled, n = GapFiller().fill_channel(seconds, np.array([0.0, 1.0, nan, nan, 4.0, 5.0]))
    np.testing.assert_allclose(filled, [0, 1, 2, 3, 4, 5])
    assert n == 2


def test_fill_uses_time_axis():
    seconds = np.array([0.0, 1.0, 3.0])
    filled, _ = GapFiller().fill_channel(seconds, np.array([0.0, nan, 3.0]))
    assert filled[1] == pytest.approx(1.0)


def test_long_gap_left_missing():
    values = np.array([0.0] + [nan] * 4 + [5.0])
    filled, n = GapFiller(max_gap_size=3).fill_channel(np.arange(6.0), values)
    assert np.isnan(filled[1:5]).all()
    assert n == 0


def test_edge_gap_takes_neighbour_value():
    filled, n = GapFiller().fill_channel(np.arange(4.0), np.array([nan, nan, 2.0, 3.0]))
    np.testing.assert_allclose(filled, [2.0, 2.0, 2.0, 3.0])
    assert n == 2


@pytest.mark.parametrize("method", ["linear", "quadratic", "cubic"])
def test_edge_gap_is_flat_for_every_method(method):
    seconds = np.arange(6, dtype=float)
    leading, _ = GapFiller(method=method).fill_channel(seconds, np.array([nan, nan, 3.0, 4.0, 5.0, 6.0]))
    np.testing.assert_allclose(leading[:2], [3.0, 3.0])

    trailing, _ = GapFiller(method=method).fill_channel(seconds, np.array([1.0, 2.0, 3.0, 4.0, nan, nan]))
    np.testing.assert_allclose(trailing[4:], [4.0, 4.0])


def test_all_missing_left_alone():
    filled, n = GapFiller().fill_channel(np.arange(3.0), np.full(3, nan))
    assert np.isnan(filled).all()
    assert n == 0


def test_cubic_fill_reproduces_polynomial():
    seconds = np.arange(8, dtype=float)
    values = seconds ** 3
    values[3:5] = nan
    filled, _ = GapFiller(method='cubic').fill_channel(seconds, values)
    np.testing.assert_allclose(filled[3:5], [27.0, 64.0])


def test_quadratic_falls_back_to_linear_with_few_neighbours():
    seconds = np.arange(3, dtype=float)
    filled, _ = GapFiller(method='quadratic').fill_channel(seconds, np.array([0.0, nan, 2.0]))
    assert filled[1] == pytest.approx(1.0)


def test_input_not_modified():
    values = np.array([0.0, nan, 2.0])
    GapFiller().fill_channel(np.arange(3.0), values)
    assert np.isnan(values[1])


def test_unknown_method():
    with pytest.raises(ValueError):
        GapFiller(method='spline')


def test_apply_selected_variables():
    series = TimeSeries(
        timestamps=np.arange(3) * 0.1,
        channels={"Uz": [0.0, nan, 2.0], "Ts": [0.0, nan, 2.0]}
    )
    filled, counts = GapFiller(variables=["Uz", "CO2"]).apply(series)
    assert counts == {"Uz": 1}
    assert filled.channel("Uz")[1] == pytest.approx(1.0)
    assert np.isnan(filled.channel("Ts")[1])


def test_fill_gaps_convenience():
    series = TimeSeries(timestamps=np.arange(3) * 1.0, channels={"Ts": [1.0, nan, 3.0]})
    assert fill_gaps(series).channel("Ts")[1] == pytest.approx(2.0)
