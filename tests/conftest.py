import numpy as np
import pytest

from eddystream.config import reset_config
from eddystream.processing.timeseries import TimeSeries


def build_series(n: int, dt_ms: int = 100, start: str = "2024-06-01T00:00:00") -> TimeSeries:
    """Two smooth, correlated channels Uz and Ts on a regular datetime axis."""
    x = np.arange(n, dtype=float)
    uz = 0.5 * np.sin(2 * np.pi * x / 200) + 0.05 * np.sin(2 * np.pi * x / 50)
    ts = 0.8 * np.cos(2 * np.pi * x / 180) + 0.001 * x
    timestamps = np.datetime64(start, 'ns') + np.arange(n) * np.timedelta64(dt_ms, 'ms')
    return TimeSeries(timestamps=timestamps, channels={"Uz": uz, "Ts": ts})


@pytest.fixture
def series_4096():
    return build_series(4096)


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()
