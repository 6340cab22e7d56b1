"""
Sonic Anemometer / Gas Analyzer Simulator
=========================================
Synthetic high-frequency eddy covariance data for tests and demos.
Generates Ux, Uy, Uz, Ts, CO2, H2O with correlated turbulent eddies,
sensor noise, occasional spikes and dropouts.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from eddystream.processing.timeseries import TimeSeries


@dataclass
class SonicRunConfiguration:
    """Configuration for a simulated measurement period."""

    # Period
    duration_s: float = 1800.0
    sample_rate_hz: float = 20.0
    start_time: str = "2024-06-01T12:00:00"

    # Mean flow
    mean_wind_speed: float = 3.0       # m/s
    wind_direction_deg: float = 30.0   # direction in the sonic frame
    tilt_deg: float = 2.0              # sensor tilt against the streamline

    # Scalars
    mean_temperature: float = 20.0     # °C
    mean_co2: float = 16.0             # mmol/m³
    mean_h2o: float = 600.0            # mmol/m³

    # Turbulence
    turbulence_intensity: float = 0.3  # sigma_w / U
    heat_flux_coupling: float = 0.6    # correlation of w' and T'
    eddy_periods_s: tuple = (5.0, 30.0, 120.0)

    # Sensor artefacts
    noise_std: float = 0.02
    spike_probability: float = 0.001
    dropout_probability: float = 0.0005

    seed: Optional[int] = None


class SonicSimulator:
    """Generates a TimeSeries from a SonicRunConfiguration."""

    def __init__(self, config: Optional[SonicRunConfiguration] = None):
        self.config = config or SonicRunConfiguration()
        self.rng = np.random.default_rng(self.config.seed)

    @property
    def num_samples(self) -> int:
        return int(round(self.config.duration_s * self.config.sample_rate_hz))

    def _eddies(self, t: np.ndarray) -> np.ndarray:
        """Sum of random-phase oscillations at the configured eddy periods, unit variance."""
        signal = np.zeros_like(t)
        for period in self.config.eddy_periods_s:
            phase = self.rng.uniform(0, 2 * np.pi)
            amplitude = self.rng.uniform(0.5, 1.0)
            signal += amplitude * np.sin(2 * np.pi * t / period + phase)
        std = signal.std()
        return signal / std if std > 0 else signal

    def _turbulence(self, t: np.ndarray) -> np.ndarray:
        """Eddies plus white noise, unit variance."""
        signal = self._eddies(t) + 0.5 * self.rng.standard_normal(t.size)
        return signal / signal.std()

    def _inject_anomalies(self, values: np.ndarray, scale: float) -> np.ndarray:
        """Occasional spikes and dropouts for QC testing."""
        r = self.rng.random(values.size)
        spikes = r < self.config.spike_probability
        values[spikes] += self.rng.choice([-1.0, 1.0], spikes.sum()) * self.rng.uniform(8, 15, spikes.sum()) * scale

        dropouts = self.rng.random(values.size) < self.config.dropout_probability
        values[dropouts] = np.nan
        return values

    def generate(self) -> TimeSeries:
        """Generate the full series."""
        cfg = self.config
        n = self.num_samples
        t = np.arange(n) / cfg.sample_rate_hz

        sigma = cfg.turbulence_intensity * cfg.mean_wind_speed
        u_turb = self._turbulence(t) * sigma * 1.5
        v_turb = self._turbulence(t) * sigma * 1.2
        w_turb = self._turbulence(t) * sigma

        # Temperature fluctuations partially coupled to w
        rho = cfg.heat_flux_coupling
        t_turb = 0.3 * (rho * w_turb / sigma + np.sqrt(1 - rho ** 2) * self.rng.standard_normal(n))

        # Streamline frame -> tilted, rotated sonic frame
        direction = np.radians(cfg.wind_direction_deg)
        tilt = np.radians(cfg.tilt_deg)
        u_s = cfg.mean_wind_speed + u_turb
        u_t = u_s * np.cos(tilt) - w_turb * np.sin(tilt)
        w = u_s * np.sin(tilt) + w_turb * np.cos(tilt)
        ux = u_t * np.cos(direction) - v_turb * np.sin(direction)
        uy = u_t * np.sin(direction) + v_turb * np.cos(direction)

        ts = cfg.mean_temperature + t_turb
        co2 = cfg.mean_co2 - 0.2 * t_turb / 0.3 + 0.1 * self._turbulence(t)
        h2o = cfg.mean_h2o + 10.0 * t_turb / 0.3 + 5.0 * self._turbulence(t)

        channels = {}
        for name, values, scale in (
            ("Ux", ux, sigma), ("Uy", uy, sigma), ("Uz", w, sigma),
            ("Ts", ts, 0.3), ("CO2", co2, 0.2), ("H2O", h2o, 10.0),
        ):
            noisy = values + cfg.noise_std * scale * self.rng.standard_normal(n)
            channels[name] = self._inject_anomalies(noisy, scale)

        start = np.datetime64(cfg.start_time, 'ns')
        step_ns = int(round(1e9 / cfg.sample_rate_hz))
        timestamps = start + np.arange(n) * np.timedelta64(step_ns, 'ns')

        return TimeSeries(timestamps=timestamps, channels=channels)


def inject_time_gap(series: TimeSeries, index: int, seconds: float) -> TimeSeries:
    """
    Shift all timestamps after `index` by `seconds`, creating a gap between
    samples `index` and `index + 1`.
    """
    if not 0 <= index < len(series) - 1:
        raise IndexError(f"Gap index must be in 0..{len(series) - 2}, got {index}")

    timestamps = series.timestamps.copy()
    if np.issubdtype(timestamps.dtype, np.datetime64):
        timestamps[index + 1:] += np.timedelta64(int(round(seconds * 1e9)), 'ns')
    else:
        timestamps = timestamps.astype(float)
        timestamps[index + 1:] += seconds

    return TimeSeries(
        timestamps=timestamps,
        channels={name: values.copy() for name, values in series.channels.items()}
    )


def main():
    """Test the simulator."""
    print("Sonic Anemometer Simulator")
    print("=" * 60)

    config = SonicRunConfiguration(duration_s=600.0, sample_rate_hz=10.0, seed=1)
    series = SonicSimulator(config).generate()

    print(f"\nConfiguration:")
    print(f"  Duration: {config.duration_s}s at {config.sample_rate_hz} Hz")
    print(f"  Mean wind: {config.mean_wind_speed} m/s from {config.wind_direction_deg} deg")

    print(f"\nGenerated {len(series):,} samples")
    for name in series.names:
        values = series.channel(name)
        print(f"  {name:>4}: mean={np.nanmean(values):9.3f}  std={np.nanstd(values):7.3f}  "
              f"missing={int(np.isnan(values).sum())}")

    w = series.channel("Uz")
    ts = series.channel("Ts")
    valid = ~np.isnan(w) & ~np.isnan(ts)
    cov = np.mean((w[valid] - w[valid].mean()) * (ts[valid] - ts[valid].mean()))
    print(f"\n  cov(w, Ts) = {cov:.4f} K m/s")


if __name__ == "__main__":
    main()
