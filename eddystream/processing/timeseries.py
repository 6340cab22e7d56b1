"""
Time Series Container
=====================
Shared in-memory representation for high-frequency sonic/gas analyzer data:
one timestamp axis plus named float channels (NaN = missing value).
Also reads delimited text files into that representation.
"""

import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from dataclasses import dataclass, field


def timestamps_to_seconds(timestamps: np.ndarray) -> np.ndarray:
    """
    Convert a timestamp axis to float seconds.

    datetime64 axes are expressed relative to their first element; numeric
    axes are assumed to already be in seconds and are returned as floats.

    Args:
        timestamps: 1-D array of datetime64 values or seconds

    Returns:
        Float array of seconds
    """
    ts = np.asarray(timestamps)
    if np.issubdtype(ts.dtype, np.datetime64):
        if ts.size == 0:
            return np.array([], dtype=float)
        return (ts - ts[0]) / np.timedelta64(1, 's')
    return ts.astype(float)


@dataclass
class TimeSeries:
    """Named channels sampled on one shared, strictly increasing time axis."""
    timestamps: np.ndarray = field(repr=False)
    channels: Dict[str, np.ndarray] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        ts = np.asarray(self.timestamps)
        if ts.dtype == object:
            # Python datetimes
            ts = ts.astype('datetime64[ns]')
        if ts.ndim != 1:
            raise ValueError(f"Timestamps must be one-dimensional, got shape {ts.shape}")

        channels: Dict[str, np.ndarray] = {}
        for name, values in self.channels.items():
            arr = np.asarray(values, dtype=float)
            if arr.shape != ts.shape:
                raise ValueError(
                    f"Channel '{name}' has {arr.size} samples, expected {ts.size}"
                )
            channels[name] = arr

        if ts.size >= 2 and np.any(np.diff(timestamps_to_seconds(ts)) <= 0):
            raise ValueError("Timestamps must be strictly increasing")

        self.timestamps = ts
        self.channels = channels

    def __len__(self) -> int:
        return int(self.timestamps.size)

    def __contains__(self, name: str) -> bool:
        return name in self.channels

    def __repr__(self):
        return f"TimeSeries(samples={len(self)}, channels={self.names})"

    @property
    def names(self) -> List[str]:
        return list(self.channels.keys())

    def channel(self, name: str) -> np.ndarray:
        """Return the values of one channel (KeyError if absent)."""
        return self.channels[name]

    def seconds(self) -> np.ndarray:
        """Timestamp axis as float seconds."""
        return timestamps_to_seconds(self.timestamps)

    def with_channels(self, updates: Dict[str, np.ndarray]) -> "TimeSeries":
        """Return a new series with some channels replaced or added."""
        channels = dict(self.channels)
        channels.update(updates)
        return TimeSeries(timestamps=self.timestamps, channels=channels)

    def select(self, names: Iterable[str]) -> "TimeSeries":
        """Return a new series holding only the given channels."""
        return TimeSeries(
            timestamps=self.timestamps,
            channels={name: self.channels[name] for name in names}
        )

    def copy(self) -> "TimeSeries":
        """Deep copy: timestamps and every channel array."""
        return TimeSeries(
            timestamps=self.timestamps.copy(),
            channels={name: values.copy() for name, values in self.channels.items()}
        )


def read_series(
    filepath: Union[str, Path],
    delimiter: str = ",",
    time_column: Optional[str] = None
) -> TimeSeries:
    """
    Read a delimited file with a header row into a TimeSeries.

    Args:
        filepath: Input path
        delimiter: Column separator
        time_column: Timestamp column (default: first column). Numeric
                     columns are taken as seconds, anything else is parsed
                     as date/time and converted to naive UTC.

    Returns:
        TimeSeries with every other column as a float channel; empty cells
        and NaN become missing values
    """
    frame = pd.read_csv(filepath, sep=delimiter, na_values=["", "NaN"], skipinitialspace=True)
    frame.columns = [str(c).strip() for c in frame.columns]
    time_column = time_column or frame.columns[0]

    times = frame[time_column]
    if pd.api.types.is_numeric_dtype(times):
        timestamps = times.to_numpy(dtype=float)
    else:
        timestamps = pd.to_datetime(times, utc=True).dt.tz_convert(None).to_numpy()

    channels = {
        name: frame[name].to_numpy(dtype=float)
        for name in frame.columns if name != time_column
    }
    return TimeSeries(timestamps=timestamps, channels=channels)
