"""
MRD Statistics Export
=====================
Per-scale median and interquartile range across blocks, and the plain
delimited `_mrd.dat` export used by the run scripts.
"""

import numpy as np
import pandas as pd
from pathlib import Path
from typing import Union
from dataclasses import dataclass, field

from eddystream.processing.mrd import MRDResult


@dataclass(frozen=True, eq=False)
class ScaleSummary:
    """Median and quartiles of the MRD mean per scale."""
    scales: np.ndarray = field(repr=False)
    median: np.ndarray = field(repr=False)
    q25: np.ndarray = field(repr=False)
    q75: np.ndarray = field(repr=False)

    def rows(self):
        """Iterate (scale_s, median, q25, q75) tuples."""
        return zip(self.scales, self.median, self.q25, self.q75)

    def to_frame(self) -> pd.DataFrame:
        """One row per scale: scale_s, median, q25, q75."""
        return pd.DataFrame({
            "scale_s": self.scales,
            "median": self.median,
            "q25": self.q25,
            "q75": self.q75,
        })


def summarize_scales(result: MRDResult) -> ScaleSummary:
    """
    Summarize the MRD mean matrix across blocks, ignoring NaN.

    Scales without any finite block value get NaN statistics.
    """
    n_scales = result.mean.shape[0]
    median = np.full(n_scales, np.nan)
    q25 = np.full(n_scales, np.nan)
    q75 = np.full(n_scales, np.nan)

    for i in range(n_scales):
        row = result.mean[i]
        values = row[~np.isnan(row)]
        if values.size == 0:
            continue
        median[i] = np.median(values)
        q25[i], q75[i] = np.quantile(values, [0.25, 0.75])

    return ScaleSummary(scales=result.scales.copy(), median=median, q25=q25, q75=q75)


def write_mrd_summary(
    result: MRDResult,
    filepath: Union[str, Path],
    delimiter: str = ","
) -> Path:
    """
    Write the per-scale summary as a delimited text file.

    Args:
        result: MRD result to summarize
        filepath: Output path
        delimiter: Column separator

    Returns:
        The written path
    """
    path = Path(filepath)
    summarize_scales(result).to_frame().to_csv(path, sep=delimiter, index=False, na_rep="NaN")
    return path
