"""
Sensor Diagnostics Mask
=======================
Discards records the instrument itself flagged. Each rule reads one
diagnostic channel; where its value exceeds the threshold, the channels
that sensor measures are set to NaN.

Presets:
- CSAT3 sonic: diag_sonic > 63 masks Ux, Uy, Uz, Ts
- IRGASON: diag_sonic > 0 masks Ux, Uy, Uz, Ts;
  diag_gas > 0 masks CO2, H2O, T, P
"""

import logging
import numpy as np
from typing import Dict, List, Tuple
from dataclasses import dataclass

from eddystream.processing.timeseries import TimeSeries

logger = logging.getLogger(__name__)

SONIC_CHANNELS = ('Ux', 'Uy', 'Uz', 'Ts')
GAS_CHANNELS = ('CO2', 'H2O', 'T', 'P')


@dataclass(frozen=True)
class DiagnosticRule:
    """Mask `affected` channels wherever `column` > `threshold`."""
    column: str
    threshold: float
    affected: Tuple[str, ...]


class DiagnosticsMask:
    """Applies a list of diagnostic rules to a series."""

    def __init__(self, rules: List[DiagnosticRule]):
        self.rules = list(rules)

    @classmethod
    def csat3(cls, diag_sonic: int = 63) -> "DiagnosticsMask":
        """Campbell CSAT3 sonic anemometer."""
        return cls([DiagnosticRule('diag_sonic', diag_sonic, SONIC_CHANNELS)])

    @classmethod
    def irgason(cls, diag_sonic: int = 0, diag_gas: int = 0) -> "DiagnosticsMask":
        """Campbell IRGASON open-path analyzer with integrated sonic."""
        return cls([
            DiagnosticRule('diag_sonic', diag_sonic, SONIC_CHANNELS),
            DiagnosticRule('diag_gas', diag_gas, GAS_CHANNELS),
        ])

    @classmethod
    def for_sensor(cls, name: str) -> "DiagnosticsMask":
        """Preset by sensor name ('csat3' or 'irgason'), default thresholds."""
        presets = {'csat3': cls.csat3, 'irgason': cls.irgason}
        key = name.strip().lower()
        if key not in presets:
            raise ValueError(f"Unknown sensor: {name} (expected one of {sorted(presets)})")
        return presets[key]()

    def apply(self, series: TimeSeries) -> Tuple[TimeSeries, Dict[str, int]]:
        """
        Mask flagged records.

        A rule whose diagnostic channel is absent is skipped with a warning.
        NaN diagnostic values never flag a record.

        Returns:
            Tuple of (new series, {diagnostic channel: flagged records})
        """
        updates: Dict[str, np.ndarray] = {}
        counts: Dict[str, int] = {}

        for rule in self.rules:
            if rule.column not in series:
                logger.warning("Diagnostic channel %s not found, skipping", rule.column)
                continue

            flagged = series.channel(rule.column) > rule.threshold
            counts[rule.column] = int(flagged.sum())
            if not counts[rule.column]:
                continue

            logger.debug("%s flagged %d records", rule.column, counts[rule.column])
            for name in rule.affected:
                if name not in series:
                    continue
                values = updates.get(name, series.channel(name)).copy()
                values[flagged] = np.nan
                updates[name] = values

        return series.with_channels(updates), counts
