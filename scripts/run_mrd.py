#!/usr/bin/env python3
"""
Run the MRD on a processed time series and write the per-scale summary.

Typical usage:
  python scripts/run_mrd.py data/processed.csv --output results/site_a
  python scripts/run_mrd.py --simulate 3600 --pipeline --output results/demo

Input is a delimited text file with a header row; the first column (or
`--time-column`) holds timestamps, either ISO 8601 or seconds. Empty cells
and NaN mark missing samples. Output is `<output>_mrd.dat` with the columns
scale_s, median, q25, q75.
"""

import logging
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from eddystream.config import get_config
from eddystream.processing.timeseries import read_series
from eddystream.processing.continuity import MakeContinuous
from eddystream.processing.diagnostics import DiagnosticsMask
from eddystream.processing.mrd import MRDError, decompose
from eddystream.processing.mrd_stats import summarize_scales, write_mrd_summary
from eddystream.processing.processor import FluxProcessor
from eddystream.processing.qc_engine import PhysicsBoundsCheck, QCEngine
from eddystream.processing.despiker import Despiker
from eddystream.processing.interpolation import GapFiller
from eddystream.processing.double_rotation import WindDoubleRotation
from eddystream.simulator.sonic_simulator import SonicRunConfiguration, SonicSimulator

logger = logging.getLogger("run_mrd")


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Multi-resolution decomposition of two channels")
    parser.add_argument("input", nargs="?", help="Delimited input file (omit with --simulate)")
    parser.add_argument("--output", required=True, help="Output base path; writes <output>_mrd.dat")
    parser.add_argument("--simulate", type=float, metavar="SECONDS", help="Use synthetic sonic data of this duration")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for --simulate")
    parser.add_argument("--delimiter", default=",", help="Input column separator (default ',')")
    parser.add_argument("--time-column", default=None, help="Timestamp column name (default: first column)")
    parser.add_argument("--pipeline", action="store_true", help="Run the cleaning steps before the MRD")
    parser.add_argument("-M", type=int, default=None, help="Block length exponent (2^M samples)")
    parser.add_argument("--Mx", type=int, default=None, help="Lowest retained scale exponent")
    parser.add_argument("--shift", type=int, default=None, help="Samples between block starts")
    parser.add_argument("-a", default=None, help="First channel")
    parser.add_argument("-b", default=None, help="Second channel")
    parser.add_argument("--gap-threshold", type=float, default=None, help="Largest tolerated time step (s)")
    parser.add_argument("--normalize", action="store_true", default=None, help="Normalize per block")
    parser.add_argument("--regular-grid", action="store_true", default=None, help="Keep gap blocks as NaN columns")
    args = parser.parse_args()

    config = get_config()
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.simulate is None and args.input is None:
        parser.error("either an input file or --simulate is required")

    try:
        mrd_config = config.mrd.to_mrd_config(
            M=args.M, Mx=args.Mx, shift=args.shift, a=args.a, b=args.b,
            gap_threshold=args.gap_threshold, normalize=args.normalize,
            regular_grid=args.regular_grid,
        )
    except ValueError as e:
        parser.error(str(e))

    if args.simulate is not None:
        series = SonicSimulator(SonicRunConfiguration(duration_s=args.simulate, seed=args.seed)).generate()
        logger.info("Simulated %d samples", len(series))
    else:
        series = read_series(Path(args.input), args.delimiter, args.time_column)
        logger.info("Read %d samples, channels: %s", len(series), ", ".join(series.names))

    if args.pipeline:
        settings = config.pipeline
        processor = FluxProcessor(
            bounds=PhysicsBoundsCheck(),
            despiker=Despiker(threshold=settings.despike_threshold, window_size=settings.despike_window),
            gap_filler=GapFiller(max_gap_size=settings.max_gap_size),
            rotation=WindDoubleRotation(block_duration_minutes=settings.rotation_block_minutes),
            mrd_config=None,
            qc_engine=QCEngine(),
            continuity=(
                MakeContinuous(settings.continuity_step_ms, settings.continuity_max_gap_minutes)
                if settings.continuity_step_ms else None
            ),
            diagnostics=DiagnosticsMask.for_sensor(settings.sensor) if settings.sensor else None,
        )
        processed = processor.process(series)
        series = processed.series
        if processed.qc_summary:
            print(f"  QC: {processed.qc_summary.overall_status.value.upper()} "
                  f"({processed.qc_summary.passed_checks}/{processed.qc_summary.total_checks} passed)")

    try:
        result = decompose(mrd_config, series)
    except MRDError as e:
        print(f"MRD failed: {e}", file=sys.stderr)
        return 1

    output = write_mrd_summary(result, Path(f"{args.output}_mrd.dat"))
    summary = summarize_scales(result)

    print("")
    print("MRD complete")
    print(f"  Channels: {mrd_config.a} x {mrd_config.b}")
    print(f"  Blocks: {result.nblocks} ({int(result.valid.sum())} valid)")
    print(f"  Scales: {result.scales[0]:g}s - {result.scales[-1]:g}s")
    for scale, median, q25, q75 in summary.rows():
        print(f"    {scale:10.2f}s  median={median: .4e}  IQR=[{q25: .4e}, {q75: .4e}]")
    print(f"  Written: {output}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
