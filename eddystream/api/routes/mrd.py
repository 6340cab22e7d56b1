"""
MRD Router
==========
Endpoints running the multi-resolution decomposition on posted series.
"""

import logging
import math
from typing import List, Optional

import numpy as np
from fastapi import APIRouter, HTTPException

from eddystream.api.schemas import (
    MRDRequest, MRDResponse, ScaleSummaryRow, ScaleSummaryResponse
)
from eddystream.config import get_config
from eddystream.processing.timeseries import TimeSeries
from eddystream.processing.mrd import (
    MRDResult, ChannelNotFoundError, InsufficientSamplesError,
    NoValidBlocksError, decompose
)
from eddystream.processing.mrd_stats import summarize_scales

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_json(values: np.ndarray) -> List[Optional[float]]:
    return [None if math.isnan(v) else float(v) for v in values]


def _run_mrd(request: MRDRequest) -> MRDResult:
    """Build the series and config from a request and decompose, mapping errors to HTTP."""
    try:
        config = get_config().mrd.to_mrd_config(
            M=request.M, Mx=request.Mx, shift=request.shift, a=request.a, b=request.b,
            gap_threshold=request.gap_threshold, normalize=request.normalize,
            regular_grid=request.regular_grid,
        )
        channels = {
            name: np.array([np.nan if v is None else v for v in values], dtype=float)
            for name, values in request.channels.items()
        }
        series = TimeSeries(timestamps=np.array(request.timestamps, dtype=float), channels=channels)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        return decompose(config, series)
    except ChannelNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InsufficientSamplesError, NoValidBlocksError) as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("", response_model=MRDResponse)
async def run_mrd(request: MRDRequest):
    """Decompose the covariance of two channels of the posted series."""
    result = _run_mrd(request)
    logger.info("MRD request: %d blocks, %d valid", result.nblocks, int(result.valid.sum()))

    return MRDResponse(
        scales=result.scales.tolist(),
        mean=[_to_json(row) for row in result.mean],
        std=[_to_json(row) for row in result.std],
        block_times=[float(t) for t in result.block_times],
        block_starts=result.block_starts.tolist(),
        valid=result.valid.tolist(),
        sampling_period=result.sampling_period,
        warnings=list(result.warnings),
    )


@router.post("/summary", response_model=ScaleSummaryResponse)
async def run_mrd_summary(request: MRDRequest):
    """Per-scale median and quartiles of the decomposition across blocks."""
    result = _run_mrd(request)
    summary = summarize_scales(result)

    rows = [
        ScaleSummaryRow(
            scale_s=float(scale),
            median=None if math.isnan(med) else float(med),
            q25=None if math.isnan(lo) else float(lo),
            q75=None if math.isnan(hi) else float(hi),
        )
        for scale, med, lo, hi in summary.rows()
    ]

    return ScaleSummaryResponse(
        rows=rows,
        nblocks=result.nblocks,
        valid_blocks=int(result.valid.sum()),
        warnings=list(result.warnings),
    )
