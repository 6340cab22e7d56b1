"""
Pydantic Schemas for API
========================
Request and response models for FastAPI endpoints.
Missing values travel as JSON null and map to NaN internally.
"""

from typing import List, Optional, Dict
from datetime import datetime
from pydantic import BaseModel, Field


# =============================================================================
# Base Models
# =============================================================================

class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: datetime
    version: str = "1.0.0"


# =============================================================================
# MRD Models
# =============================================================================

class MRDRequest(BaseModel):
    """Series plus optional MRD parameters (unset ones use the configured defaults)."""
    timestamps: List[float] = Field(description="Sample times in seconds, strictly increasing")
    channels: Dict[str, List[Optional[float]]] = Field(
        description="Channel name -> values; null marks a missing sample"
    )

    M: Optional[int] = Field(default=None, ge=1, le=24)
    Mx: Optional[int] = Field(default=None, ge=0)
    shift: Optional[int] = Field(default=None, ge=1)
    a: Optional[str] = None
    b: Optional[str] = None
    gap_threshold: Optional[float] = Field(default=None, gt=0)
    normalize: Optional[bool] = None
    regular_grid: Optional[bool] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "timestamps": [0.0, 0.1, 0.2, 0.3],
                "channels": {"Uz": [0.1, -0.2, None, 0.05], "Ts": [20.1, 20.0, 20.2, 20.1]},
                "M": 2,
                "shift": 1,
            }
        }
    }


class MRDResponse(BaseModel):
    """Decomposition matrices; rows are scales, columns are blocks."""
    scales: List[float]
    mean: List[List[Optional[float]]]
    std: List[List[Optional[float]]]
    block_times: List[float]
    block_starts: List[int]
    valid: List[bool]
    sampling_period: float
    warnings: List[str] = []


class ScaleSummaryRow(BaseModel):
    scale_s: float
    median: Optional[float] = None
    q25: Optional[float] = None
    q75: Optional[float] = None


class ScaleSummaryResponse(BaseModel):
    rows: List[ScaleSummaryRow]
    nblocks: int
    valid_blocks: int
    warnings: List[str] = []
