"""
EddyStream Configuration Module
===============================
Handles environment variables for the processing pipeline, the MRD
defaults and the API. Values come from the environment or a .env file.
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

from eddystream.processing.mrd import MRDConfig

# Load .env file if present
load_dotenv()

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass
class MRDSettings:
    """Default MRD parameters."""
    M: int = 11
    Mx: int = 0
    shift: int = 256
    a: str = "Uz"
    b: str = "Ts"
    gap_threshold: float = 10.0
    normalize: bool = False
    regular_grid: bool = False

    def to_mrd_config(self, **overrides) -> MRDConfig:
        """Build a validated MRDConfig, with optional per-call overrides."""
        params = {
            "M": self.M,
            "Mx": self.Mx,
            "shift": self.shift,
            "a": self.a,
            "b": self.b,
            "gap_threshold": self.gap_threshold,
            "normalize": self.normalize,
            "regular_grid": self.regular_grid,
        }
        params.update({k: v for k, v in overrides.items() if v is not None})
        return MRDConfig(**params)


@dataclass
class PipelineSettings:
    """Cleaning pipeline parameters."""
    despike_threshold: float = 3.5
    despike_window: Optional[int] = None
    max_gap_size: int = 10
    rotation_block_minutes: float = 30.0
    continuity_step_ms: Optional[int] = None  # None = leave the time axis alone
    continuity_max_gap_minutes: float = 5.0
    sensor: Optional[str] = None  # "csat3" or "irgason" enables diagnostics masking


@dataclass
class Config:
    """Main application configuration."""
    mrd: MRDSettings = field(default_factory=MRDSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"


def load_config() -> Config:
    """Load configuration from environment variables (.env in development)."""
    mrd = MRDSettings(
        M=int(os.getenv("EDDY_MRD_M", "11")),
        Mx=int(os.getenv("EDDY_MRD_MX", "0")),
        shift=int(os.getenv("EDDY_MRD_SHIFT", "256")),
        a=os.getenv("EDDY_MRD_A", "Uz"),
        b=os.getenv("EDDY_MRD_B", "Ts"),
        gap_threshold=float(os.getenv("EDDY_MRD_GAP_THRESHOLD", "10.0")),
        normalize=_env_bool("EDDY_MRD_NORMALIZE", False),
        regular_grid=_env_bool("EDDY_MRD_REGULAR_GRID", False),
    )
    pipeline = PipelineSettings(
        despike_threshold=float(os.getenv("EDDY_DESPIKE_THRESHOLD", "3.5")),
        despike_window=_env_optional_int("EDDY_DESPIKE_WINDOW"),
        max_gap_size=int(os.getenv("EDDY_MAX_GAP_SIZE", "10")),
        rotation_block_minutes=float(os.getenv("EDDY_ROTATION_BLOCK_MINUTES", "30.0")),
        continuity_step_ms=_env_optional_int("EDDY_CONTINUITY_STEP_MS"),
        continuity_max_gap_minutes=float(os.getenv("EDDY_CONTINUITY_MAX_GAP_MINUTES", "5.0")),
        sensor=os.getenv("EDDY_SENSOR") or None,
    )

    return Config(
        mrd=mrd,
        pipeline=pipeline,
        api_host=os.getenv("API_HOST", "0.0.0.0"),
        api_port=int(os.getenv("API_PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the application configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None


if __name__ == "__main__":
    # Test configuration loading
    config = get_config()
    print("Configuration loaded successfully!")
    print(f"  MRD: M={config.mrd.M}, shift={config.mrd.shift}, a={config.mrd.a}, b={config.mrd.b}")
    print(f"  Pipeline: despike k={config.pipeline.despike_threshold}, max gap={config.pipeline.max_gap_size}")
    print(f"  API: {config.api_host}:{config.api_port}")
