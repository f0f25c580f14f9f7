"""
Configuration management for scan-alignment.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, Any, Dict

from pydantic import BaseModel, Field, ValidationError
import yaml


# -----------------------
# Typed config structures
# -----------------------


class CoarseRegistrationConfig(BaseModel):
    enabled: bool = Field(default=False)
    method: Literal["centroid", "pca", "none"] = Field(default="centroid")


class ICPConfig(BaseModel):
    max_iterations: int = Field(default=50, gt=0)
    convergence_translation_epsilon: float = Field(
        default=0.005,
        ge=0.0,
        description="Translation step (meters) below which ICP is considered converged",
    )
    convergence_rotation_epsilon_deg: float = Field(
        default=0.1,
        ge=0.0,
        description="Rotation step (degrees) below which ICP is considered converged",
    )
    inlier_distance: float = Field(
        default=0.01,
        ge=0.0,
        description="Per-axis distance (meters) for a point to count as aligned in the convergence score",
    )
    in_place: bool = Field(
        default=False,
        description="Mutate the caller's moving points instead of a working copy",
    )
    coarse: CoarseRegistrationConfig = Field(default_factory=CoarseRegistrationConfig)


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    icp: ICPConfig = Field(default_factory=ICPConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/scan_alignment/utils/config.py
    parents sequence:
      0 -> .../src/scan_alignment/utils
      1 -> .../src/scan_alignment
      2 -> .../src
      3 -> repo_root
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}")
