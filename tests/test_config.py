"""Tests for configuration loading."""

import math
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from scan_alignment.alignment.icp import ConvergenceParameters
from scan_alignment.utils.config import load_config, AppConfig


def test_default_config_values():
    """Test that config/default.yaml carries the standard ICP settings."""
    cfg = load_config(None)

    assert cfg.icp.max_iterations == 50
    assert cfg.icp.convergence_translation_epsilon == pytest.approx(0.005)
    assert cfg.icp.convergence_rotation_epsilon_deg == pytest.approx(0.1)
    assert cfg.icp.inlier_distance == pytest.approx(0.01)
    assert cfg.icp.in_place is False
    assert cfg.icp.coarse.enabled is False
    assert cfg.icp.coarse.method in {"centroid", "pca", "none"}
    assert cfg.logging.level == "INFO"


def test_yaml_overrides(tmp_path):
    cfg_file = tmp_path / "scan.yaml"
    cfg_file.write_text(
        "icp:\n"
        "  max_iterations: 80\n"
        "  convergence_rotation_epsilon_deg: 0.5\n"
        "  coarse:\n"
        "    enabled: true\n"
        "    method: pca\n"
        "logging:\n"
        "  level: DEBUG\n",
        encoding="utf-8",
    )

    cfg = load_config(cfg_file)

    assert cfg.icp.max_iterations == 80
    assert cfg.icp.coarse.method == "pca"
    # Unspecified values keep their defaults
    assert cfg.icp.inlier_distance == pytest.approx(0.01)
    assert cfg.logging.level == "DEBUG"


def test_invalid_yaml_values_raise(tmp_path):
    cfg_file = tmp_path / "bad.yaml"
    cfg_file.write_text("icp:\n  max_iterations: 0\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(cfg_file)


def test_missing_file(tmp_path):
    missing = tmp_path / "nope.yaml"

    assert isinstance(load_config(missing), AppConfig)
    with pytest.raises(FileNotFoundError):
        load_config(missing, allow_missing=False)


def test_empty_file_gives_defaults(tmp_path):
    cfg_file = tmp_path / "empty.yaml"
    cfg_file.write_text("", encoding="utf-8")

    assert load_config(cfg_file) == AppConfig()


def test_convergence_parameters_from_config():
    cfg = AppConfig.model_validate({"icp": {"convergence_rotation_epsilon_deg": 1.0}})

    params = ConvergenceParameters.from_config(cfg.icp)

    assert params.rotation_threshold == pytest.approx(math.radians(1.0))
    assert params.max_iterations == cfg.icp.max_iterations
    assert params.translation_threshold == cfg.icp.convergence_translation_epsilon
