# -*- coding: utf-8 -*-
"""
created on: 2026-09-21
use:        settings for the Kericho tea mapping workflow
"""

# import packages =============================================================

import configparser

from typing import Optional
from pathlib import Path
from dataclasses import dataclass, field, fields, replace

# define defaults =============================================================

base_path = Path(__file__).resolve().parent.parent

BANDS = ["blue", "green", "red", "nir", "swir1", "swir2"]
INDICES = ["ndvi", "ndwi", "ndbi", "savi"]
SAMPLING_MODES = ["pixels", "points"]
THRESHOLD_CRITERIA = ["max_sens_spec", "equal_sens_spec", "max_kappa", "fixed"]


@dataclass
class Config:
    # input data:
    aoi_path: Path = base_path / "data/boundaries/kericho.gpkg"
    training_path: Path = base_path / "data/training/training_polygons.gpkg"
    image_path: Path = base_path / "data/imagery/sentinel2_kericho.tif"
    output_dir: Path = base_path / "data/output"

    # labels and bands:
    class_field: str = "class"
    tea_value: str = "tea"
    band_names: list = field(default_factory=lambda: list(BANDS))
    indices: list = field(default_factory=lambda: ["ndvi", "ndwi"])

    # sampling:
    sampling: str = "pixels"
    n_points: int = 300

    # random forest:
    n_estimators: int = 500
    max_features: str = "sqrt"
    min_samples_leaf: int = 1
    replicates: int = 3
    test_fraction: float = 0.3
    cv_folds: int = 5
    threshold_criterion: str = "max_sens_spec"
    seed: int = 42

    # logging:
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def __post_init__(self):
        validate(self)

    @property
    def feature_names(self):
        return list(self.band_names) + list(self.indices)


# define functions ============================================================

def validate(config):
    """
    function to check settings that would otherwise fail deep inside a step
    """
    if not 0 < config.test_fraction < 1:
        raise ValueError(f"test_fraction must be in (0, 1), got {config.test_fraction}")
    if config.replicates < 1:
        raise ValueError(f"replicates must be >= 1, got {config.replicates}")
    if config.cv_folds < 2:
        raise ValueError(f"cv_folds must be >= 2, got {config.cv_folds}")
    if config.n_points < 1:
        raise ValueError(f"n_points must be >= 1, got {config.n_points}")
    if config.sampling not in SAMPLING_MODES:
        raise ValueError(f"unknown sampling mode {config.sampling!r}, "
                         f"expected one of {SAMPLING_MODES}")
    if config.threshold_criterion not in THRESHOLD_CRITERIA:
        raise ValueError(f"unknown threshold criterion {config.threshold_criterion!r}, "
                         f"expected one of {THRESHOLD_CRITERIA}")
    unknown = [i for i in config.indices if i not in INDICES]
    if unknown:
        raise ValueError(f"unknown spectral indices {unknown}, expected any of {INDICES}")
    if len(set(config.band_names)) != len(config.band_names):
        raise ValueError(f"duplicate band names in {config.band_names}")


def _parse_value(name, raw, default, ini_dir):
    """
    function to convert an INI string to the type of the default value
    """
    if name in ("aoi_path", "training_path", "image_path", "output_dir", "log_file"):
        path = Path(raw).expanduser()
        return path if path.is_absolute() else (ini_dir / path).resolve()
    if name in ("band_names", "indices"):
        return [item.strip() for item in raw.split(",") if item.strip()]
    if name == "max_features":
        # "sqrt", "log2" or a number:
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            return raw
    if isinstance(default, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def load_config(path=None):
    """
    function to load settings; defaults are used for anything the INI file
    (section [tea]) does not set
    """
    config = Config()
    if path is None:
        return config

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)
    if "tea" not in parser:
        raise ValueError(f"config file {path} has no [tea] section")

    known = {f.name: getattr(config, f.name) for f in fields(Config)}
    overrides = {}

    for name, raw in parser["tea"].items():
        if name not in known:
            raise ValueError(f"unknown setting {name!r} in {path}")
        overrides[name] = _parse_value(name, raw, known[name], path.parent)

    return replace(config, **overrides)
