"""Tests for settings defaults and INI overrides."""

from pathlib import Path

import pytest

from tea_config import Config, load_config


def test_load_config_without_file_returns_defaults() -> None:
    config = load_config()
    assert config.threshold_criterion == "max_sens_spec"
    assert config.feature_names[-2:] == ["ndvi", "ndwi"]


def test_load_config_overrides_and_resolves_paths(tmp_path: Path) -> None:
    ini = tmp_path / "run.ini"
    ini.write_text(
        "[tea]\n"
        "image_path = imagery/scene.tif\n"
        "band_names = red, nir\n"
        "indices = ndvi\n"
        "replicates = 5\n"
        "test_fraction = 0.25\n"
        "max_features = 0.5\n"
    )
    config = load_config(ini)
    assert config.image_path == (tmp_path / "imagery/scene.tif").resolve()
    assert config.band_names == ["red", "nir"]
    assert config.feature_names == ["red", "nir", "ndvi"]
    assert config.replicates == 5
    assert config.test_fraction == 0.25
    assert config.max_features == 0.5


def test_load_config_rejects_unknown_key(tmp_path: Path) -> None:
    ini = tmp_path / "bad.ini"
    ini.write_text("[tea]\nn_trees = 10\n")
    with pytest.raises(ValueError, match="n_trees"):
        load_config(ini)


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.ini")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"test_fraction": 1.0},
        {"replicates": 0},
        {"threshold_criterion": "youden"},
        {"indices": ["evi"]},
        {"sampling": "grid"},
    ],
)
def test_config_rejects_invalid_values(kwargs) -> None:
    with pytest.raises(ValueError):
        Config(**kwargs)


def test_log_file_defaults_to_none_and_resolves_from_ini(tmp_path: Path) -> None:
    assert Config().log_file is None
    ini = tmp_path / "log.ini"
    ini.write_text("[tea]\nlog_file = logs/tea.log\n")
    assert load_config(ini).log_file == (tmp_path / "logs/tea.log").resolve()
