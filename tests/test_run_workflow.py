"""End-to-end tests for the tea mapping workflow and step scripts."""

import os
import subprocess
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import rasterio

import area_of_applicability
import calculate_indices
import create_training_data
import evaluate_model
import predict_tea
import tea_area
import train_model
from run_workflow import run


def _write_ini(config, path: Path) -> Path:
    path.write_text(
        "[tea]\n"
        f"aoi_path = {config.aoi_path}\n"
        f"training_path = {config.training_path}\n"
        f"image_path = {config.image_path}\n"
        f"output_dir = {config.output_dir}\n"
        "n_estimators = 25\n"
        "replicates = 2\n"
        "cv_folds = 3\n"
        "log_level = WARNING\n"
    )
    return path


def test_run_writes_every_output(config) -> None:
    summary = run(config)
    out = config.output_dir

    for name in (
        "predictors.tif",
        "train_dataset.csv",
        "tea_rf.pkl",
        "evaluation.csv",
        "variable_importance.csv",
        "tea_di.tif",
        "tea_aoa.tif",
        "tea_probability.tif",
        "tea_binary.tif",
        "tea_area.csv",
        "tea_area_aoa.csv",
        "figures/roc.png",
        "figures/importance.png",
        "figures/aoa.png",
        "figures/tea_maps.png",
    ):
        assert (out / name).exists(), name

    assert summary["auc"] > 0.9
    assert 0 <= summary["threshold"] <= 1
    # roughly half of the AOI is tea, each pixel is 0.01 ha
    assert 4 < summary["tea_area_ha"] < 9
    assert 4 < summary["non_tea_area_ha"] < 9

    with rasterio.open(out / "tea_binary.tif") as ds:
        binary = ds.read(1)
        assert ds.nodata == 255
    assert set(np.unique(binary)) <= {0, 1, 255}


def test_step_scripts_chain_through_files(config, tmp_path: Path) -> None:
    ini = str(_write_ini(config, tmp_path / "tea.ini"))

    calculate_indices.main(["--config", ini])
    create_training_data.main(["--config", ini])
    train_model.main(["--config", ini])
    evaluate_model.main(["--config", ini])
    area_of_applicability.main(["--config", ini])
    predict_tea.main(["--config", ini])
    tea_area.main(["--config", ini, "--within-aoa"])

    areas = pd.read_csv(config.output_dir / "tea_area.csv")
    assert areas["class"].tolist() == ["tea", "non-tea", "outside AOA"]
    model = train_model.load_model(config.output_dir / "tea_rf.pkl")
    assert 0 <= model.threshold <= 1


def test_step_scripts_run_as_separate_processes(config, tmp_path: Path) -> None:
    ini = str(_write_ini(config, tmp_path / "tea.ini"))
    scripts = Path(__file__).resolve().parents[1] / "scripts"

    for step in ("calculate_indices", "create_training_data", "train_model", "evaluate_model"):
        result = subprocess.run([sys.executable, str(scripts / f"{step}.py"), "--config", ini],
                                capture_output=True, text=True,
                                env={**os.environ, "MPLBACKEND": "Agg"})
        assert result.returncode == 0, f"{step} failed:\n{result.stderr}"

    model = train_model.load_model(config.output_dir / "tea_rf.pkl")
    assert type(model).__module__ == "train_model"
    assert (config.output_dir / "evaluation.csv").exists()
