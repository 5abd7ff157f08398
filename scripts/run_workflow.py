# -*- coding: utf-8 -*-
"""
created on: 2026-09-27
use:        run the whole tea mapping workflow from one config
"""

# import packages =============================================================

import argparse
import numpy as np

from loguru import logger

import tea_utils

from tea_config import load_config
from calculate_indices import prepare_stack
from create_training_data import build_training_data
from train_model import train_model, save_model
from evaluate_model import evaluate, variable_importance, plot_roc, plot_importance
from area_of_applicability import AOA_NODATA, fit_aoa, aoa_raster, plot_aoa
from predict_tea import CLASS_NODATA, predict_probability, classify, plot_maps
from tea_area import class_areas

# define functions ============================================================

def run(config):
    """
    function to run every step and write all outputs to config.output_dir;
    returns a summary of the headline numbers
    """
    out = config.output_dir
    out.mkdir(parents=True, exist_ok=True)
    figures = out / "figures"

    # predictors:
    stack, names, profile = prepare_stack(config)
    tea_utils.write_raster(out / "predictors.tif", stack, profile, nodata=np.nan)

    # training data:
    polygons = tea_utils.read_vector(config.training_path)
    df = build_training_data(stack, names, profile, polygons,
                             config.class_field, config.tea_value,
                             sampling=config.sampling, n_points=config.n_points,
                             seed=config.seed)
    df.to_csv(out / "train_dataset.csv", index=False)

    # model and evaluation:
    model = train_model(df, names, config)
    table, curves = evaluate(model, df, config.threshold_criterion)
    importance = variable_importance(model, df, seed=config.seed)
    save_model(model, out / "tea_rf.pkl")

    table.to_csv(out / "evaluation.csv", index=False)
    importance.to_csv(out / "variable_importance.csv", index=False)
    plot_roc(curves, table, figures / "roc.png")
    plot_importance(importance, figures / "importance.png")

    # area of applicability:
    aoa = fit_aoa(df[names].to_numpy(), names, importance,
                  groups=df["polygon_id"] if config.sampling == "pixels" else None,
                  n_folds=config.cv_folds, seed=config.seed)
    di, aoa_mask = aoa_raster(stack, aoa)
    tea_utils.write_raster(out / "tea_di.tif", di, profile, nodata=np.nan)
    tea_utils.write_raster(out / "tea_aoa.tif", aoa_mask, profile,
                           dtype="uint8", nodata=AOA_NODATA)
    plot_aoa(di, aoa_mask, figures / "aoa.png")

    # prediction:
    probability = predict_probability(model, stack)
    binary = classify(probability, model.threshold)
    tea_utils.write_raster(out / "tea_probability.tif", probability, profile, nodata=np.nan)
    tea_utils.write_raster(out / "tea_binary.tif", binary, profile,
                           dtype="uint8", nodata=CLASS_NODATA)
    plot_maps(probability, binary, model.threshold, figures / "tea_maps.png")

    # area:
    areas = class_areas(binary, profile["transform"])
    areas_aoa = class_areas(binary, profile["transform"], aoa_mask)
    areas.to_csv(out / "tea_area.csv", index=False)
    areas_aoa.to_csv(out / "tea_area_aoa.csv", index=False)

    summary = {"auc": float(table.iloc[-1]["auc"]),
               "cv_auc": model.cv_auc,
               "oob_score": model.oob_score,
               "threshold": model.threshold,
               "aoa_threshold": aoa.threshold,
               "tea_area_ha": float(areas.loc[areas["class"] == "tea", "area_ha"].iloc[0]),
               "non_tea_area_ha": float(areas.loc[areas["class"] == "non-tea", "area_ha"].iloc[0])}
    logger.info(f"Summary: {summary}")
    return summary

# run =========================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the Kericho tea mapping workflow")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    summary = run(config)

    print(f"Model AUC (held-out): {summary['auc']*100:.2f}%")
    print(f"Tea area: {summary['tea_area_ha']:.1f} ha")


if __name__ == "__main__":
    main()
