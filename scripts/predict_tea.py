# -*- coding: utf-8 -*-
"""
created on: 2026-09-26
use:        predict tea probability and binary tea map over the AOI
"""

# import packages =============================================================

import argparse
import numpy as np
import matplotlib.pyplot as plt

from loguru import logger
from matplotlib.colors import ListedColormap

import tea_utils

from tea_config import load_config
from train_model import load_model
from calculate_indices import prepare_stack

CLASS_NODATA = 255

# define functions ============================================================

def predict_probability(model, stack):
    """
    function to predict tea probability for every valid pixel; invalid
    pixels are NaN
    """
    if stack.shape[0] != len(model.feature_names):
        raise ValueError(f"stack has {stack.shape[0]} layers, model expects "
                         f"{len(model.feature_names)} ({model.feature_names})")

    # flatten stack and get valid pixels mask:
    flat = tea_utils.flatten_stack(stack)
    valid = tea_utils.valid_pixel_mask(stack).ravel()

    # create array of NaN and fill with valid pixel predictions:
    out_flat = np.full(flat.shape[0], np.nan, dtype=np.float32)
    if valid.any():
        out_flat[valid] = model.predict_proba(flat[valid])
    logger.info(f"Predicted {int(valid.sum())} of {valid.size} pixels")

    # reshape to prediction map:
    return out_flat.reshape(stack.shape[1:])


def classify(probability, threshold):
    """
    function to turn probabilities into tea (1) / non-tea (0), 255 = nodata
    """
    out = np.full(probability.shape, CLASS_NODATA, dtype=np.uint8)
    valid = np.isfinite(probability)
    out[valid] = (probability[valid] >= threshold).astype(np.uint8)
    return out


def plot_maps(probability, binary, threshold, path=None):
    fig, axes = plt.subplots(1, 2, figsize=(11, 5))
    im = axes[0].imshow(probability, cmap="YlGn", vmin=0, vmax=1)
    fig.colorbar(im, ax=axes[0], shrink=0.7, label="P(tea)")
    axes[0].set_title("Tea probability")
    axes[1].imshow(np.ma.masked_equal(binary, CLASS_NODATA),
                   cmap=ListedColormap(["lightgrey", "darkgreen"]), vmin=0, vmax=1)
    axes[1].set_title(f"Tea (threshold = {threshold:.2f})")
    for ax in axes:
        ax.set_axis_off()
    fig.tight_layout()
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=150)
        plt.close(fig)
    return fig

# run =========================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Predict the tea probability and binary maps")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    model = load_model(config.output_dir / "tea_rf.pkl")
    stack, _, profile = prepare_stack(config)

    probability = predict_probability(model, stack)
    binary = classify(probability, model.threshold)

    # write to disk:
    tea_utils.write_raster(config.output_dir / "tea_probability.tif", probability,
                           profile, dtype="float32", nodata=np.nan)
    tea_utils.write_raster(config.output_dir / "tea_binary.tif", binary,
                           profile, dtype="uint8", nodata=CLASS_NODATA)

    # display map:
    plot_maps(probability, binary, model.threshold, config.output_dir / "figures/tea_maps.png")

    n_tea = int(np.sum(binary == 1))
    print(f"Tea pixels: {n_tea} (threshold {model.threshold:.3f})")


if __name__ == "__main__":
    main()
