# -*- coding: utf-8 -*-
"""
created on: 2026-09-25
use:        dissimilarity index and area of applicability of the tea model

The area of applicability (AOA) is the part of the predictor space where
the model saw enough similar training data. A pixel's dissimilarity index
(DI) is its distance to the nearest training sample in the standardised,
importance-weighted predictor space, divided by the mean distance between
training samples. Pixels with a DI above the upper whisker of the
cross-validated training DI are outside the AOA.
"""

# import packages =============================================================

import argparse
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from dataclasses import dataclass
from loguru import logger
from scipy.spatial import cKDTree
from scipy.spatial.distance import pdist
from sklearn.model_selection import GroupKFold, KFold

import tea_utils

from tea_config import load_config
from calculate_indices import prepare_stack

AOA_NODATA = 255

# define functions ============================================================

@dataclass
class AOAModel:
    feature_names: list
    mean: np.ndarray
    std: np.ndarray
    weights: np.ndarray
    train_scaled: np.ndarray
    mean_distance: float
    train_di: np.ndarray
    threshold: float

    def scale(self, X):
        return scale_features(X, self.mean, self.std, self.weights)

    def dissimilarity(self, X):
        """
        function to get the DI of new samples
        """
        X = np.asarray(X, dtype=np.float64)
        if X.shape[0] == 0:
            return np.empty(0)
        tree = cKDTree(self.train_scaled)
        dist, _ = tree.query(self.scale(X), k=1)
        return dist / self.mean_distance

    def inside(self, X):
        return self.dissimilarity(X) <= self.threshold


def scale_features(X, mean, std, weights):
    """
    function to standardise predictors and multiply them by their weights;
    constant predictors become 0
    """
    safe_std = np.where(std > 0, std, 1.0)
    scaled = (np.asarray(X, dtype=np.float64) - mean) / safe_std
    scaled[:, std == 0] = 0.0
    return scaled * weights


def importance_weights(importance, feature_names):
    """
    function to line up permutation importances with the feature order
    """
    if importance is None:
        return np.ones(len(feature_names))
    lookup = importance.set_index("variable")["permutation"]
    missing = [f for f in feature_names if f not in lookup.index]
    if missing:
        raise ValueError(f"no importance for {missing}")
    weights = lookup.loc[feature_names].to_numpy(dtype=np.float64)
    if not np.any(weights > 0):
        logger.warning("All importances are zero, using equal weights")
        weights = np.ones(len(feature_names))
    return weights


def mean_pairwise_distance(scaled, max_samples=5000, seed=42):
    """
    function to get the mean distance between training samples; large
    training sets are subsampled
    """
    if scaled.shape[0] < 2:
        raise ValueError("need at least two training samples for the AOA")
    if scaled.shape[0] > max_samples:
        rng = np.random.default_rng(seed)
        scaled = scaled[rng.choice(scaled.shape[0], max_samples, replace=False)]
    return float(np.mean(pdist(scaled)))


def cv_folds(n_samples, groups=None, n_folds=5, seed=42):
    """
    function to build the folds used for the training DI; samples of the
    same polygon stay in the same fold when groups are given
    """
    indices = np.arange(n_samples)
    if groups is not None:
        groups = np.asarray(groups)
        if len(np.unique(groups)) >= n_folds:
            return [test for _, test in GroupKFold(n_splits=n_folds).split(indices, groups=groups)]
        logger.debug("Fewer groups than folds, falling back to random folds")
    n_folds = min(n_folds, n_samples)
    kf = KFold(n_splits=n_folds, shuffle=True, random_state=seed)
    return [test for _, test in kf.split(indices)]


def upper_whisker(values):
    """
    function to get the largest value within Q3 + 1.5 * IQR
    """
    values = np.asarray(values)
    values = values[np.isfinite(values)]
    q1, q3 = np.percentile(values, [25, 75])
    fence = q3 + 1.5 * (q3 - q1)
    return float(values[values <= fence].max())


def fit_aoa(X_train, feature_names, importance=None, groups=None, n_folds=5, seed=42):
    """
    function to fit the AOA from the training predictors
    """
    X_train = np.asarray(X_train, dtype=np.float64)
    mean = X_train.mean(axis=0)
    std = X_train.std(axis=0, ddof=1) if X_train.shape[0] > 1 else np.zeros(X_train.shape[1])
    weights = importance_weights(importance, feature_names)

    scaled = scale_features(X_train, mean, std, weights)
    mean_distance = mean_pairwise_distance(scaled, seed=seed)
    if mean_distance == 0:
        raise ValueError("training samples are identical in predictor space")

    # training DI: nearest neighbour outside the sample's own fold
    train_di = np.full(X_train.shape[0], np.nan)
    for test in cv_folds(X_train.shape[0], groups, n_folds, seed):
        others = np.setdiff1d(np.arange(X_train.shape[0]), test)
        if others.size == 0:
            continue
        dist, _ = cKDTree(scaled[others]).query(scaled[test], k=1)
        train_di[test] = dist / mean_distance

    threshold = upper_whisker(train_di)
    logger.info(f"AOA threshold (DI): {threshold:.3f}")

    return AOAModel(feature_names=list(feature_names), mean=mean, std=std,
                    weights=weights, train_scaled=scaled,
                    mean_distance=mean_distance, train_di=train_di,
                    threshold=threshold)


def aoa_raster(stack, aoa):
    """
    function to map DI (NaN where the stack is invalid) and the AOA mask
    (1 inside, 0 outside, 255 nodata)
    """
    valid = tea_utils.valid_pixel_mask(stack)
    flat = tea_utils.flatten_stack(stack)
    valid_flat = valid.ravel()

    di_flat = np.full(flat.shape[0], np.nan, dtype=np.float32)
    di_flat[valid_flat] = aoa.dissimilarity(flat[valid_flat])

    aoa_flat = np.full(flat.shape[0], AOA_NODATA, dtype=np.uint8)
    aoa_flat[valid_flat] = (di_flat[valid_flat] <= aoa.threshold).astype(np.uint8)

    shape = stack.shape[1:]
    return di_flat.reshape(shape), aoa_flat.reshape(shape)


def plot_aoa(di, aoa_mask, path=None):
    fig, axes = plt.subplots(1, 2, figsize=(11, 5))
    im = axes[0].imshow(di, cmap="viridis")
    fig.colorbar(im, ax=axes[0], shrink=0.7, label="DI")
    axes[0].set_title("Dissimilarity index")
    axes[1].imshow(np.ma.masked_equal(aoa_mask, AOA_NODATA), cmap="RdYlGn", vmin=0, vmax=1)
    axes[1].set_title("Area of applicability (green = inside)")
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
    parser = argparse.ArgumentParser(description="Map the area of applicability of the tea model")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    df = pd.read_csv(config.output_dir / "train_dataset.csv")
    importance = pd.read_csv(config.output_dir / "variable_importance.csv")
    names = config.feature_names

    aoa = fit_aoa(df[names].to_numpy(), names, importance,
                  groups=df["polygon_id"] if config.sampling == "pixels" else None,
                  n_folds=config.cv_folds, seed=config.seed)

    stack, _, profile = prepare_stack(config)
    di, aoa_mask = aoa_raster(stack, aoa)

    # write to disk:
    tea_utils.write_raster(config.output_dir / "tea_di.tif", di, profile,
                           dtype="float32", nodata=np.nan)
    tea_utils.write_raster(config.output_dir / "tea_aoa.tif", aoa_mask, profile,
                           dtype="uint8", nodata=AOA_NODATA)
    plot_aoa(di, aoa_mask, config.output_dir / "figures/aoa.png")

    share = np.mean(aoa_mask[aoa_mask != AOA_NODATA] == 1)
    print(f"Share of AOI inside the AOA: {share*100:.2f}%")


if __name__ == "__main__":
    main()
