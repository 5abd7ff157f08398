# -*- coding: utf-8 -*-
"""
created on: 2026-09-24
use:        evaluate the tea model: ROC/AUC, thresholds, variable importance
"""

# import packages =============================================================

import argparse
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from loguru import logger
from sklearn.inspection import permutation_importance
from sklearn.metrics import cohen_kappa_score, roc_auc_score, roc_curve

import tea_utils

from tea_config import load_config
from train_model import load_model, save_model, split_xy

# define functions ============================================================

def roc_table(y, p):
    """
    function to get the ROC curve and AUC for observed labels y and
    predicted probabilities p
    """
    y = np.asarray(y)
    if len(np.unique(y)) < 2:
        raise ValueError("ROC needs both presence and absence observations")

    fpr, tpr, thresholds = roc_curve(y, p)
    auc = roc_auc_score(y, p)
    curve = pd.DataFrame({"fpr": fpr, "tpr": tpr,
                          "threshold": np.clip(thresholds, 0, 1)})
    return curve, float(auc)


def threshold_stats(y, p, threshold):
    """
    function to get confusion-matrix statistics at a threshold; p >= threshold
    counts as tea
    """
    y = np.asarray(y).astype(int)
    pred = (np.asarray(p) >= threshold).astype(int)

    tp = int(np.sum((pred == 1) & (y == 1)))
    tn = int(np.sum((pred == 0) & (y == 0)))
    fp = int(np.sum((pred == 1) & (y == 0)))
    fn = int(np.sum((pred == 0) & (y == 1)))

    sensitivity = tp / (tp + fn) if tp + fn else np.nan
    specificity = tn / (tn + fp) if tn + fp else np.nan

    # kappa is undefined when both vectors hold a single identical class:
    if len(np.unique(np.concatenate([y, pred]))) < 2:
        kappa = 1.0
    else:
        kappa = cohen_kappa_score(y, pred)

    return {"threshold": float(threshold),
            "sensitivity": sensitivity,
            "specificity": specificity,
            "tss": sensitivity + specificity - 1,
            "kappa": float(kappa),
            "accuracy": (tp + tn) / len(y),
            "tp": tp, "tn": tn, "fp": fp, "fn": fn}


def optimal_threshold(y, p, criterion="max_sens_spec"):
    """
    function to pick the probability threshold for the binary map
    """
    if criterion == "fixed":
        return 0.5

    curve, _ = roc_table(y, p)
    candidates = np.unique(curve["threshold"].to_numpy())
    stats = pd.DataFrame([threshold_stats(y, p, t) for t in candidates])

    if criterion == "max_sens_spec":
        best = (stats["sensitivity"] + stats["specificity"]).idxmax()
    elif criterion == "equal_sens_spec":
        best = (stats["sensitivity"] - stats["specificity"]).abs().idxmin()
    elif criterion == "max_kappa":
        best = stats["kappa"].idxmax()
    else:
        raise ValueError(f"unknown threshold criterion {criterion!r}")

    return float(stats.loc[best, "threshold"])


def evaluate(model, df, criterion="max_sens_spec"):
    """
    function to score each replicate on its held-out samples; returns a
    table with one row per replicate plus a mean row, and the ROC curves
    """
    X, y = split_xy(df, model.feature_names)
    rows = []
    curves = []

    for rep, test_idx in enumerate(model.test_indices):
        y_test = y[test_idx]
        p_test = model.replicate_proba(X[test_idx], rep)

        curve, auc = roc_table(y_test, p_test)
        curve["replicate"] = rep + 1
        curves.append(curve)

        threshold = optimal_threshold(y_test, p_test, criterion)
        stats = threshold_stats(y_test, p_test, threshold)
        rows.append({"replicate": rep + 1, "auc": auc, **stats})

    table = pd.DataFrame(rows)
    mean_row = table.drop(columns="replicate").mean(numeric_only=True)
    mean_row["replicate"] = "mean"
    table = pd.concat([table, mean_row.to_frame().T], ignore_index=True).infer_objects()

    model.threshold = float(mean_row["threshold"])
    logger.info(f"Mean held-out AUC {mean_row['auc']:.3f}, threshold {model.threshold:.3f}")
    return table, pd.concat(curves, ignore_index=True)


def _auc_scorer(estimator, X, y):
    """
    function to score a single forest by AUC of the tea probability
    """
    proba = estimator.predict_proba(X)
    classes = list(estimator.classes_)
    if 1 not in classes or len(np.unique(y)) < 2:
        return np.nan
    return roc_auc_score(y, proba[:, classes.index(1)])


def variable_importance(model, df, n_repeats=10, seed=42):
    """
    function to get permutation importance (drop in held-out AUC) and
    impurity importance, averaged over replicates
    """
    X, y = split_xy(df, model.feature_names)
    perm = []
    impurity = []

    for rep, (forest, test_idx) in enumerate(zip(model.forests, model.test_indices)):
        result = permutation_importance(forest, X[test_idx], y[test_idx],
                                        scoring=_auc_scorer, n_repeats=n_repeats,
                                        random_state=seed + rep, n_jobs=1)
        perm.append(result.importances_mean)
        impurity.append(forest.feature_importances_)

    perm = np.clip(np.nanmean(perm, axis=0), 0, None)
    total = perm.sum()
    weights = perm / total if total > 0 else np.full(len(perm), 1 / len(perm))

    importance = pd.DataFrame({"variable": model.feature_names,
                               "permutation": weights,
                               "impurity": np.mean(impurity, axis=0)})
    return importance.sort_values("permutation", ascending=False).reset_index(drop=True)

# plotting ====================================================================

def plot_roc(curves, table, path=None):
    fig, ax = plt.subplots(figsize=(5, 5))
    for rep, curve in curves.groupby("replicate"):
        auc = table.loc[table["replicate"] == rep, "auc"].iloc[0]
        ax.plot(curve["fpr"], curve["tpr"], alpha=0.7, label=f"Replicate {rep} (AUC={auc:.3f})")
    ax.plot([0, 1], [0, 1], color="grey", linestyle="--")
    ax.set_xlabel("False positive rate (1 - specificity)")
    ax.set_ylabel("True positive rate (sensitivity)")
    ax.set_title("ROC curves (held-out samples)")
    ax.legend(loc="lower right")
    return _finish(fig, path)


def plot_importance(importance, path=None):
    fig, ax = plt.subplots(figsize=(6, 4))
    ordered = importance.sort_values("permutation")
    ax.barh(ordered["variable"], ordered["permutation"], color="seagreen")
    ax.set_xlabel("Relative permutation importance (AUC drop)")
    ax.set_title("Variable importance")
    return _finish(fig, path)


def _finish(fig, path):
    fig.tight_layout()
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=150)
        plt.close(fig)
    return fig

# run =========================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Evaluate the tea random forest")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    df = pd.read_csv(config.output_dir / "train_dataset.csv")
    model = load_model(config.output_dir / "tea_rf.pkl")

    table, curves = evaluate(model, df, config.threshold_criterion)
    importance = variable_importance(model, df, seed=config.seed)

    table.to_csv(config.output_dir / "evaluation.csv", index=False)
    importance.to_csv(config.output_dir / "variable_importance.csv", index=False)
    plot_roc(curves, table, config.output_dir / "figures/roc.png")
    plot_importance(importance, config.output_dir / "figures/importance.png")

    # keep the chosen threshold with the model:
    save_model(model, config.output_dir / "tea_rf.pkl")

    print(f"Model AUC (held-out): {table.iloc[-1]['auc']*100:.2f}%")
    print(f"Threshold ({config.threshold_criterion}): {model.threshold:.3f}")


if __name__ == "__main__":
    main()
