# -*- coding: utf-8 -*-
"""
created on: 2026-09-23
use:        train random forest presence/absence models for tea
"""

# import packages =============================================================

import pickle
import argparse
import numpy as np
import pandas as pd

from pathlib import Path
from loguru import logger
from sklearn.ensemble import RandomForestClassifier
from sklearn.model_selection import (StratifiedKFold, cross_val_score,
                                     train_test_split)

import tea_utils

from tea_config import load_config

# define model ================================================================

class TeaModel:
    """
    Ensemble of random forests fitted on subsampled training sets.

    Each replicate keeps the row indices it held out so evaluation can be
    repeated on data the forest never saw. ``threshold`` is filled in by
    evaluation and used to turn probabilities into a binary map.
    """

    def __init__(self, feature_names, forests, test_indices, threshold=0.5):
        self.feature_names = list(feature_names)
        self.forests = list(forests)
        self.test_indices = [np.asarray(idx) for idx in test_indices]
        self.threshold = threshold
        self.cv_auc = None
        self.oob_score = None

    @property
    def n_replicates(self):
        return len(self.forests)

    def _features(self, X):
        if isinstance(X, pd.DataFrame):
            missing = [c for c in self.feature_names if c not in X.columns]
            if missing:
                raise ValueError(f"missing feature columns {missing}")
            X = X[self.feature_names]
        X = np.asarray(X, dtype=np.float32)
        if X.ndim != 2 or X.shape[1] != len(self.feature_names):
            raise ValueError(f"expected {len(self.feature_names)} features, got shape {X.shape}")
        return X

    def replicate_proba(self, X, replicate):
        """
        function to get tea probabilities from a single replicate
        """
        return tea_probability(self.forests[replicate], self._features(X))

    def predict_proba(self, X):
        """
        function to get the ensemble mean tea probability
        """
        X = self._features(X)
        if X.shape[0] == 0:
            return np.empty(0, dtype=np.float32)
        probs = [tea_probability(forest, X) for forest in self.forests]
        return np.mean(probs, axis=0)

    def predict(self, X, threshold=None):
        threshold = self.threshold if threshold is None else threshold
        return (self.predict_proba(X) >= threshold).astype(np.uint8)

# define functions ============================================================

def tea_probability(forest, X):
    """
    function to get the probability of class 1 even if a forest only saw one
    class
    """
    proba = forest.predict_proba(X)
    classes = list(forest.classes_)
    if 1 not in classes:
        return np.zeros(X.shape[0])
    return proba[:, classes.index(1)]


def build_forest(config, seed, oob_score=False):
    return RandomForestClassifier(n_estimators=config.n_estimators,
                                  max_features=config.max_features,
                                  min_samples_leaf=config.min_samples_leaf,
                                  oob_score=oob_score,
                                  n_jobs=-1,
                                  random_state=seed)


def split_xy(df, feature_names):
    missing = [c for c in feature_names if c not in df.columns]
    if missing:
        raise ValueError(f"training data has no columns {missing}")
    X = df[feature_names].to_numpy(dtype=np.float32)
    y = df["tea"].to_numpy(dtype=int)
    if len(np.unique(y)) < 2:
        raise ValueError("training data needs both tea and non-tea samples")
    return X, y


def train_model(df, feature_names, config):
    """
    function to fit one forest per subsampling replicate and collect the
    cross-validation and OOB scores
    """
    X, y = split_xy(df, feature_names)
    indices = np.arange(len(y))

    forests = []
    test_indices = []

    for rep in range(config.replicates):
        seed = config.seed + rep

        # stratified train-test split:
        train_idx, test_idx = train_test_split(indices, test_size=config.test_fraction,
                                               stratify=y, random_state=seed)

        clf = build_forest(config, seed)
        clf.fit(X[train_idx], y[train_idx])

        forests.append(clf)
        test_indices.append(test_idx)
        logger.info(f"Replicate {rep + 1}/{config.replicates}: "
                    f"{len(train_idx)} train / {len(test_idx)} test samples")

    model = TeaModel(feature_names, forests, test_indices)

    # cross-validation score:
    n_splits = min(config.cv_folds, int(np.bincount(y).min()))
    if n_splits >= 2:
        kf = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=config.seed)
        scores = cross_val_score(build_forest(config, config.seed), X, y,
                                 cv=kf, scoring="roc_auc")
        model.cv_auc = float(np.mean(scores))
    else:
        logger.warning("Too few samples per class for cross-validation")

    # OOB-score:
    clf = build_forest(config, config.seed, oob_score=True)
    clf.fit(X, y)
    model.oob_score = float(clf.oob_score_)

    return model


def save_model(model, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        pickle.dump(model, f)
    logger.info(f"Saved model to {path}")
    return path


def load_model(path):
    with open(path, "rb") as f:
        model = pickle.load(f)
    if not isinstance(model, TeaModel):
        raise TypeError(f"{path} does not contain a TeaModel (got {type(model).__name__})")
    return model

# run =========================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Train the tea presence/absence random forest")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    df = pd.read_csv(config.output_dir / "train_dataset.csv")
    model = train_model(df, config.feature_names, config)

    if model.cv_auc is not None:
        print(f"Random Forest CV AUC: {model.cv_auc*100:.2f}%")
    print(f"OOB score: {model.oob_score*100:.2f}%")

    # save model:
    save_model(model, config.output_dir / "tea_rf.pkl")


if __name__ == "__main__":
    # run through the importable module so pickles reference train_model.TeaModel
    import train_model
    train_model.main()
