# -*- coding: utf-8 -*-
"""
created on: 2026-09-22
use:        extract pixel values under tea / non-tea training polygons
"""

# import packages =============================================================

import argparse
import numpy as np
import pandas as pd

from loguru import logger
from shapely.ops import unary_union
from shapely.geometry import Point
from rasterio.features import geometry_mask
from rasterio.transform import rowcol, xy

import tea_utils

from tea_config import load_config
from calculate_indices import prepare_stack

# define functions ============================================================

def label_polygons(gdf, class_field, tea_value):
    """
    function to add a presence (1) / absence (0) label to training polygons
    """
    if class_field not in gdf.columns:
        raise ValueError(f"training polygons have no {class_field!r} column; "
                         f"available: {list(gdf.columns)}")

    gdf = gdf.copy()
    gdf["tea"] = (gdf[class_field].astype(str) == str(tea_value)).astype(np.int8)
    gdf["polygon_id"] = np.arange(len(gdf))
    return gdf


def random_points(polygon, n_points, rng):
    """
    function to sample random points within a polygon
    """
    if polygon.is_empty or polygon.area == 0:
        raise ValueError("cannot sample points in an empty polygon")

    x_min, y_min, x_max, y_max = polygon.bounds
    points = []

    while len(points) < n_points:
        point = Point(rng.uniform(x_min, x_max),
                      rng.uniform(y_min, y_max))
        if polygon.contains(point):
            points.append(point)

    return points


def extract_pixels(stack, names, transform, polygons):
    """
    function to get every pixel whose centre falls inside a training polygon
    """
    n_rows, n_cols = stack.shape[1:]
    frames = []

    for poly in polygons.itertuples():
        inside = geometry_mask([poly.geometry], out_shape=(n_rows, n_cols),
                               transform=transform, invert=True)
        rows, cols = np.nonzero(inside)
        if rows.size == 0:
            continue

        xs, ys = xy(transform, rows, cols)
        frame = pd.DataFrame({"polygon_id": poly.polygon_id,
                              "x": np.asarray(xs),
                              "y": np.asarray(ys),
                              "tea": poly.tea})
        values = stack[:, rows, cols].T
        for i, name in enumerate(names):
            frame[name] = values[:, i]
        frames.append(frame)

    if not frames:
        return pd.DataFrame(columns=["polygon_id", "x", "y", "tea"] + list(names))
    return pd.concat(frames, ignore_index=True)


def extract_points(stack, names, transform, polygons, n_points, seed):
    """
    function to sample n_points random locations per class and read the
    stack values there
    """
    rng = np.random.default_rng(seed)
    n_rows, n_cols = stack.shape[1:]
    sampled_points = []

    for tea, group in polygons.groupby("tea"):
        # union polygons:
        union = unary_union(group.geometry)

        for point in random_points(union, n_points, rng):
            sampled_points.append({"polygon_id": -1,
                                   "x": point.x,
                                   "y": point.y,
                                   "tea": tea})

    df = pd.DataFrame(sampled_points)
    rows, cols = rowcol(transform, df["x"].to_numpy(), df["y"].to_numpy())
    rows = np.asarray(rows)
    cols = np.asarray(cols)

    # points outside the raster grid:
    inside = (rows >= 0) & (rows < n_rows) & (cols >= 0) & (cols < n_cols)
    df = df[inside].reset_index(drop=True)
    values = stack[:, rows[inside], cols[inside]].T

    for i, name in enumerate(names):
        df[name] = values[:, i]
    return df


def build_training_data(stack, names, profile, polygons, class_field, tea_value,
                        sampling="pixels", n_points=300, seed=42):
    """
    function to build the presence/absence training table
    """
    polygons = tea_utils.to_crs(polygons, profile["crs"])
    polygons = label_polygons(polygons, class_field, tea_value)
    transform = profile["transform"]

    if sampling == "pixels":
        df = extract_pixels(stack, names, transform, polygons)
    elif sampling == "points":
        df = extract_points(stack, names, transform, polygons, n_points, seed)
    else:
        raise ValueError(f"unknown sampling mode {sampling!r}")

    n_before = len(df)
    df = df.dropna(subset=list(names)).reset_index(drop=True)
    if n_before > len(df):
        logger.info(f"Dropped {n_before - len(df)} samples with missing values")

    df["tea"] = df["tea"].astype(int)
    counts = df["tea"].value_counts()
    n_presence = int(counts.get(1, 0))
    n_absence = int(counts.get(0, 0))

    if n_presence == 0 or n_absence == 0:
        raise ValueError(f"training data needs both classes, got {n_presence} tea "
                         f"and {n_absence} non-tea samples")

    logger.info(f"Training samples: {n_presence} tea, {n_absence} non-tea")
    return df

# run =========================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Extract training samples under labeled polygons")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    stack, names, profile = prepare_stack(config)
    polygons = tea_utils.read_vector(config.training_path)

    df = build_training_data(stack, names, profile, polygons,
                             config.class_field, config.tea_value,
                             sampling=config.sampling,
                             n_points=config.n_points,
                             seed=config.seed)

    # export as CSV:
    config.output_dir.mkdir(parents=True, exist_ok=True)
    out_path = config.output_dir / "train_dataset.csv"
    df.to_csv(out_path, index=False)
    print(f"{len(df)} training samples written to {out_path}")


if __name__ == "__main__":
    main()
