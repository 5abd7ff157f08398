# -*- coding: utf-8 -*-
"""
created on: 2026-09-26
use:        calculate tea and non-tea area from the binary tea map
"""

# import packages =============================================================

import argparse
import rasterio
import numpy as np
import pandas as pd

from loguru import logger

import tea_utils

from tea_config import load_config
from predict_tea import CLASS_NODATA

CLASS_LABELS = {1: "tea", 0: "non-tea"}

# define functions ============================================================

def class_areas(binary, transform, aoa_mask=None, nodata=CLASS_NODATA):
    """
    function to count class pixels and convert them to m², ha and km²;
    with an AOA mask, pixels outside the AOA are reported separately
    """
    binary = np.asarray(binary)
    if aoa_mask is not None and aoa_mask.shape != binary.shape:
        raise ValueError(f"AOA mask shape {aoa_mask.shape} does not match map shape {binary.shape}")

    area_px = tea_utils.pixel_area(transform)
    classified = binary != nodata
    inside = classified if aoa_mask is None else classified & (aoa_mask == 1)

    records = []
    for value, label in CLASS_LABELS.items():
        count = int(np.count_nonzero(inside & (binary == value)))
        records.append({"class": label, "pixels": count})

    if aoa_mask is not None:
        count = int(np.count_nonzero(classified & (aoa_mask != 1)))
        records.append({"class": "outside AOA", "pixels": count})

    df = pd.DataFrame.from_dict(records)
    df["area_m2"] = df["pixels"] * area_px
    df["area_ha"] = df["area_m2"] / 1e4
    df["area_km2"] = df["area_m2"] / 1e6

    total = df["pixels"].sum()
    df["share"] = df["pixels"] / total if total else 0.0

    logger.info(f"Tea area: {df.loc[df['class'] == 'tea', 'area_ha'].iloc[0]:.1f} ha")
    return df

# run =========================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Calculate tea area from the binary map")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    parser.add_argument("--within-aoa", action="store_true",
                        help="only count pixels inside the area of applicability")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    with rasterio.open(config.output_dir / "tea_binary.tif") as ds:
        binary = ds.read(1)
        transform = ds.transform

    aoa_mask = None
    if args.within_aoa:
        with rasterio.open(config.output_dir / "tea_aoa.tif") as ds:
            aoa_mask = ds.read(1)

    df = class_areas(binary, transform, aoa_mask)
    df.to_csv(config.output_dir / "tea_area.csv", index=False)

    for _, row in df.iterrows():
        print(f"{row['class']:>12}: {row['area_km2']:10.2f} km² ({row['share']*100:.2f}%)")


if __name__ == "__main__":
    main()
