# -*- coding: utf-8 -*-
"""
created on: 2026-09-22
use:        calculate spectral indices and append them to the image stack
"""

# import packages =============================================================

import argparse
import numpy as np

from loguru import logger

import tea_utils

from tea_config import load_config

# define functions ============================================================

def normalized_difference(a, b):
    """
    function to calculate (a - b) / (a + b); pixels with a zero denominator
    become NaN
    """
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    denom = a + b

    with np.errstate(divide="ignore", invalid="ignore"):
        nd = (a - b) / denom

    nd[denom == 0] = np.nan
    return nd


def savi(nir, red, soil_factor=0.5):
    """
    function to calculate the soil-adjusted vegetation index
    """
    nir = np.asarray(nir, dtype=np.float32)
    red = np.asarray(red, dtype=np.float32)
    denom = nir + red + soil_factor

    with np.errstate(divide="ignore", invalid="ignore"):
        out = (1 + soil_factor) * (nir - red) / denom

    out[denom == 0] = np.nan
    return out


# index name -> (function, required bands):
INDEX_RECIPES = {
    "ndvi": (normalized_difference, ("nir", "red")),
    "ndwi": (normalized_difference, ("green", "nir")),
    "ndbi": (normalized_difference, ("swir1", "nir")),
    "savi": (savi, ("nir", "red")),
}


def add_indices(stack, band_names, indices):
    """
    function to append index layers to a (bands, rows, cols) stack; returns
    the new stack and its layer names
    """
    band_names = list(band_names)
    if stack.shape[0] != len(band_names):
        raise ValueError(f"stack has {stack.shape[0]} bands but {len(band_names)} "
                         f"band names were given")

    layers = [stack]
    names = list(band_names)

    for index in indices:
        if index not in INDEX_RECIPES:
            raise ValueError(f"unknown spectral index {index!r}")
        func, required = INDEX_RECIPES[index]

        missing = [b for b in required if b not in band_names]
        if missing:
            raise ValueError(f"index {index!r} needs band(s) {missing} which are not "
                             f"in {band_names}")

        args = [stack[band_names.index(b)] for b in required]
        layers.append(func(*args)[np.newaxis, ...])
        names.append(index)
        logger.debug(f"Added {index.upper()}")

    return np.concatenate(layers, axis=0).astype(np.float32), names


def prepare_stack(config):
    """
    function to read the image clipped to the AOI and add the configured
    indices
    """
    aoi = tea_utils.read_vector(config.aoi_path)
    stack, profile = tea_utils.clip_raster_to_aoi(config.image_path, aoi)
    stack, names = add_indices(stack, config.band_names, config.indices)
    logger.info(f"Predictor stack: {', '.join(names)}")
    return stack, names, profile

# run =========================================================================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Clip the image to the AOI and add spectral indices")
    parser.add_argument("--config", default=None, help="INI file with a [tea] section")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tea_utils.setup_logging(config.log_level, config.log_file)

    stack, names, profile = prepare_stack(config)

    # write to disk:
    out_path = tea_utils.write_raster(config.output_dir / "predictors.tif", stack,
                                      profile, dtype="float32", nodata=np.nan)
    print(f"Predictor stack with {len(names)} layers written to {out_path}")


if __name__ == "__main__":
    main()
