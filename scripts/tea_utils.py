# -*- coding: utf-8 -*-
"""
created on: 2026-09-21
use:        shared raster, vector and logging helpers for tea mapping
"""

# import packages =============================================================

import sys
import rasterio
import numpy as np
import geopandas as gpd

from pathlib import Path
from loguru import logger
from pyproj import CRS
from rasterio.mask import mask

# logging =====================================================================

def setup_logging(level="INFO", log_file=None):
    """
    function to route loguru output to stderr and, optionally, a log file
    """
    logger.remove()
    logger.add(sys.stderr, level=level,
               format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}")
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level, rotation="10 MB")

# vectors =====================================================================

def read_vector(path, crs=None):
    """
    function to read a vector file and optionally reproject it
    """
    gdf = gpd.read_file(path)
    if gdf.empty:
        raise ValueError(f"vector file {path} has no features")
    if crs is not None:
        gdf = to_crs(gdf, crs)
    logger.debug(f"Read {len(gdf)} features from {path}")
    return gdf


def to_crs(gdf, crs):
    """
    function to reproject a GeoDataFrame only if its CRS differs
    """
    if gdf.crs is None:
        raise ValueError("vector data has no CRS defined")
    if CRS.from_user_input(gdf.crs) != CRS.from_user_input(crs):
        gdf = gdf.to_crs(crs)
    return gdf

# rasters =====================================================================

def read_raster(path):
    """
    function to read all bands of a raster as float32 with nodata as NaN
    """
    with rasterio.open(path) as src:
        stack = src.read().astype(np.float32)
        profile = src.profile.copy()
        nodata = src.nodata

    if nodata is not None and not np.isnan(nodata):
        stack[stack == nodata] = np.nan

    logger.debug(f"Read {stack.shape[0]} bands ({stack.shape[1]}x{stack.shape[2]}) from {path}")
    return stack, profile


def clip_raster_to_aoi(path, aoi):
    """
    function to crop and mask a raster to the AOI polygons; returns the
    stack (NaN outside the AOI) and the matching profile
    """
    with rasterio.open(path) as src:
        aoi = to_crs(aoi, src.crs)
        try:
            out_img, out_trans = mask(src, list(aoi.geometry), crop=True,
                                      filled=False)
        except ValueError as err:
            raise ValueError(f"AOI does not overlap raster {path}") from err
        profile = src.profile.copy()
        nodata = src.nodata

    stack = out_img.astype(np.float32).filled(np.nan)
    if nodata is not None and not np.isnan(nodata):
        stack[stack == nodata] = np.nan

    profile.update(height=stack.shape[1],
                   width=stack.shape[2],
                   transform=out_trans)

    logger.info(f"Clipped {Path(path).name} to AOI: {stack.shape[1]}x{stack.shape[2]} pixels")
    return stack, profile


def write_raster(path, array, profile, dtype="float32", nodata=None):
    """
    function to write a 2D or 3D array as GeoTIFF using the grid of profile
    """
    if array.ndim == 2:
        array = array[np.newaxis, ...]

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with rasterio.open(
        path,
        mode="w",
        driver="GTiff",
        height=array.shape[1],
        width=array.shape[2],
        count=array.shape[0],
        dtype=dtype,
        crs=profile["crs"],
        transform=profile["transform"],
        nodata=nodata
        ) as dst:
            dst.write(array.astype(dtype))

    logger.info(f"Wrote {path}")
    return path


def pixel_area(transform):
    """
    function to get the area of one pixel in squared CRS units
    """
    return abs(transform.a * transform.e - transform.b * transform.d)


def valid_pixel_mask(stack):
    """
    function to flag pixels that are finite in every band
    """
    return np.all(np.isfinite(stack), axis=0)


def flatten_stack(stack):
    """
    function to turn a (bands, rows, cols) stack into a (pixels, bands) matrix
    """
    return stack.reshape(stack.shape[0], -1).T
