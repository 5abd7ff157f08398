"""Tests for raster and vector helpers."""

from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
import rasterio
from affine import Affine
from shapely.geometry import box

import tea_utils


def test_read_raster_turns_nodata_into_nan(image_path: Path) -> None:
    stack, profile = tea_utils.read_raster(image_path)
    assert stack.shape == (6, 40, 40)
    assert np.isnan(stack[:, -1, :]).all()
    assert np.isfinite(stack[:, :-1, :]).all()
    assert profile["crs"].to_epsg() == 32736


def test_clip_raster_to_aoi_crops_to_aoi_bounds(image_path: Path, aoi) -> None:
    stack, profile = tea_utils.clip_raster_to_aoi(image_path, aoi)
    assert stack.shape[0] == 6
    assert stack.shape[1:] == (profile["height"], profile["width"])
    assert stack.shape[1] < 40 and stack.shape[2] < 40
    # the nodata strip survives as NaN
    assert np.isnan(stack[:, -1, :]).all()


def test_clip_raster_to_aoi_reprojects_aoi(image_path: Path, aoi) -> None:
    stack, _ = tea_utils.clip_raster_to_aoi(image_path, aoi.to_crs("EPSG:4326"))
    assert stack.shape[0] == 6
    assert np.isfinite(stack).any()


def test_clip_raster_to_aoi_without_overlap(image_path: Path) -> None:
    far = gpd.GeoDataFrame(geometry=[box(0, 0, 10, 10)], crs="EPSG:32736")
    with pytest.raises(ValueError, match="does not overlap"):
        tea_utils.clip_raster_to_aoi(image_path, far)


def test_to_crs_requires_defined_crs() -> None:
    gdf = gpd.GeoDataFrame(geometry=[box(0, 0, 1, 1)])
    with pytest.raises(ValueError, match="no CRS"):
        tea_utils.to_crs(gdf, "EPSG:32736")


def test_write_raster_roundtrip_keeps_grid(tmp_path: Path, transform) -> None:
    profile = {"crs": "EPSG:32736", "transform": transform}
    data = np.arange(12, dtype=np.uint8).reshape(3, 4)
    path = tea_utils.write_raster(tmp_path / "out/binary.tif", data, profile,
                                  dtype="uint8", nodata=255)
    with rasterio.open(path) as ds:
        assert ds.count == 1
        assert ds.nodata == 255
        assert ds.transform == transform
        np.testing.assert_array_equal(ds.read(1), data)


def test_pixel_area_and_masks() -> None:
    assert tea_utils.pixel_area(Affine(10, 0, 0, 0, -10, 0)) == 100
    stack = np.ones((2, 2, 3), dtype=np.float32)
    stack[1, 0, 2] = np.nan
    valid = tea_utils.valid_pixel_mask(stack)
    assert valid.sum() == 5 and not valid[0, 2]
    assert tea_utils.flatten_stack(stack).shape == (6, 2)
