"""Synthetic Kericho-like scene shared by the tea mapping tests."""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import geopandas as gpd
import pytest
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import box

from tea_config import Config

CRS = "EPSG:32736"
ORIGIN_X = 750000.0
ORIGIN_Y = 9960000.0
RES = 10.0
SIZE = 40
BANDS = ["blue", "green", "red", "nir", "swir1", "swir2"]


def _scene() -> np.ndarray:
    """Left half looks like tea (bright NIR), right half like bare/urban land."""
    rng = np.random.default_rng(0)
    stack = np.zeros((len(BANDS), SIZE, SIZE), dtype=np.float32)
    tea = np.array([300, 600, 350, 3500, 1500, 700], dtype=np.float32)
    other = np.array([900, 1100, 1300, 1800, 2600, 2200], dtype=np.float32)
    for i in range(len(BANDS)):
        stack[i, :, : SIZE // 2] = tea[i]
        stack[i, :, SIZE // 2 :] = other[i]
    stack += rng.normal(0, 40, stack.shape).astype(np.float32)
    # nodata strip along the bottom row
    stack[:, -1, :] = -9999
    return stack


def _xy(col: float, row: float) -> tuple:
    return ORIGIN_X + col * RES, ORIGIN_Y - row * RES


def _box(col0: float, row0: float, col1: float, row1: float):
    x0, y0 = _xy(col0, row1)
    x1, y1 = _xy(col1, row0)
    return box(x0, y0, x1, y1)


@pytest.fixture
def pixel_box():
    """Polygon builder in pixel columns/rows of the uncropped scene."""
    return _box


@pytest.fixture
def transform():
    return from_origin(ORIGIN_X, ORIGIN_Y, RES, RES)


@pytest.fixture
def image_path(tmp_path: Path, transform) -> Path:
    path = tmp_path / "sentinel2.tif"
    stack = _scene()
    with rasterio.open(
        path, "w", driver="GTiff", height=SIZE, width=SIZE, count=len(BANDS),
        dtype="float32", crs=CRS, transform=transform, nodata=-9999,
    ) as dst:
        dst.write(stack)
    return path


@pytest.fixture
def aoi() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame({"name": ["Kericho"]}, geometry=[_box(2, 2, 38, 40)], crs=CRS)


@pytest.fixture
def training_polygons() -> gpd.GeoDataFrame:
    geoms = [
        _box(4, 4, 9, 12),     # tea
        _box(4, 20, 10, 28),   # tea
        _box(24, 4, 30, 12),   # built-up
        _box(28, 20, 35, 28),  # grass
    ]
    return gpd.GeoDataFrame(
        {"class": ["tea", "tea", "builtup", "grass"]}, geometry=geoms, crs=CRS
    )


@pytest.fixture
def config(tmp_path: Path, image_path: Path, aoi, training_polygons) -> Config:
    aoi_path = tmp_path / "aoi.gpkg"
    training_path = tmp_path / "training.gpkg"
    aoi.to_file(aoi_path, driver="GPKG")
    training_polygons.to_file(training_path, driver="GPKG")
    return Config(
        aoi_path=aoi_path,
        training_path=training_path,
        image_path=image_path,
        output_dir=tmp_path / "output",
        band_names=list(BANDS),
        indices=["ndvi", "ndwi"],
        n_estimators=25,
        replicates=2,
        cv_folds=3,
    )
