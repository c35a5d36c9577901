"""Shared fixtures for geodensity tests."""

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402
from shapely.geometry import box  # noqa: E402

CRS = "EPSG:3035"


def make_points(coords, crs=CRS, **columns):
    """Build a point GeoDataFrame from (x, y) pairs and attribute lists."""
    xs = [c[0] for c in coords]
    ys = [c[1] for c in coords]
    return gpd.GeoDataFrame(columns, geometry=gpd.points_from_xy(xs, ys), crs=crs)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def square():
    """2 x 2 km square boundary."""
    return gpd.GeoDataFrame(geometry=[box(0, 0, 2000, 2000)], crs=CRS)


@pytest.fixture
def corner_points():
    """Generators at the four corners of the 2 x 2 km square."""
    return make_points([(0, 0), (2000, 0), (0, 2000), (2000, 2000)])


@pytest.fixture
def stations():
    """Three stations with measured values inside the square."""
    return make_points(
        [(500, 500), (1500, 500), (1000, 1500)],
        value=[10, 20, 30],
        name=["north", "east", "south"],
    )


@pytest.fixture
def random_points():
    """Forty seeded points strictly inside the square."""
    rng = np.random.default_rng(7)
    coords = rng.uniform(50, 1950, size=(40, 2))
    return make_points(coords.tolist())
