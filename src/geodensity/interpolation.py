"""
Raster surfaces for the distance-weighted and kernel density analyses.

Both surfaces are evaluated at the centres of a regular grid laid over
the boundary's bounding box; nodes outside the boundary are masked.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import shapely
from scipy.spatial import cKDTree
from sklearn.neighbors import KernelDensity

from geodensity.errors import CoordinateSystemMismatchError, InsufficientPointsError
from geodensity.tessellation import GeometryLike, M2_PER_KM2, dissolve_boundary

logger = logging.getLogger(__name__)

KDE_SCALES = ("per_km2", "probability")


@dataclass
class SurfaceGrid:
    """Regular grid of cell centres covering a boundary.

    Attributes:
        x: Cell-centre x coordinates (ascending)
        y: Cell-centre y coordinates (ascending)
        cell_size: Grid spacing in CRS units
        mask: Boolean array of shape (len(y), len(x)), True outside the boundary
        crs: CRS of the boundary, if known
    """
    x: np.ndarray
    y: np.ndarray
    cell_size: float
    mask: np.ndarray
    crs: Optional[Any] = None

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.y), len(self.x))

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        """(left, right, bottom, top) of the outer cell edges."""
        half = self.cell_size / 2
        return (
            float(self.x[0] - half),
            float(self.x[-1] + half),
            float(self.y[0] - half),
            float(self.y[-1] + half),
        )

    def inside_nodes(self) -> np.ndarray:
        """(N, 2) coordinates of the unmasked cell centres."""
        xx, yy = np.meshgrid(self.x, self.y)
        inside = ~self.mask
        return np.column_stack([xx[inside], yy[inside]])


@dataclass
class Surface:
    """An interpolated raster.

    Attributes:
        grid: Grid the values were evaluated on
        values: Masked array of shape grid.shape
        unit: Label for the colour bar
        method: "idw" or "kde"
    """
    grid: SurfaceGrid
    values: np.ma.MaskedArray
    unit: str
    method: str


def make_grid(boundary: GeometryLike, cell_size: float = 1000.0) -> SurfaceGrid:
    """Lay a regular grid over the boundary's bounding box.

    Args:
        boundary: Region the surface is restricted to
        cell_size: Grid spacing in CRS units

    Returns:
        SurfaceGrid with nodes outside the boundary masked
    """
    if not cell_size > 0:
        raise ValueError(f"cell_size must be positive, got {cell_size}")

    shape, crs = dissolve_boundary(boundary)
    minx, miny, maxx, maxy = shape.bounds

    x = np.arange(minx + cell_size / 2, maxx, cell_size)
    y = np.arange(miny + cell_size / 2, maxy, cell_size)
    if len(x) == 0:
        x = np.array([(minx + maxx) / 2])
    if len(y) == 0:
        y = np.array([(miny + maxy) / 2])

    xx, yy = np.meshgrid(x, y)
    mask = ~shapely.contains_xy(shape, xx, yy)
    logger.debug(
        "Grid of %dx%d nodes, %d inside boundary", len(x), len(y), int((~mask).sum())
    )
    return SurfaceGrid(x=x, y=y, cell_size=float(cell_size), mask=mask, crs=crs)


def idw_surface(
    points: gpd.GeoDataFrame,
    value_column: str,
    boundary: GeometryLike,
    cell_size: float = 1000.0,
    power: float = 2.0,
    neighbors: int = 6
) -> Surface:
    """Inverse-distance weighted surface of a station attribute.

    Each grid node takes the weighted mean of its ``neighbors`` nearest
    stations with weights 1 / d**power. A node on top of a station takes
    that station's value.

    Args:
        points: Stations with a numeric attribute
        value_column: Attribute to interpolate
        boundary: Region the surface is restricted to
        cell_size: Grid spacing in CRS units
        power: Distance exponent
        neighbors: Number of nearest stations per node

    Returns:
        Surface with method "idw"
    """
    if value_column not in points.columns:
        raise ValueError(
            f"Missing value_column '{value_column}'. "
            f"Available columns: {list(points.columns)}"
        )
    if neighbors < 1:
        raise ValueError(f"neighbors must be at least 1, got {neighbors}")

    valid = points[points[value_column].notna()]
    if len(valid) < len(points):
        logger.warning(
            "Ignoring %d stations without '%s'", len(points) - len(valid), value_column
        )

    grid, coords = _prepare(valid, boundary, cell_size)
    values = valid[value_column].to_numpy(dtype=float)
    nodes = grid.inside_nodes()

    k = min(neighbors, len(coords))
    tree = cKDTree(coords)
    dists, idxs = tree.query(nodes, k=k)

    if k == 1:
        z = values[idxs]
    else:
        neighbour_values = values[idxs]
        with np.errstate(divide="ignore", invalid="ignore"):
            weights = 1.0 / np.power(dists, power)
            weights /= np.sum(weights, axis=1, keepdims=True)
            z = np.sum(weights * neighbour_values, axis=1)

        # Rounding must not leave the range of the stations that were averaged
        z = np.clip(z, neighbour_values.min(axis=1), neighbour_values.max(axis=1))

        exact = dists[:, 0] == 0
        z[exact] = neighbour_values[exact, 0]

    return Surface(
        grid=grid,
        values=_fill(grid, z),
        unit=value_column,
        method="idw"
    )


def kde_surface(
    points: gpd.GeoDataFrame,
    boundary: GeometryLike,
    cell_size: float = 1000.0,
    bandwidth: Optional[float] = None,
    scale: str = "per_km2"
) -> Surface:
    """Gaussian kernel density surface of point locations.

    Args:
        points: Point locations (e.g. animal fixes)
        boundary: Region the surface is restricted to
        cell_size: Grid spacing in CRS units
        bandwidth: Kernel bandwidth in CRS units (None = Scott's rule)
        scale: "per_km2" for expected points per km², "probability" for
            the normalized density per m²

    Returns:
        Surface with method "kde"
    """
    if scale not in KDE_SCALES:
        raise ValueError(f"scale must be one of {KDE_SCALES}, got '{scale}'")

    grid, coords = _prepare(points, boundary, cell_size)

    if bandwidth is None:
        bandwidth = scott_bandwidth(coords)
    if not bandwidth > 0:
        raise ValueError(
            f"bandwidth must be positive, got {bandwidth}; "
            "are all points coincident?"
        )

    kde = KernelDensity(kernel="gaussian", bandwidth=bandwidth).fit(coords)
    density = np.exp(kde.score_samples(grid.inside_nodes()))
    logger.info(
        "KDE over %d points, bandwidth %.1f, %d grid nodes",
        len(coords), bandwidth, len(density)
    )

    if scale == "per_km2":
        density = density * len(coords) * M2_PER_KM2
        unit = "points per km²"
    else:
        unit = "probability per m²"

    return Surface(grid=grid, values=_fill(grid, density), unit=unit, method="kde")


def scott_bandwidth(coords: np.ndarray) -> float:
    """Scott's rule of thumb for a 2D isotropic Gaussian kernel."""
    n = len(coords)
    spread = float(np.mean(np.std(coords, axis=0, ddof=1)))
    return spread * n ** (-1.0 / 6.0)


def _prepare(
    points: Union[gpd.GeoDataFrame, gpd.GeoSeries],
    boundary: GeometryLike,
    cell_size: float
) -> Tuple[SurfaceGrid, np.ndarray]:
    if len(points) < 2:
        raise InsufficientPointsError(len(points))

    grid = make_grid(boundary, cell_size)
    if points.crs is not None and grid.crs is not None and points.crs != grid.crs:
        raise CoordinateSystemMismatchError(
            f"Points are in {points.crs.to_string()} but boundary is in "
            f"{grid.crs.to_string()}; reproject before interpolating"
        )

    geoms = points.geometry
    coords = np.column_stack([geoms.x.to_numpy(), geoms.y.to_numpy()])
    return grid, coords


def _fill(grid: SurfaceGrid, inside_values: np.ndarray) -> np.ma.MaskedArray:
    full = np.full(grid.shape, np.nan)
    full[~grid.mask] = inside_values
    return np.ma.masked_array(full, mask=grid.mask)
