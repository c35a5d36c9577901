"""
Voronoi tessellation of point datasets with per-cell density or values.

This module partitions a region into nearest-point cells, clips them to a
boundary polygon and derives one metric per cell: either an area-based
density proxy (1 / km²) or the generating point's attribute value.

Example:
    >>> result = voronoi_density(fixes, country, cap=1.0)
    >>> gdf = result.to_geodataframe()
    >>> gdf[["point_index", "area_km2", "density_per_km2"]].head()
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import shapely
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from geodensity.errors import (
    CoordinateSystemMismatchError,
    DegenerateInputError,
    GeodensityError,
    InsufficientPointsError,
)

logger = logging.getLogger(__name__)

M2_PER_KM2 = 1_000_000.0

DENSITY_COLUMN = "density_per_km2"

GeometryLike = Union[BaseGeometry, gpd.GeoSeries, gpd.GeoDataFrame]


class TessellationMode(Enum):
    """What each Voronoi cell reports."""
    DENSITY = "density"
    ATTRIBUTE_TRANSFER = "attribute"


class NoArea:
    """Metric of a cell whose clipped area is zero.

    There is a single instance, NO_AREA. It is falsy and compares equal
    only to itself.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "NoArea"

    def __reduce__(self):
        return (NoArea, ())


NO_AREA = NoArea()


@dataclass
class Cell:
    """One clipped Voronoi cell.

    Attributes:
        point_index: Position of the generating point in the input
        geometry: Clipped cell geometry (Polygon or MultiPolygon)
        area_km2: Summed area of all clipped parts
        metric: Presented metric (capped density, or attribute value)
        raw_metric: Uncapped metric
    """
    point_index: int
    geometry: BaseGeometry
    area_km2: float
    metric: Any
    raw_metric: Any

    @property
    def has_area(self) -> bool:
        return self.area_km2 > 0


@dataclass
class TessellationResult:
    """Result of a tessellation.

    Attributes:
        cells: Cells ordered by generating point position
        mode: Tessellation mode that produced the metrics
        metric_column: Column name used for the metric in to_geodataframe()
        attributes: Non-geometry columns of the generating points, one row
            per cell in cell order
        crs: CRS of the input points
        cap: Presentation cap applied to density metrics
    """
    cells: List[Cell]
    mode: TessellationMode
    metric_column: str
    attributes: pd.DataFrame = field(default_factory=pd.DataFrame)
    crs: Optional[Any] = None
    cap: Optional[float] = None

    def __len__(self) -> int:
        return len(self.cells)

    def metrics(self) -> List[Any]:
        """Presented (possibly capped) metric of every cell."""
        return [cell.metric for cell in self.cells]

    def raw_metrics(self) -> List[Any]:
        """Uncapped metric of every cell."""
        return [cell.raw_metric for cell in self.cells]

    def point_indices(self) -> List[int]:
        return [cell.point_index for cell in self.cells]

    def total_area_km2(self) -> float:
        return float(sum(cell.area_km2 for cell in self.cells))

    def with_cap(self, cap: Optional[float]) -> "TessellationResult":
        """Return a copy with density metrics re-capped.

        Geometry is not recomputed; only the presented metric changes.

        Args:
            cap: New cap, or None to present raw densities

        Raises:
            ValueError: If the result is not a density result or cap <= 0
        """
        if self.mode is not TessellationMode.DENSITY:
            raise ValueError("A cap only applies to density results")
        _validate_cap(cap)
        cells = [
            dataclasses.replace(cell, metric=_apply_cap(cell.raw_metric, cap))
            for cell in self.cells
        ]
        return dataclasses.replace(self, cells=cells, cap=cap)

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        """Tabulate the cells for rendering.

        NoArea metrics become NaN so renderers draw them with their
        missing-data colour.
        """
        frame = pd.DataFrame({
            "point_index": self.point_indices(),
            "area_km2": [cell.area_km2 for cell in self.cells],
            self.metric_column: [_to_float(cell.metric) for cell in self.cells],
        })
        if self.mode is TessellationMode.DENSITY:
            frame[f"{self.metric_column}_raw"] = [
                _to_float(cell.raw_metric) for cell in self.cells
            ]

        extra = self.attributes.drop(
            columns=[c for c in self.attributes.columns if c in frame.columns]
        ).reset_index(drop=True)
        frame = pd.concat([frame, extra], axis=1)

        return gpd.GeoDataFrame(
            frame,
            geometry=[cell.geometry for cell in self.cells],
            crs=self.crs
        )


class VoronoiEngine:
    """Computes clipped Voronoi cells and their metrics.

    The computation runs in these steps:
    1. Validating the point set, CRS agreement and duplicate coordinates
    2. Building the Voronoi diagram over the envelope
    3. Clipping every cell to the envelope and the boundary
    4. Deriving the density or transferring the attribute per cell
    """

    def __init__(
        self,
        mode: Union[str, TessellationMode] = TessellationMode.DENSITY,
        value_column: Optional[str] = None,
        cap: Optional[float] = None,
        deduplicate: bool = False,
        include_empty: bool = False
    ):
        """Initialize the engine.

        Args:
            mode: DENSITY or ATTRIBUTE_TRANSFER (or their string values)
            value_column: Point attribute copied to the cells
                (required for ATTRIBUTE_TRANSFER)
            cap: Upper bound on presented densities (DENSITY only)
            deduplicate: Keep the first of coincident points instead of
                raising DegenerateInputError
            include_empty: Report zero-area cells with a NoArea metric
                instead of dropping them (DENSITY only)
        """
        if isinstance(mode, str):
            mode = TessellationMode(mode)

        if mode is TessellationMode.ATTRIBUTE_TRANSFER:
            if value_column is None:
                raise ValueError(
                    "value_column is required for attribute transfer"
                )
            if cap is not None:
                raise ValueError("A cap only applies to density mode")
            if include_empty:
                raise ValueError(
                    "Zero-area cells carry no value in attribute transfer mode"
                )
        _validate_cap(cap)

        self.mode = mode
        self.value_column = value_column
        self.cap = cap
        self.deduplicate = deduplicate
        self.include_empty = include_empty

    def compute(
        self,
        points: Union[gpd.GeoDataFrame, gpd.GeoSeries],
        boundary: GeometryLike,
        envelope: Optional[GeometryLike] = None
    ) -> TessellationResult:
        """Tessellate the points and derive one metric per clipped cell.

        Args:
            points: Generating points, in a projected CRS (metres)
            boundary: Clip region; multi-row inputs are unioned
            envelope: Tessellation extent (defaults to the boundary).
                Cells reaching past it are truncated at its edge.

        Returns:
            TessellationResult with cells ordered by point position

        Raises:
            InsufficientPointsError: Fewer than two (distinct) points
            DegenerateInputError: Coincident points without deduplicate
            CoordinateSystemMismatchError: Inputs in different CRS
        """
        if isinstance(points, gpd.GeoSeries):
            points = gpd.GeoDataFrame(geometry=points, crs=points.crs)

        boundary_shape, boundary_crs = dissolve_boundary(boundary, "boundary")
        if envelope is None:
            envelope_shape, envelope_crs = boundary_shape, boundary_crs
        else:
            envelope_shape, envelope_crs = dissolve_boundary(envelope, "envelope")

        self._check_crs(points.crs, boundary=boundary_crs, envelope=envelope_crs)

        if len(points) < 2:
            raise InsufficientPointsError(len(points))

        coords = self._extract_coordinates(points)
        if self.value_column is not None and self.value_column not in points.columns:
            raise ValueError(
                f"Missing value_column '{self.value_column}'. "
                f"Available columns: {list(points.columns)}"
            )

        positions = self._resolve_duplicates(coords)
        if len(positions) < 2:
            raise InsufficientPointsError(len(positions))

        raw_cells = self._tessellate(coords[positions], envelope_shape)

        clip_to_boundary = envelope is not None
        cells: List[Cell] = []
        dropped = 0
        values = (
            points[self.value_column].tolist()
            if self.mode is TessellationMode.ATTRIBUTE_TRANSFER else None
        )

        for position, raw in zip(positions.tolist(), raw_cells):
            geometry = raw.intersection(envelope_shape)
            if clip_to_boundary:
                geometry = geometry.intersection(boundary_shape)
            geometry = _polygonal(geometry)
            area_km2 = geometry.area / M2_PER_KM2

            if area_km2 > 0:
                cells.append(self._make_cell(position, geometry, area_km2, values))
            elif self.include_empty:
                cells.append(Cell(position, Polygon(), 0.0, NO_AREA, NO_AREA))
            else:
                dropped += 1

        logger.info(
            "Tessellated %d points into %d cells (%d without area dropped)",
            len(positions), len(cells), dropped
        )

        attributes = pd.DataFrame(
            points.drop(columns=points.geometry.name)
        ).iloc[[cell.point_index for cell in cells]].reset_index(drop=True)

        if self.mode is TessellationMode.DENSITY:
            metric_column = DENSITY_COLUMN
        else:
            metric_column = self.value_column

        return TessellationResult(
            cells=cells,
            mode=self.mode,
            metric_column=metric_column,
            attributes=attributes,
            crs=points.crs,
            cap=self.cap
        )

    def _check_crs(self, points_crs, **others):
        """Raise if any CRS differs from the points' CRS."""
        for name, crs in others.items():
            if points_crs is not None and crs is not None and points_crs != crs:
                raise CoordinateSystemMismatchError(
                    f"Points are in {points_crs.to_string()} but {name} is in "
                    f"{crs.to_string()}; reproject before tessellating"
                )

        if (
            self.mode is TessellationMode.DENSITY
            and points_crs is not None
            and points_crs.is_geographic
        ):
            logger.warning(
                "Points are in geographic CRS %s; cell areas will not be in m²",
                points_crs.to_string()
            )

    def _extract_coordinates(self, points: gpd.GeoDataFrame) -> np.ndarray:
        geoms = points.geometry
        if geoms.isna().any():
            raise ValueError("Point dataset contains missing geometries")

        kinds = set(geoms.geom_type)
        if kinds != {"Point"}:
            raise ValueError(
                f"Only Point geometries can be tessellated, got {sorted(kinds)}"
            )
        if geoms.is_empty.any():
            raise ValueError("Point dataset contains empty points")

        return np.column_stack([geoms.x.to_numpy(), geoms.y.to_numpy()])

    def _resolve_duplicates(self, coords: np.ndarray) -> np.ndarray:
        """Return the point positions that take part in the tessellation."""
        groups = _duplicate_groups(coords)
        if not groups:
            return np.arange(len(coords))

        if not self.deduplicate:
            raise DegenerateInputError(groups)

        redundant = {pos for group in groups for pos in group[1:]}
        logger.info(
            "Dropped %d coincident points from %d duplicate groups",
            len(redundant), len(groups)
        )
        return np.array(
            [pos for pos in range(len(coords)) if pos not in redundant],
            dtype=int
        )

    def _tessellate(self, coords: np.ndarray, envelope: BaseGeometry) -> List[BaseGeometry]:
        """Build Voronoi cells, returned in the order of ``coords``."""
        diagram = shapely.voronoi_polygons(
            shapely.multipoints(coords), extend_to=envelope
        )
        raw = shapely.get_parts(diagram)
        generators = shapely.points(coords)

        tree = shapely.STRtree(raw)
        point_idx, cell_idx = tree.query(generators, predicate="within")

        matched = np.zeros(len(coords), dtype=int)
        np.add.at(matched, point_idx, 1)
        if not (matched == 1).all():
            unmatched = np.flatnonzero(matched != 1).tolist()
            raise GeodensityError(
                f"Could not match Voronoi cells to points at positions {unmatched[:10]}"
            )

        ordered = np.empty(len(coords), dtype=object)
        ordered[point_idx] = raw[cell_idx]
        return list(ordered)

    def _make_cell(
        self,
        position: int,
        geometry: BaseGeometry,
        area_km2: float,
        values: Optional[List[Any]]
    ) -> Cell:
        if self.mode is TessellationMode.ATTRIBUTE_TRANSFER:
            value = values[position]
            return Cell(position, geometry, area_km2, value, value)

        density = 1.0 / area_km2
        return Cell(
            position, geometry, area_km2, _apply_cap(density, self.cap), density
        )


def _validate_cap(cap: Optional[float]):
    if cap is not None and not cap > 0:
        raise ValueError(f"cap must be positive, got {cap}")


def _apply_cap(value: Any, cap: Optional[float]) -> Any:
    if value is NO_AREA or cap is None:
        return value
    return min(value, cap)


def _to_float(value: Any) -> Any:
    return np.nan if value is NO_AREA else value


def dissolve_boundary(shape: GeometryLike, name: str = "boundary") -> Tuple[BaseGeometry, Optional[Any]]:
    """Union a GeoDataFrame/GeoSeries into one geometry, keeping its CRS."""
    if isinstance(shape, gpd.GeoDataFrame):
        shape = shape.geometry
    if isinstance(shape, gpd.GeoSeries):
        if shape.empty:
            raise ValueError(f"The {name} contains no geometries")
        return shapely.union_all(list(shape)), shape.crs
    if isinstance(shape, BaseGeometry):
        if shape.is_empty:
            raise ValueError(f"The {name} geometry is empty")
        return shape, None
    raise TypeError(
        f"The {name} must be a shapely geometry, GeoSeries or GeoDataFrame, "
        f"got {type(shape).__name__}"
    )


def _duplicate_groups(coords: np.ndarray) -> List[List[int]]:
    """Positions sharing identical coordinates, grouped, in input order."""
    _, inverse, counts = np.unique(
        coords, axis=0, return_inverse=True, return_counts=True
    )
    inverse = np.asarray(inverse).ravel()
    groups = [
        np.flatnonzero(inverse == group).tolist()
        for group in np.flatnonzero(counts > 1)
    ]
    return sorted(groups, key=lambda group: group[0])


def _polygonal(geometry: BaseGeometry) -> BaseGeometry:
    """Keep only the areal parts of an intersection result."""
    if geometry.geom_type in ("Polygon", "MultiPolygon"):
        return geometry

    polygons = []
    for part in shapely.get_parts(geometry):
        if part.geom_type == "Polygon" and not part.is_empty:
            polygons.append(part)
        elif part.geom_type == "MultiPolygon":
            polygons.extend(shapely.get_parts(part))

    if not polygons:
        return Polygon()
    if len(polygons) == 1:
        return polygons[0]
    return MultiPolygon(polygons)


def voronoi_density(
    points: Union[gpd.GeoDataFrame, gpd.GeoSeries],
    boundary: GeometryLike,
    envelope: Optional[GeometryLike] = None,
    cap: Optional[float] = None,
    deduplicate: bool = False,
    include_empty: bool = False
) -> TessellationResult:
    """Convenience function for the 1 / km² density proxy.

    Args:
        points: Generating points in a projected CRS
        boundary: Clip region
        envelope: Tessellation extent (defaults to the boundary)
        cap: Presentation cap on densities
        deduplicate: Drop coincident points instead of raising
        include_empty: Keep zero-area cells with a NoArea metric

    Returns:
        TessellationResult in DENSITY mode

    Example:
        >>> result = voronoi_density(fixes, country, cap=0.5)
        >>> result.with_cap(None).raw_metrics()[:3]
    """
    engine = VoronoiEngine(
        mode=TessellationMode.DENSITY,
        cap=cap,
        deduplicate=deduplicate,
        include_empty=include_empty
    )
    return engine.compute(points, boundary, envelope)


def voronoi_attribute(
    points: Union[gpd.GeoDataFrame, gpd.GeoSeries],
    boundary: GeometryLike,
    value_column: str,
    envelope: Optional[GeometryLike] = None,
    deduplicate: bool = False
) -> TessellationResult:
    """Convenience function transferring a point attribute to its cell.

    Args:
        points: Generating points in a projected CRS
        boundary: Clip region
        value_column: Attribute copied verbatim to each cell
        envelope: Tessellation extent (defaults to the boundary)
        deduplicate: Drop coincident points instead of raising

    Returns:
        TessellationResult in ATTRIBUTE_TRANSFER mode

    Example:
        >>> result = voronoi_attribute(stations, country, "pm10")
    """
    engine = VoronoiEngine(
        mode=TessellationMode.ATTRIBUTE_TRANSFER,
        value_column=value_column,
        deduplicate=deduplicate
    )
    return engine.compute(points, boundary, envelope)


def duplicate_positions(points: Union[gpd.GeoDataFrame, gpd.GeoSeries]) -> List[List[int]]:
    """Groups of point positions that share identical coordinates.

    Lets callers check for degenerate input before running the engine.
    """
    geoms = points.geometry if isinstance(points, gpd.GeoDataFrame) else points
    coords = np.column_stack([geoms.x.to_numpy(), geoms.y.to_numpy()])
    return _duplicate_groups(coords)

