"""
End-to-end density mapping for point datasets.

This module ties the loaders, the sampler, the Voronoi engine, the
interpolation surfaces and the renderer together, so one analysis
reads as a short chain of calls.

Example usage:
    >>> from geodensity.workflow import DensityMapper
    >>>
    >>> mapper = DensityMapper()
    >>> mapper.load_points("data/fixes.gpkg")
    >>> mapper.load_boundary("data/country.shp")
    >>> mapper.sample(500)
    >>>
    >>> result = mapper.voronoi(cap=1.0)
    >>> mapper.visualize(result, title="Fix density", sqrt=True)
"""

import logging
from typing import Optional, Tuple, Union

import geopandas as gpd
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from geodensity.config import AnalysisConfig, config as default_config, get_dataset_config
from geodensity.datasource import (
    BoundaryDataSource,
    DatasetConfig,
    PointDataSource,
)
from geodensity.interpolation import Surface, idw_surface, kde_surface
from geodensity.sampling import sample_points
from geodensity.tessellation import (
    GeometryLike,
    TessellationMode,
    TessellationResult,
    VoronoiEngine,
)
from geodensity.visualizer import (
    ColorNorm,
    ColorScale,
    MapStyle,
    MapVisualizer,
)

logger = logging.getLogger(__name__)


class DensityMapper:
    """Runs the density analyses on one point set and one boundary.

    This class provides a high-level interface for:
    1. Loading point and boundary data in a common projected CRS
    2. Subsampling large point sets
    3. Computing Voronoi densities/values or IDW/KDE surfaces
    4. Creating visualizations

    Attributes:
        points: GeoDataFrame of points
        boundary: GeoDataFrame of boundary parts
        points_config: Configuration for the point dataset
        boundary_config: Configuration for the boundary dataset
        config: Analysis settings
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """Initialize an empty mapper."""
        self.config = config or default_config
        self.points: Optional[gpd.GeoDataFrame] = None
        self.boundary: Optional[gpd.GeoDataFrame] = None
        self.points_config: Optional[DatasetConfig] = None
        self.boundary_config: Optional[DatasetConfig] = None
        self._visualizer = MapVisualizer()

    def load_points(
        self,
        path: str,
        value_column: Optional[str] = None,
        x_column: str = "x",
        y_column: str = "y",
        source_crs: str = "EPSG:4326",
        layer: Optional[str] = None,
        name: Optional[str] = None
    ) -> "DensityMapper":
        """Load the point dataset, reprojected to the target CRS.

        Args:
            path: Path to the point file
            value_column: Attribute used by attribute transfer and IDW
            x_column: X/longitude column for tabular files
            y_column: Y/latitude column for tabular files
            source_crs: CRS of tabular coordinates
            layer: Layer name for multi-layer formats
            name: Human-readable name for the dataset

        Returns:
            Self for method chaining
        """
        self.points_config = DatasetConfig(
            path=path,
            value_column=value_column,
            x_column=x_column,
            y_column=y_column,
            source_crs=source_crs,
            layer=layer,
            name=name or "Points"
        )
        source = PointDataSource(self.points_config, target_crs=self.config.target_crs)
        self.points = source.load()
        return self

    def load_points_from_config(self, config_name: str) -> "DensityMapper":
        """Load points using a registered configuration.

        Example:
            >>> mapper = DensityMapper()
            >>> mapper.load_points_from_config("stations")
        """
        self.points_config = get_dataset_config(config_name)
        source = PointDataSource(self.points_config, target_crs=self.config.target_crs)
        self.points = source.load()
        return self

    def load_boundary(
        self,
        path: str,
        layer: Optional[str] = None,
        name: Optional[str] = None
    ) -> "DensityMapper":
        """Load the boundary polygon(s), reprojected to the target CRS.

        Returns:
            Self for method chaining
        """
        self.boundary_config = DatasetConfig(
            path=path,
            layer=layer,
            name=name or "Boundary"
        )
        source = BoundaryDataSource(self.boundary_config, target_crs=self.config.target_crs)
        self.boundary = source.load()
        return self

    def load_boundary_from_config(self, config_name: str) -> "DensityMapper":
        """Load the boundary using a registered configuration."""
        self.boundary_config = get_dataset_config(config_name)
        source = BoundaryDataSource(self.boundary_config, target_crs=self.config.target_crs)
        self.boundary = source.load()
        return self

    def set_points(
        self,
        points: gpd.GeoDataFrame,
        value_column: Optional[str] = None
    ) -> "DensityMapper":
        """Use an in-memory point dataset as is (no reprojection)."""
        self.points = points
        self.points_config = DatasetConfig(
            path="", value_column=value_column, name="Points"
        )
        return self

    def set_boundary(self, boundary: gpd.GeoDataFrame) -> "DensityMapper":
        """Use an in-memory boundary as is (no reprojection)."""
        self.boundary = boundary
        self.boundary_config = DatasetConfig(path="", name="Boundary")
        return self

    def sample(self, n: Optional[int] = None, seed: Optional[int] = None) -> "DensityMapper":
        """Replace the points by a seeded subsample.

        Args:
            n: Maximum number of points (default from config)
            seed: Random seed (default from config)

        Returns:
            Self for method chaining
        """
        self._require_points()
        self.points = sample_points(
            self.points,
            n=n if n is not None else self.config.sample_size,
            seed=seed if seed is not None else self.config.sample_seed
        )
        return self

    def voronoi(
        self,
        mode: Union[str, TessellationMode] = TessellationMode.DENSITY,
        value_column: Optional[str] = None,
        cap: Optional[float] = None,
        envelope: Optional[GeometryLike] = None,
        deduplicate: bool = False
    ) -> TessellationResult:
        """Tessellate the points over the boundary.

        Args:
            mode: "density" or "attribute"
            value_column: Attribute for attribute transfer (defaults to
                the point dataset's value column)
            cap: Presentation cap for densities (defaults to config)
            envelope: Tessellation extent (defaults to the boundary)
            deduplicate: Drop coincident points instead of raising

        Returns:
            TessellationResult
        """
        self._require_points()
        self._require_boundary()

        if isinstance(mode, str):
            mode = TessellationMode(mode)

        if mode is TessellationMode.DENSITY:
            engine = VoronoiEngine(
                mode=mode,
                cap=cap if cap is not None else self.config.density_cap,
                deduplicate=deduplicate
            )
        else:
            engine = VoronoiEngine(
                mode=mode,
                value_column=self._value_column(value_column),
                deduplicate=deduplicate
            )
        return engine.compute(self.points, self.boundary, envelope)

    def kde(
        self,
        cell_size: Optional[float] = None,
        bandwidth: Optional[float] = None,
        scale: str = "per_km2"
    ) -> Surface:
        """Gaussian kernel density surface of the points."""
        self._require_points()
        self._require_boundary()
        return kde_surface(
            self.points,
            self.boundary,
            cell_size=cell_size or self.config.grid_cell_size,
            bandwidth=bandwidth if bandwidth is not None else self.config.kde_bandwidth,
            scale=scale
        )

    def idw(
        self,
        value_column: Optional[str] = None,
        cell_size: Optional[float] = None,
        power: Optional[float] = None,
        neighbors: Optional[int] = None
    ) -> Surface:
        """Inverse-distance weighted surface of a point attribute."""
        self._require_points()
        self._require_boundary()
        return idw_surface(
            self.points,
            self._value_column(value_column),
            self.boundary,
            cell_size=cell_size or self.config.grid_cell_size,
            power=power if power is not None else self.config.idw_power,
            neighbors=neighbors or self.config.idw_neighbors
        )

    def visualize(
        self,
        result: Union[TessellationResult, Surface],
        title: Optional[str] = None,
        colormap: Union[str, ColorScale] = ColorScale.VIRIDIS,
        sqrt: bool = False,
        show_points: bool = False,
        figsize: Tuple[int, int] = (10, 10),
        save_path: Optional[str] = None
    ) -> Tuple[Figure, Axes]:
        """Create a map of a tessellation result or a surface.

        Args:
            result: Output of voronoi(), kde() or idw()
            title: Map title
            colormap: Color scale for the visualization
            sqrt: Use a square-root colour transform
            show_points: Overlay the points
            figsize: Figure size in inches
            save_path: Optional path to save the figure

        Returns:
            Tuple of (Figure, Axes)
        """
        style = MapStyle(
            colormap=colormap,
            norm=ColorNorm.SQRT if sqrt else ColorNorm.LINEAR,
            title=title,
            figsize=figsize
        )
        points = self.points if show_points else None

        if isinstance(result, Surface):
            fig, ax = self._visualizer.plot_surface(
                result, boundary=self.boundary, points=points, style=style
            )
        else:
            fig, ax = self._visualizer.plot_tessellation(
                result, boundary=self.boundary, points=points, style=style
            )

        if save_path:
            self._visualizer.save(save_path, fig)
            logger.info("Saved map to %s", save_path)

        return fig, ax

    def _value_column(self, value_column: Optional[str]) -> str:
        if value_column is not None:
            return value_column
        if self.points_config is not None and self.points_config.value_column:
            return self.points_config.value_column
        raise ValueError(
            "No value column given and none configured for the point dataset"
        )

    def _require_points(self):
        if self.points is None:
            raise ValueError("Points not loaded. Call load_points() first.")

    def _require_boundary(self):
        if self.boundary is None:
            raise ValueError("Boundary not loaded. Call load_boundary() first.")
