"""
Voronoi and kernel density mapping of point datasets.

This package loads point observations (monitoring stations, animal
location fixes) and a boundary polygon, then derives density and value
maps from them.

Modules:
    tessellation: Voronoi cells clipped to a boundary with per-cell metrics
    interpolation: Inverse-distance weighted and kernel density surfaces
    datasource: Data loading and CRS normalization
    sampling: Seeded subsampling of large point sets
    visualizer: Choropleth and surface rendering
    workflow: End-to-end DensityMapper
    config: Analysis settings and dataset presets

Example:
    >>> from geodensity import load_points, load_boundary, voronoi_density
    >>>
    >>> fixes = load_points("./data/fixes.gpkg", target_crs="EPSG:3035")
    >>> country = load_boundary("./data/country.shp", target_crs="EPSG:3035")
    >>> result = voronoi_density(fixes, country, cap=1.0)
    >>> result.to_geodataframe().head()
"""

from geodensity.errors import (
    GeodensityError,
    InsufficientPointsError,
    CoordinateSystemMismatchError,
    DegenerateInputError,
    DatasetReadError,
)

from geodensity.datasource import (
    DatasetConfig,
    DataSource,
    FileDataSource,
    PointDataSource,
    BoundaryDataSource,
    load_points,
    load_boundary,
)

from geodensity.sampling import sample_points

from geodensity.tessellation import (
    TessellationMode,
    NoArea,
    NO_AREA,
    Cell,
    TessellationResult,
    VoronoiEngine,
    voronoi_density,
    voronoi_attribute,
    duplicate_positions,
)

from geodensity.interpolation import (
    SurfaceGrid,
    Surface,
    make_grid,
    idw_surface,
    kde_surface,
)

from geodensity.visualizer import (
    ColorScale,
    ColorNorm,
    MapStyle,
    LayerConfig,
    MapVisualizer,
    plot_density_map,
    compare_caps,
)

from geodensity.config import (
    AnalysisConfig,
    DatasetRegistry,
    registry,
    get_dataset_config,
    register_dataset,
    list_datasets,
    AIR_QUALITY_STATIONS,
    ANIMAL_FIXES,
    NATIONAL_BOUNDARY,
)

from geodensity.workflow import DensityMapper

__version__ = "0.1.0"

__all__ = [
    # Errors
    "GeodensityError",
    "InsufficientPointsError",
    "CoordinateSystemMismatchError",
    "DegenerateInputError",
    "DatasetReadError",
    # Data loading
    "DatasetConfig",
    "DataSource",
    "FileDataSource",
    "PointDataSource",
    "BoundaryDataSource",
    "load_points",
    "load_boundary",
    "sample_points",
    # Tessellation
    "TessellationMode",
    "NoArea",
    "NO_AREA",
    "Cell",
    "TessellationResult",
    "VoronoiEngine",
    "voronoi_density",
    "voronoi_attribute",
    "duplicate_positions",
    # Interpolation
    "SurfaceGrid",
    "Surface",
    "make_grid",
    "idw_surface",
    "kde_surface",
    # Visualization
    "ColorScale",
    "ColorNorm",
    "MapStyle",
    "LayerConfig",
    "MapVisualizer",
    "plot_density_map",
    "compare_caps",
    # Configuration
    "AnalysisConfig",
    "DatasetRegistry",
    "registry",
    "get_dataset_config",
    "register_dataset",
    "list_datasets",
    "AIR_QUALITY_STATIONS",
    "ANIMAL_FIXES",
    "NATIONAL_BOUNDARY",
    # Workflow
    "DensityMapper",
]
