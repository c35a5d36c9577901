"""
Data source abstraction for loading point and boundary datasets.

This module provides data loading for the vector formats the analyses
read (Shapefile, GeoDatabase, GeoJSON, GeoPackage) plus tabular point
files with coordinate columns, and normalizes everything to one
projected coordinate reference system.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List

import fiona
import geopandas as gpd
import pandas as pd
import shapely
from fiona.errors import FionaError
from pyogrio.errors import DataSourceError
from pyproj.exceptions import CRSError
from shapely.geometry.base import BaseGeometry

from geodensity.errors import CoordinateSystemMismatchError, DatasetReadError

logger = logging.getLogger(__name__)

TABULAR_SUFFIXES = (".csv", ".txt")


@dataclass
class DatasetConfig:
    """Configuration for a geospatial dataset.

    Attributes:
        path: Path to the data file
        value_column: Column holding the attribute to transfer/interpolate
        id_column: Column name containing unique identifiers
        x_column: Easting/longitude column for tabular files
        y_column: Northing/latitude column for tabular files
        source_crs: CRS of the coordinate columns of tabular files
        layer: Layer name for multi-layer formats like GeoDatabase
        name: Human-readable name for the dataset
    """
    path: str
    value_column: Optional[str] = None
    id_column: Optional[str] = None
    x_column: str = "x"
    y_column: str = "y"
    source_crs: Optional[str] = "EPSG:4326"
    layer: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.name is None:
            self.name = Path(self.path).stem


class DataSource(ABC):
    """Abstract base class for geospatial data sources."""

    @abstractmethod
    def load(self) -> gpd.GeoDataFrame:
        """Load and return the geospatial data."""
        pass

    @abstractmethod
    def get_config(self) -> DatasetConfig:
        """Return the dataset configuration."""
        pass


class FileDataSource(DataSource):
    """Data source that loads from a file path.

    Supports various formats:
    - Shapefile (.shp)
    - GeoDatabase (.gdb)
    - GeoJSON (.geojson, .json)
    - GeoPackage (.gpkg)
    - CSV with coordinate columns (.csv, .txt)
    - And other formats supported by GeoPandas/Fiona
    """

    def __init__(self, config: DatasetConfig, target_crs: Optional[str] = None):
        """Initialize the data source.

        Args:
            config: Dataset configuration specifying path and column mappings
            target_crs: CRS to reproject the data to after loading
        """
        self.config = config
        self.target_crs = target_crs
        self._data: Optional[gpd.GeoDataFrame] = None

    def load(self) -> gpd.GeoDataFrame:
        """Load the geospatial data from file.

        Returns:
            GeoDataFrame containing the loaded data, in target_crs if set

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If the specified layer or a column doesn't exist
            CoordinateSystemMismatchError: If reprojection is requested for
                data without a CRS
            DatasetReadError: If the file cannot be parsed or a CRS is invalid
        """
        if self._data is not None:
            return self._data

        path = Path(self.config.path)

        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")

        suffix = path.suffix.lower()
        try:
            if suffix == '.gdb':
                data = self._load_geodatabase(path)
            elif suffix in TABULAR_SUFFIXES:
                data = self._load_table(path)
            else:
                data = gpd.read_file(str(path))
            data = self._reproject(data)
        except (DataSourceError, FionaError, CRSError) as e:
            raise DatasetReadError(str(path), e) from e

        self._data = data
        self._validate_columns()
        logger.info(
            "Loaded %d features from %s (crs=%s)",
            len(self._data), path.name, self._data.crs
        )
        return self._data

    def _load_geodatabase(self, path: Path) -> gpd.GeoDataFrame:
        """Load data from a GeoDatabase file.

        Args:
            path: Path to the .gdb file

        Returns:
            GeoDataFrame from the specified layer
        """
        available_layers = fiona.listlayers(str(path))

        if self.config.layer is None:
            if len(available_layers) == 1:
                self.config.layer = available_layers[0]
            else:
                raise ValueError(
                    f"GeoDatabase has multiple layers: {available_layers}. "
                    "Please specify a layer in the config."
                )

        if self.config.layer not in available_layers:
            raise ValueError(
                f"Layer '{self.config.layer}' not found. "
                f"Available layers: {available_layers}"
            )

        return gpd.read_file(str(path), layer=self.config.layer)

    def _load_table(self, path: Path) -> gpd.GeoDataFrame:
        """Load point data from a delimited file with coordinate columns."""
        frame = pd.read_csv(path, sep=None, engine="python")
        x_col, y_col = self.config.x_column, self.config.y_column

        missing = [c for c in (x_col, y_col) if c not in frame.columns]
        if missing:
            raise ValueError(
                f"Missing coordinate columns {missing}. "
                f"Available columns: {list(frame.columns)}"
            )

        before = len(frame)
        frame = frame.dropna(subset=[x_col, y_col]).reset_index(drop=True)
        if len(frame) < before:
            logger.warning(
                "Dropped %d rows without coordinates from %s",
                before - len(frame), path.name
            )

        return gpd.GeoDataFrame(
            frame,
            geometry=gpd.points_from_xy(frame[x_col], frame[y_col]),
            crs=self.config.source_crs
        )

    def _reproject(self, data: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        if self.target_crs is None:
            return data
        if data.crs is None:
            raise CoordinateSystemMismatchError(
                f"Dataset '{self.config.name}' has no CRS and cannot be "
                f"reprojected to {self.target_crs}"
            )
        return data.to_crs(self.target_crs)

    def _validate_columns(self):
        """Validate that required columns exist in the loaded data."""
        if self._data is None:
            return

        missing = []
        if self.config.id_column and self.config.id_column not in self._data.columns:
            missing.append(f"id_column: {self.config.id_column}")

        if self.config.value_column and self.config.value_column not in self._data.columns:
            missing.append(f"value_column: {self.config.value_column}")

        if missing:
            available = list(self._data.columns)
            raise ValueError(
                f"Missing columns in dataset: {missing}. "
                f"Available columns: {available}"
            )

    def get_config(self) -> DatasetConfig:
        """Return the dataset configuration."""
        return self.config

    def list_layers(self) -> List[str]:
        """List available layers for GeoDatabase files.

        Returns:
            List of layer names, or empty list for non-GDB files
        """
        path = Path(self.config.path)
        if path.suffix.lower() == '.gdb':
            return fiona.listlayers(str(path))
        return []


class PointDataSource(FileDataSource):
    """Data source for point observations (stations, animal fixes).

    Single-part MultiPoints are exploded to Points; any other geometry
    type is rejected.
    """

    def load(self) -> gpd.GeoDataFrame:
        if self._data is not None:
            return self._data

        data = super().load()
        if (data.geom_type == "MultiPoint").any():
            data = data.explode(index_parts=False).reset_index(drop=True)

        bad = data.geom_type[data.geom_type != "Point"]
        if len(bad):
            raise ValueError(
                f"Point dataset '{self.config.name}' contains non-point "
                f"geometries: {sorted(set(bad.dropna()))}"
            )

        self._data = data
        return self._data


class BoundaryDataSource(FileDataSource):
    """Data source for the clipping boundary (e.g. a national border).

    The file may hold several parts (islands, regions); load_shape()
    returns them unioned into one geometry.
    """

    def load_shape(self) -> BaseGeometry:
        """Load the boundary and dissolve it into a single geometry."""
        data = self.load()
        if data.empty:
            raise ValueError(f"Boundary dataset '{self.config.name}' is empty")
        return shapely.union_all(list(data.geometry))


def load_points(
    path: str,
    value_column: Optional[str] = None,
    target_crs: Optional[str] = None,
    x_column: str = "x",
    y_column: str = "y",
    source_crs: str = "EPSG:4326",
    layer: Optional[str] = None,
    name: Optional[str] = None
) -> gpd.GeoDataFrame:
    """Convenience function to load a point dataset.

    Args:
        path: Path to the data file
        value_column: Optional attribute column that must be present
        target_crs: CRS to reproject to
        x_column: X/longitude column for tabular files
        y_column: Y/latitude column for tabular files
        source_crs: CRS of the coordinate columns for tabular files
        layer: Layer name for multi-layer formats like GeoDatabase
        name: Human-readable name for the dataset

    Returns:
        Loaded GeoDataFrame of points

    Example:
        >>> stations = load_points(
        ...     "data/stations.csv",
        ...     value_column="pm10",
        ...     x_column="lon",
        ...     y_column="lat",
        ...     target_crs="EPSG:3035"
        ... )
    """
    config = DatasetConfig(
        path=path,
        value_column=value_column,
        x_column=x_column,
        y_column=y_column,
        source_crs=source_crs,
        layer=layer,
        name=name
    )
    return PointDataSource(config, target_crs=target_crs).load()


def load_boundary(
    path: str,
    target_crs: Optional[str] = None,
    layer: Optional[str] = None,
    name: Optional[str] = None
) -> gpd.GeoDataFrame:
    """Convenience function to load a boundary dataset.

    Args:
        path: Path to the boundary file
        target_crs: CRS to reproject to
        layer: Layer name for multi-layer formats
        name: Human-readable name for the dataset

    Returns:
        Loaded GeoDataFrame of boundary parts
    """
    config = DatasetConfig(path=path, layer=layer, name=name or "Boundary")
    return BoundaryDataSource(config, target_crs=target_crs).load()
