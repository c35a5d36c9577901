"""
Configuration for density analyses and presets for the bundled datasets.

This module provides the analysis settings (target projection, sampling,
grid resolution, interpolation parameters) and pre-configured dataset
definitions for the station, animal-fix and boundary files the analyses
run on.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from geodensity.datasource import DatasetConfig


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class AnalysisConfig:
    """Settings shared by the Voronoi, KDE and IDW analyses.

    Attributes:
        target_crs: Projected CRS every input is normalized to. Must be
            equal-area for the density proxy to be meaningful.
        sample_size: Maximum number of points handed to the engines
        sample_seed: Seed for the subsampling step
        grid_cell_size: Raster resolution in CRS units (metres)
        idw_power: Distance exponent for inverse-distance weighting
        idw_neighbors: Number of nearest stations used per grid node
        kde_bandwidth: Kernel bandwidth in metres (None = Scott's rule)
        density_cap: Presentation cap for Voronoi densities (None = no cap)
        output_dir: Directory figures are written to
        log_level: Logging level name for the CLI
    """

    target_crs: str = field(
        default_factory=lambda: os.getenv("GEODENSITY_CRS", "EPSG:3035")
    )
    sample_size: int = field(
        default_factory=lambda: int(os.getenv("GEODENSITY_SAMPLE_SIZE", "500"))
    )
    sample_seed: int = field(
        default_factory=lambda: int(os.getenv("GEODENSITY_SEED", "42"))
    )
    grid_cell_size: float = 1000.0
    idw_power: float = 2.0
    idw_neighbors: int = 6
    kde_bandwidth: Optional[float] = field(
        default_factory=lambda: _optional_float("GEODENSITY_KDE_BANDWIDTH")
    )
    density_cap: Optional[float] = field(
        default_factory=lambda: _optional_float("GEODENSITY_DENSITY_CAP")
    )
    output_dir: str = field(
        default_factory=lambda: os.getenv("GEODENSITY_OUTPUT_DIR", "results")
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("GEODENSITY_LOG_LEVEL", "INFO")
    )


# Global config instance
config = AnalysisConfig()


def load_config_from_env() -> AnalysisConfig:
    """Load configuration from environment variables."""
    return AnalysisConfig()


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging for command-line use.

    Args:
        level: Logging level name ("DEBUG", "INFO", ...)

    Returns:
        The package logger
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return logging.getLogger("geodensity")


# Pre-defined dataset configurations
AIR_QUALITY_STATIONS = DatasetConfig(
    path="./data/air_quality/stations.csv",
    id_column="station_id",
    value_column="value",
    x_column="longitude",
    y_column="latitude",
    name="Air Quality Monitoring Stations"
)

ANIMAL_FIXES = DatasetConfig(
    path="./data/animal_tracking/fixes.gpkg",
    id_column="fix_id",
    name="Animal Location Fixes"
)

# National boundary polygon
NATIONAL_BOUNDARY = DatasetConfig(
    path="./data/boundary/country.shp",
    name="National Boundary"
)


class DatasetRegistry:
    """Registry for managing dataset configurations.

    This class provides a central location for storing and retrieving
    dataset configurations, making it easy to switch between datasets.
    """

    def __init__(self):
        """Initialize with pre-defined datasets."""
        self._datasets: Dict[str, DatasetConfig] = {}
        self._load_defaults()

    def _load_defaults(self):
        """Load default dataset configurations."""
        self.register("stations", AIR_QUALITY_STATIONS)
        self.register("air_quality", AIR_QUALITY_STATIONS)  # Alias
        self.register("animals", ANIMAL_FIXES)
        self.register("boundary", NATIONAL_BOUNDARY)

    def register(self, name: str, config: DatasetConfig):
        """Register a dataset configuration.

        Args:
            name: Unique identifier for the dataset
            config: Dataset configuration
        """
        self._datasets[name.lower()] = config

    def get(self, name: str) -> DatasetConfig:
        """Retrieve a dataset configuration.

        Args:
            name: Dataset identifier

        Returns:
            Dataset configuration

        Raises:
            KeyError: If dataset not found
        """
        name = name.lower()
        if name not in self._datasets:
            available = list(self._datasets.keys())
            raise KeyError(
                f"Dataset '{name}' not found. Available datasets: {available}"
            )
        return self._datasets[name]

    def list_datasets(self) -> Dict[str, str]:
        """List all registered datasets.

        Returns:
            Dictionary mapping dataset names to their descriptions
        """
        return {
            name: config.name or config.path
            for name, config in self._datasets.items()
        }


# Global registry instance
registry = DatasetRegistry()


def get_dataset_config(name: str) -> DatasetConfig:
    """Get a dataset configuration from the global registry.

    Args:
        name: Dataset identifier

    Returns:
        Dataset configuration

    Example:
        >>> config = get_dataset_config("stations")
        >>> print(config.value_column)
        value
    """
    return registry.get(name)


def register_dataset(name: str, config: DatasetConfig):
    """Register a dataset in the global registry.

    Args:
        name: Unique identifier
        config: Dataset configuration
    """
    registry.register(name, config)


def list_datasets() -> Dict[str, str]:
    """List all datasets in the global registry."""
    return registry.list_datasets()
