"""Tests for loading point and boundary datasets."""

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import MultiPoint, box

from geodensity.datasource import (
    BoundaryDataSource,
    DatasetConfig,
    FileDataSource,
    PointDataSource,
    load_boundary,
    load_points,
)
from geodensity.errors import CoordinateSystemMismatchError, DatasetReadError


@pytest.fixture
def station_csv(tmp_path):
    path = tmp_path / "stations.csv"
    pd.DataFrame({
        "station": ["A", "B", "C", "D"],
        "lon": [13.1, 13.4, 13.6, None],
        "lat": [52.4, 52.5, 52.6, 52.45],
        "pm10": [21.0, 35.5, 18.2, 40.0],
    }).to_csv(path, index=False)
    return path


@pytest.fixture
def boundary_file(tmp_path):
    path = tmp_path / "country.geojson"
    gpd.GeoDataFrame(
        {"part": ["mainland", "island"]},
        geometry=[box(13.0, 52.3, 13.8, 52.7), box(14.0, 52.3, 14.2, 52.5)],
        crs="EPSG:4326",
    ).to_file(path, driver="GeoJSON")
    return path


class TestDatasetConfig:
    """Test dataset configuration defaults."""

    def test_name_defaults_to_stem(self):
        config = DatasetConfig(path="data/stations.csv")

        assert config.name == "stations"

    def test_explicit_name(self):
        config = DatasetConfig(path="data/stations.csv", name="Monitors")

        assert config.name == "Monitors"


class TestTabularPoints:
    """Test loading points from CSV files."""

    def test_load_and_reproject(self, station_csv):
        points = load_points(
            str(station_csv),
            value_column="pm10",
            x_column="lon",
            y_column="lat",
            target_crs="EPSG:3035",
        )

        assert points.crs.to_epsg() == 3035
        assert set(points.geom_type) == {"Point"}
        assert list(points["station"]) == ["A", "B", "C"]

    def test_rows_without_coordinates_dropped(self, station_csv):
        config = DatasetConfig(path=str(station_csv), x_column="lon", y_column="lat")

        points = PointDataSource(config).load()

        assert len(points) == 3
        assert points.crs.to_epsg() == 4326
        assert points.geometry.iloc[0].x == pytest.approx(13.1)

    def test_missing_coordinate_columns(self, station_csv):
        with pytest.raises(ValueError, match="coordinate"):
            load_points(str(station_csv))

    def test_missing_value_column(self, station_csv):
        with pytest.raises(ValueError, match="no2"):
            load_points(str(station_csv), value_column="no2", x_column="lon", y_column="lat")

    def test_unknown_crs_cannot_be_reprojected(self, station_csv):
        config = DatasetConfig(
            path=str(station_csv), x_column="lon", y_column="lat", source_crs=None
        )

        with pytest.raises(CoordinateSystemMismatchError):
            FileDataSource(config, target_crs="EPSG:3035").load()

    def test_load_is_cached(self, station_csv):
        config = DatasetConfig(path=str(station_csv), x_column="lon", y_column="lat")
        source = PointDataSource(config)

        assert source.load() is source.load()


class TestVectorFiles:
    """Test loading vector formats."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_points(str(tmp_path / "absent.gpkg"))

    def test_boundary_parts_and_shape(self, boundary_file):
        source = BoundaryDataSource(
            DatasetConfig(path=str(boundary_file)), target_crs="EPSG:3035"
        )

        parts = source.load()
        shape = source.load_shape()

        assert len(parts) == 2
        assert parts.crs.to_epsg() == 3035
        assert shape.geom_type == "MultiPolygon"
        assert shape.area == pytest.approx(parts.area.sum())

    def test_load_boundary_helper(self, boundary_file):
        boundary = load_boundary(str(boundary_file))

        assert len(boundary) == 2
        assert boundary.crs.to_epsg() == 4326

    def test_point_source_rejects_polygons(self, boundary_file):
        with pytest.raises(ValueError, match="non-point"):
            PointDataSource(DatasetConfig(path=str(boundary_file))).load()

    def test_multipoints_exploded(self, tmp_path):
        path = tmp_path / "fixes.geojson"
        gpd.GeoDataFrame(
            {"animal": ["fox", "owl"]},
            geometry=[MultiPoint([(13.2, 52.4)]), MultiPoint([(13.3, 52.5)])],
            crs="EPSG:4326",
        ).to_file(path, driver="GeoJSON")

        points = PointDataSource(DatasetConfig(path=str(path))).load()

        assert list(points.geom_type) == ["Point", "Point"]
        assert list(points["animal"]) == ["fox", "owl"]

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "corrupt.geojson"
        path.write_text("{ not json")

        with pytest.raises(DatasetReadError, match="corrupt.geojson"):
            load_boundary(str(path))

    def test_invalid_target_crs(self, boundary_file):
        with pytest.raises(DatasetReadError) as info:
            load_boundary(str(boundary_file), target_crs="EPSG:9999999")

        assert isinstance(info.value, ValueError)

    def test_non_gdb_has_no_layers(self, boundary_file):
        source = FileDataSource(DatasetConfig(path=str(boundary_file)))

        assert source.list_layers() == []
