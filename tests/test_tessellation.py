"""Tests for Voronoi density and attribute transfer."""

import math
import pickle

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import Polygon, box
from shapely.ops import unary_union

from geodensity.errors import (
    CoordinateSystemMismatchError,
    DegenerateInputError,
    InsufficientPointsError,
)
from geodensity.tessellation import (
    DENSITY_COLUMN,
    NO_AREA,
    NoArea,
    TessellationMode,
    VoronoiEngine,
    duplicate_positions,
    voronoi_attribute,
    voronoi_density,
)
from conftest import CRS, make_points


class TestDensity:
    """Test the 1 / km² density proxy."""

    def test_square_quadrants(self, corner_points, square):
        """Four corner generators split a 2x2 km square into 1 km² quadrants."""
        result = voronoi_density(corner_points, square)

        assert len(result) == 4
        assert result.point_indices() == [0, 1, 2, 3]
        for cell in result.cells:
            assert cell.area_km2 == pytest.approx(1.0)
            assert cell.metric == pytest.approx(1.0)
            assert cell.raw_metric == pytest.approx(1.0)

    def test_quadrant_belongs_to_its_corner(self, corner_points, square):
        result = voronoi_density(corner_points, square)

        for cell, point in zip(result.cells, corner_points.geometry):
            assert cell.geometry.intersects(point)
            assert cell.geometry.bounds[2] - cell.geometry.bounds[0] == pytest.approx(1000)

    def test_cell_equal_to_boundary(self):
        """A cell that coincides with the boundary has metric 1 / boundary area."""
        points = make_points([(500, 250), (1500, 250)])
        envelope = box(0, 0, 2000, 500)
        boundary = box(0, 0, 800, 500)

        result = voronoi_density(points, boundary, envelope=envelope)

        assert len(result) == 1
        cell = result.cells[0]
        assert cell.point_index == 0
        assert cell.geometry.equals(boundary)
        assert cell.metric == pytest.approx(1 / 0.4)

    def test_areas_sum_to_boundary(self, random_points, square):
        result = voronoi_density(random_points, square)

        assert len(result) == len(random_points)
        assert result.total_area_km2() == pytest.approx(4.0, rel=1e-6)

    def test_boundary_inside_larger_envelope(self, random_points):
        envelope = box(-1000, -1000, 3000, 3000)
        boundary = Polygon([(0, 0), (2000, 0), (2000, 2000)])

        result = voronoi_density(random_points, boundary, envelope=envelope)

        assert len(result) <= len(random_points)
        assert result.total_area_km2() == pytest.approx(boundary.area / 1e6, rel=1e-6)
        union = unary_union([cell.geometry for cell in result.cells])
        assert union.symmetric_difference(boundary).area == pytest.approx(0, abs=1e-3)

    def test_cells_do_not_overlap(self, random_points, square):
        result = voronoi_density(random_points, square)
        geoms = [cell.geometry for cell in result.cells]

        for i, a in enumerate(geoms):
            for b in geoms[i + 1:]:
                assert a.intersection(b).area == pytest.approx(0, abs=1e-3)

    def test_disconnected_pieces_are_summed(self):
        """A cell split by a concave boundary reports one summed density."""
        u_shape = unary_union([
            box(0, 0, 3000, 1000),
            box(0, 0, 1000, 3000),
            box(2000, 0, 3000, 3000),
        ])
        points = make_points([(1500, 2500), (1500, 200)])

        result = voronoi_density(points, u_shape)

        assert len(result) == 2
        notch = result.cells[0]
        assert notch.geometry.geom_type == "MultiPolygon"
        assert len(notch.geometry.geoms) == 2
        assert notch.area_km2 == pytest.approx(3.3)
        assert notch.metric == pytest.approx(1 / 3.3)
        assert result.cells[1].area_km2 == pytest.approx(3.7)

    @pytest.mark.parametrize("envelope", [None, box(0, 0, 2000, 2000)])
    def test_outside_generator_keeps_clipped_cell(self, envelope):
        """A point in the notch of an L still owns the part of the L nearest to it."""
        l_shape = unary_union([box(0, 0, 2000, 1000), box(0, 0, 1000, 2000)])
        points = make_points([(1500, 1500), (400, 400)])

        result = voronoi_density(points, l_shape, envelope=envelope)

        assert result.point_indices() == [0, 1]
        notch, corner = result.cells
        # Part of the L beyond the bisector x + y = 1900
        assert notch.area_km2 == pytest.approx(1.195, rel=1e-6)
        assert notch.geometry.within(l_shape.buffer(1e-6))
        assert notch.metric == pytest.approx(1 / 1.195, rel=1e-6)
        assert corner.area_km2 == pytest.approx(1.805, rel=1e-6)

    def test_points_outside_envelope_are_dropped(self):
        points = make_points([(500, 500), (1500, 500), (50000, 50000)])
        boundary = box(0, 0, 2000, 1000)

        result = voronoi_density(points, boundary)

        assert result.point_indices() == [0, 1]
        assert result.total_area_km2() == pytest.approx(2.0)


class TestNoArea:
    """Test the zero-area sentinel."""

    def test_singleton(self):
        assert NoArea() is NO_AREA
        assert not NO_AREA
        assert repr(NO_AREA) == "NoArea"
        assert pickle.loads(pickle.dumps(NO_AREA)) is NO_AREA

    def test_include_empty_reports_sentinel(self):
        points = make_points([(500, 500), (1500, 500)])
        envelope = box(0, 0, 2000, 1000)
        boundary = box(0, 0, 900, 1000)

        result = voronoi_density(points, boundary, envelope=envelope, include_empty=True)

        assert len(result) == 2
        empty = result.cells[1]
        assert empty.metric is NO_AREA
        assert empty.raw_metric is NO_AREA
        assert empty.area_km2 == 0
        assert empty.geometry.is_empty
        assert not empty.has_area

    def test_sentinel_becomes_nan_in_table(self):
        points = make_points([(500, 500), (1500, 500)])
        result = voronoi_density(
            points, box(0, 0, 900, 1000), envelope=box(0, 0, 2000, 1000), include_empty=True
        )

        table = result.to_geodataframe()

        assert table[DENSITY_COLUMN].iloc[0] == pytest.approx(1 / 0.9)
        assert math.isnan(table[DENSITY_COLUMN].iloc[1])

    def test_include_empty_rejected_for_attributes(self):
        with pytest.raises(ValueError):
            VoronoiEngine(
                mode=TessellationMode.ATTRIBUTE_TRANSFER,
                value_column="value",
                include_empty=True
            )


class TestCap:
    """Test the presentation cap."""

    def test_cap_clamps_presented_metric(self, corner_points, square):
        result = voronoi_density(corner_points, square, cap=0.5)

        assert result.cap == 0.5
        assert result.metrics() == [0.5] * 4
        assert result.raw_metrics() == pytest.approx([1.0] * 4)

    def test_cap_above_values_changes_nothing(self, corner_points, square):
        result = voronoi_density(corner_points, square, cap=5000)

        assert result.metrics() == pytest.approx([1.0] * 4)

    def test_with_cap_recaps_without_recomputing(self, corner_points, square):
        capped = voronoi_density(corner_points, square, cap=0.5)

        uncapped = capped.with_cap(None)

        assert uncapped.cap is None
        assert uncapped.metrics() == pytest.approx([1.0] * 4)
        assert [c.geometry for c in uncapped.cells] == [c.geometry for c in capped.cells]
        assert capped.metrics() == [0.5] * 4

    def test_raw_column_in_table(self, corner_points, square):
        table = voronoi_density(corner_points, square, cap=0.5).to_geodataframe()

        assert list(table[DENSITY_COLUMN]) == [0.5] * 4
        np.testing.assert_allclose(table[f"{DENSITY_COLUMN}_raw"], 1.0)

    @pytest.mark.parametrize("cap", [0, -1.0])
    def test_non_positive_cap(self, cap):
        with pytest.raises(ValueError):
            VoronoiEngine(cap=cap)

    def test_cap_rejected_for_attributes(self, stations, square):
        with pytest.raises(ValueError):
            VoronoiEngine(mode="attribute", value_column="value", cap=1.0)

        result = voronoi_attribute(stations, square, "value")
        with pytest.raises(ValueError):
            result.with_cap(1.0)


class TestAttributeTransfer:
    """Test copying station values to their cells."""

    def test_values_copied_verbatim(self, stations, square):
        result = voronoi_attribute(stations, square, "value")

        assert result.mode is TessellationMode.ATTRIBUTE_TRANSFER
        assert result.metrics() == [10, 20, 30]
        assert set(result.metrics()) == {10, 20, 30}

    def test_float_values_identity(self, random_points, square):
        values = np.random.default_rng(3).normal(size=len(random_points))
        points = random_points.assign(pm10=values)

        result = voronoi_attribute(points, square, "pm10")

        for cell in result.cells:
            assert cell.metric == values[cell.point_index]

    def test_string_mode_accepted(self, stations, square):
        engine = VoronoiEngine(mode="attribute", value_column="value")
        result = engine.compute(stations, square)

        assert result.metric_column == "value"

    def test_table_keeps_point_attributes(self, stations, square):
        table = voronoi_attribute(stations, square, "value").to_geodataframe()

        assert list(table["value"]) == [10, 20, 30]
        assert list(table["name"]) == ["north", "east", "south"]
        assert table.crs == stations.crs
        assert "value_raw" not in table.columns

    def test_zero_area_cells_dropped(self):
        points = make_points([(500, 500), (1500, 500)], value=[1.5, 2.5])
        result = voronoi_attribute(
            points, box(0, 0, 900, 1000), "value", envelope=box(0, 0, 2000, 1000)
        )

        assert result.metrics() == [1.5]

    def test_value_column_required(self):
        with pytest.raises(ValueError):
            VoronoiEngine(mode=TessellationMode.ATTRIBUTE_TRANSFER)

    def test_missing_value_column(self, corner_points, square):
        with pytest.raises(ValueError, match="pm25"):
            voronoi_attribute(corner_points, square, "pm25")


class TestValidation:
    """Test input validation and the error taxonomy."""

    @pytest.mark.parametrize("coords", [[], [(10, 10)]])
    def test_insufficient_points(self, coords, square):
        with pytest.raises(InsufficientPointsError):
            voronoi_density(make_points(coords), square)

    def test_coincident_pair(self, square):
        points = make_points([(100, 100), (100, 100)])

        with pytest.raises(DegenerateInputError) as excinfo:
            voronoi_density(points, square)

        assert excinfo.value.duplicates == [[0, 1]]

    def test_deduplicate_keeps_first(self, square):
        points = make_points([(100, 100), (100, 100), (1500, 1500)])

        result = voronoi_density(points, square, deduplicate=True)

        assert result.point_indices() == [0, 2]
        assert result.total_area_km2() == pytest.approx(4.0)

    def test_deduplicate_to_single_point(self, square):
        points = make_points([(100, 100), (100, 100)])

        with pytest.raises(InsufficientPointsError):
            voronoi_density(points, square, deduplicate=True)

    def test_duplicate_positions(self):
        points = make_points([(0, 0), (5, 5), (0, 0), (5, 5), (9, 9)])

        assert duplicate_positions(points) == [[0, 2], [1, 3]]

    def test_crs_mismatch(self, corner_points):
        boundary = gpd.GeoDataFrame(geometry=[box(0, 0, 2000, 2000)], crs="EPSG:3857")

        with pytest.raises(CoordinateSystemMismatchError):
            voronoi_density(corner_points, boundary)

    def test_envelope_crs_mismatch(self, corner_points, square):
        envelope = gpd.GeoSeries([box(0, 0, 2000, 2000)], crs="EPSG:3857")

        with pytest.raises(CoordinateSystemMismatchError):
            voronoi_density(corner_points, square, envelope=envelope)

    def test_errors_are_value_errors(self, square):
        with pytest.raises(ValueError):
            voronoi_density(make_points([(1, 1)]), square)

    def test_non_point_geometry(self, square):
        polygons = gpd.GeoDataFrame(
            geometry=[box(0, 0, 1, 1), box(5, 5, 6, 6)], crs=CRS
        )

        with pytest.raises(ValueError, match="Point"):
            voronoi_density(polygons, square)

    def test_bad_boundary_type(self, corner_points):
        with pytest.raises(TypeError):
            voronoi_density(corner_points, [(0, 0), (1, 1)])


class TestEngineBehaviour:
    """Test determinism and accepted input types."""

    def test_deterministic(self, random_points, square):
        first = voronoi_density(random_points, square)
        second = voronoi_density(random_points, square)

        assert first.metrics() == second.metrics()
        for a, b in zip(first.cells, second.cells):
            assert a.geometry.equals_exact(b.geometry, 0)

    def test_inputs_not_modified(self, random_points, square):
        before = random_points.copy()

        voronoi_density(random_points, square)

        assert random_points.equals(before)

    def test_geoseries_points(self, corner_points, square):
        result = voronoi_density(corner_points.geometry, square)

        assert len(result) == 4

    def test_bare_shapely_boundary(self, corner_points):
        result = voronoi_density(corner_points, box(0, 0, 2000, 2000))

        assert result.total_area_km2() == pytest.approx(4.0)

    def test_multi_part_boundary_is_unioned(self, corner_points):
        parts = gpd.GeoDataFrame(
            geometry=[box(0, 0, 2000, 1000), box(0, 1000, 2000, 2000)], crs=CRS
        )

        result = voronoi_density(corner_points, parts)

        assert len(result) == 4
        assert result.total_area_km2() == pytest.approx(4.0)

    def test_two_points(self, square):
        result = voronoi_density(make_points([(500, 1000), (1500, 1000)]), square)

        assert [c.area_km2 for c in result.cells] == pytest.approx([2.0, 2.0])

    def test_collinear_points(self, square):
        points = make_points([(250, 1000), (1000, 1000), (1750, 1000)])

        result = voronoi_density(points, square)

        assert len(result) == 3
        assert result.total_area_km2() == pytest.approx(4.0)
