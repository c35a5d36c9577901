"""Tests for analysis settings and the dataset registry."""

import logging

import pytest

from geodensity.config import (
    AnalysisConfig,
    DatasetRegistry,
    get_dataset_config,
    list_datasets,
    load_config_from_env,
    register_dataset,
    setup_logging,
)
from geodensity.datasource import DatasetConfig


class TestAnalysisConfig:
    """Test environment-backed settings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "GEODENSITY_CRS",
            "GEODENSITY_SAMPLE_SIZE",
            "GEODENSITY_SEED",
            "GEODENSITY_DENSITY_CAP",
            "GEODENSITY_KDE_BANDWIDTH",
        ):
            monkeypatch.delenv(name, raising=False)

        config = AnalysisConfig()

        assert config.target_crs == "EPSG:3035"
        assert config.sample_size == 500
        assert config.sample_seed == 42
        assert config.density_cap is None
        assert config.kde_bandwidth is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("GEODENSITY_CRS", "EPSG:2056")
        monkeypatch.setenv("GEODENSITY_SAMPLE_SIZE", "250")
        monkeypatch.setenv("GEODENSITY_DENSITY_CAP", "1.5")
        monkeypatch.setenv("GEODENSITY_KDE_BANDWIDTH", "")

        config = load_config_from_env()

        assert config.target_crs == "EPSG:2056"
        assert config.sample_size == 250
        assert config.density_cap == 1.5
        assert config.kde_bandwidth is None

    def test_setup_logging(self):
        logger = setup_logging("debug")

        assert logger.name == "geodensity"
        assert isinstance(logger, logging.Logger)


class TestDatasetRegistry:
    """Test dataset registration and lookup."""

    def test_presets(self):
        registry = DatasetRegistry()

        assert registry.get("stations").value_column == "value"
        assert registry.get("air_quality") is registry.get("stations")
        assert registry.get("boundary").path.endswith("country.shp")

    def test_lookup_is_case_insensitive(self):
        assert DatasetRegistry().get("Animals").id_column == "fix_id"

    def test_unknown_dataset(self):
        with pytest.raises(KeyError, match="Available datasets"):
            DatasetRegistry().get("rivers")

    def test_register_and_list(self):
        registry = DatasetRegistry()
        registry.register("lynx", DatasetConfig(path="data/lynx.gpkg"))

        assert registry.get("lynx").name == "lynx"
        assert registry.list_datasets()["lynx"] == "lynx"

    def test_global_registry(self):
        register_dataset("owls", DatasetConfig(path="data/owls.gpkg", name="Owl fixes"))

        assert get_dataset_config("owls").name == "Owl fixes"
        assert list_datasets()["owls"] == "Owl fixes"
