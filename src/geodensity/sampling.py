"""Seeded subsampling of large point sets before tessellation."""

import logging

import geopandas as gpd
import numpy as np

logger = logging.getLogger(__name__)


def sample_points(points: gpd.GeoDataFrame, n: int = 500, seed: int = 42) -> gpd.GeoDataFrame:
    """Draw at most ``n`` points with a fixed seed.

    Rows keep their original relative order so the result can be fed to
    the tessellation engine deterministically.

    Args:
        points: Point dataset
        n: Maximum number of rows to keep
        seed: Random seed

    Returns:
        GeoDataFrame with min(n, len(points)) rows

    Raises:
        ValueError: If n is smaller than 2
    """
    if n < 2:
        raise ValueError(f"Sample size must be at least 2, got {n}")

    if len(points) <= n:
        return points.copy()

    rng = np.random.default_rng(seed)
    positions = np.sort(rng.choice(len(points), size=n, replace=False))
    logger.info("Sampled %d of %d points (seed=%d)", n, len(points), seed)
    return points.iloc[positions].copy()
