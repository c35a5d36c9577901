"""
Map rendering for tessellation results and interpolated surfaces.

This module draws Voronoi cells as choropleths and IDW/KDE rasters as
images, with optional boundary outlines and point overlays, using a
linear or square-root colour transform.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import geopandas as gpd
import matplotlib.colors as mcolors
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from geodensity.interpolation import Surface
from geodensity.tessellation import (
    GeometryLike,
    TessellationMode,
    TessellationResult,
    dissolve_boundary,
)

DENSITY_LABEL = "per km²"


class ColorScale(Enum):
    """Pre-defined color scales for map visualization."""
    VIRIDIS = "viridis"
    PLASMA = "plasma"
    INFERNO = "inferno"
    MAGMA = "magma"
    CIVIDIS = "cividis"
    BLUES = "Blues"
    GREENS = "Greens"
    REDS = "Reds"
    ORANGES = "Oranges"
    PURPLES = "Purples"
    YELLOW_GREEN_BLUE = "YlGnBu"
    YELLOW_ORANGE_RED = "YlOrRd"
    SPECTRAL = "Spectral"


class ColorNorm(Enum):
    """Transform applied to values before colour mapping."""
    LINEAR = "linear"
    SQRT = "sqrt"


@dataclass
class MapStyle:
    """Configuration for map styling.

    Attributes:
        colormap: Color scale to use for values
        norm: Linear or square-root colour transform
        vmin: Lower end of the colour range (None = data minimum)
        vmax: Upper end of the colour range (None = data maximum)
        edge_color: Color for polygon boundaries
        edge_width: Width of polygon boundaries
        alpha: Transparency (0-1)
        missing_color: Color for cells with no value
        boundary_color: Color of the boundary outline
        point_color: Color of overlaid points
        point_size: Marker size of overlaid points
        figsize: Figure size in inches (width, height)
        title: Map title
        legend: Whether to show legend/colorbar
        legend_label: Label for the colorbar
    """
    colormap: Union[str, ColorScale] = ColorScale.VIRIDIS
    norm: ColorNorm = ColorNorm.LINEAR
    vmin: Optional[float] = None
    vmax: Optional[float] = None
    edge_color: str = "white"
    edge_width: float = 0.2
    alpha: float = 1.0
    missing_color: str = "lightgrey"
    boundary_color: str = "black"
    point_color: str = "black"
    point_size: float = 2.0
    figsize: Tuple[int, int] = (10, 10)
    title: Optional[str] = None
    legend: bool = True
    legend_label: Optional[str] = None

    def get_colormap_name(self) -> str:
        """Get the colormap name as a string."""
        if isinstance(self.colormap, ColorScale):
            return self.colormap.value
        return self.colormap

    def make_norm(self) -> mcolors.Normalize:
        """Build the matplotlib normalization for this style."""
        if self.norm is ColorNorm.SQRT:
            return mcolors.PowerNorm(gamma=0.5, vmin=self.vmin, vmax=self.vmax)
        return mcolors.Normalize(vmin=self.vmin, vmax=self.vmax)


@dataclass
class LayerConfig:
    """Configuration for a map layer.

    Attributes:
        data: GeoDataFrame to display
        value_column: Column containing values to visualize (None for uniform color)
        style: Styling options for this layer
        label: Label for this layer in legend
        zorder: Drawing order (higher = on top)
    """
    data: gpd.GeoDataFrame
    value_column: Optional[str] = None
    style: MapStyle = field(default_factory=MapStyle)
    label: Optional[str] = None
    zorder: int = 1


class MapVisualizer:
    """Creates density and interpolation maps.

    This class provides choropleths for tessellation results, raster
    maps for interpolated surfaces and multi-layer plots of arbitrary
    GeoDataFrames.
    """

    def __init__(self, style: Optional[MapStyle] = None):
        """Initialize the visualizer.

        Args:
            style: Default style settings for maps
        """
        self.default_style = style or MapStyle()
        self._layers: List[LayerConfig] = []

    def add_layer(
        self,
        data: gpd.GeoDataFrame,
        value_column: Optional[str] = None,
        style: Optional[MapStyle] = None,
        label: Optional[str] = None,
        zorder: int = 1
    ) -> "MapVisualizer":
        """Add a layer to the visualization.

        Args:
            data: GeoDataFrame to display
            value_column: Column containing values to visualize
            style: Styling options (uses default if not specified)
            label: Label for legend
            zorder: Drawing order

        Returns:
            Self for method chaining
        """
        layer = LayerConfig(
            data=data,
            value_column=value_column,
            style=style or self.default_style,
            label=label,
            zorder=zorder
        )
        self._layers.append(layer)
        return self

    def clear_layers(self) -> "MapVisualizer":
        """Remove all layers.

        Returns:
            Self for method chaining
        """
        self._layers = []
        return self

    def plot(
        self,
        data: Optional[gpd.GeoDataFrame] = None,
        value_column: Optional[str] = None,
        style: Optional[MapStyle] = None,
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Create a map visualization.

        If data is provided, creates a single-layer map.
        If no data is provided, renders all added layers.

        Args:
            data: GeoDataFrame to visualize (optional if layers added)
            value_column: Column containing values to visualize
            style: Styling options
            ax: Existing axes to plot on (creates new if None)

        Returns:
            Tuple of (Figure, Axes)
        """
        style = style or self.default_style
        fig, ax = self._figure(style, ax)

        if data is not None:
            self._plot_layer(
                LayerConfig(data=data, value_column=value_column, style=style),
                ax,
                show_colorbar=style.legend
            )
        else:
            layers = sorted(self._layers, key=lambda x: x.zorder)
            for i, layer in enumerate(layers):
                show_colorbar = (
                    layer.style.legend and
                    layer.value_column is not None and
                    i == len(layers) - 1  # Only last layer gets colorbar
                )
                self._plot_layer(layer, ax, show_colorbar=show_colorbar)

        self._finish(ax, style)
        return fig, ax

    def plot_tessellation(
        self,
        result: TessellationResult,
        boundary: Optional[GeometryLike] = None,
        points: Optional[gpd.GeoDataFrame] = None,
        style: Optional[MapStyle] = None,
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Draw clipped Voronoi cells coloured by their metric.

        Args:
            result: Output of the tessellation engine
            boundary: Optional outline drawn on top
            points: Optional generating points drawn on top
            style: Styling options
            ax: Existing axes to plot on

        Returns:
            Tuple of (Figure, Axes)
        """
        style = style or self.default_style
        if style.legend_label is None:
            style = _with_label(style, _default_label(result))

        fig, ax = self.plot(result.to_geodataframe(), result.metric_column, style, ax=ax)
        self._overlay(ax, style, boundary, points)
        return fig, ax

    def plot_surface(
        self,
        surface: Surface,
        boundary: Optional[GeometryLike] = None,
        points: Optional[gpd.GeoDataFrame] = None,
        style: Optional[MapStyle] = None,
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Draw an IDW or KDE raster.

        Args:
            surface: Interpolated surface
            boundary: Optional outline drawn on top
            points: Optional source points drawn on top
            style: Styling options
            ax: Existing axes to plot on

        Returns:
            Tuple of (Figure, Axes)
        """
        style = style or self.default_style
        fig, ax = self._figure(style, ax)

        image = ax.imshow(
            surface.values,
            extent=surface.grid.extent,
            origin="lower",
            cmap=style.get_colormap_name(),
            norm=style.make_norm(),
            alpha=style.alpha,
            interpolation="nearest"
        )
        if style.legend:
            fig.colorbar(image, ax=ax, label=style.legend_label or surface.unit, shrink=0.7)

        self._overlay(ax, style, boundary, points)
        self._finish(ax, style)
        return fig, ax

    def _figure(self, style: MapStyle, ax: Optional[Axes]) -> Tuple[Figure, Axes]:
        if ax is None:
            return plt.subplots(1, 1, figsize=style.figsize)
        return ax.get_figure(), ax

    def _finish(self, ax: Axes, style: MapStyle):
        if style.title:
            ax.set_title(style.title, fontsize=14, fontweight='bold')
        ax.set_axis_off()
        ax.set_aspect("equal")

    def _overlay(
        self,
        ax: Axes,
        style: MapStyle,
        boundary: Optional[GeometryLike],
        points: Optional[gpd.GeoDataFrame]
    ):
        if boundary is not None:
            shape, crs = dissolve_boundary(boundary)
            gpd.GeoSeries([shape], crs=crs).boundary.plot(
                ax=ax, color=style.boundary_color, linewidth=0.8, zorder=10
            )
        if points is not None and len(points):
            points.plot(
                ax=ax, color=style.point_color, markersize=style.point_size, zorder=11
            )

    def _plot_layer(
        self,
        layer: LayerConfig,
        ax: Axes,
        show_colorbar: bool = True
    ):
        """Plot a single layer on the axes."""
        style = layer.style

        plot_kwargs: Dict[str, Any] = {
            "ax": ax,
            "edgecolor": style.edge_color,
            "linewidth": style.edge_width,
            "alpha": style.alpha,
            "zorder": layer.zorder
        }

        if layer.value_column is not None:
            # Choropleth map
            plot_kwargs.update({
                "column": layer.value_column,
                "cmap": style.get_colormap_name(),
                "norm": style.make_norm(),
                "legend": show_colorbar,
                "missing_kwds": {"color": style.missing_color}
            })

            if show_colorbar and style.legend_label:
                plot_kwargs["legend_kwds"] = {"label": style.legend_label, "shrink": 0.7}

        else:
            # Uniform color
            plot_kwargs["color"] = style.missing_color

        layer.data.plot(**plot_kwargs)

    def save(
        self,
        filepath: Union[str, Path],
        fig: Optional[Figure] = None,
        dpi: int = 150,
        **kwargs
    ):
        """Save the visualization to a file.

        Args:
            filepath: Output file path
            fig: Figure to save (uses current figure if None)
            dpi: Resolution in dots per inch
            **kwargs: Additional arguments passed to savefig
        """
        if fig is None:
            fig = plt.gcf()

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(
            filepath,
            dpi=dpi,
            bbox_inches='tight',
            **kwargs
        )


def _default_label(result: TessellationResult) -> str:
    if result.mode is TessellationMode.DENSITY:
        return DENSITY_LABEL
    return result.metric_column


def _with_label(style: MapStyle, label: str) -> MapStyle:
    return replace(style, legend_label=label)


def plot_density_map(
    result: TessellationResult,
    boundary: Optional[GeometryLike] = None,
    title: Optional[str] = None,
    colormap: Union[str, ColorScale] = ColorScale.VIRIDIS,
    sqrt: bool = False,
    figsize: Tuple[int, int] = (10, 10),
    save_path: Optional[str] = None
) -> Tuple[Figure, Axes]:
    """Convenience function to plot a tessellation result.

    Args:
        result: Output of voronoi_density() or voronoi_attribute()
        boundary: Optional outline drawn on top
        title: Map title
        colormap: Matplotlib colormap name
        sqrt: Use a square-root colour transform
        figsize: Figure size in inches
        save_path: Optional path to save the figure

    Returns:
        Tuple of (Figure, Axes)

    Example:
        >>> fig, ax = plot_density_map(
        ...     voronoi_density(fixes, country, cap=1.0),
        ...     boundary=country,
        ...     title="Fix density",
        ...     sqrt=True
        ... )
    """
    viz = MapVisualizer()
    style = MapStyle(
        colormap=colormap,
        norm=ColorNorm.SQRT if sqrt else ColorNorm.LINEAR,
        title=title,
        figsize=figsize
    )
    fig, ax = viz.plot_tessellation(result, boundary=boundary, style=style)

    if save_path:
        viz.save(save_path, fig)

    return fig, ax


def compare_caps(
    result: TessellationResult,
    caps: Sequence[Optional[float]],
    boundary: Optional[GeometryLike] = None,
    ncols: int = 2,
    figsize: Optional[Tuple[int, int]] = None,
    colormap: Union[str, ColorScale] = ColorScale.VIRIDIS,
    sqrt: bool = False
) -> Tuple[Figure, List[Axes]]:
    """Render one density result with several presentation caps.

    Args:
        result: Density-mode tessellation result
        caps: Caps to compare (None = uncapped)
        boundary: Optional outline drawn on every panel
        ncols: Number of columns in the grid
        figsize: Figure size (auto-calculated if None)
        colormap: Colormap to use for all maps
        sqrt: Use a square-root colour transform

    Returns:
        Tuple of (Figure, list of Axes)

    Example:
        >>> fig, axes = compare_caps(result, [5000, 1000, 1, 0.5])
    """
    n = len(caps)
    if n == 0:
        raise ValueError("At least one cap is required")
    nrows = (n + ncols - 1) // ncols

    if figsize is None:
        figsize = (6 * ncols, 5 * nrows)

    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, squeeze=False)
    axes = list(axes.flatten())

    viz = MapVisualizer()

    for i, cap in enumerate(caps):
        style = MapStyle(
            colormap=colormap,
            norm=ColorNorm.SQRT if sqrt else ColorNorm.LINEAR,
            title="no cap" if cap is None else f"cap = {cap:g}",
            legend_label=DENSITY_LABEL,
            figsize=figsize
        )
        viz.plot_tessellation(result.with_cap(cap), boundary=boundary, style=style, ax=axes[i])

    # Hide unused axes
    for i in range(n, len(axes)):
        axes[i].set_visible(False)

    plt.tight_layout()
    return fig, axes[:n]
