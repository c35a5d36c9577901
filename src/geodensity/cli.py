"""Command-line entry point for the density maps."""

import argparse
import numbers
import sys
from pathlib import Path
from typing import List, Optional

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from geodensity.config import load_config_from_env, setup_logging  # noqa: E402
from geodensity.interpolation import Surface  # noqa: E402
from geodensity.workflow import DensityMapper  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geodensity",
        description="Voronoi, kernel density and IDW maps of point datasets"
    )
    parser.add_argument("--log-level", help="Logging level (default from GEODENSITY_LOG_LEVEL)")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--points", required=True, help="Point file (shp, gpkg, geojson, gdb, csv)")
    common.add_argument("--boundary", required=True, help="Boundary polygon file")
    common.add_argument("--crs", help="Projected CRS for the analysis (default from config)")
    common.add_argument("--x-column", default="x", help="X/longitude column of CSV point files")
    common.add_argument("--y-column", default="y", help="Y/latitude column of CSV point files")
    common.add_argument("--source-crs", default="EPSG:4326", help="CRS of CSV coordinates")
    common.add_argument("--sample", type=int, help="Subsample to at most this many points")
    common.add_argument("--seed", type=int, help="Seed for subsampling")
    common.add_argument("--title", help="Map title")
    common.add_argument("--sqrt", action="store_true", help="Square-root colour scale")
    common.add_argument("--colormap", default="viridis", help="Matplotlib colormap")
    common.add_argument("--show-points", action="store_true", help="Overlay the points")
    common.add_argument("--output", help="Output image (default <output_dir>/<command>.png)")

    commands = parser.add_subparsers(dest="command", required=True)

    voronoi = commands.add_parser("voronoi", parents=[common], help="Voronoi density or value map")
    voronoi.add_argument(
        "--mode",
        choices=["density", "attribute"],
        default="density",
        help="1/km² density or attribute transfer",
    )
    voronoi.add_argument("--value-column", help="Attribute for --mode attribute")
    voronoi.add_argument("--cap", type=float, help="Upper bound on presented densities")
    voronoi.add_argument(
        "--deduplicate",
        action="store_true",
        help="Drop coincident points instead of failing",
    )

    kde = commands.add_parser("kde", parents=[common], help="Kernel density surface")
    kde.add_argument("--cell-size", type=float, help="Grid spacing in metres")
    kde.add_argument("--bandwidth", type=float, help="Kernel bandwidth in metres")

    idw = commands.add_parser("idw", parents=[common], help="Inverse-distance weighted surface")
    idw.add_argument("--value-column", required=True, help="Attribute to interpolate")
    idw.add_argument("--cell-size", type=float, help="Grid spacing in metres")
    idw.add_argument("--power", type=float, help="Distance exponent")
    idw.add_argument("--neighbors", type=int, help="Nearest stations per grid node")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config_from_env()
    if args.crs:
        config.target_crs = args.crs
    logger = setup_logging(args.log_level or config.log_level)

    output = args.output or str(Path(config.output_dir) / f"{args.command}.png")

    try:
        mapper = DensityMapper(config)
        mapper.load_points(
            args.points,
            value_column=getattr(args, "value_column", None),
            x_column=args.x_column,
            y_column=args.y_column,
            source_crs=args.source_crs
        )
        mapper.load_boundary(args.boundary)
        if args.sample is not None:
            mapper.sample(args.sample, args.seed)

        if args.command == "voronoi":
            result = mapper.voronoi(
                mode=args.mode,
                cap=args.cap,
                deduplicate=args.deduplicate
            )
        elif args.command == "kde":
            result = mapper.kde(cell_size=args.cell_size, bandwidth=args.bandwidth)
        else:
            result = mapper.idw(
                cell_size=args.cell_size,
                power=args.power,
                neighbors=args.neighbors
            )

        fig, _ = mapper.visualize(
            result,
            title=args.title,
            colormap=args.colormap,
            sqrt=args.sqrt,
            show_points=args.show_points,
            save_path=output
        )
        plt.close(fig)

    except (FileNotFoundError, KeyError, ValueError) as e:
        logger.debug("Analysis failed", exc_info=True)
        print(f"geodensity {args.command} failed: {e}", file=sys.stderr)
        return 1

    print(f"{args.command}: {_summary(result)}")
    print(f"Map written to {output}")
    return 0


def _summary(result) -> str:
    if isinstance(result, Surface):
        values = result.values.compressed()
        if len(values) == 0:
            return "no grid nodes inside the boundary"
        return (
            f"{len(values)} grid nodes, {result.unit} "
            f"min {values.min():.4g} max {values.max():.4g}"
        )

    metrics = [m for m in result.raw_metrics() if isinstance(m, numbers.Real)]
    summary = f"{len(result)} cells, total area {result.total_area_km2():.1f} km²"
    if metrics:
        summary += f", {result.metric_column} min {min(metrics):.4g} max {max(metrics):.4g}"
    return summary


if __name__ == "__main__":
    sys.exit(main())
