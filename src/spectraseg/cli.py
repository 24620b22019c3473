# src/spectraseg/cli.py
from __future__ import annotations

"""
CLI de segmentación espectral (contracts-first, minimal).

Comandos:
  - segment: segmenta o agrupa un raster multibanda y escribe etiquetas.
  - methods: lista los métodos disponibles.

Ejemplos rápidos:
  python -m spectraseg.cli segment -i ./scene.tif -o ./labels.tif \
      --method isodata --centers 12 --distance-threshold 15 --size-threshold 4 --seed 7

  python -m spectraseg.cli segment -i ./scene.tif --method graph-merge \
      --merge-threshold 20 --report ./segments.csv
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from loguru import logger

from .adapters.csv_exporter import CSVExporter
from .adapters.rasterio_label_writer import RasterioLabelWriter
from .adapters.rasterio_raster_reader import RasterioRasterReader
from .composition.di import ALGORITHMS, build_algorithm, build_settings, configure_logging, load_settings_from_yaml
from .config import Settings, get_settings, resolve_method
from .contracts.errors import SegmentationError
from .contracts.params import DistanceFamily, DistanceKind
from .services.report_service import SegmentReportService

# ----------------------
# Utilidades locales
# ----------------------

def _distance_override(family: Optional[str], kind: Optional[str]) -> Optional[Dict[str, str]]:
    if family is None and kind is None:
        return None
    out: Dict[str, str] = {}
    if family is not None:
        out["family"] = family
    if kind is not None:
        out["kind"] = kind
    return out


def _overrides(args: argparse.Namespace, method: str) -> Dict[str, Any]:
    spectral = _distance_override(args.family, args.kind)
    if method == "isodata":
        return {
            "number_of_cluster_centers": args.centers,
            "cluster_distance_threshold": args.distance_threshold,
            "cluster_size_threshold": args.size_threshold,
            "seed": args.seed,
            "spectral_distance": spectral,
            "cluster_distance": _distance_override(args.cluster_family, args.cluster_kind),
        }
    if method == "best_merge":
        return {
            "segment_merge_threshold": args.merge_threshold,
            "number_of_iterations": args.iterations,
            "spectral_distance": spectral,
        }
    if method == "graph_merge":
        return {"segment_merge_threshold": args.merge_threshold, "spectral_distance": spectral}
    return {
        "segment_homogeneity_threshold": args.homogeneity_threshold,
        "variance_threshold_before_merge": args.variance_before,
        "variance_threshold_after_merge": args.variance_after,
        "spectral_distance": spectral,
    }


def _load_settings(args: argparse.Namespace) -> Settings:
    if args.settings:
        return load_settings_from_yaml(Path(args.settings), project_root=args.root or ".")
    if args.root:
        return build_settings(Path(args.root))
    return get_settings()


# ----------------------
# Comandos
# ----------------------

def cmd_segment(args: argparse.Namespace) -> int:
    s = _load_settings(args)
    configure_logging(args.log_level or s.log_level)
    method = resolve_method(args.method or s.default_method)

    reader = RasterioRasterReader()
    raster = reader.read(args.input)
    algo = build_algorithm(method, raster, s, overrides=_overrides(args, method))
    result = algo.execute()

    out = Path(args.output) if args.output else s.out_path(f"{Path(args.input).stem}_{method}")
    RasterioLabelWriter().write_labels(str(out), result.collection, raster.profile)
    logger.info(f"Etiquetas: {out} ({result.number_of_segments} segmentos)")

    if args.report:
        table = SegmentReportService().table(result.collection)
        CSVExporter().export(table, str(args.report))
        logger.info(f"Reporte: {args.report}")

    print(str(out))
    return 0


def cmd_methods(args: argparse.Namespace) -> int:
    for name in ALGORITHMS:
        print(name)
    return 0


# ----------------------
# Parser
# ----------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="spectraseg", description="Segmentación espectral / ISODATA")
    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("segment", help="Segmenta un raster y escribe etiquetas")
    sp.add_argument("-i", "--input", required=True, help="GeoTIFF multibanda de entrada")
    sp.add_argument("-o", "--output", help="GeoTIFF de etiquetas (default: Settings.output_dir)")
    sp.add_argument("-m", "--method", help="isodata | best-merge | graph-merge | sequential")
    sp.add_argument("--settings", help="YAML de configuración")
    sp.add_argument("--root", help="project_root (busca config/settings.yaml)")
    sp.add_argument("--log-level", dest="log_level", help="DEBUG/INFO/WARNING...")
    sp.add_argument("--report", help="CSV con estadísticos por segmento")
    # distancia
    families = [f.value for f in DistanceFamily]
    kinds = [k.value for k in DistanceKind]
    sp.add_argument("--family", choices=families, help="Familia de distancia espectral")
    sp.add_argument("--kind", choices=kinds, help="Comparación de segmentos (mean|statistical)")
    sp.add_argument("--cluster-family", dest="cluster_family", choices=families)
    sp.add_argument("--cluster-kind", dest="cluster_kind", choices=kinds)
    # isodata
    sp.add_argument("--centers", type=int, help="Número de centros (<10 = auto)")
    sp.add_argument("--distance-threshold", dest="distance_threshold", type=float)
    sp.add_argument("--size-threshold", dest="size_threshold", type=int)
    sp.add_argument("--seed", type=int)
    # best/graph merge
    sp.add_argument("--merge-threshold", dest="merge_threshold", type=float)
    sp.add_argument("--iterations", type=int)
    # sequential coupling
    sp.add_argument("--homogeneity-threshold", dest="homogeneity_threshold", type=float)
    sp.add_argument("--variance-before", dest="variance_before", type=float)
    sp.add_argument("--variance-after", dest="variance_after", type=float)
    sp.set_defaults(func=cmd_segment)

    mp = sub.add_parser("methods", help="Lista métodos disponibles")
    mp.set_defaults(func=cmd_methods)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except (SegmentationError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
