from __future__ import annotations
from pathlib import Path
import sys
from typing import Any, Mapping, Optional

import yaml
from loguru import logger

from ..config import Settings, resolve_method
from ..contracts.segments import SegmentCollection
from ..services.best_merge_service import BestMergeSegmentation
from ..services.graph_merge_service import GraphBasedMergeSegmentation
from ..services.isodata_service import IsodataClustering
from ..services.segmentation_base import SpectralSegmentation
from ..services.sequential_coupling_service import SequentialCouplingSegmentation

ALGORITHMS: Mapping[str, type[SpectralSegmentation]] = {
    "isodata": IsodataClustering,
    "best_merge": BestMergeSegmentation,
    "graph_merge": GraphBasedMergeSegmentation,
    "sequential_coupling": SequentialCouplingSegmentation,
}

def load_settings_from_yaml(path: Path, **defaults: Any) -> Settings:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    for k, v in defaults.items():
        data.setdefault(k, v)
    return Settings(**data)

def build_settings(project_root: Path, config_file: Optional[Path] = None) -> Settings:
    cfg = (config_file or project_root / "config" / "settings.yaml").resolve()
    if cfg.exists():
        return load_settings_from_yaml(cfg, project_root=str(project_root))
    return Settings(project_root=project_root)

def configure_logging(level: str = "INFO", sink: Any = None) -> None:
    """Sink único (stderr por defecto). Sólo desde CLI; las librerías no tocan handlers."""
    logger.remove()
    logger.add(sys.stderr if sink is None else sink, level=level.upper(),
               format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}")

def build_algorithm(
    method: str,
    raster: Any,
    settings: Settings,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    collection: Optional[SegmentCollection] = None,
) -> SpectralSegmentation:
    """Instancia el algoritmo pedido con los parámetros de Settings (+ overrides)."""
    name = resolve_method(method)
    base = settings.params_for(name).model_dump()
    if overrides:
        base.update({k: v for k, v in overrides.items() if v is not None})
    return ALGORITHMS[name](raster, base, collection=collection)
