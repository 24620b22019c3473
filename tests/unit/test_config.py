# tests/unit/test_config.py
import io
import sys

import pytest
import yaml
from pathlib import Path
from loguru import logger

from spectraseg.config import Settings, get_settings, resolve_method
from spectraseg.composition.di import build_algorithm, build_settings, configure_logging
from spectraseg.contracts.params import DistanceFamily, IsodataParams
from spectraseg.services.graph_merge_service import GraphBasedMergeSegmentation
from spectraseg.services.isodata_service import IsodataClustering
from tests.factories import make_raster

def test_settings_defaults_and_paths(tmp_path: Path):
    s = Settings(project_root=tmp_path)
    assert s.default_method == "isodata"
    assert isinstance(s.isodata, IsodataParams)
    assert s.output_dir.is_absolute()
    p = s.out_path("scene_isodata")
    assert tmp_path.resolve() in p.parents
    assert p.suffix == ".tif"

def test_settings_validators():
    assert Settings(log_level="debug").log_level == "DEBUG"
    assert Settings(default_method="graph-merge").default_method == "graph_merge"
    with pytest.raises(ValueError):
        Settings(log_level="LOUD")
    with pytest.raises(ValueError):
        Settings(isodata={"cluster_size_threshold": -1})

def test_resolve_method_aliases():
    assert resolve_method("Sequential") == "sequential_coupling"
    assert resolve_method("best-merge") == "best_merge"
    with pytest.raises(ValueError):
        resolve_method("kmeans")

def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SEG_DEFAULT_METHOD", "best-merge")
    monkeypatch.setenv("SEG_ISODATA__CLUSTER_SIZE_THRESHOLD", "4")
    s = get_settings()
    assert s.default_method == "best_merge"
    assert s.isodata.cluster_size_threshold == 4
    assert get_settings() is s

def test_build_settings_from_yaml(tmp_path: Path):
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "settings.yaml").write_text(yaml.safe_dump({
        "output_dir": "out/labels",
        "log_level": "WARNING",
        "default_method": "graph_merge",
        "isodata": {
            "number_of_cluster_centers": 16,
            "cluster_distance_threshold": 12.5,
            "cluster_size_threshold": 3,
            "spectral_distance": {"family": "manhattan"},
            "seed": 11,
        },
        "graph_merge": {"segment_merge_threshold": 8.0},
    }), encoding="utf-8")

    st = build_settings(tmp_path)
    assert st.project_root == tmp_path.resolve()
    assert st.output_dir == tmp_path.resolve() / "out" / "labels"
    assert st.isodata.spectral_distance.family is DistanceFamily.MANHATTAN
    assert st.graph_merge.segment_merge_threshold == 8.0

def test_build_settings_without_yaml(tmp_path: Path):
    st = build_settings(tmp_path)
    assert st.project_root == tmp_path.resolve()

def test_build_algorithm_merges_overrides(tmp_path: Path):
    s = Settings(project_root=tmp_path, isodata={"cluster_size_threshold": 3, "seed": 5})
    r = make_raster([[1, 2], [3, 4]])
    algo = build_algorithm("isodata", r, s, overrides={"cluster_distance_threshold": 2.0, "seed": None})
    assert isinstance(algo, IsodataClustering)
    assert algo.params.cluster_size_threshold == 3
    assert algo.params.cluster_distance_threshold == 2.0
    assert algo.params.seed == 5
    g = build_algorithm("graph-merge", r, s)
    assert isinstance(g, GraphBasedMergeSegmentation)

def test_configure_logging_filters_by_level():
    buf = io.StringIO()
    configure_logging("warning", sink=buf)
    try:
        logger.info("silencio")
        logger.warning("visible")
    finally:
        logger.remove()
        logger.add(sys.stderr)
    out = buf.getvalue()
    assert "visible" in out and "silencio" not in out
