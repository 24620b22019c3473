# tests/unit/services/test_sequential_coupling.py
import numpy as np
import pytest

from spectraseg.contracts.segments import SegmentStats
from spectraseg.services.sequential_coupling_service import SequentialCouplingSegmentation
from tests.factories import make_blocks_raster, make_raster

LOOSE = {"variance_threshold_before_merge": 100.0, "variance_threshold_after_merge": 100.0}


def _run(values, **params):
    return SequentialCouplingSegmentation(make_raster(values), params).execute().collection

def test_homogeneity_threshold():
    col = _run([[0.0, 1.0, 10.0]], segment_homogeneity_threshold=2.0, **LOOSE)
    assert col.count() == 2
    assert col.get_segment(0, 0) == col.get_segment(0, 1)

def test_variance_after_merge_rejects():
    col = _run([[0.0, 1.0, 10.0]], segment_homogeneity_threshold=2.0,
               variance_threshold_before_merge=100.0, variance_threshold_after_merge=0.1)
    assert col.count() == 3

def test_variance_before_merge_rejects():
    col = _run([[0.0, 1.0, 1.5]], segment_homogeneity_threshold=5.0,
               variance_threshold_before_merge=0.1, variance_threshold_after_merge=100.0)
    # (0,0)+(0,1) tiene varianza 0.25: ya no acepta más celdas
    assert col.count() == 2
    assert col.get_segment(0, 2) != col.get_segment(0, 1)

def test_upper_neighbor_wins_ties():
    col = _run([[0.0, 4.0], [8.0, 6.0]], segment_homogeneity_threshold=3.0, **LOOSE)
    assert col.get_segment(1, 1) == col.get_segment(0, 1)
    assert col.count() == 3

def test_closest_neighbor_wins():
    col = _run([[0.0, 5.0], [6.5, 6.0]], segment_homogeneity_threshold=3.0, **LOOSE)
    assert col.get_segment(1, 1) == col.get_segment(1, 0)

def test_blocks():
    algo = SequentialCouplingSegmentation(make_blocks_raster(w=6, h=4), {
        "segment_homogeneity_threshold": 1.0,
        "variance_threshold_before_merge": 1.0,
        "variance_threshold_after_merge": 1.0,
    })
    res = algo.execute()
    assert res.number_of_segments == 2
    assert res.merges == 22
    res.collection.check_integrity()

def test_is_admissible_reports_distance():
    algo = SequentialCouplingSegmentation(make_raster([[2.0, 3.0]]), {"segment_homogeneity_threshold": 2.0, **LOOSE})
    seg = algo.collection.get_segment(0, 0)
    ok, d = algo.is_admissible(seg, SegmentStats.of_vector(np.array([3.0])))
    assert ok and d == pytest.approx(1.0)
    ok, d = algo.is_admissible(seg, SegmentStats.of_vector(np.array([9.0])))
    assert not ok and d == pytest.approx(7.0)
