# tests/unit/services/test_isodata.py
import numpy as np
import pytest

from spectraseg.contracts.errors import IncompatibleRaster, InvalidConfiguration
from spectraseg.contracts.segments import SegmentCollection
from spectraseg.ports.segmentation import SegmentationPort
from spectraseg.services.isodata_service import IsodataClustering, working_cluster_count
from tests.factories import make_blocks_raster, make_random_raster, make_raster


def _groups(col: SegmentCollection):
    return sorted(sorted(s.cells()) for s in col.segments())


def test_two_centers_split_along_value_gap():
    r = make_raster([[1, 1], [100, 100]])
    algo = IsodataClustering(r, {"cluster_distance_threshold": 0.0}, initial_centers=[[0.0], [120.0]])
    res = algo.execute()
    assert res.number_of_segments == 2
    assert _groups(res.collection) == [[(0, 0), (0, 1)], [(1, 0), (1, 1)]]
    res.collection.check_integrity()

@pytest.mark.parametrize("configured,rows,cols,expected", [
    (3, 2, 2, 4),     # tope en el número de celdas
    (0, 10, 10, 10),
    (0, 20, 20, 20),
    (5, 3, 3, 9),
    (12, 2, 2, 12),   # >= 10 se respeta tal cual
])
def test_working_cluster_count(configured, rows, cols, expected):
    assert working_cluster_count(configured, rows, cols) == expected

def test_auto_sized_centers_on_tiny_raster():
    r = make_raster([[1, 2], [3, 4]])
    algo = IsodataClustering(r, {"number_of_cluster_centers": 3, "seed": 1})
    assert algo.number_of_cluster_centers == 4
    assert algo.create_initial_clusters().shape == (4, 1)

def test_small_cluster_split_before_merge_phase():
    r = make_raster([[1, 1, 1, 1, 1, 50, 50, 50]])
    algo = IsodataClustering(
        r, {"cluster_size_threshold": 5, "cluster_distance_threshold": 0.0},
        initial_centers=[[1.0], [50.0]],
    )
    algo.create_initial_clusters()
    algo.assign_clusters()
    assert algo.collection.count() == 2
    algo.eliminate_clusters()
    assert algo.cluster_centers is None
    assert algo.splits == 1
    # el cluster de 5 sobrevive (no es < 5); el de 3 vuelve a celdas sueltas
    assert sorted(s.count for s in algo.collection.segments()) == [1, 1, 1, 5]
    algo.merge_clusters()
    assert algo.collection.count() == 4
    algo.collection.check_integrity()

def test_split_cells_regroup_in_merge_phase():
    r = make_raster([[1, 1, 1, 1, 1, 50, 50, 50]])
    algo = IsodataClustering(
        r, {"cluster_size_threshold": 5, "cluster_distance_threshold": 1.0},
        initial_centers=[[1.0], [50.0]],
    )
    res = algo.execute()
    assert sorted(s.count for s in res.collection.segments()) == [3, 5]
    assert res.rounds == 2  # una ronda con merges + una sin cambios
    assert res.converged and res.splits == 1

def test_threshold_boundary_does_not_merge():
    r = make_raster([[0, 0, 10, 10]])
    centers = [[0.0], [10.0]]
    at = IsodataClustering(r, {"cluster_distance_threshold": 10.0}, initial_centers=centers).execute()
    assert at.number_of_segments == 2
    above = IsodataClustering(r, {"cluster_distance_threshold": 10.5}, initial_centers=centers).execute()
    assert above.number_of_segments == 1

def test_seed_makes_run_reproducible():
    r = make_random_raster(w=8, h=6, bands=3, seed=4)
    params = {"cluster_distance_threshold": 20.0, "cluster_size_threshold": 2, "seed": 42}
    a = IsodataClustering(r, params)
    b = IsodataClustering(r, params)
    np.testing.assert_array_equal(a.create_initial_clusters(), b.create_initial_clusters())
    assert a.number_of_cluster_centers == 10
    la = a.execute().collection.labels()
    lb = b.execute().collection.labels()
    np.testing.assert_array_equal(la, lb)

def test_partition_complete_after_every_phase():
    r = make_random_raster(w=9, h=7, bands=2, seed=9)
    algo = IsodataClustering(r, {"cluster_distance_threshold": 15.0, "cluster_size_threshold": 3, "seed": 0})
    algo.create_initial_clusters()
    for phase in (algo.assign_clusters, algo.eliminate_clusters):
        phase()
        algo.collection.check_integrity()
    before = algo.collection.count()
    algo.merge_clusters()
    algo.collection.check_integrity()
    assert algo.collection.count() <= before
    assert sum(s.count for s in algo.collection.segments()) == 63

def test_constant_band_warns_and_collapses(log_messages):
    r = make_raster(np.full((2, 3, 4), 7.0))
    res = IsodataClustering(r, {"seed": 3}).execute()
    assert any("sin varianza" in m for m in log_messages)
    assert res.number_of_segments == 1

def test_supplied_segmentation_is_clustered_by_segment():
    r = make_blocks_raster(w=6, h=4, left=10.0, right=200.0, bands=2)
    labels = np.tile(np.arange(6), (4, 1))  # un segmento por columna
    col = SegmentCollection.from_labels(r, labels)
    algo = IsodataClustering(r, {"cluster_distance_threshold": 0.0},
                             collection=col, initial_centers=[[0.0, 0.0], [250.0, 250.0]])
    res = algo.execute()
    assert res.collection is col
    lab = col.labels()
    assert col.count() == 2
    assert len(np.unique(lab[:, :3])) == 1 and len(np.unique(lab[:, 3:])) == 1
    assert lab[0, 0] != lab[0, 5]

def test_execute_is_idempotent():
    r = make_raster([[1, 2], [3, 4]])
    algo = IsodataClustering(r, {"seed": 0})
    assert isinstance(algo, SegmentationPort)
    assert algo.execute() is algo.execute()

def test_assign_before_init_is_an_error():
    algo = IsodataClustering(make_raster([[1, 2]]), {"seed": 0})
    with pytest.raises(RuntimeError):
        algo.assign_clusters()

def test_invalid_configuration_before_touching_raster():
    with pytest.raises(InvalidConfiguration):
        IsodataClustering(object(), {"cluster_size_threshold": -1})
    with pytest.raises(InvalidConfiguration):
        IsodataClustering(object(), {"number_of_cluster_centers": -2})

def test_incompatible_inputs():
    r = make_raster([[1, 2], [3, 4]])
    with pytest.raises(IncompatibleRaster):
        IsodataClustering(r, initial_centers=[[1.0, 2.0]])
    with pytest.raises(InvalidConfiguration):
        IsodataClustering(r, initial_centers=[1.0, 2.0])
    with pytest.raises(IncompatibleRaster):
        IsodataClustering(r, collection=SegmentCollection(make_raster([[1, 2, 3]])))

def test_constant_band_centers_equal_global_mean():
    data = np.stack([np.full((3, 4), 7.0), np.arange(12.0).reshape(3, 4)])
    algo = IsodataClustering(make_raster(data), {"seed": 11})
    centers = algo.create_initial_clusters()
    assert centers.shape == (10, 2)
    assert np.all(centers[:, 0] == algo.collection.values[:, 0].mean())
    assert np.all(centers[:, 0] == 7.0)
    assert len(np.unique(centers[:, 1])) == 10

def test_cell_level_assignment_counts_absorbed_cells():
    r = make_blocks_raster(w=6, h=4, left=10.0, right=200.0, bands=2)
    algo = IsodataClustering(r, {"cluster_distance_threshold": 0.0},
                             initial_centers=[[0.0, 0.0], [250.0, 250.0], [1000.0, 1000.0]])
    algo.create_initial_clusters()
    algo.assign_clusters()
    # 24 celdas en 2 clusters; el tercer centro queda vacío
    assert algo.collection.count() == 2
    assert algo.merges == 22
    lab = algo.collection.labels()
    assert len(np.unique(lab[:, :3])) == 1 and len(np.unique(lab[:, 3:])) == 1
    algo.collection.check_integrity()
