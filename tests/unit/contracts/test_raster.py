# tests/unit/contracts/test_raster.py
import numpy as np
import pytest

from spectraseg.contracts.errors import IncompatibleRaster, OutOfRange
from spectraseg.contracts.raster import RasterFormat, SpectralRaster, raster_cells
from spectraseg.ports.raster_access import RasterAccessorPort
from tests.factories import ListRaster, ValueOnlyRaster, make_profile, make_raster


def test_from_array_promotes_2d_and_reports_extent():
    r = make_raster([[1, 2, 3], [4, 5, 6]])
    assert (r.number_of_rows, r.number_of_columns, r.number_of_bands) == (2, 3, 1)
    assert r.profile.shape == (1, 2, 3)
    assert r.format is RasterFormat.FLOATING
    assert isinstance(r, RasterAccessorPort)

def test_integer_format_and_values():
    r = make_raster(np.arange(12).reshape(2, 2, 3), dtype=np.uint16)
    assert r.format is RasterFormat.INTEGER
    assert r.get_value(1, 2, 1) == 11
    assert list(r.get_values(0, 0)) == [0, 6]

def test_data_is_read_only():
    r = make_raster([[1.0, 2.0]])
    with pytest.raises(ValueError):
        r.data[0, 0, 0] = 9.0

def test_out_of_range_coordinates():
    r = make_raster([[1, 2], [3, 4]])
    with pytest.raises(OutOfRange):
        r.get_values(2, 0)
    with pytest.raises(OutOfRange):
        r.get_value(0, -1, 0)
    with pytest.raises(OutOfRange):
        r.get_value(0, 0, 1)

def test_profile_mismatch_and_bad_dtype():
    with pytest.raises(IncompatibleRaster):
        SpectralRaster(np.zeros((1, 3, 3), dtype=np.float32), make_profile(w=4, h=3))
    with pytest.raises(IncompatibleRaster):
        make_raster(np.zeros((2, 2), dtype=np.complex64), dtype=np.complex64)
    with pytest.raises(IncompatibleRaster):
        make_raster(np.zeros((1, 0, 3)))

def test_with_count_keeps_geometry():
    p = make_profile(w=5, h=2, bands=3)
    q = p.with_count(1, "int32")
    assert q.shape == (1, 2, 5)
    assert q.dtype == "int32"
    assert q.transform == p.transform and q.crs == p.crs

def test_raster_cells_row_major_both_paths():
    data = [[[1.0, 10.0], [2.0, 20.0]], [[3.0, 30.0], [4.0, 40.0]]]  # rows x cols x bands
    fast = raster_cells(make_raster(np.transpose(np.asarray(data), (2, 0, 1))))
    slow = raster_cells(ListRaster(data))
    expected = np.array([[1, 10], [2, 20], [3, 30], [4, 40]], dtype=np.float64)
    np.testing.assert_array_equal(fast, expected)
    np.testing.assert_array_equal(slow, expected)

def test_raster_cells_with_get_value_only_accessor():
    data = np.arange(12, dtype=np.float64).reshape(2, 2, 3)  # bands x rows x cols
    acc = ValueOnlyRaster(data)
    assert isinstance(acc, RasterAccessorPort)
    cells = raster_cells(acc)
    assert cells.shape == (6, 2)
    np.testing.assert_array_equal(cells, raster_cells(make_raster(data)))
