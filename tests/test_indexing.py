import numpy as np
import pytest

from wtlars.errors import IndexOutOfRange, InputShapeMismatch
from wtlars.indexing import ColumnIndexer


def test_round_trip_every_index():
    idx = ColumnIndexer((3, 4, 2))
    assert idx.total_columns == 24
    for flat in range(idx.total_columns):
        per_mode = idx.decompose(flat)
        assert per_mode == tuple(int(i) for i in np.unravel_index(flat, (3, 4, 2)))
        assert idx.compose(per_mode) == flat


def test_decompose_array_input():
    idx = ColumnIndexer((3, 3))
    modes = idx.decompose(np.array([0, 4, 8]))
    assert np.array_equal(modes[0], [0, 1, 2])
    assert np.array_equal(modes[1], [0, 1, 2])


def test_out_of_range():
    idx = ColumnIndexer((2, 3))
    with pytest.raises(IndexOutOfRange, match="outside"):
        idx.decompose(6)
    with pytest.raises(IndexError):
        idx.decompose(-1)
    with pytest.raises(IndexOutOfRange):
        idx.compose((2, 0))
    with pytest.raises(InputShapeMismatch, match="per-mode indices"):
        idx.compose((1,))


def test_masks():
    idx = ColumnIndexer((3, 3))
    assert idx.mask("kronecker").size == 0
    assert np.array_equal(idx.khatri_rao_columns(), [0, 4, 8])
    assert np.array_equal(idx.mask("KR"), [1, 2, 3, 5, 6, 7])
    with pytest.raises(ValueError, match="mask_type"):
        idx.mask("tucker")
    with pytest.raises(InputShapeMismatch, match="Khatri-Rao"):
        ColumnIndexer((3, 2)).mask("khatri-rao")


def test_factor_column_usage():
    idx = ColumnIndexer((3, 4))
    idx.touch([5, 6])  # (1, 1), (1, 2)
    cols = idx.factor_columns()
    assert np.array_equal(cols[0], [1])
    assert np.array_equal(cols[1], [1, 2])

    idx.release([6])
    assert np.array_equal(idx.factor_columns()[1], [1])
    with pytest.raises(ValueError, match="not in the active set"):
        idx.release([6])

    usage = idx.counts_after(added=[0], removed=[5])
    assert [u.tolist() for u in usage] == [[1, 0, 0], [1, 0, 0, 0]]
    assert [c.tolist() for c in idx.factor_columns()] == [[1], [1]]

    idx.reset([0])
    assert [c.tolist() for c in idx.factor_columns()] == [[0], [0]]
