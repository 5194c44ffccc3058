"""
Tests for matrix extraction: boundary matrices at a multi-index, boundary
matrices with prescribed orders, and the merge / split inclusion matrices.
"""

import numpy as np
import pytest

from bisimplex import (
    NOT_FOUND,
    MapMatrix,
    MultiIndexError,
    SimplexTree,
    StaleIndexError,
)


TRIANGLE_DISTANCES = np.array([
    [0.0, 1.0, 1.0],
    [1.0, 0.0, 1.4],
    [1.0, 1.4, 0.0],
])


@pytest.fixture
def triangle():
    st = SimplexTree()
    st.build_VR_complex(None, max_dist=1.5, max_time=0, distances=TRIANGLE_DISTANCES)
    return st


@pytest.fixture
def four_vertices():
    """
    Vertex 0 at (0,0), vertex 1 at (0,1), vertices 2 and 3 at (1,0).

    At (1,1): B = (0,1) holds {0,1}, C = (1,0) holds {0,2,3},
    D = (1,1) holds all four, A = (0,0) holds {0}.
    """
    st = SimplexTree()
    for v in (0.0, 1.0):
        st.register_time(v)
        st.register_dist(v)
    st.insert([0], 0, 0)
    st.insert([1], 0, 1)
    st.insert([2], 1, 0)
    st.insert([3], 1, 0)
    st.reindex()
    return st


def random_bifiltration(seed=3, n=12, max_dim=3):
    rng = np.random.default_rng(seed)
    points = rng.uniform(size=(n, 2))
    births = rng.integers(0, 4, size=n).astype(float)
    st = SimplexTree()
    st.build_VR_complex(points, max_dist=0.6, max_dim=max_dim, birth_times=births)
    return st


def grid_sample(st):
    nt, nd = st.get_num_times(), st.get_num_dists()
    for t in sorted({0, nt // 2, nt - 1}):
        for d in sorted({0, nd // 2, nd - 1}):
            yield t, d


# ─────────────────────────────────────────────────────────────────────
# MapMatrix
# ─────────────────────────────────────────────────────────────────────

class TestMapMatrix:

    def test_set_get_and_columns(self):
        m = MapMatrix(3, 2)
        m.set(2, 0, -1)
        m.set(0, 0, 1)
        m.set(1, 1, 5)
        assert m.shape == (3, 2)
        assert m.get(2, 0) == -1
        assert m.get(1, 0) == 0
        assert m.column(0) == [(0, 1), (2, -1)]
        assert m.nnz() == 3

    def test_zero_is_not_stored(self):
        m = MapMatrix(2, 1)
        m.set(0, 0, 1)
        m.set(0, 0, 0)
        assert m.nnz() == 0

    def test_add_column(self):
        m = MapMatrix(2)
        assert m.add_column([(1, 1)]) == 0
        assert m.add_column() == 1
        np.testing.assert_array_equal(m.to_array(), [[0, 0], [1, 0]])

    def test_out_of_range(self):
        m = MapMatrix(2, 2)
        with pytest.raises(IndexError):
            m.set(2, 0, 1)
        with pytest.raises(IndexError):
            m.column(-1)
        with pytest.raises(ValueError):
            MapMatrix(-1, 0)


# ─────────────────────────────────────────────────────────────────────
# Boundary matrices
# ─────────────────────────────────────────────────────────────────────

class TestBoundaryMatrix:

    def test_triangle_edges(self, triangle):
        d = triangle.dist_index(1.4)
        assert d == 2
        bd = triangle.get_boundary_mx(0, d, 1)
        assert bd.shape == (3, 3)
        assert bd.rows == [0, 1, 2]
        assert [triangle.find_vertices(gi) for gi in bd.columns] == [[0, 1], [0, 2], [1, 2]]
        for col in range(3):
            assert len(bd.matrix.column(col)) == 2
        np.testing.assert_array_equal(bd.to_array(), [
            [-1, -1, 0],
            [1, 0, -1],
            [0, 1, 1],
        ])

    def test_triangle_face(self, triangle):
        bd = triangle.get_boundary_mx(0, 2, 2)
        assert bd.shape == (3, 1)
        np.testing.assert_array_equal(bd.to_array()[:, 0], [1, -1, 1])

    def test_boundary_of_boundary_vanishes(self, triangle):
        d1 = triangle.get_boundary_mx(0, 2, 1)
        d2 = triangle.get_boundary_mx(0, 2, 2)
        assert d1.columns == d2.rows
        np.testing.assert_array_equal(d1.to_array() @ d2.to_array(), 0)

    def test_only_alive_simplices(self, triangle):
        d = triangle.dist_index(1.0)
        bd1 = triangle.get_boundary_mx(0, d, 1)
        assert bd1.shape == (3, 2)
        bd2 = triangle.get_boundary_mx(0, d, 2)
        assert bd2.shape == (2, 0)

    def test_vertices_have_empty_boundary(self, triangle):
        bd = triangle.get_boundary_mx(0, 0, 0)
        assert bd.shape == (0, 3)
        assert bd.matrix.nnz() == 0

    @pytest.mark.parametrize("dim", [-1, 3, 50])
    def test_unreasonable_dimension_gives_empty_matrix(self, triangle, dim):
        bd = triangle.get_boundary_mx(0, 2, dim)
        assert bd.shape == (0, 0)
        assert bd.rows == [] and bd.columns == []

    @pytest.mark.parametrize("time,dist", [(1, 0), (0, 3), (-1, 0), (0, NOT_FOUND)])
    def test_multi_index_outside_grid_raises(self, triangle, time, dist):
        with pytest.raises(MultiIndexError):
            triangle.get_boundary_mx(time, dist, 1)

    def test_unregistered_value_is_rejected(self, triangle):
        with pytest.raises(MultiIndexError):
            triangle.get_boundary_mx(0, triangle.dist_index(0.7), 1)

    def test_stale_tree_is_rejected(self, triangle):
        triangle.insert([3], 0, 0)
        with pytest.raises(StaleIndexError):
            triangle.get_boundary_mx(0, 0, 0)
        with pytest.raises(StaleIndexError):
            triangle.get_merge_mx(0, 0, 0)
        with pytest.raises(StaleIndexError):
            triangle.get_split_mx(0, 0, 0)

    def test_z2_coefficients(self):
        st = SimplexTree(z2=True)
        st.build_VR_complex(None, max_dist=1.5, distances=TRIANGLE_DISTANCES)
        for dim in (1, 2):
            A = st.get_boundary_mx(0, 2, dim).to_array()
            assert set(np.unique(A)) <= {0, 1}
        A = st.get_boundary_mx(0, 2, 1).to_array()
        np.testing.assert_array_equal(A.sum(axis=0), [2, 2, 2])

    def test_random_columns_and_chain_complex(self):
        st = random_bifiltration()
        for t, d in grid_sample(st):
            for dim in range(1, st.max_dim() + 1):
                bd = st.get_boundary_mx(t, d, dim)
                for col in range(bd.matrix.num_columns):
                    assert len(bd.matrix.column(col)) == dim + 1
                if dim >= 2:
                    lower = st.get_boundary_mx(t, d, dim - 1)
                    assert lower.columns == bd.rows
                    np.testing.assert_array_equal(lower.to_array() @ bd.to_array(), 0)


class TestBoundaryFromOrders:

    def test_matches_multi_index_version(self, triangle):
        bd = triangle.get_boundary_mx(0, 2, 1)
        faces = triangle.simplices_at(0, 0, 2)
        same = triangle.get_boundary_mx_from_orders(
            bd.columns, {gi: row for row, gi in enumerate(faces)}
        )
        assert same.matrix == bd.matrix
        assert same.rows == bd.rows

    def test_prescribed_orders_permute_matrix(self, triangle):
        bd = triangle.get_boundary_mx(0, 2, 1).to_array()
        cofaces = list(reversed(triangle.simplices_at(1, 0, 2)))
        face_order = {0: 2, 1: 0, 2: 1}
        perm = triangle.get_boundary_mx_from_orders(cofaces, face_order)
        assert perm.rows == [1, 2, 0]
        assert perm.columns == cofaces
        np.testing.assert_array_equal(perm.to_array(), bd[[1, 2, 0]][:, ::-1])

    def test_missing_face_raises(self, triangle):
        edge = triangle.find_index([1, 2])
        with pytest.raises(ValueError):
            triangle.get_boundary_mx_from_orders([edge], {0: 0, 1: 1})

    def test_bad_row_position_raises(self, triangle):
        with pytest.raises(ValueError):
            triangle.get_boundary_mx_from_orders([], {0: 5})


# ─────────────────────────────────────────────────────────────────────
# Merge and split matrices
# ─────────────────────────────────────────────────────────────────────

class TestMergeMatrix:

    def test_shared_simplex_appears_twice(self, four_vertices):
        st = four_vertices
        merge = st.get_merge_mx(1, 1, 0)
        assert merge.shape == (4, 5)
        assert merge.rows == [0, 1, 2, 3]
        assert merge.columns == [0, 1, 0, 2, 3]
        A = merge.to_array()
        np.testing.assert_array_equal(A.sum(axis=0), [1] * 5)
        np.testing.assert_array_equal(A.sum(axis=1), [2, 1, 1, 1])
        assert A[0, 0] == 1 and A[0, 2] == 1

    def test_corner_of_grid(self, four_vertices):
        merge = four_vertices.get_merge_mx(0, 0, 0)
        assert merge.shape == (1, 0)

    def test_edges(self, triangle):
        merge = triangle.get_merge_mx(0, 2, 1)
        # B lies below time 0 and is empty, C = (0, 1) has the two unit edges
        assert merge.shape == (3, 2)
        A = merge.to_array()
        for col, gi in enumerate(merge.columns):
            assert A[merge.rows.index(gi), col] == 1
        assert merge.matrix.nnz() == 2

    def test_empty_for_bad_dimension(self, four_vertices):
        assert four_vertices.get_merge_mx(1, 1, -1).shape == (0, 0)
        assert four_vertices.get_merge_mx(1, 1, 1).shape == (0, 0)

    def test_multi_index_outside_grid_raises(self, four_vertices):
        with pytest.raises(MultiIndexError):
            four_vertices.get_merge_mx(2, 0, 0)


class TestSplitMatrix:

    def test_four_vertices(self, four_vertices):
        split = four_vertices.get_split_mx(1, 1, 0)
        assert split.shape == (1, 5)
        assert split.rows == [0]
        assert split.columns == [0, 1, 0, 2, 3]
        np.testing.assert_array_equal(split.to_array(), [[1, 0, 1, 0, 0]])

    def test_every_row_hits_b_and_c(self):
        st = random_bifiltration(max_dim=2)
        for t, d in grid_sample(st):
            for dim in range(st.max_dim() + 1):
                split = st.get_split_mx(t, d, dim)
                A = split.to_array()
                if A.shape[0]:
                    np.testing.assert_array_equal(A.sum(axis=1), 2)
                for row, gi in enumerate(split.rows):
                    hits = [split.columns[c] for c in np.flatnonzero(A[row])]
                    assert hits == [gi, gi]

    def test_multi_index_outside_grid_raises(self, four_vertices):
        with pytest.raises(MultiIndexError):
            four_vertices.get_split_mx(0, 2, 0)
