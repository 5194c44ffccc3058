"""
Vietoris-Rips bifiltration of a point cloud with birth times.

A simplex is born at the multi-index

    time = max birth time of its vertices
    dist = max pairwise distance between its vertices

and the complex is cut off at ``max_time``, ``max_dist`` and ``max_dim``.
The simplices are written directly into a ``SimplexTree``: since a
Vietoris-Rips complex is a flag complex, the recursive extension below
visits every face of a simplex before the simplex itself, so face closure
holds without going through ``SimplexTree.insert``.

Note that nothing here guards against combinatorial blow-up; the number of
simplices grows very quickly with ``max_dist`` and ``max_dim``.
"""
from __future__ import annotations

import math
from time import perf_counter
from typing import TYPE_CHECKING, Callable, List, Optional

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from .simplex_tree import SimplexTree
    from .st_node import STNode

_EPS = 1e-9

Metric = Callable[[NDArray[np.float64], NDArray[np.float64]], float]
"""Takes two points and returns their (non-negative) distance."""


def compute_distance_matrix(points, metric: Optional[Metric] = None) -> NDArray[np.float64]:
    """
    Pairwise distance matrix of a point cloud.

    Parameters
    ----------
    points : array-like, shape (n_points, dim)
        Point cloud; a 1D array is read as n points on the line.
    metric : callable, optional
        ``metric(p, q) -> float``. Euclidean distance if not given.

    Returns
    -------
    np.ndarray, shape (n_points, n_points)
    """
    P = np.asarray(points, dtype=float)
    if P.ndim == 1:
        P = P[:, None]
    if P.ndim != 2:
        raise ValueError(f"points must be an (n_points, dim) array, got shape {P.shape}")

    if metric is None:
        diff = P[:, None, :] - P[None, :, :]
        return np.sqrt((diff ** 2).sum(axis=-1))

    n = len(P)
    D = np.zeros((n, n), dtype=float)
    for i in range(n):
        for j in range(i + 1, n):
            D[i, j] = D[j, i] = float(metric(P[i], P[j]))
    return D


def _check_distance_matrix(distances) -> NDArray[np.float64]:
    D = np.asarray(distances, dtype=float)
    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise ValueError(f"distances must be a square matrix, got shape {D.shape}")
    if np.any(np.isnan(D)) or np.any(D < 0):
        raise ValueError("distances must be non-negative numbers")
    if not np.allclose(D, D.T):
        raise ValueError("distances must be symmetric")
    return D


def snap_to_resolution(D: NDArray[np.float64], resolution: Optional[float], max_dist: float) -> NDArray[np.float64]:
    """
    Rounds distances up to the next multiple of ``resolution``, never above ``max_dist``.
    With ``resolution=None`` the distances are returned unchanged.
    """
    if resolution is None:
        return D
    snapped = np.ceil(D / resolution - _EPS) * resolution
    snapped = np.round(snapped, 12)
    return np.minimum(snapped, max_dist)


def _build_VR_subtree(tree: "SimplexTree",
                      parent: "STNode",
                      simplex: List[int],
                      prev_time: int,
                      prev_dist: int,
                      candidates: List[int],
                      time_index: NDArray[np.int64],
                      dist_index: NDArray[np.int64],
                      adjacent: NDArray[np.bool_],
                      max_depth: int):
    """
    Adds every extension of ``simplex`` by one vertex from ``candidates``
    (vertices with larger labels adjacent to all of ``simplex``) below
    ``parent`` and recurses until ``max_depth`` vertices are reached.
    """
    for pos, v in enumerate(candidates):
        time = max(prev_time, int(time_index[v]))
        dist = prev_dist
        for u in simplex:
            dist = max(dist, int(dist_index[u, v]))

        node = tree._attach_child(parent, v, time, dist)

        if len(simplex) + 1 < max_depth:
            next_candidates = [w for w in candidates[pos + 1:] if adjacent[v, w]]
            if next_candidates:
                _build_VR_subtree(tree, node, simplex + [v], time, dist, next_candidates,
                                  time_index, dist_index, adjacent, max_depth)


def build_VR_complex(tree: "SimplexTree",
                     points,
                     max_dist: float,
                     max_time: float = math.inf,
                     max_dim: int = 2,
                     birth_times=None,
                     distances=None,
                     metric: Optional[Metric] = None,
                     resolution: Optional[float] = None,
                     print_info: Optional[bool] = None) -> "SimplexTree":
    """
    Builds the Vietoris-Rips bifiltration of a point cloud into an empty simplex tree.

    Parameters
    ----------
    tree : SimplexTree
        Must not contain any simplices yet.
    points : array-like, shape (n_points, dim), or None
        Point cloud. Vertex ``i`` of the complex is ``points[i]``. May be None
        if ``distances`` is given.
    max_dist : float
        Largest admissible pairwise distance.
    max_time : float
        Points born after ``max_time`` are left out.
    max_dim : int
        Top dimension of the complex.
    birth_times : array-like, shape (n_points,), optional
        Birth time of each point, zero if not given.
    distances : array-like, shape (n_points, n_points), optional
        Precomputed distance matrix; takes precedence over ``metric``.
    metric : callable, optional
        ``metric(p, q) -> float``; Euclidean distance if neither this nor
        ``distances`` is given.
    resolution : float, optional
        If given, distances are rounded up to multiples of ``resolution``
        (clamped to ``max_dist``), which coarsens the distance grid.
    print_info : bool, optional
        Print progress; defaults to ``tree.print_info``.

    Returns
    -------
    SimplexTree
        ``tree``, with global indexes updated.
    """
    if print_info is None:
        print_info = tree.print_info
    if tree.get_num_simplices() > 0:
        raise ValueError("build_VR_complex needs an empty simplex tree")
    if not max_dist >= 0:
        raise ValueError(f"max_dist must be non-negative, got {max_dist}")
    if max_dim < 0:
        raise ValueError(f"max_dim must be non-negative, got {max_dim}")
    if resolution is not None and not resolution > 0:
        raise ValueError(f"resolution must be positive, got {resolution}")

    start = perf_counter()

    if distances is not None:
        D = _check_distance_matrix(distances)
    elif points is not None:
        D = compute_distance_matrix(points, metric=metric)
    else:
        raise ValueError("Provide points or a distance matrix")
    n = D.shape[0]
    if points is not None and len(points) != n:
        raise ValueError(f"Distance matrix has {n} rows but there are {len(points)} points")
    if tree.num_vertices is not None and n > tree.num_vertices:
        raise ValueError(f"{n} points do not fit into a tree with {tree.num_vertices} vertices")

    if birth_times is None:
        births = np.zeros(n, dtype=float)
    else:
        births = np.asarray(birth_times, dtype=float)
        if births.shape != (n,):
            raise ValueError(f"birth_times must have shape ({n},), got {births.shape}")

    vertices = [v for v in range(n) if births[v] <= max_time]

    adjacent = D <= max_dist
    np.fill_diagonal(adjacent, False)
    S = snap_to_resolution(D, resolution, max_dist)

    # register all grid values first, so that registration never shifts indices
    for t in np.unique(births[vertices]):
        tree.register_time(float(t))
    tree.register_dist(0.0)
    if len(vertices) > 1:
        V = np.array(vertices)
        sub_adjacent = adjacent[np.ix_(V, V)]
        upper = np.triu(sub_adjacent, k=1)
        for d in np.unique(S[np.ix_(V, V)][upper]):
            tree.register_dist(float(d))

    time_values = np.array(tree.times.values)
    dist_values = np.array(tree.dists.values)
    time_index = np.searchsorted(time_values, births)
    dist_index = np.where(adjacent, np.searchsorted(dist_values, S), -1)
    zero_dist = tree.dist_index(0.0)

    grid_time = perf_counter() - start
    if print_info:
        print(f"{len(vertices)} of {n} points born by time {max_time}")
        print(f"Grid of {len(time_values)} time values x {len(dist_values)} distance values computed in {grid_time} sec")

    start = perf_counter()
    max_depth = max_dim + 1
    for pos, v in enumerate(vertices):
        node = tree._attach_child(tree.root, v, int(time_index[v]), zero_dist)
        if max_depth > 1:
            candidates = [w for w in vertices[pos + 1:] if adjacent[v, w]]
            if candidates:
                _build_VR_subtree(tree, node, [v], int(time_index[v]), zero_dist, candidates,
                                  time_index, dist_index, adjacent, max_depth)

    build_time = perf_counter() - start
    if print_info:
        print(f"Vietoris-Rips complex with {tree.get_num_simplices()} simplices built in {build_time} sec")

    tree.reindex()

    return tree
