from typing import Optional

import gudhi as gd

from .errors import MultiIndexError
from .simplex_tree import SimplexTree


def slice_to_gudhi(tree: SimplexTree, time: int, max_dim: Optional[int] = None) -> "gd.SimplexTree":
    """
    One-parameter slice of the bifiltration at a fixed time index.

    Returns a Gudhi SimplexTree containing every simplex born by ``time``
    (at any distance), with the real birth distance as filtration value.
    This is the usual single-parameter Rips filtration of the points born
    by that time, so it can be handed to Gudhi for persistence.

    Parameters
    ----------
    tree : SimplexTree
        Must be reindexed.
    time : int
        Time index into ``tree.times``.
    max_dim : int, optional
        Leave out simplices above this dimension.
    """
    if not 0 <= time < tree.get_num_times():
        raise MultiIndexError(f"Time index {time} out of range, {tree.get_num_times()} time values registered")

    top_dim = tree.max_dim() if max_dim is None else min(max_dim, tree.max_dim())
    last_dist = tree.get_num_dists() - 1

    st = gd.SimplexTree()
    # lower dimensions first, so Gudhi never has to fill in faces itself
    for dim in range(top_dim + 1):
        for gi in tree.simplices_at(dim, time, last_dist):
            data = tree.get_simplex_data(gi)
            st.insert(tree.find_vertices(gi), filtration=tree.get_dist(data.dist))

    st.make_filtration_non_decreasing()
    return st
