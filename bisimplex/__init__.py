"""
bisimplex: bifiltered simplex trees for multi-parameter persistence.

Simplices carry a birth multi-index (time, distance). The ``SimplexTree``
stores them, assigns dimension-ordered global indexes and extracts sparse
boundary, merge and split matrices at any multi-index.

Usage:
    from bisimplex import SimplexTree

    st = SimplexTree()
    st.build_VR_complex(points, max_dist=1.0, max_dim=2, birth_times=times)
    bd = st.get_boundary_mx(time=0, dist=st.dist_index(0.5), dim=1)
"""

from .errors import (
    NOT_FOUND,
    MalformedSimplexError,
    MultiIndexError,
    SimplexNotFoundError,
    SimplexTreeError,
    StaleIndexError,
)
from .map_matrix import ExtractedMatrix, MapMatrix
from .multi_index import GradeList
from .simplex_tree import SimplexTree
from .st_node import SimplexData, STNode
from .vietoris_rips import build_VR_complex, compute_distance_matrix

__version__ = "0.1.0"

__all__ = [
    "NOT_FOUND",
    "SimplexTree",
    "STNode",
    "SimplexData",
    "GradeList",
    "MapMatrix",
    "ExtractedMatrix",
    "build_VR_complex",
    "compute_distance_matrix",
    "SimplexTreeError",
    "MalformedSimplexError",
    "StaleIndexError",
    "MultiIndexError",
    "SimplexNotFoundError",
]
