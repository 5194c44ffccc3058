import bisect
import itertools
import math
import numbers
from time import perf_counter
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import (
    NOT_FOUND,
    MalformedSimplexError,
    MultiIndexError,
    SimplexNotFoundError,
    StaleIndexError,
)
from .map_matrix import ExtractedMatrix, MapMatrix
from .multi_index import GradeList
from .st_node import SimplexData, STNode
from .vietoris_rips import build_VR_complex as _build_VR_complex


class SimplexTree:
    """
    Bifiltered simplicial complex stored as a simplex tree.

    Every node of the tree is one simplex; the labels on the path from the
    root to a node, in increasing order, are the vertices of that simplex.
    Each simplex is born at a multi-index ``(time, dist)`` given as positions
    into the sorted lists ``self.times`` and ``self.dists``.

    Nodes live in ``self.nodes`` keyed by integer ids; node 0 is the
    synthetic root whose children are the vertices.

    After any insertion the global indexes are stale until ``reindex()`` is
    called. Every query that hands out or consumes global indexes raises
    ``StaleIndexError`` on a stale tree.
    """

    def __init__(self,
                 num_vertices: Optional[int] = None,
                 z2: bool = False,
                 print_info: bool = False) -> None:
        self.num_vertices = num_vertices        # upper bound on vertex labels, None means unbounded
        self.z2 = z2                            # boundary coefficients mod 2 instead of signed
        self.print_info = print_info

        self.times = GradeList("time")
        self.dists = GradeList("dist")

        self._node_id = itertools.count(0)      # used to assign unique id to each node
        self.nodes: Dict[int, STNode] = {}
        self.root = STNode(id=next(self._node_id), vertex=-1, time=-1, dist=-1)
        self.nodes[self.root.id] = self.root

        self._index_to_node: List[int] = []     # global index -> node id
        self._level_offsets: List[int] = []     # first global index of each dimension
        self._dirty = False

    # ---------- multi-index registry ----------

    def _register(self, grades: GradeList, attr: str, value: float) -> int:
        index, inserted = grades.register(value)
        if inserted and index < len(grades) - 1:
            # value landed in the middle of the list, so stored positions above it move up by one
            for node in self.nodes.values():
                if node is not self.root and getattr(node, attr) >= index:
                    setattr(node, attr, getattr(node, attr) + 1)
        return index

    def register_time(self, value: float) -> int:
        return self._register(self.times, "time", value)

    def register_dist(self, value: float) -> int:
        return self._register(self.dists, "dist", value)

    def time_index(self, value: float) -> int:
        """Returns the index of a time value, or NOT_FOUND."""
        return self.times.index_of(value)

    def dist_index(self, value: float) -> int:
        """Returns the index of a distance value, or NOT_FOUND."""
        return self.dists.index_of(value)

    def get_time(self, index: int) -> float:
        return self.times.value_of(index)

    def get_dist(self, index: int) -> float:
        return self.dists.value_of(index)

    def get_num_times(self) -> int:
        return len(self.times)

    def get_num_dists(self) -> int:
        return len(self.dists)

    # ---------- insertion ----------

    def _validate(self, vertices: Iterable[int], time: int, dist: int) -> Tuple[int, ...]:
        """Checks a vertex set and birth before any mutation and returns the sorted vertex tuple."""
        vertices = list(vertices)
        if len(vertices) == 0:
            raise MalformedSimplexError("A simplex needs at least one vertex.")
        for v in vertices:
            if not isinstance(v, numbers.Integral) or isinstance(v, bool):
                raise MalformedSimplexError(f"Vertex labels must be integers, got {v!r} in {vertices}")
            if v < 0:
                raise MalformedSimplexError(f"Vertex labels must be non-negative, got {v} in {vertices}")
            if self.num_vertices is not None and v >= self.num_vertices:
                raise MalformedSimplexError(
                    f"Vertex label {v} out of range, the tree allows labels below {self.num_vertices}"
                )
        simplex = tuple(sorted(int(v) for v in vertices))
        if len(set(simplex)) != len(simplex):
            raise MalformedSimplexError(f"Vertex set {vertices} contains duplicate labels.")
        for name, value in (("time", time), ("dist", dist)):
            if not isinstance(value, numbers.Integral) or isinstance(value, bool) or value < 0:
                raise MalformedSimplexError(f"Birth {name} index must be a non-negative integer, got {value!r}")
        return simplex

    def _attach_child(self, parent: STNode, vertex: int, time: int, dist: int) -> STNode:
        """Creates a new node below ``parent``. Does not check face closure."""
        nid = next(self._node_id)
        node = STNode(id=nid, vertex=vertex, time=time, dist=dist, parent=parent.id)
        self.nodes[nid] = node
        parent.add_child(vertex, nid)
        self._dirty = True
        return node

    def _add_face(self, face: Sequence[int], time: int, dist: int):
        # every proper prefix of face is a smaller face and has been added already
        node = self.root
        for v in face[:-1]:
            node = self.nodes[node.children[v]]
        child_id = node.get_child(face[-1])
        if child_id is None:
            self._attach_child(node, face[-1], time, dist)
        else:
            self.nodes[child_id].lower_birth(time, dist)

    def insert(self, vertices: Iterable[int], time: int, dist: int):
        """
        Adds a simplex and all of its faces, born at grid position (time, dist).

        Faces that already exist keep the coordinatewise minimum of their old
        birth and (time, dist), so a face is never born after the simplex.
        Inserting an existing simplex only ever lowers its birth.

        The input is validated first; a rejected call leaves the tree unchanged.
        Global indexes are not updated; call ``reindex()`` after a batch of
        insertions.
        """
        simplex = self._validate(vertices, time, dist)
        time, dist = int(time), int(dist)

        for k in range(1, len(simplex) + 1):
            for face in itertools.combinations(simplex, k):
                self._add_face(face, time, dist)

        self._dirty = True

    def add_simplex_values(self, vertices: Iterable[int], time_value: float, dist_value: float):
        """Registers the real birth values and inserts the simplex at their grid position."""
        simplex = self._validate(vertices, 0, 0)
        if math.isnan(time_value) or math.isnan(dist_value):
            raise MalformedSimplexError(f"Birth values must not be NaN, got ({time_value}, {dist_value})")
        time = self.register_time(time_value)
        dist = self.register_dist(dist_value)
        self.insert(simplex, time, dist)

    def build_VR_complex(self, points, max_dist: float, **kwargs) -> "SimplexTree":
        """Builds a Vietoris-Rips bifiltration into this (empty) tree, see ``vietoris_rips.build_VR_complex``."""
        return _build_VR_complex(self, points, max_dist, **kwargs)

    # ---------- global indexes ----------

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def _require_indexed(self):
        if self._dirty:
            raise StaleIndexError(
                "Simplex tree was modified since the last reindex(); global indexes are stale."
            )

    def _index_level(self, node: STNode, level: int, target_level: int):
        for cid in node.child_ids():
            child = self.nodes[cid]
            if level + 1 == target_level:
                child.global_index = len(self._index_to_node)
                self._index_to_node.append(cid)
            else:
                self._index_level(child, level + 1, target_level)

    def reindex(self):
        """
        Assigns global indexes 0, ..., N-1 to all simplices.

        One depth-first pass per dimension, children in increasing label
        order: all k-simplices come before all (k+1)-simplices, and within a
        dimension simplices are ordered lexicographically by vertex labels.
        """
        start = perf_counter()

        self._index_to_node = []
        self._level_offsets = []
        target_level = 1
        while True:
            level_start = len(self._index_to_node)
            self._index_level(self.root, 0, target_level)
            if len(self._index_to_node) == level_start:
                break
            self._level_offsets.append(level_start)
            target_level += 1

        self._dirty = False

        if self.print_info:
            print(f"Global indexes updated for {len(self._index_to_node)} simplices in {perf_counter() - start} sec")

    # ---------- lookup ----------

    def _find_node(self, simplex: Sequence[int]) -> Optional[STNode]:
        node = self.root
        for v in simplex:
            cid = node.get_child(v)
            if cid is None:
                return None
            node = self.nodes[cid]
        return node

    def _node_at(self, index: int) -> STNode:
        self._require_indexed()
        if not isinstance(index, numbers.Integral) or not 0 <= index < len(self._index_to_node):
            raise SimplexNotFoundError(f"No simplex with global index {index}")
        return self.nodes[self._index_to_node[index]]

    def contains(self, vertices: Iterable[int]) -> bool:
        """True if the simplex is in the tree. Works on a stale tree."""
        simplex = sorted(vertices)
        return len(simplex) > 0 and self._find_node(simplex) is not None

    def find_index(self, vertices: Iterable[int]) -> int:
        """Given vertex labels, returns the global index of the simplex, or NOT_FOUND."""
        self._require_indexed()
        simplex = sorted(vertices)
        if len(simplex) == 0:
            return NOT_FOUND
        node = self._find_node(simplex)
        return NOT_FOUND if node is None else node.global_index

    def find_vertices(self, index: int) -> List[int]:
        """Given a global index, returns the sorted vertex labels of the simplex."""
        node = self._node_at(index)
        vertices = []
        while node.parent is not None:
            vertices.append(node.vertex)
            node = self.nodes[node.parent]
        vertices.reverse()
        return vertices

    def get_simplex_data(self, index: int) -> SimplexData:
        node = self._node_at(index)
        dim = bisect.bisect_right(self._level_offsets, index) - 1
        return SimplexData(dim=dim, time=node.time, dist=node.dist)

    def _find_nodes(self, node: STNode, level: int, found: List[int], time: int, dist: int, target_level: int):
        for cid in node.child_ids():
            child = self.nodes[cid]
            # faces are born no later than their cofaces, so nothing below a late node is alive either
            if not child.born_by(time, dist):
                continue
            if level + 1 == target_level:
                found.append(child.global_index)
            else:
                self._find_nodes(child, level + 1, found, time, dist, target_level)

    def simplices_at(self, dim: int, time: int, dist: int) -> List[int]:
        """
        Global indexes, in increasing order, of the dim-simplices alive at grid position (time, dist).

        Negative grid indices select nothing, indices past the end of the grid
        select every simplex of that dimension.
        """
        self._require_indexed()
        found: List[int] = []
        if dim < 0:
            return found
        self._find_nodes(self.root, 0, found, time, dist, dim + 1)
        return found  # label-order traversal of one level is increasing in global index

    # ---------- counts ----------

    def _walk(self) -> Iterator[Tuple[STNode, int]]:
        """Depth-first over all simplices in label order, yields (node, depth); depth 1 are vertices."""
        stack = [(cid, 1) for cid in reversed(list(self.root.child_ids()))]
        while stack:
            nid, depth = stack.pop()
            node = self.nodes[nid]
            yield node, depth
            stack.extend((cid, depth + 1) for cid in reversed(list(node.child_ids())))

    def get_num_simplices(self) -> int:
        return len(self.nodes) - 1

    def get_num_vertices(self) -> int:
        return len(self.root.children)

    def num_simplices_by_dim(self) -> List[int]:
        counts: List[int] = []
        for _, depth in self._walk():
            if depth > len(counts):
                counts.extend([0] * (depth - len(counts)))
            counts[depth - 1] += 1
        return counts

    def max_dim(self) -> int:
        """Top dimension of the complex, -1 if it is empty."""
        if not self._dirty:
            return len(self._level_offsets) - 1
        return len(self.num_simplices_by_dim()) - 1

    def __len__(self) -> int:
        return self.get_num_simplices()

    # ---------- matrices ----------

    def _check_multi_index(self, time: int, dist: int):
        if not 0 <= time < len(self.times):
            raise MultiIndexError(f"Time index {time} out of range, {len(self.times)} time values registered")
        if not 0 <= dist < len(self.dists):
            raise MultiIndexError(f"Distance index {dist} out of range, {len(self.dists)} distance values registered")

    def _coefficient(self, i: int) -> int:
        """Coefficient of the face obtained by dropping the i-th vertex."""
        return 1 if self.z2 else (-1) ** i

    def get_boundary_mx_from_orders(self, coface_global: Sequence[int], face_order: Mapping[int, int]) -> ExtractedMatrix:
        """
        Boundary matrix with prescribed orders.

        Column j is the boundary of the simplex with global index
        ``coface_global[j]``; the face with global index g sits in row
        ``face_order[g]``. Every face of every coface must appear in
        ``face_order``.
        """
        self._require_indexed()

        rows = [NOT_FOUND] * len(face_order)
        for gi, row in face_order.items():
            if not 0 <= row < len(rows):
                raise ValueError(f"Row position {row} of face {gi} out of range for {len(rows)} faces")
            rows[row] = gi

        mat = MapMatrix(len(face_order), len(coface_global))
        for col, gi in enumerate(coface_global):
            vertices = self.find_vertices(gi)
            if len(vertices) == 1:
                continue
            for i in range(len(vertices)):
                face_gi = self.find_index(vertices[:i] + vertices[i + 1:])
                if face_gi not in face_order:
                    raise ValueError(
                        f"Face {vertices[:i] + vertices[i + 1:]} of simplex {vertices} is missing from the face order"
                    )
                mat.set(face_order[face_gi], col, self._coefficient(i))

        return ExtractedMatrix(matrix=mat, rows=rows, columns=list(coface_global))

    def get_boundary_mx(self, time: int, dist: int, dim: int) -> ExtractedMatrix:
        """
        Boundary matrix of the dim-simplices alive at grid position (time, dist).

        Rows are the (dim-1)-simplices alive there, columns the dim-simplices,
        both in increasing global index.
        """
        self._require_indexed()
        self._check_multi_index(time, dist)
        if dim < 0 or dim > self.max_dim():
            return ExtractedMatrix(matrix=MapMatrix(0, 0))

        faces = self.simplices_at(dim - 1, time, dist)
        cofaces = self.simplices_at(dim, time, dist)
        face_order = {gi: row for row, gi in enumerate(faces)}

        return self.get_boundary_mx_from_orders(cofaces, face_order)

    def get_merge_mx(self, time: int, dist: int, dim: int) -> ExtractedMatrix:
        """
        Matrix of the map [B+C, D] induced by inclusions of dim-skeleta, where
        D is the complex at (time, dist), B at (time-1, dist) and C at (time, dist-1).

        Columns are the simplices of B followed by those of C, rows the simplices of D.
        """
        self._require_indexed()
        self._check_multi_index(time, dist)
        if dim < 0 or dim > self.max_dim():
            return ExtractedMatrix(matrix=MapMatrix(0, 0))

        simplices_B = self.simplices_at(dim, time - 1, dist)
        simplices_C = self.simplices_at(dim, time, dist - 1)
        simplices_D = self.simplices_at(dim, time, dist)

        row_of = {gi: row for row, gi in enumerate(simplices_D)}
        columns = simplices_B + simplices_C
        mat = MapMatrix(len(simplices_D), len(columns))
        for col, gi in enumerate(columns):
            mat.set(row_of[gi], col, 1)

        return ExtractedMatrix(matrix=mat, rows=simplices_D, columns=columns)

    def get_split_mx(self, time: int, dist: int, dim: int) -> ExtractedMatrix:
        """
        Matrix of the map [A, B+C] for dim-skeleta, where A is the complex at
        (time-1, dist-1), B at (time-1, dist) and C at (time, dist-1).

        Rows are the simplices of A; columns are the simplices of B followed by
        those of C. Each row has a 1 in the column of the same simplex in B and in C.
        """
        self._require_indexed()
        self._check_multi_index(time, dist)
        if dim < 0 or dim > self.max_dim():
            return ExtractedMatrix(matrix=MapMatrix(0, 0))

        simplices_A = self.simplices_at(dim, time - 1, dist - 1)
        simplices_B = self.simplices_at(dim, time - 1, dist)
        simplices_C = self.simplices_at(dim, time, dist - 1)

        col_in_B = {gi: col for col, gi in enumerate(simplices_B)}
        col_in_C = {gi: len(simplices_B) + col for col, gi in enumerate(simplices_C)}
        mat = MapMatrix(len(simplices_A), len(simplices_B) + len(simplices_C))
        for row, gi in enumerate(simplices_A):
            mat.set(row, col_in_B[gi], 1)
            mat.set(row, col_in_C[gi], 1)

        return ExtractedMatrix(matrix=mat, rows=simplices_A, columns=simplices_B + simplices_C)

    # ---------- diagnostics ----------

    def _value_str(self, grades: GradeList, index: int) -> str:
        if 0 <= index < len(grades):
            return f"{grades.value_of(index):g}"
        return "?"

    def dump(self) -> str:
        """Human readable representation of the tree, one simplex per line."""
        lines = [
            f"SimplexTree: {self.get_num_simplices()} simplices, "
            f"{len(self.times)} time values, {len(self.dists)} distance values"
            + (" (global indexes stale)" if self._dirty else "")
        ]
        for node, depth in self._walk():
            gi = "-" if self._dirty else node.global_index
            lines.append(
                f"{'  ' * (depth - 1)}{node.vertex}  dim={depth - 1}  "
                f"birth=({node.time}, {node.dist}) = "
                f"(time {self._value_str(self.times, node.time)}, dist {self._value_str(self.dists, node.dist)})  "
                f"gi={gi}"
            )
        return "\n".join(lines)

    def print_tree(self):
        print(self.dump())

    def __repr__(self) -> str:
        return f"SimplexTree(num_simplices={self.get_num_simplices()}, max_dim={self.max_dim()})"
