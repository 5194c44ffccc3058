import bisect
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional


@dataclass
class STNode:
    """
    One simplex in the simplex tree.

    The node only knows the last (largest) vertex of its simplex; the full
    vertex set is the sequence of labels on the path from the root.
    Children are stored as node ids, keyed by vertex label, and are always
    visited in increasing label order.
    """
    id: int
    vertex: int
    time: int                                  # birth time index
    dist: int                                  # birth distance index
    parent: Optional[int] = None               # id of parent node, None for the root
    global_index: int = -1                     # valid only after SimplexTree.reindex()
    children: Dict[int, int] = field(default_factory=dict)       # vertex label -> node id
    _child_labels: List[int] = field(default_factory=list)       # sorted keys of children

    def get_child(self, vertex: int) -> Optional[int]:
        return self.children.get(vertex)

    def add_child(self, vertex: int, node_id: int):
        bisect.insort(self._child_labels, vertex)
        self.children[vertex] = node_id

    def child_ids(self) -> Iterator[int]:
        """Child node ids in increasing label order."""
        for label in self._child_labels:
            yield self.children[label]

    def born_by(self, time: int, dist: int) -> bool:
        return self.time <= time and self.dist <= dist

    def lower_birth(self, time: int, dist: int):
        """Coordinatewise minimum of the current and the given birth."""
        self.time = min(self.time, time)
        self.dist = min(self.dist, dist)

    def __repr__(self) -> str:
        return f"STNode(id={self.id}, v={self.vertex}, birth=({self.time}, {self.dist}), gi={self.global_index})"


@dataclass(frozen=True)
class SimplexData:
    """Dimension and birth multi-index (grid indices) of a simplex."""
    dim: int
    time: int
    dist: int

    @property
    def birth(self) -> tuple[int, int]:
        return (self.time, self.dist)
