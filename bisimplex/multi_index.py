import bisect
from typing import Iterable, Iterator, Tuple

from .errors import NOT_FOUND, MultiIndexError


class GradeList:
    """
    One axis of the bifiltration grid.

    Stores the distinct filtration values seen so far (birth times or birth
    distances) in increasing order. A simplex stores the *position* of its
    birth value in this list, not the value itself.

    Registering a value smaller than the current maximum shifts the position
    of every larger value by one; whoever holds positions into the list has
    to shift them too (see ``SimplexTree.register_time``).
    """

    def __init__(self, name: str, values: Iterable[float] = ()):
        self.name = name
        self._values: list[float] = sorted(set(float(v) for v in values))

    def register(self, value: float) -> Tuple[int, bool]:
        """Insert ``value`` if absent. Returns ``(index, inserted)``."""
        value = float(value)
        pos = bisect.bisect_left(self._values, value)
        if pos < len(self._values) and self._values[pos] == value:
            return pos, False
        self._values.insert(pos, value)
        return pos, True

    def index_of(self, value: float) -> int:
        """Position of ``value``, or ``NOT_FOUND`` if it was never registered."""
        value = float(value)
        pos = bisect.bisect_left(self._values, value)
        if pos < len(self._values) and self._values[pos] == value:
            return pos
        return NOT_FOUND

    def value_of(self, index: int) -> float:
        if not 0 <= index < len(self._values):
            raise MultiIndexError(
                f"{self.name} index {index} out of range, {len(self._values)} values registered"
            )
        return self._values[index]

    @property
    def values(self) -> Tuple[float, ...]:
        return tuple(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"GradeList({self.name!r}, {self._values})"
