"""
Exceptions raised by the simplex tree.

Lookup misses (a vertex set, ordinal or filtration value that is simply not
there) are not errors: they return ``NOT_FOUND``. The classes below cover
contract violations that must not be answered with a best-effort value.
"""

NOT_FOUND = -1


class SimplexTreeError(Exception):
    """Base class for all simplex tree errors."""


class MalformedSimplexError(SimplexTreeError, ValueError):
    """Vertex set or birth index rejected before the tree is touched."""


class StaleIndexError(SimplexTreeError, RuntimeError):
    """Global indexes were requested after a mutation without ``reindex()``."""


class MultiIndexError(SimplexTreeError, IndexError):
    """Grid index outside the registered time or distance values."""


class SimplexNotFoundError(SimplexTreeError, KeyError):
    """No simplex carries the requested global index."""
