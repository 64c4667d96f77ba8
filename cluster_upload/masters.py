"""Round-robin pool of master coordinator addresses."""

from collections.abc import Iterable, Iterator


class MasterPool:
    """Ordered list of master addresses with a rotating cursor.

    The pool never touches the network: it only tracks which master the
    client should contact next. Rotation is strictly round-robin, so after
    ``len(pool)`` consecutive rotations every master has been selected once.

    Example:
        >>> pool = MasterPool(["http://m1:8000", "http://m2:8000"])
        >>> pool.select()
        'http://m1:8000'
        >>> pool.rotate()
        'http://m2:8000'
    """

    def __init__(self, masters: Iterable[str]):
        """Initialize the pool.

        Args:
            masters: Master addresses in the order they should be tried

        Raises:
            ValueError: If no master address is given
        """
        self._masters = tuple(m for m in masters if m)
        if not self._masters:
            raise ValueError("At least one master address is required")
        self._cursor = 0

    @property
    def masters(self) -> tuple[str, ...]:
        """All configured master addresses."""
        return self._masters

    @property
    def cursor(self) -> int:
        return self._cursor

    def select(self) -> str:
        """Return the currently selected master address."""
        return self._masters[self._cursor]

    def rotate(self) -> str:
        """Advance to the next master and return its address."""
        self._cursor = (self._cursor + 1) % len(self._masters)
        return self._masters[self._cursor]

    def __len__(self) -> int:
        return len(self._masters)

    def __iter__(self) -> Iterator[str]:
        return iter(self._masters)

    def __repr__(self) -> str:
        return f"MasterPool({list(self._masters)!r}, cursor={self._cursor})"
