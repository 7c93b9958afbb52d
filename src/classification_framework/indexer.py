"""Two-way mapping between feature/label strings and dense integer ids."""

from __future__ import annotations

from typing import Iterable, Optional


class StringIndexer:
    """Assigns consecutive integer ids to strings in first-seen order.

    Example::

        features = StringIndexer()
        features.index("contract")   # 0
        features.index("lease")      # 1
        features.value(0)            # "contract"
    """

    def __init__(self, items: Iterable[str] = ()) -> None:
        self._index: dict[str, int] = {}
        self._values: list[str] = []
        for item in items:
            self.index(item)

    def index(self, item: str, add_if_absent: bool = True) -> int:
        """Id of ``item``; ``-1`` when absent and ``add_if_absent`` is false."""
        idx = self._index.get(item)
        if idx is not None:
            return idx
        if not add_if_absent:
            return -1
        idx = len(self._values)
        self._index[item] = idx
        self._values.append(item)
        return idx

    def indices(self, items: Iterable[str], add_if_absent: bool = True) -> list[int]:
        """Ids of ``items``. Absent items are dropped when not adding."""
        ids = (self.index(item, add_if_absent) for item in items)
        return [idx for idx in ids if idx >= 0]

    def value(self, index: int, default: Optional[str] = None) -> Optional[str]:
        if 0 <= index < len(self._values):
            return self._values[index]
        return default

    def __contains__(self, item: object) -> bool:
        return item in self._index

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self):
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StringIndexer):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"StringIndexer(size={len(self)})"

    def to_list(self) -> list[str]:
        return list(self._values)

    @classmethod
    def from_list(cls, values: Iterable[str]) -> "StringIndexer":
        indexer = cls()
        for value in values:
            if value in indexer:
                raise ValueError(f"Duplicate indexer entry: {value!r}")
            indexer.index(value)
        return indexer
