"""
Core data structures for Stanza request handling.

Provides:
- MultiDict: Ordered multi-value dictionary for query and path parameters
- Headers: Case-insensitive header access over raw ASGI headers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union
)


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(Mapping[str, str]):
    """
    Dictionary that supports multiple values per key.

    Insertion order of every (key, value) pair is preserved, which matters
    for path parameters where the same name can appear twice
    (``/poems/:id/comments/:id``). Mapping access returns the first value.
    """

    def __init__(self, items: Optional[Union[Iterable[Tuple[str, str]], Mapping[str, str]]] = None):
        self._items: List[Tuple[str, str]] = []

        if items:
            if isinstance(items, Mapping):
                items = items.items()
            for key, value in items:
                self.add(key, value)

    def __getitem__(self, key: str) -> str:
        """Get first value for a key."""
        for k, v in self._items:
            if k == key:
                return v
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        """Iterate over distinct keys in first-seen order."""
        return iter(dict.fromkeys(k for k, _ in self._items))

    def __len__(self) -> int:
        """Number of distinct keys."""
        return len(dict.fromkeys(k for k, _ in self._items))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MultiDict):
            return self._items == other._items
        return super().__eq__(other)

    def __repr__(self) -> str:
        return f"MultiDict({self._items!r})"

    def get_all(self, key: str) -> List[str]:
        """Get all values for a key, in insertion order."""
        return [v for k, v in self._items if k == key]

    def get_last(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get the last value for a key."""
        values = self.get_all(key)
        return values[-1] if values else default

    def add(self, key: str, value: str) -> None:
        """Append a value for a key."""
        self._items.append((key, value))

    def items_list(self) -> List[Tuple[str, str]]:
        """Return all items as a flat list of tuples."""
        return list(self._items)

    def values_list(self) -> List[str]:
        """Return every value in insertion order."""
        return [v for _, v in self._items]

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """
        Convert to a regular dict.

        Args:
            multi: If True, return lists for all keys.
                   If False, return first value only.
        """
        if multi:
            return {k: self.get_all(k) for k in self}
        return {k: self[k] for k in self}


# ============================================================================
# Headers
# ============================================================================

@dataclass
class Headers:
    """
    Case-insensitive header access with raw preservation.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {}
        for name, value in self.raw:
            key = name.decode("latin-1").lower()
            self._index.setdefault(key, []).append(value.decode("latin-1"))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for header (case-insensitive)."""
        values = self._index.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        """Get all values for header (case-insensitive)."""
        return list(self._index.get(name.lower(), []))

    def items(self) -> Iterator[Tuple[str, str]]:
        """Iterate over all headers."""
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._index

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def __repr__(self) -> str:
        return f"Headers({list(self.items())})"
