"""
Key-value store interface and in-memory implementation.

The ledger and cache only ever need ``get``/``put``/``delete`` on string
keys plus a prefix scan, so any embedded store that offers those can back
them. ``MemoryStore`` is used in tests and for throwaway sessions.
"""

from typing import Dict, Iterator, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persisted key-value interface."""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self, prefix: str = "") -> Iterator[str]:
        ...


class MemoryStore:
    """Dict-backed store. Not persisted."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> Iterator[str]:
        # Snapshot so callers may delete while iterating
        return iter([k for k in self._data if k.startswith(prefix)])

    def __len__(self) -> int:
        return len(self._data)
