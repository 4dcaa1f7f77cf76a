"""In-memory key/value store."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

__all__ = ["InMemoryKeyValueStore"]


class InMemoryKeyValueStore:
    """Process-local :class:`~litestar_dataflows.core.protocols.KeyValueStore`.

    Records are copied on the way in and out so callers never share mutable
    state with the store. Each operation completes without yielding to the
    event loop, so a single ``upsert`` is atomic for coroutines on one loop.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        record = self._records.get(key)
        return deepcopy(record) if record is not None else None

    async def upsert(self, key: str, value: dict[str, Any]) -> None:
        self._records[key] = deepcopy(value)

    async def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    async def items(self) -> list[tuple[str, dict[str, Any]]]:
        return [(key, deepcopy(value)) for key, value in self._records.items()]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records
