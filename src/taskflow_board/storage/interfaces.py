from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional


class RecordStore(ABC):
    """Asynchronous, collection-keyed bulk record storage.

    Records are plain dicts carrying an ``id`` key.  ``replace_all`` overwrites
    the whole collection and must be safe to repeat with the same payload.
    """

    @abstractmethod
    async def replace_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def load_all(
        self,
        collection: str,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def count(self, collection: str) -> int:
        return len(await self.load_all(collection))
