"""Paged views over the player's scan history and active hunts."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)

PageFetcher = Callable[..., Awaitable[Dict[str, Any]]]


class Pager:
    """Accumulates `skip`/`limit` pages until `total` items are loaded."""

    def __init__(self, fetch_page: PageFetcher, *, items_key: str, limit: int = 10) -> None:
        self._fetch_page = fetch_page
        self.items_key = items_key
        self.limit = limit
        self.items: List[Dict[str, Any]] = []
        self.total = 0
        self.skip = 0
        self.loading = False
        self._loaded_once = False

    @property
    def exhausted(self) -> bool:
        return self._loaded_once and self.skip >= self.total

    async def fetch(self, *, reset: bool = False) -> List[Dict[str, Any]]:
        if self.loading or (self.exhausted and not reset):
            return self.items
        self.loading = True
        try:
            skip = 0 if reset else self.skip
            data = await self._fetch_page(skip=skip, limit=self.limit)
            page = list(data.get(self.items_key) or [])
            self.total = int(data.get("total", len(page)))
            self.items = page if reset else self.items + page
            self.skip = skip + self.limit
            self._loaded_once = True
        finally:
            self.loading = False
        logger.debug("Loaded %d/%d %s", len(self.items), self.total, self.items_key)
        return self.items

    def as_dict(self) -> Dict[str, Any]:
        return {self.items_key: self.items, "total": self.total, "exhausted": self.exhausted}


__all__ = ["Pager"]
