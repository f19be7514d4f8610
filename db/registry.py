from __future__ import annotations

import asyncio
import logging

from core.errors import StoreError
from db.backends import KeyValueBackend
from db.models import SearchMetadata
from db.store import Store

log = logging.getLogger(__name__)

DEFAULT_OUTSTANDING_KEY = "outstanding_searches"


class SearchRegistry:
    """The set of search URLs that are polled on each run.

    Removing a URL leaves its stored history in place, so re-adding it
    resumes from the previous seen-id set.
    """

    def __init__(self, backend: KeyValueBackend, key: str = DEFAULT_OUTSTANDING_KEY):
        self.backend = backend
        self.key = key

    async def add(self, url: str) -> None:
        try:
            await self.backend.sadd(self.key, [url])
        except Exception as e:
            log.error(f"Error adding outstanding search: {e}")
            raise StoreError(f"Failed to add {url}") from e
        log.info(f"Watching {url}")

    async def remove(self, url: str) -> None:
        try:
            await self.backend.srem(self.key, [url])
        except Exception as e:
            log.error(f"Error removing outstanding search: {e}")
            raise StoreError(f"Failed to remove {url}") from e
        log.info(f"Stopped watching {url}")

    async def list(self) -> set[str]:
        try:
            return await self.backend.smembers(self.key)
        except Exception as e:
            log.error(f"Error getting outstanding searches: {e}")
            raise StoreError("Failed to list outstanding searches") from e

    async def list_with_metadata(self, store: Store) -> list[SearchMetadata]:
        urls = sorted(await self.list())
        return list(await asyncio.gather(*(store.get_metadata(url) for url in urls)))
