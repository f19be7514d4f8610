"""Key/value + set storage services used by the change-detection store.

Both backends expose the small subset of Redis semantics the store needs:
string-keyed hashes and sets of strings.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

import aiosqlite
import redis.asyncio as redis

from config import Settings
from db.models import SCHEMA

log = logging.getLogger(__name__)


class KeyValueBackend(ABC):
    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        pass

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, str]:
        pass

    @abstractmethod
    async def hset(self, key: str, mapping: Mapping[str, str | int]) -> None:
        pass

    @abstractmethod
    async def sadd(self, key: str, members: Iterable[str]) -> None:
        pass

    @abstractmethod
    async def srem(self, key: str, members: Iterable[str]) -> None:
        pass

    @abstractmethod
    async def smembers(self, key: str) -> set[str]:
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        pass


class SqliteBackend(KeyValueBackend):
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()
        log.debug(f"SQLite backend opened at {self.db_path}")

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("Database not connected")
        return self._connection

    async def ping(self) -> bool:
        cursor = await self.conn.execute("SELECT 1")
        return await cursor.fetchone() is not None

    async def hgetall(self, key: str) -> dict[str, str]:
        cursor = await self.conn.execute(
            "SELECT field, value FROM kv_hash WHERE key = ?", (key,)
        )
        rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}

    async def hset(self, key: str, mapping: Mapping[str, str | int]) -> None:
        await self.conn.executemany(
            """
            INSERT INTO kv_hash (key, field, value) VALUES (?, ?, ?)
            ON CONFLICT(key, field) DO UPDATE SET value = excluded.value
            """,
            [(key, name, str(value)) for name, value in mapping.items()],
        )
        await self.conn.commit()

    async def sadd(self, key: str, members: Iterable[str]) -> None:
        rows = [(key, member) for member in members]
        if not rows:
            return
        await self.conn.executemany(
            "INSERT OR IGNORE INTO kv_set (key, member) VALUES (?, ?)", rows
        )
        await self.conn.commit()

    async def srem(self, key: str, members: Iterable[str]) -> None:
        rows = [(key, member) for member in members]
        if not rows:
            return
        await self.conn.executemany(
            "DELETE FROM kv_set WHERE key = ? AND member = ?", rows
        )
        await self.conn.commit()

    async def smembers(self, key: str) -> set[str]:
        cursor = await self.conn.execute(
            "SELECT member FROM kv_set WHERE key = ?", (key,)
        )
        rows = await cursor.fetchall()
        return {row[0] for row in rows}

    async def delete(self, *keys: str) -> None:
        for key in keys:
            await self.conn.execute("DELETE FROM kv_hash WHERE key = ?", (key,))
            await self.conn.execute("DELETE FROM kv_set WHERE key = ?", (key,))
        await self.conn.commit()


class RedisBackend(KeyValueBackend):
    def __init__(self, url: str):
        self.url = url
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        self._client = redis.from_url(self.url, decode_responses=True)
        await self._client.ping()
        log.debug("Redis backend connected")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        if not self._client:
            raise RuntimeError("Redis not connected")
        return self._client

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def hgetall(self, key: str) -> dict[str, str]:
        return await self.client.hgetall(key)

    async def hset(self, key: str, mapping: Mapping[str, str | int]) -> None:
        await self.client.hset(key, mapping=dict(mapping))

    async def sadd(self, key: str, members: Iterable[str]) -> None:
        values = list(members)
        if values:
            await self.client.sadd(key, *values)

    async def srem(self, key: str, members: Iterable[str]) -> None:
        values = list(members)
        if values:
            await self.client.srem(key, *values)

    async def smembers(self, key: str) -> set[str]:
        return set(await self.client.smembers(key))

    async def delete(self, *keys: str) -> None:
        if keys:
            await self.client.delete(*keys)


def create_backend(settings: Settings) -> KeyValueBackend:
    if settings.store_backend == "redis":
        if not settings.redis_url:
            raise ValueError("REDIS_URL must be set when STORE_BACKEND=redis")
        return RedisBackend(settings.redis_url)
    return SqliteBackend(settings.database_path)
