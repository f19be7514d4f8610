import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from core.errors import StoreError
from core.fingerprint import DEFAULT_PREFIX, ids_key, metadata_key
from db.backends import KeyValueBackend
from db.models import ScanStatus, SearchMetadata, SearchState

log = logging.getLogger(__name__)

# Hash field names match what the existing dashboard reads.
CREATED_FIELD = "createMs"
LAST_SCAN_FIELD = "lastScanMs"
STATUS_FIELD = "scanStatus"
FAILED_FIELD = "failedMs"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _from_ms(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        ms = int(float(value))
    except ValueError:
        return None
    if ms <= 0:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class Store:
    """Per-search change-detection state, keyed by URL fingerprint."""

    def __init__(
        self,
        backend: KeyValueBackend,
        prefix: str = DEFAULT_PREFIX,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend
        self.prefix = prefix
        self._clock = clock

    async def connect(self) -> None:
        await self.backend.connect()

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> "Store":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _ids_key(self, url: str) -> str:
        return ids_key(url, self.prefix)

    def _metadata_key(self, url: str) -> str:
        return metadata_key(url, self.prefix)

    # === Reads ===

    async def is_first_run(self, url: str) -> bool:
        try:
            fields = await self.backend.hgetall(self._metadata_key(url))
        except Exception as e:
            log.error(f"Failed to read metadata for {url}: {e}")
            raise StoreError(f"Failed to read metadata for {url}") from e
        return CREATED_FIELD not in fields

    async def get_seen_ids(self, url: str) -> set[str]:
        try:
            return await self.backend.smembers(self._ids_key(url))
        except Exception as e:
            log.error(f"Error getting stored IDs for {url}: {e}")
            return set()

    async def get_state(self, url: str) -> SearchState:
        try:
            fields = await self.backend.hgetall(self._metadata_key(url))
        except Exception as e:
            log.error(f"Failed to read metadata for {url}: {e}")
            raise StoreError(f"Failed to read metadata for {url}") from e
        seen_ids = await self.get_seen_ids(url)
        return self._fields_to_state(url, fields, seen_ids)

    async def get_metadata(self, url: str) -> SearchMetadata:
        try:
            state = await self.get_state(url)
        except StoreError:
            return SearchMetadata(
                search_url=url,
                created_at=None,
                last_scan_at=None,
                status=ScanStatus.NEVER,
                property_count=0,
            )
        return SearchMetadata(
            search_url=url,
            created_at=state.created_at,
            last_scan_at=state.last_scan_at,
            status=state.status,
            property_count=len(state.seen_ids),
        )

    def _fields_to_state(
        self, url: str, fields: dict[str, str], seen_ids: set[str]
    ) -> SearchState:
        try:
            status = ScanStatus(fields[STATUS_FIELD])
        except (KeyError, ValueError):
            if STATUS_FIELD in fields:
                log.warning(f"Unknown scan status {fields[STATUS_FIELD]!r} for {url}")
            if LAST_SCAN_FIELD in fields:
                # Older records mark a failed scan with lastScanMs = 0.
                status = ScanStatus.OK if _from_ms(fields[LAST_SCAN_FIELD]) else ScanStatus.FAILED
            else:
                status = ScanStatus.NEVER

        return SearchState(
            search_url=url,
            seen_ids=seen_ids,
            created_at=_from_ms(fields.get(CREATED_FIELD)),
            status=status,
            last_scan_at=_from_ms(fields.get(LAST_SCAN_FIELD)) if status is ScanStatus.OK else None,
            failed_at=_from_ms(fields.get(FAILED_FIELD)),
        )

    # === Writes ===

    async def record_scan(self, url: str, ids: Iterable[str]) -> None:
        ids = set(ids)
        try:
            await self.backend.sadd(self._ids_key(url), ids)

            first_run = await self.is_first_run(url)
            now_ms = _to_ms(self._clock())
            update: dict[str, str | int] = {
                LAST_SCAN_FIELD: now_ms,
                STATUS_FIELD: ScanStatus.OK.value,
            }
            if first_run:
                update[CREATED_FIELD] = now_ms

            await self.backend.hset(self._metadata_key(url), update)
        except StoreError:
            raise
        except Exception as e:
            log.error(f"Error updating stored IDs for {url}: {e}")
            raise StoreError(f"Failed to record scan for {url}") from e

        log.debug(f"Recorded {len(ids)} ids for {url} (first run: {first_run})")

    async def mark_failure(self, url: str) -> None:
        try:
            await self.backend.hset(
                self._metadata_key(url),
                {
                    LAST_SCAN_FIELD: 0,
                    STATUS_FIELD: ScanStatus.FAILED.value,
                    FAILED_FIELD: _to_ms(self._clock()),
                },
            )
        except Exception as e:
            log.error(f"Error marking failure for {url}: {e}")
            raise StoreError(f"Failed to mark failure for {url}") from e

    async def forget(self, url: str) -> None:
        try:
            await self.backend.delete(self._ids_key(url), self._metadata_key(url))
        except Exception as e:
            log.error(f"Error deleting state for {url}: {e}")
            raise StoreError(f"Failed to delete state for {url}") from e
        log.info(f"Deleted stored history for {url}")
