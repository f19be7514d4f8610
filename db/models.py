from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ScanStatus(Enum):
    NEVER = "never"
    OK = "ok"
    FAILED = "failed"


@dataclass
class SearchState:
    search_url: str
    seen_ids: set[str] = field(default_factory=set)
    created_at: datetime | None = None
    status: ScanStatus = ScanStatus.NEVER
    last_scan_at: datetime | None = None
    failed_at: datetime | None = None

    @property
    def is_first_run(self) -> bool:
        return self.created_at is None


@dataclass
class SearchMetadata:
    search_url: str
    created_at: datetime | None
    last_scan_at: datetime | None
    status: ScanStatus
    property_count: int


SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_hash (
    key TEXT NOT NULL,
    field TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (key, field)
);

CREATE TABLE IF NOT EXISTS kv_set (
    key TEXT NOT NULL,
    member TEXT NOT NULL,
    PRIMARY KEY (key, member)
);

CREATE INDEX IF NOT EXISTS idx_kv_hash_key ON kv_hash(key);
CREATE INDEX IF NOT EXISTS idx_kv_set_key ON kv_set(key);
"""
