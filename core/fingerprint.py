"""Stable storage keys for search URLs.

URLs are hashed byte-for-byte: two URLs that differ only in query parameter
order are different searches.
"""

import hashlib

DEFAULT_PREFIX = "search"


def fingerprint(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def ids_key(url: str, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}:{fingerprint(url)}"


def metadata_key(url: str, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}:{fingerprint(url)}:first_run"
