import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from core.extractor import Listing
from db.store import Store

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evaluation:
    new_listings: tuple[Listing, ...]
    is_first_run: bool
    # Listings without an id; they cannot be diffed, so none are stored.
    untracked: tuple[Listing, ...] = ()


class Tracker:
    """Diffs a fresh scrape against the stored seen-id set for its search.

    Every observed id is recorded, whether or not it was new, and a scrape
    with zero listings still counts as a successful scan. First-run results
    are reported as-is; whether to notify them is the caller's decision.
    Listings the extractor could not assign an id are never written to the
    seen set and come back separately as `untracked`.
    """

    def __init__(self, store: Store):
        self.store = store

    async def evaluate(self, url: str, fresh_listings: Sequence[Listing]) -> Evaluation:
        is_first_run, seen_ids = await asyncio.gather(
            self.store.is_first_run(url),
            self.store.get_seen_ids(url),
        )

        untracked = tuple(listing for listing in fresh_listings if not listing.id)
        current_ids = {listing.id for listing in fresh_listings if listing.id}
        new_ids = current_ids - seen_ids

        await self.store.record_scan(url, current_ids)

        new_listings = []
        emitted = set()
        for listing in fresh_listings:
            if listing.id in new_ids and listing.id not in emitted:
                new_listings.append(listing)
                emitted.add(listing.id)

        if untracked:
            log.warning(f"{len(untracked)} listings without an id for {url}")
        log.info(
            f"{len(fresh_listings)} listings, {len(new_listings)} new "
            f"(first run: {is_first_run})"
        )
        return Evaluation(
            new_listings=tuple(new_listings),
            is_first_run=is_first_run,
            untracked=untracked,
        )
