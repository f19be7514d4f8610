import logging
from dataclasses import dataclass, field
from typing import Protocol

from core.errors import StoreError
from core.extractor import Listing, extract
from core.notifications import SearchAlert
from core.renderer import RenderedPage
from core.tracker import Tracker
from db.models import ScanStatus
from db.registry import SearchRegistry
from db.store import Store

log = logging.getLogger(__name__)


class Renderer(Protocol):
    async def render(self, url: str) -> RenderedPage: ...


class Notifier(Protocol):
    async def notify(self, alerts: list[SearchAlert]) -> dict[str, bool]: ...


@dataclass
class SearchOutcome:
    search_url: str
    status: ScanStatus
    listings_found: int = 0
    new_listings: tuple[Listing, ...] = ()
    untracked: tuple[Listing, ...] = ()
    is_first_run: bool = False
    included: bool = False
    reason: str | None = None
    error: str | None = None


@dataclass
class RunSummary:
    outcomes: list[SearchOutcome] = field(default_factory=list)
    alerts: list[SearchAlert] = field(default_factory=list)
    notification_results: dict[str, bool] = field(default_factory=dict)
    notification_error: str | None = None

    @property
    def failed(self) -> list[SearchOutcome]:
        return [o for o in self.outcomes if o.status is ScanStatus.FAILED]


class Watcher:
    """Runs every outstanding search once and sends one batched notification.

    Searches are processed one at a time. A search that raises is marked
    failed in the store and the run moves on to the next one.
    """

    def __init__(
        self,
        registry: SearchRegistry,
        store: Store,
        renderer: Renderer,
        notifier: Notifier,
        notify_on_first_run: bool = False,
    ):
        self.registry = registry
        self.store = store
        self.renderer = renderer
        self.notifier = notifier
        self.notify_on_first_run = notify_on_first_run
        self.tracker = Tracker(store)

    async def scan(self, url: str) -> SearchOutcome:
        page = await self.renderer.render(url)
        result = extract(page.html, page.url)
        if not result.found:
            log.warning(f"0 listings found for {url}: {result.reason}")

        evaluation = await self.tracker.evaluate(url, result.listings)

        included = bool(evaluation.new_listings) and (
            not evaluation.is_first_run or self.notify_on_first_run
        )
        if evaluation.is_first_run:
            if included:
                log.info(f"First run for {url}, notifying {len(evaluation.new_listings)} listings")
            else:
                log.info(
                    f"First run for {url}, baseline of {len(result.listings)} listings established"
                )

        return SearchOutcome(
            search_url=url,
            status=ScanStatus.OK,
            listings_found=len(result.listings),
            new_listings=evaluation.new_listings,
            untracked=evaluation.untracked,
            is_first_run=evaluation.is_first_run,
            included=included,
            reason=result.reason,
        )

    async def _mark_failed(self, url: str, error: Exception) -> SearchOutcome:
        try:
            await self.store.mark_failure(url)
        except StoreError as e:
            log.error(f"Could not record failure for {url}: {e}")
        return SearchOutcome(search_url=url, status=ScanStatus.FAILED, error=str(error))

    async def run(self) -> RunSummary:
        urls = sorted(await self.registry.list())
        log.info(f"Starting run over {len(urls)} searches")

        summary = RunSummary()
        for url in urls:
            try:
                outcome = await self.scan(url)
            except Exception as e:
                log.exception(f"Scan failed for {url}: {e}")
                outcome = await self._mark_failed(url, e)

            summary.outcomes.append(outcome)
            if outcome.included:
                summary.alerts.append(SearchAlert(url, outcome.new_listings))

        if summary.alerts:
            try:
                summary.notification_results = await self.notifier.notify(summary.alerts)
            except Exception as e:
                log.exception(f"Notification failed: {e}")
                summary.notification_error = str(e)

        new_total = sum(len(alert.listings) for alert in summary.alerts)
        log.info(
            f"Run finished: {len(urls)} searches, {len(summary.failed)} failed, "
            f"{new_total} new listings notified"
        )
        return summary
