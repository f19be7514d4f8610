import asyncio

from conftest import page_with_ids

from core.errors import RenderError, StoreError
from core.renderer import RenderedPage
from db.backends import SqliteBackend
from db.models import ScanStatus
from db.registry import SearchRegistry
from db.store import Store
from watcher.run import Watcher

EDINBURGH = "https://www.airbnb.co.uk/s/Edinburgh/homes?checkin=2025-08-12&checkout=2025-08-13&adults=2"
PORTREE = "https://www.airbnb.co.uk/s/Portree/homes?checkin=2025-08-18&checkout=2025-08-21&adults=2"


class FakeRenderer:
    def __init__(self, pages: dict):
        self.pages = pages
        self.calls = []

    async def render(self, url):
        self.calls.append(url)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return RenderedPage(html=page, url=url)


class FakeNotifier:
    def __init__(self, error: Exception | None = None):
        self.batches = []
        self.error = error

    async def notify(self, alerts):
        self.batches.append(alerts)
        if self.error:
            raise self.error
        return {"FakeClient": True}


def run_watcher(db_path, scenario):
    async def runner():
        async with Store(SqliteBackend(db_path)) as store:
            registry = SearchRegistry(store.backend)
            await registry.add(EDINBURGH)
            await registry.add(PORTREE)
            return await scenario(registry, store)

    return asyncio.run(runner())


class TestWatcher:
    def test_first_run_establishes_baseline(self, db_path):
        async def scenario(registry, store):
            renderer = FakeRenderer({EDINBURGH: page_with_ids("1", "2"), PORTREE: page_with_ids("7")})
            notifier = FakeNotifier()
            watcher = Watcher(registry, store, renderer, notifier)

            summary = await watcher.run()
            assert summary.alerts == []
            assert notifier.batches == []
            assert all(o.is_first_run for o in summary.outcomes)
            assert all(o.status is ScanStatus.OK for o in summary.outcomes)

            renderer.pages[EDINBURGH] = page_with_ids("1", "2", "3")
            summary = await watcher.run()
            assert len(notifier.batches) == 1
            assert [a.search_url for a in summary.alerts] == [EDINBURGH]
            assert [l.id for l in summary.alerts[0].listings] == ["3"]

        run_watcher(db_path, scenario)

    def test_notify_on_first_run(self, db_path):
        async def scenario(registry, store):
            renderer = FakeRenderer({EDINBURGH: page_with_ids("1", "2"), PORTREE: page_with_ids()})
            notifier = FakeNotifier()
            watcher = Watcher(registry, store, renderer, notifier, notify_on_first_run=True)

            summary = await watcher.run()
            assert [a.search_url for a in summary.alerts] == [EDINBURGH]
            assert summary.notification_results == {"FakeClient": True}

        run_watcher(db_path, scenario)

    def test_failure_does_not_stop_run(self, db_path):
        async def scenario(registry, store):
            await store.record_scan(EDINBURGH, {"1"})
            await store.record_scan(PORTREE, {"7"})
            renderer = FakeRenderer(
                {EDINBURGH: RenderError("navigation timeout"), PORTREE: page_with_ids("7", "8")}
            )
            watcher = Watcher(registry, store, renderer, FakeNotifier())

            summary = await watcher.run()
            assert renderer.calls == [EDINBURGH, PORTREE]

            outcomes = {o.search_url: o for o in summary.outcomes}
            assert outcomes[EDINBURGH].status is ScanStatus.FAILED
            assert "navigation timeout" in outcomes[EDINBURGH].error
            assert outcomes[PORTREE].status is ScanStatus.OK
            assert [l.id for l in outcomes[PORTREE].new_listings] == ["8"]
            assert [o.search_url for o in summary.failed] == [EDINBURGH]

            state = await store.get_state(EDINBURGH)
            assert state.status is ScanStatus.FAILED
            assert state.seen_ids == {"1"}

        run_watcher(db_path, scenario)

    def test_store_failure_during_mark_failure_is_contained(self, db_path):
        async def scenario(registry, store):
            async def broken_mark_failure(url):
                raise StoreError("write failed")

            store.mark_failure = broken_mark_failure
            renderer = FakeRenderer({EDINBURGH: RuntimeError("boom"), PORTREE: page_with_ids("7")})
            summary = await Watcher(registry, store, renderer, FakeNotifier()).run()
            assert [o.status for o in summary.outcomes] == [ScanStatus.FAILED, ScanStatus.OK]

        run_watcher(db_path, scenario)

    def test_page_without_data_counts_as_scan(self, db_path):
        async def scenario(registry, store):
            renderer = FakeRenderer({EDINBURGH: "<html></html>", PORTREE: page_with_ids("7")})
            summary = await Watcher(registry, store, renderer, FakeNotifier()).run()

            outcome = summary.outcomes[0]
            assert outcome.search_url == EDINBURGH
            assert outcome.status is ScanStatus.OK
            assert outcome.listings_found == 0
            assert outcome.reason is not None
            assert await store.is_first_run(EDINBURGH) is False

        run_watcher(db_path, scenario)

    def test_listing_without_id_reported_but_not_stored(self, db_path):
        async def scenario(registry, store):
            renderer = FakeRenderer({EDINBURGH: page_with_ids(None, "1"), PORTREE: page_with_ids("7")})
            summary = await Watcher(registry, store, renderer, FakeNotifier()).run()

            outcome = summary.outcomes[0]
            assert outcome.listings_found == 2
            assert [l.id for l in outcome.untracked] == [""]
            assert await store.get_seen_ids(EDINBURGH) == {"1"}

        run_watcher(db_path, scenario)

    def test_notification_failure_keeps_state(self, db_path):
        async def scenario(registry, store):
            await store.record_scan(EDINBURGH, {"1"})
            await store.record_scan(PORTREE, {"7"})
            renderer = FakeRenderer({EDINBURGH: page_with_ids("1", "2"), PORTREE: page_with_ids("7")})
            notifier = FakeNotifier(error=RuntimeError("telegram down"))
            watcher = Watcher(registry, store, renderer, notifier)

            summary = await watcher.run()
            assert summary.notification_error == "telegram down"
            assert await store.get_seen_ids(EDINBURGH) == {"1", "2"}

            notifier.error = None
            summary = await watcher.run()
            assert summary.alerts == []

        run_watcher(db_path, scenario)
