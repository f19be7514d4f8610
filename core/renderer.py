import asyncio
import logging
from dataclasses import dataclass

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from config import Settings
from core.errors import RenderError

log = logging.getLogger(__name__)

RESULT_CARD_SELECTOR = '[data-testid="card-container"]'
CARD_WAIT_MS = 10000


@dataclass(frozen=True)
class RenderedPage:
    html: str
    url: str


class PageRenderer:
    """Headless browser session that returns rendered search pages."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "PageRenderer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _ensure_browser(self) -> BrowserContext:
        if self._context:
            return self._context

        async with self._lock:
            if self._context:
                return self._context

            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.settings.headless,
                args=["--disable-blink-features=AutomationControlled"],
            )
            self._context = await self._browser.new_context(
                user_agent=self.settings.user_agent,
                viewport={"width": 1280, "height": 800},
            )
            log.info(f"Browser started (headless: {self.settings.headless})")
            return self._context

    async def close(self) -> None:
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def render(self, url: str) -> RenderedPage:
        try:
            context = await self._ensure_browser()
        except PlaywrightError as e:
            raise RenderError(f"Browser failed to start: {e}") from e

        page = None
        try:
            page = await context.new_page()
            page.set_default_timeout(self.settings.navigation_timeout_ms)
            page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)

            log.info(f"Navigating to {url}")
            await page.goto(url, wait_until="domcontentloaded")

            try:
                await page.wait_for_selector(RESULT_CARD_SELECTOR, timeout=CARD_WAIT_MS)
            except PlaywrightTimeoutError:
                log.debug("No result cards appeared, reading page as-is")

            await asyncio.sleep(self.settings.settle_delay_seconds)
            return RenderedPage(html=await page.content(), url=page.url)
        except PlaywrightError as e:
            raise RenderError(f"Failed to render {url}: {e}") from e
        finally:
            if page is not None:
                await page.close()
