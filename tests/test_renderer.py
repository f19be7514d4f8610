import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from config import Settings
from core.errors import RenderError
from core.renderer import PageRenderer

URL = "https://www.airbnb.co.uk/s/Edinburgh/homes?adults=2"


class FakePage:
    def __init__(self, goto_error: Exception | None = None):
        self.goto_error = goto_error
        self.closed = False
        self.url = URL

    def set_default_timeout(self, timeout):
        pass

    def set_default_navigation_timeout(self, timeout):
        pass

    async def goto(self, url, wait_until=None):
        if self.goto_error:
            raise self.goto_error

    async def wait_for_selector(self, selector, timeout=None):
        pass

    async def content(self):
        return "<html></html>"

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, page: FakePage | None = None, error: Exception | None = None):
        self.page = page
        self.error = error

    async def new_page(self):
        if self.error:
            raise self.error
        return self.page

    async def close(self):
        pass


def make_renderer(context: FakeContext) -> PageRenderer:
    renderer = PageRenderer(Settings(settle_delay_seconds=0))
    renderer._context = context
    return renderer


class TestPageRenderer:
    def test_new_page_failure_is_render_error(self):
        renderer = make_renderer(FakeContext(error=PlaywrightError("Target closed")))
        with pytest.raises(RenderError, match="Target closed"):
            asyncio.run(renderer.render(URL))

    def test_navigation_failure_closes_page(self):
        page = FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        renderer = make_renderer(FakeContext(page=page))
        with pytest.raises(RenderError):
            asyncio.run(renderer.render(URL))
        assert page.closed

    def test_render_returns_content(self):
        page = FakePage()
        rendered = asyncio.run(make_renderer(FakeContext(page=page)).render(URL))
        assert rendered.html == "<html></html>"
        assert rendered.url == URL
        assert page.closed
