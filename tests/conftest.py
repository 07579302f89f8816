"""
Shared fixtures: temporary index store, fake converters and a local HTTP site.
"""

from collections import Counter
from typing import Callable, Optional, Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from pagesearch.crawler.extractor import ContentExtractor, ExtractionError, TextConverter
from pagesearch.crawler.fetcher import WebFetcher
from pagesearch.storage.database import IndexStore
from pagesearch.utils.config import Config


class FakeConverter(TextConverter):
    """Converter double that records its input."""

    def __init__(self, output: Union[str, Callable[[bytes], str]] = "converted text",
                 error: Optional[str] = None):
        self.output = output
        self.error = error
        self.calls = []
        self.name = "fake"

    async def convert(self, raw: bytes) -> str:
        self.calls.append(raw)
        if self.error:
            raise ExtractionError(self.error)
        if callable(self.output):
            return self.output(raw)
        return self.output


class LocalSite:
    """A localhost HTTP server with per-path hit counting."""

    def __init__(self):
        self.hits = Counter()
        self.app = web.Application(middlewares=[self._count])
        self.server: Optional[TestServer] = None

    @web.middleware
    async def _count(self, request, handler):
        self.hits[request.path] += 1
        return await handler(request)

    def add_page(self, path: str, body: Union[str, bytes], content_type: str = "text/html",
                 status: int = 200):
        payload = body.encode("utf-8") if isinstance(body, str) else body

        async def handler(request):
            return web.Response(body=payload, status=status,
                                headers={"Content-Type": content_type})

        self.app.router.add_get(path, handler)

    def add_redirect(self, path: str, target: str, status: int = 302):
        async def handler(request):
            return web.Response(status=status, headers={"Location": target})

        self.app.router.add_get(path, handler)

    async def start(self):
        self.server = TestServer(self.app)
        await self.server.start_server()

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    async def close(self):
        if self.server:
            await self.server.close()


@pytest_asyncio.fixture
async def store(tmp_path):
    store = IndexStore(str(tmp_path / "index.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def site():
    site = LocalSite()
    yield site
    await site.close()


@pytest_asyncio.fixture
async def fetcher():
    fetcher = WebFetcher(user_agent="pagesearch-test", request_timeout=5,
                         respect_robots_txt=False)
    await fetcher.start()
    yield fetcher
    await fetcher.close()


@pytest.fixture
def make_config():
    """Config with test-friendly crawler settings, overridable per test."""

    def _make(**crawler_overrides) -> Config:
        config = Config()
        config.crawler.politeness_delay = 0
        config.crawler.respect_robots_txt = False
        config.crawler.request_timeout = 5
        for key, value in crawler_overrides.items():
            setattr(config.crawler, key, value)
        return config

    return _make


@pytest.fixture
def html_converter():
    return FakeConverter("Welcome to the example page about gardening")


@pytest.fixture
def pdf_converter():
    return FakeConverter("Quarterly report on running costs")


@pytest.fixture
def extractor(html_converter, pdf_converter):
    return ContentExtractor(html_converter=html_converter, pdf_converter=pdf_converter)
