"""In-memory stand-ins for the Playwright objects and the storage client."""

from __future__ import annotations

from monitor.errors import PersistenceError
from utils.config import Settings


def make_settings(**overrides) -> Settings:
    base = dict(
        supabase_url="https://test.supabase.co",
        supabase_key="test-key",
        monitoring_seconds=0.035,
        check_interval_seconds=0.01,
        settle_seconds=0,
        cycle_delay_seconds=0,
        max_retries=3,
        retry_delay_seconds=0,
        page_timeout_seconds=1,
        block_resources=True,
    )
    base.update(overrides)
    return Settings(**base)


class FakePage:
    def __init__(self, texts=None, *, goto_error=None, close_after=None, close_error=None):
        # each text is returned by one evaluate(); an Exception item is raised instead
        self.texts = list(texts or [])
        self.goto_error = goto_error
        self.close_after = close_after
        self.close_error = close_error
        self.closed = False
        self.close_calls = 0
        self.evaluations = 0
        self.goto_calls = []
        self.routes = []
        self.timeouts = {}

    def set_default_timeout(self, ms):
        self.timeouts["default"] = ms

    def set_default_navigation_timeout(self, ms):
        self.timeouts["navigation"] = ms

    async def route(self, pattern, handler):
        self.routes.append((pattern, handler))

    async def goto(self, url, **kwargs):
        self.goto_calls.append((url, kwargs))
        if self.goto_error is not None:
            raise self.goto_error

    async def evaluate(self, expression):
        self.evaluations += 1
        if self.close_after is not None and self.evaluations >= self.close_after:
            self.closed = True
        if not self.texts:
            return ""
        item = self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]
        if isinstance(item, Exception):
            raise item
        return item

    def is_closed(self):
        return self.closed

    async def close(self):
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeBrowser:
    def __init__(self, page=None, *, new_page_error=None, close_error=None):
        self.page = page or FakePage()
        self.new_page_error = new_page_error
        self.close_error = close_error
        self.new_page_kwargs = None
        self.closed = False

    async def new_page(self, **kwargs):
        self.new_page_kwargs = kwargs
        if self.new_page_error is not None:
            raise self.new_page_error
        return self.page

    async def close(self):
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeChromium:
    def __init__(self, browser=None, launch_error=None):
        self.browser = browser
        self.launch_error = launch_error
        self.launch_kwargs = None

    async def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        if self.launch_error is not None:
            raise self.launch_error
        return self.browser


class FakePlaywright:
    def __init__(self, chromium):
        self.chromium = chromium

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def playwright_factory(browser=None, launch_error=None):
    chromium = FakeChromium(browser, launch_error)

    def factory():
        return FakePlaywright(chromium)

    factory.chromium = chromium
    return factory


class FakeStorage:
    def __init__(self, fail_tables=()):
        self.fail_tables = set(fail_tables)
        self.inserts = []

    async def insert(self, table, rows):
        if table in self.fail_tables:
            raise PersistenceError(table, "HTTP 500: boom")
        self.inserts.append((table, rows))
        return len(rows)

    def rows(self, table):
        out = []
        for t, rows in self.inserts:
            if t == table:
                out.extend(rows)
        return out


PULSE_TEXT = """Whop Pulse
New searches
discord bots
Just now
trading signals
2m ago
New transactions
Widget Pro
$20.00
Just now
Alpha Group
€15
New whops
Something else
"""
