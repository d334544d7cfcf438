# monitor/monitor.py

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from playwright.async_api import (
    async_playwright,
    TimeoutError as PWTimeout,
    Page,
    Browser,
    Route,
    Error as PWError,
)

from monitor.errors import (
    EvaluationError,
    LaunchError,
    MonitorError,
    NavigationError,
    PageClosedError,
    PersistenceError,
)
from monitor.extract import BODY_TEXT_JS, extract_pulse
from utils.cache import (
    PulseAccumulator,
    SearchRecord,
    TransactionRecord,
    SEARCH_FIELDS,
    TRANSACTION_FIELDS,
    batch_frame,
    frame_rows,
)
from utils.config import Settings
from utils.robots import robots_allowed
from utils.storage import SEARCHES_TABLE, TRANSACTIONS_TABLE

logger = logging.getLogger(__name__)


# -----------------------------
# Browser configuration
# -----------------------------
CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-renderer-backgrounding",
    "--disable-ipc-flooding-protection",
    "--disable-features=TranslateUI",
    "--mute-audio",
    "--no-default-browser-check",
    "--no-first-run",
    "--no-zygote",
    "--disable-blink-features=AutomationControlled",
    "--js-flags=--max-old-space-size=512",
]

VIEWPORT = {"width": 1280, "height": 800}

BLOCKED_RESOURCE_TYPES = {"image", "font", "media"}
BLOCKED_URL_MARKERS = ("analytics", "tracking", "ads", "doubleclick", "google-analytics")

PROGRESS_EVERY = 3
EXAMPLES_SHOWN = 5


def should_block(resource_type: str, url: str) -> bool:
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return True
    u = (url or "").lower()
    return any(marker in u for marker in BLOCKED_URL_MARKERS)


async def _route_heavy_resources(route: Route):
    req = route.request
    if should_block(req.resource_type, req.url):
        await route.abort()
    else:
        await route.continue_()


# -------- Safe wrappers to avoid closed-target errors --------
async def read_page_text(page: Page) -> str:
    try:
        text = await page.evaluate(BODY_TEXT_JS)
    except PWError as e:
        raise EvaluationError(str(e)) from e
    return text if isinstance(text, str) else ""


async def safe_page_close(page: Optional[Page]):
    if page is None:
        return
    try:
        if not page.is_closed():
            await page.close()
            logger.info("Page closed")
    except Exception as e:
        logger.warning("Error closing page: %s", e)


async def safe_browser_close(browser: Optional[Browser]):
    if browser is None:
        return
    try:
        await browser.close()
        logger.info("Browser closed")
    except Exception as e:
        logger.warning("Error closing browser: %s", e)


# -----------------------------
# Polling loop
# -----------------------------
async def monitor_page(
    page: Page, accumulator: PulseAccumulator, *,
    window: float, interval: float, max_items: int = 20,
) -> int:
    """
    Poll the page every `interval` seconds for `window` seconds and admit new
    records into the accumulator. Returns how many records were admitted.
    A closed page aborts the loop; a failed read only skips that iteration.
    """
    iterations = int(window // interval) if interval > 0 else 0
    admitted = 0
    logger.info("Monitoring page for %.0fs (%d checks)", window, iterations)

    for i in range(iterations):
        await asyncio.sleep(interval)

        if page.is_closed():
            raise PageClosedError("Page was closed unexpectedly")

        try:
            text = await read_page_text(page)
        except EvaluationError as e:
            logger.warning("Read failed on iteration %d: %s", i + 1, e)
            continue

        data = extract_pulse(text, max_items=max_items)
        for keyword in data.searches:
            if accumulator.admit_search(SearchRecord(keyword=keyword)):
                admitted += 1
        for tx in data.transactions:
            rec = TransactionRecord(name=tx.name, price_text=tx.price_text,
                                    amount=tx.amount, currency=tx.currency)
            if accumulator.admit_transaction(rec):
                admitted += 1

        if (i + 1) % PROGRESS_EVERY == 0:
            logger.info("Iteration %d/%d: searches %d, transactions %d",
                        i + 1, iterations, len(accumulator.searches), len(accumulator.transactions))

    return admitted


# -----------------------------
# Session orchestrator
# -----------------------------
class SessionState(str, Enum):
    INIT = "init"
    LAUNCHING = "launching"
    NAVIGATING = "navigating"
    WAITING = "waiting"
    MONITORING = "monitoring"
    PERSISTING = "persisting"
    CLOSED = "closed"
    FAILED = "failed"


class PulseSession:
    """
    One browser-launch-to-browser-close attempt.
    run() returns True when the monitoring window completed (persistence
    errors included) and False when the session failed.
    """

    def __init__(self, settings: Settings, accumulator: PulseAccumulator, storage,
                 playwright_factory: Callable = async_playwright):
        self.settings = settings
        self.accumulator = accumulator
        self.storage = storage
        self.playwright_factory = playwright_factory
        self.state = SessionState.INIT
        self.saved: Dict[str, bool] = {}
        self.status: List[Dict] = []

    def _enter(self, state: SessionState, detail: str = ""):
        self.state = state
        self.status.append({"step": state.value, "detail": detail})
        logger.debug("Session -> %s %s", state.value, detail)

    async def _launch(self, p) -> Browser:
        try:
            return await p.chromium.launch(
                headless=True,
                args=CHROMIUM_ARGS,
                timeout=self.settings.page_timeout_ms,
            )
        except PWError as e:
            raise LaunchError(str(e)) from e

    async def _open_page(self, browser: Browser) -> Page:
        try:
            page = await browser.new_page(user_agent=self.settings.user_agent, viewport=VIEWPORT)
            page.set_default_timeout(self.settings.page_timeout_ms)
            page.set_default_navigation_timeout(self.settings.page_timeout_ms)
            if self.settings.block_resources:
                await page.route("**/*", _route_heavy_resources)
            return page
        except PWError as e:
            raise LaunchError(str(e)) from e

    async def _navigate(self, page: Page):
        url = self.settings.target_url
        if self.settings.respect_robots and not await robots_allowed(url, self.settings.user_agent):
            raise NavigationError(f"robots.txt disallows {url}")
        logger.info("Loading %s", url)
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.page_timeout_ms)
        except PWTimeout as e:
            raise NavigationError(f"timeout loading {url}: {e}") from e
        except PWError as e:
            raise NavigationError(f"error loading {url}: {e}") from e

    async def _persist(self):
        searches, transactions = self.accumulator.take_batch()
        sdf = batch_frame(searches, SEARCH_FIELDS)
        tdf = batch_frame(transactions, TRANSACTION_FIELDS)
        log_summary(sdf, tdf)

        for table, df in ((SEARCHES_TABLE, sdf), (TRANSACTIONS_TABLE, tdf)):
            if df.empty:
                continue
            try:
                n = await self.storage.insert(table, frame_rows(df))
                self.saved[table] = True
                logger.info("Saved %d rows to %s", n, table)
            except PersistenceError as e:
                self.saved[table] = False
                logger.error("Could not save %s: %s", table, e.detail)
            except Exception:
                self.saved[table] = False
                logger.exception("Unexpected error saving %s", table)

        ev_s, ev_t = self.accumulator.trim(self.settings.seen_limit)
        if ev_s:
            logger.info("Trimmed %d old search keys", ev_s)
        if ev_t:
            logger.info("Trimmed %d old transaction keys", ev_t)

    async def run(self) -> bool:
        browser: Optional[Browser] = None
        page: Optional[Page] = None
        s = self.settings

        try:
            async with self.playwright_factory() as p:
                try:
                    self._enter(SessionState.LAUNCHING)
                    browser = await self._launch(p)
                    page = await self._open_page(browser)

                    self._enter(SessionState.NAVIGATING, s.target_url)
                    await self._navigate(page)

                    self._enter(SessionState.WAITING, f"{s.settle_seconds:.0f}s")
                    await asyncio.sleep(s.settle_seconds)

                    self._enter(SessionState.MONITORING)
                    await monitor_page(page, self.accumulator, window=s.monitoring_seconds,
                                       interval=s.check_interval_seconds, max_items=s.max_items)

                    self._enter(SessionState.PERSISTING)
                    await self._persist()
                finally:
                    await safe_page_close(page)
                    await safe_browser_close(browser)
        except MonitorError as e:
            return self._fail(f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception("Unexpected session error")
            return self._fail(f"{type(e).__name__}: {e}")

        self._enter(SessionState.CLOSED)
        return True

    def _fail(self, detail: str) -> bool:
        self.accumulator.discard_batch()
        self._enter(SessionState.FAILED, detail)
        logger.error("Session failed: %s", detail)
        return False


def log_summary(searches_df, transactions_df):
    logger.info("Unique searches: %d", len(searches_df))
    logger.info("Unique transactions: %d", len(transactions_df))
    for i, kw in enumerate(searches_df["keyword"].head(EXAMPLES_SHOWN).tolist(), 1):
        logger.info("  search %d. %r", i, kw)
    if len(searches_df) > EXAMPLES_SHOWN:
        logger.info("  ... and %d more searches", len(searches_df) - EXAMPLES_SHOWN)
    for i, row in enumerate(frame_rows(transactions_df.head(EXAMPLES_SHOWN)), 1):
        logger.info("  transaction %d. %s - %s", i, row["name"], row["price"] or "N/A")
    if len(transactions_df) > EXAMPLES_SHOWN:
        logger.info("  ... and %d more transactions", len(transactions_df) - EXAMPLES_SHOWN)
