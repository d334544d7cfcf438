# monitor/scheduler.py

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from monitor.monitor import PulseSession
from utils.cache import PulseAccumulator
from utils.config import Settings

logger = logging.getLogger(__name__)


async def run_with_retry(
    attempt: Callable[[], Awaitable[bool]], *,
    max_retries: int, retry_delay: float,
) -> bool:
    """Run `attempt` until it succeeds, at most max_retries times. Never raises."""
    for n in range(1, max_retries + 1):
        logger.info("Attempt %d/%d", n, max_retries)
        if await attempt():
            return True
        if n < max_retries:
            logger.info("Waiting %.0fs before retrying", retry_delay)
            await asyncio.sleep(retry_delay)

    logger.error("Scrape failed after %d attempts", max_retries)
    return False


class ContinuousScheduler:
    """
    Runs the retry-driven session forever with a fixed pause between cycles.
    stop() ends the loop at the next cycle boundary and cuts the pause short.
    """

    def __init__(self, settings: Settings, storage,
                 accumulator: Optional[PulseAccumulator] = None,
                 session_factory: Optional[Callable[..., PulseSession]] = None):
        self.settings = settings
        self.storage = storage
        self.accumulator = accumulator or PulseAccumulator()
        self.session_factory = session_factory or PulseSession
        self.cycles = 0
        self.last_outcome: Optional[bool] = None
        self._stop = asyncio.Event()

    def stop(self):
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def run_session(self) -> bool:
        session = self.session_factory(self.settings, self.accumulator, self.storage)
        return await session.run()

    async def run_cycle(self) -> bool:
        return await run_with_retry(
            self.run_session,
            max_retries=self.settings.max_retries,
            retry_delay=self.settings.retry_delay_seconds,
        )

    async def _pause(self, seconds: float):
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self, max_cycles: Optional[int] = None) -> int:
        """Returns the number of completed cycles."""
        while not self.stopped and (max_cycles is None or self.cycles < max_cycles):
            self.cycles += 1
            logger.info("=" * 40)
            logger.info("Cycle #%d | %s", self.cycles, datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
            logger.info("=" * 40)

            self.last_outcome = await self.run_cycle()

            if self.stopped or (max_cycles is not None and self.cycles >= max_cycles):
                break
            logger.info("Waiting %.0fs before the next cycle", self.settings.cycle_delay_seconds)
            await self._pause(self.settings.cycle_delay_seconds)

        return self.cycles
