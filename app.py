import asyncio
import logging
import os, subprocess, sys
import signal
import time

from monitor.errors import ConfigError
from monitor.scheduler import ContinuousScheduler
from utils.config import Settings
from utils.logs import configure_logging
from utils.storage import SupabaseStorage

logger = logging.getLogger("pulse_monitor")


# --- Container bootstrap for Playwright ---

def _ensure_playwright_browser():
    # Hosted containers may start without the Chromium binary; local runs skip this.
    if os.environ.get("PLAYWRIGHT_INSTALL_ON_START", "0") == "1":
        try:
            subprocess.run(
                [sys.executable, "-m", "playwright", "install", "chromium"],
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("playwright install failed: %s", e)
# ------------------------------------------------

FATAL_GRACE_SECONDS = 1.0


def _on_signal(signum, frame):
    # Exit right away; an in-flight browser session is abandoned.
    name = signal.Signals(signum).name
    logger.info("Received %s, stopping pulse monitor", name)
    logging.shutdown()
    os._exit(0)


def _on_loop_exception(loop, context):
    exc = context.get("exception")
    logger.error("Unhandled async error: %s", context.get("message"), exc_info=exc)


def log_banner(settings: Settings):
    logger.info("Pulse monitor starting")
    logger.info("Target: %s", settings.target_url)
    logger.info("Cycle delay: %.0fs | monitoring: %.0fs every %.0fs",
                settings.cycle_delay_seconds, settings.monitoring_seconds, settings.check_interval_seconds)
    logger.info("Retries: %d (delay %.0fs) | page timeout: %.0fs",
                settings.max_retries, settings.retry_delay_seconds, settings.page_timeout_seconds)
    logger.info("Database: %s", settings.supabase_url)
    logger.debug("Settings: %s", settings.to_dict())


async def run(settings: Settings) -> int:
    asyncio.get_running_loop().set_exception_handler(_on_loop_exception)
    async with SupabaseStorage(settings.supabase_url, settings.supabase_key,
                               timeout=settings.page_timeout_seconds) as storage:
        scheduler = ContinuousScheduler(settings, storage)
        return await scheduler.run()


def main() -> int:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.critical("Configuration error: %s", e)
        return 1
    configure_logging(settings.log_level, settings.log_file)
    log_banner(settings)

    _ensure_playwright_browser()
    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        asyncio.run(run(settings))
    except Exception:
        logger.critical("Fatal error in pulse monitor", exc_info=True)
        time.sleep(FATAL_GRACE_SECONDS)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
