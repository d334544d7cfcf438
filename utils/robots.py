"""robots.txt gate checked before the session navigates (RESPECT_ROBOTS)."""

import logging
import urllib.robotparser as robotparser
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)


class RobotsCache:
    """One parsed robots.txt per host. Unreadable or missing files allow everything."""

    def __init__(self, timeout: float = 6.0):
        self.timeout = timeout
        self._rules: Dict[str, Optional[robotparser.RobotFileParser]] = {}

    async def _fetch(self, host: str, client: httpx.AsyncClient) -> Optional[robotparser.RobotFileParser]:
        try:
            r = await client.get(f"https://{host}/robots.txt")
        except httpx.HTTPError as e:
            logger.warning("robots.txt fetch failed for %s: %s", host, e)
            return None
        if r.status_code >= 400 or not r.text:
            logger.debug("No robots.txt for %s (HTTP %d)", host, r.status_code)
            return None
        rules = robotparser.RobotFileParser()
        rules.parse(r.text.splitlines())
        return rules

    async def rules_for(self, host: str, client: Optional[httpx.AsyncClient] = None):
        if host not in self._rules:
            if client is not None:
                self._rules[host] = await self._fetch(host, client)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as c:
                    self._rules[host] = await self._fetch(host, c)
        return self._rules[host]

    async def allowed(self, url: str, user_agent: str,
                      client: Optional[httpx.AsyncClient] = None) -> bool:
        host = urlparse(url).hostname
        if not host:
            return True
        rules = await self.rules_for(host, client)
        return rules is None or rules.can_fetch(user_agent, url)

    def clear(self):
        self._rules.clear()


_cache = RobotsCache()


async def robots_allowed(url: str, user_agent: str = "Mozilla/5.0",
                         client: Optional[httpx.AsyncClient] = None) -> bool:
    allowed = await _cache.allowed(url, user_agent, client)
    if not allowed:
        logger.info("robots.txt disallows %s for %s", url, user_agent)
    return allowed


def clear_robots_cache():
    _cache.clear()
