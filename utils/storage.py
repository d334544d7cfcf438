"""Supabase PostgREST inserts over httpx.

insert() raises PersistenceError on any HTTP or transport failure; the caller
decides whether that is fatal.
"""

import logging
from typing import Dict, List, Optional

import httpx

from monitor.errors import PersistenceError

logger = logging.getLogger(__name__)

SEARCHES_TABLE = "searches"
TRANSACTIONS_TABLE = "transactions"


class SupabaseStorage:
    def __init__(self, url: str, key: str, *, timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = url.strip().rstrip("/")
        self._key = key.strip()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }

    def table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def insert(self, table: str, rows: List[Dict]) -> int:
        """Bulk INSERT rows in one request. Returns the number of rows sent."""
        if not rows:
            return 0
        try:
            r = await self._client.post(self.table_url(table), json=rows, headers=self._headers())
        except httpx.HTTPError as e:
            raise PersistenceError(table, f"{type(e).__name__}: {e}") from e
        if r.status_code >= 400:
            raise PersistenceError(table, f"HTTP {r.status_code}: {r.text[:300]}")
        logger.debug("Inserted %d rows into %s", len(rows), table)
        return len(rows)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SupabaseStorage":
        return self

    async def __aexit__(self, *exc):
        await self.aclose()
        return False
