from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pandas as pd

SEARCH_FIELDS = ["keyword", "timestamp"]
TRANSACTION_FIELDS = ["name", "price", "amount", "currency", "timestamp"]

DEFAULT_SEEN_LIMIT = 500


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SearchRecord:
    keyword: str
    observed_at: datetime = field(default_factory=utc_now)

    @property
    def key(self) -> str:
        return self.keyword

    def to_row(self) -> Dict:
        return {"keyword": self.keyword, "timestamp": self.observed_at.isoformat()}


@dataclass
class TransactionRecord:
    name: str
    price_text: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    observed_at: datetime = field(default_factory=utc_now)

    @property
    def key(self) -> str:
        return f"{self.name}|{self.price_text}"

    def to_row(self) -> Dict:
        return {
            "name": self.name,
            "price": self.price_text,
            "amount": self.amount,
            "currency": self.currency,
            "timestamp": self.observed_at.isoformat(),
        }


class SeenKeys:
    """Insertion-ordered key set; trimming keeps the newest keys only."""

    def __init__(self):
        self._keys: Dict[str, None] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, key: str) -> bool:
        if key in self._keys:
            return False
        self._keys[key] = None
        return True

    def keys(self) -> List[str]:
        return list(self._keys)

    def trim(self, max_size: int) -> int:
        excess = len(self._keys) - max(0, max_size)
        if excess <= 0:
            return 0
        self._keys = dict.fromkeys(list(self._keys)[excess:])
        return excess

    def clear(self):
        self._keys.clear()


class PulseAccumulator:
    """
    Admit-once buffer for searches and transactions.
    The seen sets live as long as the accumulator (one per scheduler); the
    batches are handed over once per session with take_batch().
    """

    def __init__(self):
        self.seen_searches = SeenKeys()
        self.seen_transactions = SeenKeys()
        self.searches: List[SearchRecord] = []
        self.transactions: List[TransactionRecord] = []

    def admit_search(self, record: SearchRecord) -> bool:
        if not self.seen_searches.add(record.key):
            return False
        self.searches.append(record)
        return True

    def admit_transaction(self, record: TransactionRecord) -> bool:
        if not self.seen_transactions.add(record.key):
            return False
        self.transactions.append(record)
        return True

    def trim(self, max_size: int = DEFAULT_SEEN_LIMIT) -> Tuple[int, int]:
        # evicted keys are not reopened: a later identical record counts as new
        return self.seen_searches.trim(max_size), self.seen_transactions.trim(max_size)

    def take_batch(self) -> Tuple[List[SearchRecord], List[TransactionRecord]]:
        searches, transactions = self.searches, self.transactions
        self.searches, self.transactions = [], []
        return searches, transactions

    def discard_batch(self):
        self.searches, self.transactions = [], []

    def reset(self):
        self.discard_batch()
        self.seen_searches.clear()
        self.seen_transactions.clear()


def batch_frame(records: List, fields: List[str]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=fields)
    df = pd.DataFrame([r.to_row() for r in records])
    for c in fields:
        if c not in df.columns:
            df[c] = pd.NA
    return df[fields]


def frame_rows(df: pd.DataFrame) -> List[Dict]:
    """JSON-safe rows: NaN/NA become None."""
    if df is None or df.empty:
        return []
    clean = df.astype(object).where(df.notna(), None)
    return clean.to_dict(orient="records")
