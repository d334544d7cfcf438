# monitor/extract.py

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


# -------- Section / line patterns --------
SEARCHES_HEADER = "new searches"
TRANSACTIONS_HEADER = "new transactions"
WHOPS_HEADER = "new whops"
KNOWN_HEADERS = (SEARCHES_HEADER, TRANSACTIONS_HEADER, WHOPS_HEADER)

TIMESTAMP_RE = re.compile(r'(?:^|\s)(?:just now|\d+\s*[smhd] ago)$', re.IGNORECASE)
PRICE_RE = re.compile(r'(A\$|C\$|\$|€|£|₹|¥)\s?([\d][\d,.]*)')

DEFAULT_MAX_ITEMS = 20

# Evaluated in the page; the rest of the parsing happens here
BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"

# line token kinds
HEADER, TIMESTAMP, PRICE, TEXT, BLANK = "header", "timestamp", "price", "text", "blank"


@dataclass
class ParsedTransaction:
    name: str
    price_text: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None


@dataclass
class PulseExtract:
    searches: List[str] = field(default_factory=list)
    transactions: List[ParsedTransaction] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.searches and not self.transactions


def _parse_amount(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def classify_line(line: str) -> Tuple[str, object]:
    """Tag one stripped line. PRICE carries its match, TEXT/HEADER the text."""
    if not line:
        return BLANK, None
    lowered = line.lower()
    if lowered in KNOWN_HEADERS:
        return HEADER, lowered
    if TIMESTAMP_RE.search(line):
        return TIMESTAMP, None
    m = PRICE_RE.search(line)
    if m:
        return PRICE, m
    return TEXT, line


def tokenize(text: str) -> List[Tuple[str, object]]:
    return [classify_line(raw.strip()) for raw in (text or "").splitlines()]


def _section(tokens: List[Tuple[str, object]], header: str) -> List[Tuple[str, object]]:
    # first occurrence of the header up to the next known header (or end)
    start = None
    for i, (kind, value) in enumerate(tokens):
        if kind == HEADER and value == header:
            start = i + 1
            break
    if start is None:
        return []
    body = []
    for kind, value in tokens[start:]:
        if kind == HEADER:
            break
        body.append((kind, value))
    return body


def parse_searches(tokens: List[Tuple[str, object]], max_items: int = DEFAULT_MAX_ITEMS) -> List[str]:
    out: List[str] = []
    for kind, value in _section(tokens, SEARCHES_HEADER):
        if len(out) >= max_items:
            break
        if kind == TEXT:
            out.append(value)
        elif kind == PRICE:
            # a search term can contain a price; keep the whole line
            out.append(value.string)
    return out


def parse_transactions(tokens: List[Tuple[str, object]], max_items: int = DEFAULT_MAX_ITEMS) -> List[ParsedTransaction]:
    out: List[ParsedTransaction] = []
    pending: Optional[str] = None

    for kind, value in _section(tokens, TRANSACTIONS_HEADER):
        if len(out) >= max_items:
            return out
        if kind == PRICE:
            if pending is None:
                continue
            out.append(ParsedTransaction(
                name=pending,
                price_text=value.group(0),
                amount=_parse_amount(value.group(2)),
                currency=value.group(1),
            ))
            pending = None
        elif kind == TEXT:
            pending = value

    if pending is not None and len(out) < max_items:
        out.append(ParsedTransaction(name=pending))
    return out


def extract_pulse(text: str, max_items: int = DEFAULT_MAX_ITEMS) -> PulseExtract:
    """
    Parse the rendered pulse page text into searches and transactions.
    Missing sections or unmatched lines give empty output, never an exception.
    """
    tokens = tokenize(text)
    return PulseExtract(
        searches=parse_searches(tokens, max_items),
        transactions=parse_transactions(tokens, max_items),
    )
