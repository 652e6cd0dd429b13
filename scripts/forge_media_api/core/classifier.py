"""Financial query detection for chat messages."""

from __future__ import annotations

import re
from typing import List, Pattern, Sequence, Tuple

from .contracts import ClassifiedQuery


FINANCIAL_KEYWORDS: Tuple[str, ...] = (
    "stock",
    "sector",
    "market",
    "investment",
    "trading",
    "bull",
    "bear",
    "sentiment",
    "analysis",
    "performance",
    "earnings",
    "revenue",
    "profit",
    "nasdaq",
    "spy",
    "dow",
    "portfolio",
    "finance",
    "financial",
)

_FLAGS = re.IGNORECASE

STOCK_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"how is ([a-z]+) stock doing", _FLAGS),
    re.compile(r"what.*sentiment.*([a-z]+)", _FLAGS),
    re.compile(r"([a-z]+) stock analysis", _FLAGS),
    re.compile(r"analyze ([a-z]+)", _FLAGS),
    re.compile(r"([a-z]{2,5}) performance", _FLAGS),
)

SECTOR_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"how is.*([a-z]+)\s+(sector|industry)", _FLAGS),
    re.compile(
        r"(technology|healthcare|finance|energy|retail|automotive|banking|pharmaceutical|tech|fintech|crypto)"
        r"\s+(sector|industry|market)",
        _FLAGS,
    ),
    re.compile(r"([a-z]+)\s+sector\s+(doing|performance|analysis)", _FLAGS),
)

MARKET_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"market overview", _FLAGS),
    re.compile(r"overall market", _FLAGS),
    re.compile(r"market sentiment", _FLAGS),
    re.compile(r"general market", _FLAGS),
)

NEWS_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"latest news about", _FLAGS),
    re.compile(r"recent news", _FLAGS),
    re.compile(r"news on ([a-z]+)", _FLAGS),
)

# Fixed priority: a message matching a stock and a sector pattern is a stock query.
PATTERN_GROUPS: Tuple[Tuple[str, Sequence[Pattern[str]]], ...] = (
    ("stock", STOCK_PATTERNS),
    ("sector", SECTOR_PATTERNS),
    ("market", MARKET_PATTERNS),
    ("news", NEWS_PATTERNS),
)


def is_financial(message: str) -> bool:
    lowered = message.lower()
    return any(keyword in lowered for keyword in FINANCIAL_KEYWORDS)


def classify_query(message: str) -> ClassifiedQuery:
    if not message or not is_financial(message):
        return ClassifiedQuery(is_financial=False)

    for query_type, patterns in PATTERN_GROUPS:
        for pattern in patterns:
            match = pattern.search(message)
            if not match:
                continue
            entities: List[str] = []
            if match.re.groups and match.group(1):
                entities.append(match.group(1))
            return ClassifiedQuery(is_financial=True, query_type=query_type, entities=tuple(entities))
    return ClassifiedQuery(is_financial=True)
