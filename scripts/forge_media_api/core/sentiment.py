"""News-sentiment store backing the chat context digests.

Reads dated news files shaped like::

    {"2025-08-01": [{"title": ..., "time_published": "20250801T093000",
                     "topics": [{"topic": ..., "relevance_score": "0.5"}],
                     "ticker_sentiment": [{"ticker": ..., "relevance_score": "0.4",
                                           "ticker_sentiment_score": "0.21",
                                           "ticker_sentiment_label": ...}]}]}

Each article's score is the relevance-weighted mean of its ticker scores.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple


logger = logging.getLogger(__name__)

LABEL_THRESHOLD = 0.1


class DigestSource(Protocol):
    def stock_sentiment(self, symbol: str) -> "SentimentSummary":
        ...

    def sector_sentiment(self, sector: str) -> "SentimentSummary":
        ...

    def market_overview(self) -> "MarketOverview":
        ...

    def search_news(self, query: str, limit: int = 20) -> List["NewsArticle"]:
        ...


@dataclass(frozen=True)
class NewsArticle:
    id: str
    title: str
    content: str
    timestamp: str
    score: float
    label: str
    confidence: float
    stocks: Tuple[str, ...] = ()
    sectors: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    relevance: float = 0.0
    source: str = "financial_news"


@dataclass(frozen=True)
class SentimentSummary:
    articles: Sequence[NewsArticle]
    avg_sentiment: float
    total_articles: int
    positive_count: int
    negative_count: int
    neutral_count: int
    trend: str
    top_stocks: Sequence[str] = ()


@dataclass(frozen=True)
class CoverageStat:
    name: str
    sentiment: float
    count: int


@dataclass(frozen=True)
class MarketOverview:
    total_articles: int
    avg_sentiment: float
    top_sectors: Sequence[CoverageStat] = ()
    top_stocks: Sequence[CoverageStat] = ()
    distribution: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class NewsSearch:
    articles: Sequence[NewsArticle]


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def label_for(score: float) -> str:
    if score > LABEL_THRESHOLD:
        return "positive"
    if score < -LABEL_THRESHOLD:
        return "negative"
    return "neutral"


def trend_for(score: float) -> str:
    if score > LABEL_THRESHOLD:
        return "bullish"
    if score < -LABEL_THRESHOLD:
        return "bearish"
    return "neutral"


def format_timestamp(time_published: str) -> str:
    """``20250801T093000`` -> ``2025-08-01T09:30:00Z``."""
    if not time_published or len(time_published) < 8:
        return ""
    year, month, day = time_published[0:4], time_published[4:6], time_published[6:8]
    if len(time_published) > 9:
        hour = time_published[9:11] or "00"
        minute = time_published[11:13] or "00"
        second = time_published[13:15] or "00"
        return f"{year}-{month}-{day}T{hour}:{minute}:{second}Z"
    return f"{year}-{month}-{day}T00:00:00Z"


def transform_article(raw: Mapping[str, Any], date: str, index: int) -> NewsArticle:
    tickers = raw.get("ticker_sentiment") or []
    weighted = 0.0
    total_relevance = 0.0
    for ticker in tickers:
        relevance = _to_float(ticker.get("relevance_score"))
        weighted += _to_float(ticker.get("ticker_sentiment_score")) * relevance
        total_relevance += relevance
    score = weighted / total_relevance if total_relevance > 0 else 0.0
    title = str(raw["title"])
    return NewsArticle(
        id=f"{date}_{index}",
        title=title,
        content=title,
        timestamp=format_timestamp(str(raw.get("time_published") or "")),
        score=score,
        label=label_for(score),
        confidence=min(total_relevance, 1.0) if total_relevance > 0 else 0.5,
        stocks=tuple(str(t.get("ticker")) for t in tickers if t.get("ticker")),
        sectors=tuple(str(t.get("topic")) for t in raw.get("topics") or [] if t.get("topic")),
        keywords=tuple(word for word in title.lower().split() if len(word) > 3)[:10],
        relevance=total_relevance,
    )


def _summarize(articles: List[NewsArticle], with_top_stocks: bool) -> SentimentSummary:
    if not articles:
        return SentimentSummary(
            articles=[],
            avg_sentiment=0.0,
            total_articles=0,
            positive_count=0,
            negative_count=0,
            neutral_count=0,
            trend="neutral",
        )
    avg = sum(a.score for a in articles) / len(articles)
    labels = Counter(a.label for a in articles)
    top_stocks: List[str] = []
    if with_top_stocks:
        mentions = Counter(stock for a in articles for stock in a.stocks)
        top_stocks = [stock for stock, _ in mentions.most_common(10)]
    return SentimentSummary(
        articles=sorted(articles, key=lambda a: a.timestamp, reverse=True),
        avg_sentiment=avg,
        total_articles=len(articles),
        positive_count=labels["positive"],
        negative_count=labels["negative"],
        neutral_count=labels["neutral"],
        trend=trend_for(avg),
        top_stocks=top_stocks,
    )


def _coverage(articles: Iterable[NewsArticle], attr: str, limit: int) -> List[CoverageStat]:
    totals: Dict[str, List[float]] = {}
    for article in articles:
        for name in getattr(article, attr):
            bucket = totals.setdefault(name, [0.0, 0])
            bucket[0] += article.score
            bucket[1] += 1
    stats = [CoverageStat(name=name, sentiment=s / c if c else 0.0, count=int(c)) for name, (s, c) in totals.items()]
    stats.sort(key=lambda stat: stat.count, reverse=True)
    return stats[:limit]


class NewsSentimentStore:
    """In-memory view over every ``*.json`` news file in a directory."""

    def __init__(self, data_dir: Optional[Path] = None, articles: Optional[Sequence[NewsArticle]] = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self._articles: Optional[List[NewsArticle]] = list(articles) if articles is not None else None

    @property
    def articles(self) -> List[NewsArticle]:
        if self._articles is None:
            self._articles = self._load()
        return self._articles

    def _load(self) -> List[NewsArticle]:
        items: List[NewsArticle] = []
        if self.data_dir is None or not self.data_dir.is_dir():
            logger.warning("News data directory %s not found; sentiment digests will be empty.", self.data_dir)
            return items
        for path in sorted(self.data_dir.glob("*.json")):
            try:
                with path.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
            except (OSError, ValueError) as exc:
                logger.error("Could not read news file %s: %s", path, exc)
                continue
            if not isinstance(payload, Mapping):
                logger.warning("News file %s does not map dates to articles; skipped.", path)
                continue
            for date, raw_articles in payload.items():
                if not isinstance(raw_articles, list):
                    continue
                for index, raw in enumerate(raw_articles):
                    try:
                        items.append(transform_article(raw, str(date), index))
                    except (KeyError, TypeError, AttributeError) as exc:
                        logger.warning("Skipping article %d from %s in %s: %s", index, date, path.name, exc)
        logger.info("Loaded %d news articles from %s", len(items), self.data_dir)
        return items

    def stock_sentiment(self, symbol: str) -> SentimentSummary:
        needle = symbol.lower()
        matches = [a for a in self.articles if any(needle in stock.lower() for stock in a.stocks)]
        return _summarize(matches, with_top_stocks=False)

    def sector_sentiment(self, sector: str) -> SentimentSummary:
        needle = sector.lower()
        matches = [a for a in self.articles if any(needle in name.lower() for name in a.sectors)]
        return _summarize(matches, with_top_stocks=True)

    def market_overview(self) -> MarketOverview:
        articles = self.articles
        if not articles:
            return MarketOverview(
                total_articles=0,
                avg_sentiment=0.0,
                distribution={"positive": 0, "negative": 0, "neutral": 0},
            )
        labels = Counter(a.label for a in articles)
        return MarketOverview(
            total_articles=len(articles),
            avg_sentiment=sum(a.score for a in articles) / len(articles),
            top_sectors=_coverage(articles, "sectors", 10),
            top_stocks=_coverage(articles, "stocks", 15),
            distribution={label: labels[label] for label in ("positive", "negative", "neutral")},
        )

    def search_news(self, query: str, limit: int = 20) -> List[NewsArticle]:
        needle = query.lower()

        def _matches(article: NewsArticle) -> bool:
            if needle in article.title.lower() or needle in article.content.lower():
                return True
            fields = (article.stocks, article.sectors, article.keywords)
            return any(needle in value.lower() for values in fields for value in values)

        hits = [a for a in self.articles if _matches(a)]
        hits.sort(key=lambda a: a.relevance, reverse=True)
        return hits[:limit]
