"""Format sentiment digests and fold them into outgoing prompts."""

from __future__ import annotations

from typing import Any, List, Optional

from .classifier import classify_query
from .contracts import ClassifiedQuery
from .observability import RequestContext, new_context
from .sentiment import DigestSource, MarketOverview, NewsSearch, SentimentSummary


CONTEXT_HEADER = "CONTEXT DATA FROM SENTIMENT ANALYSIS:"
ANALYSIS_INSTRUCTION = (
    "Please analyze this data and provide insights based on the sentiment analysis above. "
    "Focus on trends, risks, opportunities, and strategic recommendations."
)


def fetch_digest(source: DigestSource, query: ClassifiedQuery) -> Optional[Any]:
    """Ask the digest source for the data matching ``query``.

    Stock, sector and news lookups need an entity; without one there is
    nothing to fetch.
    """
    entity = query.entities[0] if query.entities else None
    if query.query_type == "stock" and entity:
        return source.stock_sentiment(entity)
    if query.query_type == "sector" and entity:
        return source.sector_sentiment(entity)
    if query.query_type == "market":
        return source.market_overview()
    if query.query_type == "news" and entity:
        return NewsSearch(articles=source.search_news(entity))
    return None


def _summary_lines(data: SentimentSummary) -> List[str]:
    return [
        f"Overall Sentiment: {data.avg_sentiment:.3f} ({data.trend})",
        f"Total Articles: {data.total_articles}",
        f"Positive: {data.positive_count}, Negative: {data.negative_count}, Neutral: {data.neutral_count}",
        "",
    ]


def _headlines(articles, limit: int) -> List[str]:
    if not articles:
        return []
    lines = ["RECENT NEWS HEADLINES:"]
    for index, article in enumerate(list(articles)[:limit], start=1):
        lines.append(f"{index}. {article.title} (Sentiment: {article.score:.2f})")
    return lines


def format_digest(data: Any, query_type: str, entity: Optional[str] = None) -> str:
    label = (entity or "").upper()
    lines: List[str] = []
    if query_type == "stock" and isinstance(data, SentimentSummary):
        lines.append(f"STOCK SENTIMENT ANALYSIS FOR: {label}")
        lines.append("")
        lines.extend(_summary_lines(data))
        lines.extend(_headlines(data.articles, 5))
    elif query_type == "sector" and isinstance(data, SentimentSummary):
        lines.append(f"SECTOR SENTIMENT ANALYSIS FOR: {label}")
        lines.append("")
        lines.extend(_summary_lines(data))
        if data.top_stocks:
            lines.append(f"TOP STOCKS IN SECTOR: {', '.join(list(data.top_stocks)[:5])}")
            lines.append("")
        lines.extend(_headlines(data.articles, 5))
    elif query_type == "market" and isinstance(data, MarketOverview):
        dist = data.distribution
        lines.append("MARKET OVERVIEW & SENTIMENT ANALYSIS")
        lines.append("")
        lines.append(f"Overall Market Sentiment: {data.avg_sentiment:.3f}")
        lines.append(f"Total Articles Analyzed: {data.total_articles}")
        lines.append(
            "Sentiment Distribution - "
            f"Positive: {dist.get('positive', 0)}, Negative: {dist.get('negative', 0)}, Neutral: {dist.get('neutral', 0)}"
        )
        lines.append("")
        lines.append("TOP SECTORS BY COVERAGE:")
        for index, stat in enumerate(list(data.top_sectors)[:5], start=1):
            lines.append(f"{index}. {stat.name}: {stat.sentiment:.2f} sentiment ({stat.count} articles)")
        lines.append("")
        lines.append("TOP STOCKS BY COVERAGE:")
        for index, stat in enumerate(list(data.top_stocks)[:10], start=1):
            lines.append(f"{index}. {stat.name}: {stat.sentiment:.2f} sentiment ({stat.count} articles)")
    elif query_type == "news" and isinstance(data, NewsSearch):
        lines.append(f"RECENT NEWS SEARCH RESULTS FOR: {label}")
        lines.append("")
        if data.articles:
            lines.append("RELEVANT NEWS ARTICLES:")
            for index, article in enumerate(list(data.articles)[:10], start=1):
                lines.append(f"{index}. {article.title} (Sentiment: {article.score:.2f})")
                lines.append(f"   {article.content[:100]}...")
                lines.append("")
    else:
        raise ValueError(f"No digest layout for query type '{query_type}' with {type(data).__name__}.")
    return "\n".join(lines).rstrip("\n") + "\n"


def inject_context(
    prompt: str,
    source: Optional[DigestSource],
    context: Optional[RequestContext] = None,
    query: Optional[ClassifiedQuery] = None,
) -> str:
    """Return ``prompt`` with a sentiment digest appended when one applies.

    Any failure while fetching or formatting leaves the prompt untouched.
    """
    ctx = context or new_context("chat")
    if source is None:
        return prompt
    classified = query or classify_query(prompt)
    if not classified.actionable:
        return prompt
    entity = classified.entities[0] if classified.entities else None
    try:
        data = fetch_digest(source, classified)
        if data is None:
            return prompt
        digest = format_digest(data, classified.query_type, entity)
    except Exception as exc:
        ctx.logger.warning("Sentiment digest for %s query failed; sending prompt unchanged: %s", classified.query_type, exc)
        return prompt
    ctx.logger.info("Added sentiment context for %s query: %s", classified.query_type, entity or "general")
    return f"{prompt}\n\n{CONTEXT_HEADER}\n{digest}\n\n{ANALYSIS_INSTRUCTION}"
