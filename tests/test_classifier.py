import pathlib
import sys
import unittest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts"))

from forge_media_api.core.classifier import classify_query, is_financial
from forge_media_api.core.contracts import ClassifiedQuery
from forge_media_api.core.digest import (
    ANALYSIS_INSTRUCTION,
    CONTEXT_HEADER,
    format_digest,
    inject_context,
)
from forge_media_api.core.sentiment import (
    CoverageStat,
    MarketOverview,
    NewsArticle,
    NewsSearch,
    SentimentSummary,
)


def _article(title: str, score: float) -> NewsArticle:
    return NewsArticle(
        id=title,
        title=title,
        content=f"{title} full story",
        timestamp="2025-08-01T09:30:00Z",
        score=score,
        label="positive" if score > 0.1 else "neutral",
        confidence=0.9,
        stocks=("AAPL",),
    )


SUMMARY = SentimentSummary(
    articles=[_article("Apple beats estimates", 0.42), _article("iPhone demand steady", 0.05)],
    avg_sentiment=0.235,
    total_articles=2,
    positive_count=1,
    negative_count=0,
    neutral_count=1,
    trend="bullish",
    top_stocks=("AAPL", "MSFT"),
)


class FakeDigestSource:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail:
            raise OSError("sentiment data unavailable")

    def stock_sentiment(self, symbol):
        self._record("stock", symbol)
        return SUMMARY

    def sector_sentiment(self, sector):
        self._record("sector", sector)
        return SUMMARY

    def market_overview(self):
        self._record("market")
        return MarketOverview(
            total_articles=10,
            avg_sentiment=0.12,
            top_sectors=[CoverageStat(name="Technology", sentiment=0.3, count=6)],
            top_stocks=[CoverageStat(name="AAPL", sentiment=0.4, count=4)],
            distribution={"positive": 5, "negative": 2, "neutral": 3},
        )

    def search_news(self, query, limit=20):
        self._record("news", query)
        return [_article("Fed holds rates", 0.0)]


class TestClassifier(unittest.TestCase):
    def test_stock_question(self) -> None:
        self.assertEqual(
            classify_query("How is AAPL stock doing?"),
            ClassifiedQuery(is_financial=True, query_type="stock", entities=("AAPL",)),
        )

    def test_non_financial_messages(self) -> None:
        for message in ("What's the weather like in Paris?", "Tell me a joke about cats", ""):
            with self.subTest(message=message):
                query = classify_query(message)
                self.assertEqual(query, ClassifiedQuery(is_financial=False, query_type="none", entities=()))
                self.assertFalse(query.actionable)

    def test_stock_outranks_sector(self) -> None:
        query = classify_query("Show me the AAPL stock analysis for the tech sector")
        self.assertEqual(query.query_type, "stock")
        self.assertEqual(query.entities, ("AAPL",))

    def test_sector_market_and_news(self) -> None:
        self.assertEqual(classify_query("Tell me about the energy sector outlook").entities, ("energy",))
        self.assertEqual(classify_query("Tell me about the energy sector outlook").query_type, "sector")
        market = classify_query("Give me a market overview")
        self.assertEqual((market.query_type, market.entities), ("market", ()))
        self.assertEqual(classify_query("Any recent news on the financial front?").query_type, "news")

    def test_financial_without_pattern(self) -> None:
        query = classify_query("I want to grow my portfolio")
        self.assertTrue(query.is_financial)
        self.assertEqual(query.query_type, "none")
        self.assertFalse(query.actionable)

    def test_keyword_match_is_case_insensitive(self) -> None:
        self.assertTrue(is_financial("NASDAQ closed higher"))


class TestDigest(unittest.TestCase):
    def test_stock_digest(self) -> None:
        text = format_digest(SUMMARY, "stock", "aapl")
        self.assertIn("STOCK SENTIMENT ANALYSIS FOR: AAPL", text)
        self.assertIn("Overall Sentiment: 0.235 (bullish)", text)
        self.assertIn("1. Apple beats estimates (Sentiment: 0.42)", text)

    def test_sector_digest_lists_top_stocks(self) -> None:
        text = format_digest(SUMMARY, "sector", "technology")
        self.assertIn("SECTOR SENTIMENT ANALYSIS FOR: TECHNOLOGY", text)
        self.assertIn("TOP STOCKS IN SECTOR: AAPL, MSFT", text)

    def test_market_digest(self) -> None:
        text = format_digest(FakeDigestSource().market_overview(), "market")
        self.assertIn("MARKET OVERVIEW & SENTIMENT ANALYSIS", text)
        self.assertIn("Positive: 5, Negative: 2, Neutral: 3", text)
        self.assertIn("1. Technology: 0.30 sentiment (6 articles)", text)

    def test_news_digest(self) -> None:
        text = format_digest(NewsSearch(articles=[_article("Fed holds rates", 0.0)]), "news", "fed")
        self.assertIn("RECENT NEWS SEARCH RESULTS FOR: FED", text)
        self.assertIn("Fed holds rates full story...", text)

    def test_mismatched_layout_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            format_digest(SUMMARY, "market")


class TestInjectContext(unittest.TestCase):
    def test_appends_labeled_digest(self) -> None:
        source = FakeDigestSource()
        prompt = "How is AAPL stock doing?"
        augmented = inject_context(prompt, source)
        self.assertTrue(augmented.startswith(prompt + "\n\n" + CONTEXT_HEADER + "\n"))
        self.assertIn("STOCK SENTIMENT ANALYSIS FOR: AAPL", augmented)
        self.assertTrue(augmented.endswith(ANALYSIS_INSTRUCTION))
        self.assertEqual(source.calls, [("stock", "AAPL")])

    def test_fetch_failure_sends_original_prompt(self) -> None:
        prompt = "How is AAPL stock doing?"
        self.assertEqual(inject_context(prompt, FakeDigestSource(fail=True)), prompt)

    def test_non_financial_prompt_is_untouched(self) -> None:
        source = FakeDigestSource()
        self.assertEqual(inject_context("Write me a haiku", source), "Write me a haiku")
        self.assertEqual(source.calls, [])

    def test_news_without_entity_is_untouched(self) -> None:
        source = FakeDigestSource()
        prompt = "Any recent news on the financial front?"
        self.assertEqual(inject_context(prompt, source), prompt)


if __name__ == "__main__":
    unittest.main()
