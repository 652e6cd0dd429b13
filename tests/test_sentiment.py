import json
import pathlib
import sys
import tempfile
import unittest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "scripts"))

from forge_media_api.core.sentiment import (
    NewsSentimentStore,
    format_timestamp,
    label_for,
    transform_article,
    trend_for,
)


NEWS = {
    "2025-08-01": [
        {
            "title": "Apple rallies on record services revenue",
            "time_published": "20250801T093000",
            "topics": [{"topic": "Technology", "relevance_score": "0.9"}],
            "ticker_sentiment": [
                {"ticker": "AAPL", "relevance_score": "0.8", "ticker_sentiment_score": "0.5"},
                {"ticker": "MSFT", "relevance_score": "0.2", "ticker_sentiment_score": "0.0"},
            ],
        },
        {
            "title": "Oil slides as supply concerns ease",
            "time_published": "20250801T120000",
            "topics": [{"topic": "Energy", "relevance_score": "0.7"}],
            "ticker_sentiment": [
                {"ticker": "XOM", "relevance_score": "1.0", "ticker_sentiment_score": "-0.3"},
            ],
        },
        {"time_published": "20250801T130000"},
    ],
    "2025-08-02": [
        {
            "title": "Apple supplier outlook steady",
            "time_published": "20250802",
            "topics": [{"topic": "Technology", "relevance_score": "0.4"}],
            "ticker_sentiment": [
                {"ticker": "AAPL", "relevance_score": "0.5", "ticker_sentiment_score": "0.02"},
            ],
        }
    ],
}


class TestHelpers(unittest.TestCase):
    def test_labels(self) -> None:
        self.assertEqual(label_for(0.2), "positive")
        self.assertEqual(label_for(-0.2), "negative")
        self.assertEqual(label_for(0.1), "neutral")
        self.assertEqual(trend_for(0.3), "bullish")
        self.assertEqual(trend_for(-0.3), "bearish")

    def test_format_timestamp(self) -> None:
        self.assertEqual(format_timestamp("20250801T093000"), "2025-08-01T09:30:00Z")
        self.assertEqual(format_timestamp("20250801"), "2025-08-01T00:00:00Z")
        self.assertEqual(format_timestamp(""), "")

    def test_relevance_weighted_score(self) -> None:
        article = transform_article(NEWS["2025-08-01"][0], "2025-08-01", 0)
        self.assertAlmostEqual(article.score, 0.4)
        self.assertEqual(article.label, "positive")
        self.assertEqual(article.stocks, ("AAPL", "MSFT"))
        self.assertEqual(article.sectors, ("Technology",))
        self.assertEqual(article.id, "2025-08-01_0")


class TestNewsSentimentStore(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        data_dir = pathlib.Path(self._tmp.name)
        (data_dir / "news.json").write_text(json.dumps(NEWS), encoding="utf-8")
        (data_dir / "broken.json").write_text("{not json", encoding="utf-8")
        self.store = NewsSentimentStore(data_dir)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_malformed_entries_are_skipped(self) -> None:
        self.assertEqual(len(self.store.articles), 3)

    def test_stock_sentiment(self) -> None:
        summary = self.store.stock_sentiment("aapl")
        self.assertEqual(summary.total_articles, 2)
        self.assertEqual(summary.positive_count, 1)
        self.assertEqual(summary.neutral_count, 1)
        self.assertAlmostEqual(summary.avg_sentiment, 0.21)
        self.assertEqual(summary.trend, "bullish")
        self.assertEqual(summary.articles[0].title, "Apple supplier outlook steady")

    def test_sector_sentiment_reports_top_stocks(self) -> None:
        summary = self.store.sector_sentiment("technology")
        self.assertEqual(summary.total_articles, 2)
        self.assertEqual(list(summary.top_stocks)[0], "AAPL")

    def test_market_overview(self) -> None:
        overview = self.store.market_overview()
        self.assertEqual(overview.total_articles, 3)
        self.assertEqual(overview.distribution, {"positive": 1, "negative": 1, "neutral": 1})
        self.assertEqual(overview.top_sectors[0].name, "Technology")
        self.assertEqual(overview.top_sectors[0].count, 2)

    def test_search_news(self) -> None:
        hits = self.store.search_news("oil")
        self.assertEqual([hit.title for hit in hits], ["Oil slides as supply concerns ease"])
        self.assertEqual(len(self.store.search_news("apple", limit=1)), 1)

    def test_missing_directory_is_empty(self) -> None:
        store = NewsSentimentStore(pathlib.Path(self._tmp.name) / "missing")
        self.assertEqual(store.market_overview().total_articles, 0)
        self.assertEqual(store.stock_sentiment("AAPL").total_articles, 0)


if __name__ == "__main__":
    unittest.main()
