"""Tests for the aggregation engine."""

from __future__ import annotations

from datetime import datetime, timedelta

from feedpulse.src.aggregation import (
    aggregate,
    category_breakdown,
    high_priority,
    sentiment_breakdown,
)
from feedpulse.src.models import Category, FeedbackRecord, Sentiment, Source

_BASE = datetime(2026, 3, 1, 8, 0)


def _make_record(
    record_id: int,
    sentiment: Sentiment = Sentiment.NEGATIVE,
    category: Category = Category.BUG,
    priority: int = 3,
    themes: list[str] | None = None,
    hours: int | None = None,
) -> FeedbackRecord:
    return FeedbackRecord(
        id=record_id,
        source=Source.SUPPORT,
        content=f"item {record_id}",
        sentiment=sentiment,
        category=category,
        priority=priority,
        themes=themes or [],
        created_at=_BASE + timedelta(hours=record_id if hours is None else hours),
    )


class TestSentimentBreakdown:
    """Tests for sentiment_breakdown."""

    def test_all_keys_present(self) -> None:
        """Every sentiment appears, zero-filled."""
        counts = sentiment_breakdown([_make_record(1, Sentiment.POSITIVE)])
        assert counts == {Sentiment.POSITIVE: 1, Sentiment.NEGATIVE: 0, Sentiment.NEUTRAL: 0}

    def test_sums_to_total(self) -> None:
        """Counts add up to the number of records."""
        records = [
            _make_record(1, Sentiment.POSITIVE),
            _make_record(2, Sentiment.NEGATIVE),
            _make_record(3, Sentiment.NEGATIVE),
            _make_record(4, Sentiment.NEUTRAL),
        ]
        assert sum(sentiment_breakdown(records).values()) == len(records)

    def test_empty(self) -> None:
        """No records still yields all three keys."""
        assert set(sentiment_breakdown([])) == set(Sentiment)


class TestCategoryBreakdown:
    """Tests for category_breakdown."""

    def test_only_observed_categories(self) -> None:
        """Absent categories have no key."""
        records = [_make_record(1, category=Category.BUG), _make_record(2, category=Category.BUG)]
        assert category_breakdown(records) == {Category.BUG: 2}


class TestHighPriority:
    """Tests for high_priority selection and ordering."""

    def test_threshold(self) -> None:
        """Only priorities of 4 and above qualify."""
        records = [_make_record(1, priority=3), _make_record(2, priority=4)]
        assert [r.id for r in high_priority(records)] == [2]

    def test_order_priority_then_recency(self) -> None:
        """Sorted by priority desc, then created_at desc."""
        records = [
            _make_record(1, priority=4, hours=10),
            _make_record(2, priority=5, hours=1),
            _make_record(3, priority=4, hours=20),
            _make_record(4, priority=5, hours=5),
        ]
        assert [r.id for r in high_priority(records)] == [4, 2, 3, 1]

    def test_capped_at_five(self) -> None:
        """At most five records are returned."""
        records = [_make_record(i, priority=5) for i in range(1, 9)]
        result = high_priority(records)
        assert len(result) == 5
        assert [r.id for r in result] == [8, 7, 6, 5, 4]


class TestAggregate:
    """Tests for the combined aggregate result."""

    def test_combined_stats(self) -> None:
        """All summaries are computed over the same snapshot."""
        records = [
            _make_record(1, Sentiment.NEGATIVE, Category.BUG, 5, ["api", "deploy"]),
            _make_record(2, Sentiment.POSITIVE, Category.PRAISE, 1, ["ui"]),
            _make_record(3, Sentiment.NEGATIVE, Category.COMPLAINT, 4, ["API"]),
        ]
        stats = aggregate(records)
        assert stats.total == 3
        assert stats.sentiment[Sentiment.NEGATIVE] == 2
        assert stats.categories == {Category.BUG: 1, Category.PRAISE: 1, Category.COMPLAINT: 1}
        assert [(t.theme, t.count) for t in stats.top_themes] == [("api", 2), ("deploy", 1), ("ui", 1)]
        assert [r.id for r in stats.high_priority] == [1, 3]

    def test_wire_format(self) -> None:
        """to_dict uses the public key names."""
        d = aggregate([_make_record(1, priority=5, themes=["api"])]).to_dict()
        assert set(d) == {"total", "sentiment", "categories", "topThemes", "highPriority"}
        assert d["sentiment"] == {"positive": 0, "negative": 1, "neutral": 0}
        assert d["topThemes"] == [{"theme": "api", "count": 1}]

    def test_empty(self) -> None:
        """An empty store aggregates to zeros."""
        stats = aggregate([])
        assert stats.total == 0
        assert stats.categories == {}
        assert stats.top_themes == []
        assert stats.high_priority == []
