"""FeedPulse data models for feedback analytics.

Defines the closed enums for source, sentiment, and category, the
persisted FeedbackRecord, the classifier's FeedbackAnalysis, and the
derived (never stored) result types returned by the analytics engines.
All models are dataclasses with ``to_dict()`` serialization using the
wire names of the public API.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

PRIORITY_MIN = 1
PRIORITY_MAX = 5
DEFAULT_PRIORITY = 3
MAX_THEMES = 5


class Source(str, Enum):
    """Channel a feedback item was collected from."""

    TWITTER = "twitter"
    DISCORD = "discord"
    GITHUB = "github"
    SUPPORT = "support"


class Sentiment(str, Enum):
    """Emotional valence of a feedback item."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Category(str, Enum):
    """Functional classification of a feedback item."""

    BUG = "bug"
    FEATURE = "feature"
    PRAISE = "praise"
    COMPLAINT = "complaint"


class TrendDirection(str, Enum):
    """Direction of the sentiment trend.

    Attributes:
        IMPROVING: Recent half is noticeably more positive.
        DECLINING: Recent half is noticeably more negative.
        STABLE: No significant change.
        NEUTRAL: No data to compare.
    """

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    NEUTRAL = "neutral"


class DateRange(str, Enum):
    """Relative look-back windows accepted by the feedback list filter."""

    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"

    @property
    def window(self) -> timedelta:
        """Length of the look-back window."""
        return _DATE_RANGE_WINDOWS[self]

    @classmethod
    def parse(cls, value: str | None) -> DateRange | None:
        """Parse a raw filter value, returning None for anything unrecognized.

        Args:
            value: Raw value such as "7d".

        Returns:
            The matching DateRange, or None.
        """
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


_DATE_RANGE_WINDOWS: dict[DateRange, timedelta] = {
    DateRange.LAST_24H: timedelta(hours=24),
    DateRange.LAST_7D: timedelta(days=7),
    DateRange.LAST_30D: timedelta(days=30),
}


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half away from zero for non-negative values (2.5 -> 3, 4.25 -> 4.3).

    Args:
        value: Number to round.
        digits: Decimal places to keep.

    Returns:
        The rounded value.
    """
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat(timespec="microseconds") if value is not None else None


# ===================================================================
# Persisted models
# ===================================================================


@dataclass
class FeedbackAnalysis:
    """Sanitized output of the text classifier.

    Attributes:
        sentiment: Emotional valence.
        category: Functional classification.
        priority: Urgency from 1 (minimal) to 5 (critical).
        themes: Up to five lowercase, trimmed keywords.
    """

    sentiment: Sentiment
    category: Category
    priority: int
    themes: list[str] = field(default_factory=list)

    @classmethod
    def default(cls) -> FeedbackAnalysis:
        """Return the fail-safe analysis used when classification fails."""
        return cls(
            sentiment=Sentiment.NEUTRAL,
            category=Category.COMPLAINT,
            priority=DEFAULT_PRIORITY,
            themes=[],
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "sentiment": self.sentiment.value,
            "category": self.category.value,
            "priority": self.priority,
            "themes": list(self.themes),
        }


@dataclass
class FeedbackRecord:
    """A single annotated feedback item.

    Only ``addressed`` and ``addressed_at`` change after creation, and
    ``addressed_at`` is set exactly when ``addressed`` is True.

    Attributes:
        id: Store-assigned, monotonically increasing identifier.
        source: Channel the feedback came from.
        content: The feedback text.
        sentiment: Classifier-assigned sentiment.
        category: Classifier-assigned category.
        priority: Classifier-assigned priority (1-5).
        themes: Classifier-assigned theme keywords.
        created_at: Insert timestamp.
        addressed: Whether a human has acknowledged the item.
        addressed_at: When the item was marked addressed.
    """

    id: int
    source: Source
    content: str
    sentiment: Sentiment
    category: Category
    priority: int
    themes: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    addressed: bool = False
    addressed_at: datetime | None = None

    def with_addressed(self, addressed: bool, at: datetime | None = None) -> FeedbackRecord:
        """Return a copy with the addressed flag changed.

        Args:
            addressed: New flag value.
            at: Timestamp to record when flagging (defaults to now).

        Returns:
            Updated copy; all classifier fields are unchanged.
        """
        if addressed:
            return replace(self, addressed=True, addressed_at=at or datetime.now())
        return replace(self, addressed=False, addressed_at=None)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "source": self.source.value,
            "content": self.content,
            "sentiment": self.sentiment.value,
            "category": self.category.value,
            "priority": self.priority,
            "themes": list(self.themes),
            "created_at": _isoformat(self.created_at),
            "addressed": self.addressed,
            "addressed_at": _isoformat(self.addressed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeedbackRecord:
        """Deserialize from dictionary."""
        addressed_at = data.get("addressed_at")
        return cls(
            id=int(data["id"]),
            source=Source(data["source"]),
            content=data["content"],
            sentiment=Sentiment(data["sentiment"]),
            category=Category(data["category"]),
            priority=int(data["priority"]),
            themes=list(data.get("themes", [])),
            created_at=datetime.fromisoformat(data["created_at"]),
            addressed=bool(data.get("addressed", False)),
            addressed_at=datetime.fromisoformat(addressed_at) if addressed_at else None,
        )


# ===================================================================
# Derived models
# ===================================================================


@dataclass
class ThemeCount:
    """A theme and how many times it was mentioned."""

    theme: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"theme": self.theme, "count": self.count}


@dataclass
class ThemeGroup:
    """A theme with its mention count and a few example records.

    Attributes:
        theme: Normalized theme keyword.
        count: Number of mentions across all records.
        examples: Up to three records mentioning the theme, in scan order.
    """

    theme: str
    count: int
    examples: list[FeedbackRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "theme": self.theme,
            "count": self.count,
            "feedback": [
                {
                    "id": r.id,
                    "content": r.content,
                    "sentiment": r.sentiment.value,
                    "source": r.source.value,
                }
                for r in self.examples
            ],
        }


@dataclass
class FeedbackStats:
    """Aggregate statistics over the whole record set.

    Attributes:
        total: Number of records.
        sentiment: Count per sentiment; all three keys always present.
        categories: Count per observed category.
        top_themes: Five most mentioned themes.
        high_priority: Five most urgent, most recent records with priority >= 4.
    """

    total: int
    sentiment: dict[Sentiment, int]
    categories: dict[Category, int]
    top_themes: list[ThemeCount]
    high_priority: list[FeedbackRecord]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "sentiment": {s.value: n for s, n in self.sentiment.items()},
            "categories": {c.value: n for c, n in self.categories.items()},
            "topThemes": [t.to_dict() for t in self.top_themes],
            "highPriority": [r.to_dict() for r in self.high_priority],
        }


@dataclass
class UrgentIssue:
    """Theme with the highest average priority among negative feedback."""

    theme: str
    avg_priority: float
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"theme": self.theme, "avgPriority": self.avg_priority, "count": self.count}


@dataclass
class TrendingTopic:
    """Most mentioned theme among the most recent records."""

    theme: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"theme": self.theme, "count": self.count, "recentMentions": self.count}


@dataclass
class SentimentTrend:
    """Comparison of recent versus older sentiment.

    Attributes:
        trend: Classified direction.
        description: Fixed human-readable summary for the direction.
        recent_positive: Positive records in the recent half.
        recent_negative: Negative records in the recent half.
    """

    trend: TrendDirection
    description: str
    recent_positive: int = 0
    recent_negative: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "trend": self.trend.value,
            "description": self.description,
            "recentPositive": self.recent_positive,
            "recentNegative": self.recent_negative,
        }


@dataclass
class ThemeShare:
    """Theme distribution entry: mentions and share of all mentions."""

    theme: str
    count: int
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        return {"theme": self.theme, "count": self.count, "percentage": self.percentage}


@dataclass
class InsightReport:
    """Higher-order insights over the whole record set."""

    most_urgent_issue: UrgentIssue | None
    trending_topic: TrendingTopic | None
    sentiment_trend: SentimentTrend
    theme_distribution: list[ThemeShare]

    def to_dict(self) -> dict[str, Any]:
        return {
            "mostUrgentIssue": (
                self.most_urgent_issue.to_dict() if self.most_urgent_issue else None
            ),
            "trendingTopic": self.trending_topic.to_dict() if self.trending_topic else None,
            "sentimentTrend": self.sentiment_trend.to_dict(),
            "themeDistribution": [t.to_dict() for t in self.theme_distribution],
        }


@dataclass
class Pagination:
    """Paging metadata for a filtered feedback listing."""

    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass
class QueryResult:
    """One page of filtered feedback plus its paging metadata."""

    records: list[FeedbackRecord]
    pagination: Pagination

    def to_dict(self) -> dict[str, Any]:
        return {
            "feedback": [r.to_dict() for r in self.records],
            "pagination": self.pagination.to_dict(),
        }


@dataclass
class SeedSummary:
    """Counts describing a freshly seeded demo dataset."""

    total: int
    by_sentiment: dict[Sentiment, int]
    by_category: dict[Category, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "bySentiment": {s.value: n for s, n in self.by_sentiment.items()},
            "byCategory": {c.value: n for c, n in self.by_category.items()},
        }
