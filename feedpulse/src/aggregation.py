"""Aggregation engine: statistical summaries over the feedback set.

Each summary is a pure function of the record snapshot; ``aggregate``
combines them into a single FeedbackStats. No summary depends on
another's result.
"""

from __future__ import annotations

from collections.abc import Sequence

from feedpulse.src.models import (
    Category,
    FeedbackRecord,
    FeedbackStats,
    Sentiment,
)
from feedpulse.src.themes import top_themes

TOP_THEME_LIMIT = 5
HIGH_PRIORITY_THRESHOLD = 4
HIGH_PRIORITY_LIMIT = 5


def sentiment_breakdown(records: Sequence[FeedbackRecord]) -> dict[Sentiment, int]:
    """Count records per sentiment; every sentiment is present.

    Args:
        records: Records to count.

    Returns:
        Mapping of each Sentiment to its count (zero when absent).
    """
    counts: dict[Sentiment, int] = {s: 0 for s in Sentiment}
    for record in records:
        counts[record.sentiment] += 1
    return counts


def category_breakdown(records: Sequence[FeedbackRecord]) -> dict[Category, int]:
    """Count records per category, only for categories that occur.

    Args:
        records: Records to count.

    Returns:
        Mapping of observed Category to count, in first-seen order.
    """
    counts: dict[Category, int] = {}
    for record in records:
        counts[record.category] = counts.get(record.category, 0) + 1
    return counts


def high_priority(
    records: Sequence[FeedbackRecord],
    limit: int = HIGH_PRIORITY_LIMIT,
) -> list[FeedbackRecord]:
    """Most urgent, most recent records with priority at or above the threshold.

    Args:
        records: Records to select from.
        limit: Maximum number of records returned.

    Returns:
        Records ordered by priority desc, then created_at desc.
    """
    urgent = [r for r in records if r.priority >= HIGH_PRIORITY_THRESHOLD]
    urgent.sort(key=lambda r: (r.priority, r.created_at, r.id), reverse=True)
    return urgent[:limit]


def aggregate(records: Sequence[FeedbackRecord]) -> FeedbackStats:
    """Compute the dashboard statistics for *records*.

    Args:
        records: Full record snapshot in id/insertion order.

    Returns:
        FeedbackStats with totals, breakdowns, top themes and urgent items.
    """
    return FeedbackStats(
        total=len(records),
        sentiment=sentiment_breakdown(records),
        categories=category_breakdown(records),
        top_themes=top_themes(records, TOP_THEME_LIMIT),
        high_priority=high_priority(records),
    )
