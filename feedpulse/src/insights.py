"""Insight engine: higher-order signals derived from the feedback set.

Computes four independent insights over a record snapshot:

    - Most urgent issue: theme with the highest average priority among
      negative feedback (ties go to the theme with more mentions).
    - Trending topic: most mentioned theme among the ten newest records.
    - Sentiment trend: net sentiment of the newer half versus the older half.
    - Theme distribution: top five themes with their share of all mentions.

The engine orders the snapshot newest-first itself, so callers may pass
records in any order. An empty snapshot yields the documented empty
report rather than running the individual calculations.
"""

from __future__ import annotations

from collections.abc import Sequence

from feedpulse.src.models import (
    FeedbackRecord,
    InsightReport,
    Sentiment,
    SentimentTrend,
    ThemeShare,
    TrendDirection,
    TrendingTopic,
    UrgentIssue,
    round_half_up,
)
from feedpulse.src.themes import count_themes, decode_themes, normalize_theme

TRENDING_WINDOW = 10
TREND_THRESHOLD = 0.1
DISTRIBUTION_LIMIT = 5

_TREND_DESCRIPTIONS: dict[TrendDirection, str] = {
    TrendDirection.IMPROVING: "Sentiment is getting more positive recently",
    TrendDirection.DECLINING: "More negative feedback in recent entries",
    TrendDirection.STABLE: "Sentiment has remained consistent",
    TrendDirection.NEUTRAL: "No data yet",
}


def newest_first(records: Sequence[FeedbackRecord]) -> list[FeedbackRecord]:
    """Order records by created_at descending, then id descending."""
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


def most_urgent_issue(records: Sequence[FeedbackRecord]) -> UrgentIssue | None:
    """Find the theme with the highest average priority in negative feedback.

    Args:
        records: Records in newest-first order.

    Returns:
        The most urgent theme, or None if no negative record has a theme.
    """
    totals: dict[str, list[int]] = {}
    for record in records:
        if record.sentiment != Sentiment.NEGATIVE:
            continue
        for theme in decode_themes(record.themes):
            key = normalize_theme(theme)
            if not key:
                continue
            acc = totals.setdefault(key, [0, 0])
            acc[0] += record.priority
            acc[1] += 1

    best: tuple[str, float, int] | None = None
    for theme, (priority_sum, count) in totals.items():
        avg = priority_sum / count
        if best is None or avg > best[1] or (avg == best[1] and count > best[2]):
            best = (theme, avg, count)

    if best is None:
        return None
    theme, avg, count = best
    return UrgentIssue(theme=theme, avg_priority=round_half_up(avg, 1), count=count)


def trending_topic(
    records: Sequence[FeedbackRecord],
    window: int = TRENDING_WINDOW,
) -> TrendingTopic | None:
    """Find the most mentioned theme among the newest *window* records.

    Ties go to the theme seen first while scanning newest-first.

    Args:
        records: Records in newest-first order.
        window: Number of most recent records to consider.

    Returns:
        The trending theme, or None if the window has no themes.
    """
    leader = count_themes(records[:window]).leader()
    if leader is None:
        return None
    return TrendingTopic(theme=leader.theme, count=leader.count)


def _net_sentiment(records: Sequence[FeedbackRecord]) -> float:
    if not records:
        return 0.0
    positive = sum(1 for r in records if r.sentiment == Sentiment.POSITIVE)
    negative = sum(1 for r in records if r.sentiment == Sentiment.NEGATIVE)
    return (positive - negative) / len(records)


def sentiment_trend(records: Sequence[FeedbackRecord]) -> SentimentTrend:
    """Compare net sentiment of the newer half against the older half.

    Args:
        records: Records in newest-first order.

    Returns:
        SentimentTrend with direction, description, and recent-half counts.
    """
    if not records:
        return SentimentTrend(
            trend=TrendDirection.NEUTRAL,
            description=_TREND_DESCRIPTIONS[TrendDirection.NEUTRAL],
        )

    split = len(records) // 2 or 1
    recent, older = records[:split], records[split:]
    diff = _net_sentiment(recent) - _net_sentiment(older)

    if diff > TREND_THRESHOLD:
        trend = TrendDirection.IMPROVING
    elif diff < -TREND_THRESHOLD:
        trend = TrendDirection.DECLINING
    else:
        trend = TrendDirection.STABLE

    return SentimentTrend(
        trend=trend,
        description=_TREND_DESCRIPTIONS[trend],
        recent_positive=sum(1 for r in recent if r.sentiment == Sentiment.POSITIVE),
        recent_negative=sum(1 for r in recent if r.sentiment == Sentiment.NEGATIVE),
    )


def theme_distribution(
    records: Sequence[FeedbackRecord],
    limit: int = DISTRIBUTION_LIMIT,
) -> list[ThemeShare]:
    """Top themes with their percentage of all theme mentions.

    Percentages are rounded independently and use the mention total over
    every theme, so the returned entries need not sum to 100.

    Args:
        records: Records to scan, in id order for first-seen tie-breaks.
        limit: Number of themes returned.

    Returns:
        Theme shares ranked by count descending.
    """
    tally = count_themes(records)
    total = tally.total
    if total == 0:
        return []
    return [
        ThemeShare(
            theme=tc.theme,
            count=tc.count,
            percentage=int(round_half_up(100 * tc.count / total)),
        )
        for tc in tally.top(limit)
    ]


def build_insights(records: Sequence[FeedbackRecord]) -> InsightReport:
    """Compute all four insights for a record snapshot.

    Args:
        records: Full record snapshot, any order.

    Returns:
        InsightReport; the empty-state report when *records* is empty.
    """
    if not records:
        return InsightReport(
            most_urgent_issue=None,
            trending_topic=None,
            sentiment_trend=sentiment_trend([]),
            theme_distribution=[],
        )

    ordered = newest_first(records)
    return InsightReport(
        most_urgent_issue=most_urgent_issue(ordered),
        trending_topic=trending_topic(ordered),
        sentiment_trend=sentiment_trend(ordered),
        theme_distribution=theme_distribution(sorted(records, key=lambda r: r.id)),
    )
