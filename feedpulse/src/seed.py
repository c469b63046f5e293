"""Demo dataset and reseed operation.

The dataset is 30 pre-annotated feedback items about a developer
platform. Distribution:

    sentiment: 18 negative, 8 neutral, 4 positive
    category:  12 bug, 8 feature, 6 complaint, 4 praise

Reseeding clears the store and inserts the whole set in one
transaction, so running it twice leaves the same end state. Items are
stamped one hour apart with the last item newest.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from feedpulse.src.models import (
    Category,
    FeedbackAnalysis,
    Sentiment,
    SeedSummary,
    Source,
)
from feedpulse.src.storage import FeedbackStorage

logger = logging.getLogger(__name__)

SEED_INTERVAL = timedelta(hours=1)


@dataclass(frozen=True)
class SeedItem:
    """One pre-annotated demo feedback item."""

    source: Source
    content: str
    sentiment: Sentiment
    category: Category
    priority: int
    themes: tuple[str, ...] = field(default_factory=tuple)

    def analysis(self) -> FeedbackAnalysis:
        return FeedbackAnalysis(
            sentiment=self.sentiment,
            category=self.category,
            priority=self.priority,
            themes=list(self.themes),
        )


def _bug(source: Source, content: str, priority: int, *themes: str) -> SeedItem:
    return SeedItem(source, content, Sentiment.NEGATIVE, Category.BUG, priority, themes)


def _feature(source: Source, content: str, priority: int, *themes: str) -> SeedItem:
    return SeedItem(source, content, Sentiment.NEUTRAL, Category.FEATURE, priority, themes)


def _complaint(source: Source, content: str, priority: int, *themes: str) -> SeedItem:
    return SeedItem(source, content, Sentiment.NEGATIVE, Category.COMPLAINT, priority, themes)


def _praise(source: Source, content: str, *themes: str) -> SeedItem:
    return SeedItem(source, content, Sentiment.POSITIVE, Category.PRAISE, 1, themes)


DEMO_FEEDBACK: tuple[SeedItem, ...] = (
    # Bugs
    _bug(
        Source.GITHUB,
        "The API keeps timing out when I try to deploy large projects. "
        "Getting 504 errors consistently after 30 seconds.",
        5, "api", "deployment", "performance",
    ),
    _bug(
        Source.DISCORD,
        "Workers AI returns empty responses randomly. About 1 in 10 requests just comes back blank.",
        5, "workers ai", "reliability",
    ),
    _bug(
        Source.SUPPORT,
        "D1 database queries are failing silently. No error messages, just undefined results.",
        5, "d1", "database", "errors",
    ),
    _bug(
        Source.GITHUB,
        "Wrangler dev mode crashes when using custom domains. Have to restart every few minutes.",
        4, "wrangler", "development", "domains",
    ),
    _bug(
        Source.TWITTER,
        "Anyone else seeing their Worker just randomly stop responding? "
        "Mine goes down for like 5 mins then comes back.",
        4, "reliability", "downtime",
    ),
    _bug(
        Source.SUPPORT,
        "KV storage is returning stale data even after writes complete. "
        "Cache invalidation seems broken.",
        4, "kv", "caching", "storage",
    ),
    _bug(
        Source.GITHUB,
        "TypeScript types for Env bindings are wrong after running wrangler types. "
        "Had to manually fix them.",
        3, "typescript", "wrangler", "dx",
    ),
    _bug(
        Source.DISCORD,
        "The dashboard keeps logging me out every hour. Super annoying when debugging.",
        3, "dashboard", "authentication",
    ),
    _bug(
        Source.TWITTER,
        "R2 upload failing for files over 50MB even though docs say 5GB limit. What gives?",
        4, "r2", "storage", "uploads",
    ),
    _bug(
        Source.GITHUB,
        "Cron triggers not firing at the scheduled time. Sometimes 10+ minutes late.",
        3, "cron", "scheduling", "reliability",
    ),
    _bug(
        Source.SUPPORT,
        'Pages deployment stuck in "building" state for 2 hours now. Cannot cancel or retry.',
        4, "pages", "deployment", "builds",
    ),
    _bug(
        Source.DISCORD,
        "Websocket connections dropping after exactly 100 seconds. Thought there was no timeout?",
        4, "websockets", "connections", "reliability",
    ),
    # Feature requests
    _feature(
        Source.GITHUB,
        "Can you add support for Python 3.12? Would love to use the latest features in Workers.",
        3, "python", "languages", "workers",
    ),
    _feature(
        Source.DISCORD,
        "Would be great to have native PostgreSQL support instead of just D1/SQLite.",
        3, "database", "postgresql", "storage",
    ),
    _feature(
        Source.TWITTER,
        "Any plans for a VS Code extension with better Wrangler integration? "
        "The current workflow is clunky.",
        2, "dx", "vscode", "tooling",
    ),
    _feature(
        Source.GITHUB,
        "Please add ability to set memory limits per Worker. Some of mine need more than others.",
        3, "workers", "resources", "configuration",
    ),
    _feature(
        Source.SUPPORT,
        "Is there a way to get detailed cost breakdown per Worker? "
        "Hard to optimize without visibility.",
        2, "pricing", "analytics", "dashboard",
    ),
    _feature(
        Source.DISCORD,
        "Request: Allow custom error pages for Workers. Want to show branded 500 errors.",
        2, "workers", "errors", "customization",
    ),
    _feature(
        Source.GITHUB,
        "Would love to see GitHub Actions for D1 migrations. Current manual process is error-prone.",
        3, "d1", "ci/cd", "automation",
    ),
    _feature(
        Source.TWITTER,
        "Any ETA on bringing Queues out of beta? Need it for production but hesitant on beta products.",
        3, "queues", "reliability", "production",
    ),
    # Complaints
    _complaint(
        Source.TWITTER,
        "Why is my bill so high this month?! Jumped from $5 to $47 with no traffic increase. "
        "This is ridiculous.",
        5, "pricing", "billing", "costs",
    ),
    _complaint(
        Source.SUPPORT,
        "Documentation for Workers AI is so confusing. Spent 3 hours trying to figure out basic setup.",
        3, "documentation", "workers ai", "onboarding",
    ),
    _complaint(
        Source.DISCORD,
        "The pricing calculator is completely wrong. Estimated $10/month, actually charged $35.",
        4, "pricing", "billing", "transparency",
    ),
    _complaint(
        Source.TWITTER,
        "Support response time is awful. Opened a ticket 5 days ago for a production issue. "
        "Still waiting.",
        4, "support", "response time",
    ),
    _complaint(
        Source.GITHUB,
        "The migration from older Workers syntax was a nightmare. "
        "Breaking changes with minimal guidance.",
        3, "migration", "dx", "documentation",
    ),
    _complaint(
        Source.SUPPORT,
        "Tried to contact sales about enterprise plan for a week. No response. "
        "Going with AWS instead.",
        5, "sales", "enterprise", "support",
    ),
    # Praise
    _praise(
        Source.TWITTER,
        "Love the new dashboard update! So much cleaner and faster. Great work team!",
        "dashboard", "ui", "performance",
    ),
    _praise(
        Source.DISCORD,
        "Just migrated from AWS Lambda to Workers. 10x faster cold starts and way cheaper. "
        "Incredibly impressed.",
        "performance", "pricing", "migration",
    ),
    _praise(
        Source.GITHUB,
        "The D1 team shipped that fix incredibly fast. Reported yesterday, patched today. "
        "Amazing support!",
        "d1", "support", "reliability",
    ),
    _praise(
        Source.TWITTER,
        "Workers AI is a game changer. Running LLMs at the edge with zero config? Mind blown.",
        "workers ai", "edge", "innovation",
    ),
)


def summarize(items: tuple[SeedItem, ...] = DEMO_FEEDBACK) -> SeedSummary:
    """Count the dataset by sentiment and category."""
    sentiments = Counter(item.sentiment for item in items)
    categories = Counter(item.category for item in items)
    return SeedSummary(
        total=len(items),
        by_sentiment={s: sentiments.get(s, 0) for s in Sentiment},
        by_category={c: categories.get(c, 0) for c in Category},
    )


def reseed(
    storage: FeedbackStorage,
    items: tuple[SeedItem, ...] = DEMO_FEEDBACK,
    now: datetime | None = None,
) -> SeedSummary:
    """Replace all stored feedback with the demo dataset.

    Args:
        storage: Store to reset.
        items: Dataset to insert (defaults to the built-in demo set).
        now: Timestamp of the newest item (defaults to now).

    Returns:
        SeedSummary describing what was inserted.
    """
    newest = now or datetime.now()
    last = len(items) - 1
    removed = storage.clear_all()
    inserted = storage.insert_many(
        (item.source, item.content, item.analysis(), newest - SEED_INTERVAL * (last - i))
        for i, item in enumerate(items)
    )
    logger.info("Reseeded feedback store: removed %d, inserted %d", removed, inserted)
    return summarize(items)
