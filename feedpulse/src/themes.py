"""Theme index: counting, ranking, and grouping of feedback themes.

Themes are persisted as JSON text, so every read goes through
``decode_themes``, which turns malformed stored values into an empty
list instead of raising. Ranking is by count descending with ties
broken by the order in which a theme was first seen during the scan.

Example::

    tally = count_themes(records)
    tally.top(5)       # [ThemeCount("pricing", 4), ...]
    group_by_theme(records)[0].examples   # up to 3 records
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from feedpulse.src.models import FeedbackRecord, ThemeCount, ThemeGroup

logger = logging.getLogger(__name__)

EXAMPLES_PER_THEME = 3


def decode_themes(raw: Any) -> list[str]:
    """Decode a stored themes value into a list of strings.

    Args:
        raw: JSON text (as stored) or an already-decoded list.

    Returns:
        The decoded list, or an empty list if the value is not a JSON
        array of strings.
    """
    value = raw
    if isinstance(raw, (str, bytes)):
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Skipping malformed themes value: %r", raw)
            return []
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        return []
    return list(value)


def normalize_theme(theme: str) -> str:
    """Lowercase and trim a theme keyword."""
    return theme.strip().lower()


class ThemeTally:
    """Theme counts with an explicit first-seen order for tie-breaking."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._first_seen: dict[str, int] = {}

    def add(self, theme: str) -> str | None:
        """Count one mention of *theme*.

        Args:
            theme: Raw theme string.

        Returns:
            The normalized theme, or None if it was empty after normalization.
        """
        key = normalize_theme(theme)
        if not key:
            return None
        if key not in self._counts:
            self._first_seen[key] = len(self._first_seen)
            self._counts[key] = 0
        self._counts[key] += 1
        return key

    def add_all(self, themes: Iterable[str]) -> None:
        for theme in themes:
            self.add(theme)

    def count(self, theme: str) -> int:
        return self._counts.get(normalize_theme(theme), 0)

    @property
    def total(self) -> int:
        """Sum of mentions across all themes."""
        return sum(self._counts.values())

    def __len__(self) -> int:
        return len(self._counts)

    def ranked(self) -> list[ThemeCount]:
        """All themes by count descending, then first-seen order."""
        keys = sorted(self._counts, key=lambda k: (-self._counts[k], self._first_seen[k]))
        return [ThemeCount(theme=k, count=self._counts[k]) for k in keys]

    def top(self, limit: int) -> list[ThemeCount]:
        return self.ranked()[:limit]

    def leader(self) -> ThemeCount | None:
        """The single highest-ranked theme, or None when nothing was counted."""
        ranked = self.ranked()
        return ranked[0] if ranked else None


def count_themes(records: Iterable[FeedbackRecord]) -> ThemeTally:
    """Tally normalized themes across *records* in iteration order.

    Args:
        records: Records to scan.

    Returns:
        A populated ThemeTally.
    """
    tally = ThemeTally()
    for record in records:
        tally.add_all(decode_themes(record.themes))
    return tally


def top_themes(records: Iterable[FeedbackRecord], limit: int = 5) -> list[ThemeCount]:
    """Return the *limit* most mentioned themes across *records*."""
    return count_themes(records).top(limit)


def group_by_theme(
    records: Iterable[FeedbackRecord],
    examples: int = EXAMPLES_PER_THEME,
) -> list[ThemeGroup]:
    """Group records under each theme they mention.

    Args:
        records: Records to scan, in id/insertion order.
        examples: Maximum example records kept per theme.

    Returns:
        Theme groups ranked by count descending, then first-seen order.
    """
    tally = ThemeTally()
    samples: dict[str, list[FeedbackRecord]] = {}
    for record in records:
        for theme in decode_themes(record.themes):
            key = tally.add(theme)
            if key is None:
                continue
            bucket = samples.setdefault(key, [])
            if len(bucket) < examples:
                bucket.append(record)

    return [
        ThemeGroup(theme=tc.theme, count=tc.count, examples=samples[tc.theme])
        for tc in tally.ranked()
    ]
