"""Tests for the theme index."""

from __future__ import annotations

from datetime import datetime

import pytest

from feedpulse.src.models import Category, FeedbackRecord, Sentiment, Source
from feedpulse.src.themes import (
    ThemeTally,
    count_themes,
    decode_themes,
    group_by_theme,
    normalize_theme,
    top_themes,
)


def _make_record(record_id: int, themes: object) -> FeedbackRecord:
    return FeedbackRecord(
        id=record_id,
        source=Source.DISCORD,
        content=f"feedback {record_id}",
        sentiment=Sentiment.NEUTRAL,
        category=Category.FEATURE,
        priority=3,
        themes=themes,  # type: ignore[arg-type]
        created_at=datetime(2026, 3, 1, 12, record_id),
    )


class TestDecodeThemes:
    """Tests for the fallible themes decoder."""

    def test_json_array(self) -> None:
        """A JSON array of strings decodes to a list."""
        assert decode_themes('["api", "pricing"]') == ["api", "pricing"]

    def test_list_passthrough(self) -> None:
        """An already-decoded list is returned as a copy."""
        raw = ["api"]
        decoded = decode_themes(raw)
        assert decoded == ["api"]
        assert decoded is not raw

    @pytest.mark.parametrize(
        "raw",
        ["not json", "{\"a\": 1}", "[1, 2]", '"api"', "null", None, 7, ["ok", 3]],
    )
    def test_malformed_is_empty(self, raw: object) -> None:
        """Anything other than an array of strings yields no themes."""
        assert decode_themes(raw) == []


class TestThemeTally:
    """Tests for ThemeTally counting and ranking."""

    def test_normalizes_and_skips_empty(self) -> None:
        """Themes are trimmed and lowercased; blanks are ignored."""
        tally = ThemeTally()
        assert tally.add("  API ") == "api"
        assert tally.add("   ") is None
        assert tally.count("api") == 1
        assert len(tally) == 1

    def test_ranked_ties_by_first_seen(self) -> None:
        """Equal counts keep the order themes were first encountered."""
        tally = ThemeTally()
        tally.add_all(["b", "a", "c", "a", "b"])
        assert [(t.theme, t.count) for t in tally.ranked()] == [("b", 2), ("a", 2), ("c", 1)]

    def test_total_and_leader(self) -> None:
        """total sums all mentions and leader is the top entry."""
        tally = ThemeTally()
        tally.add_all(["x", "y", "y"])
        assert tally.total == 3
        assert tally.leader().theme == "y"

    def test_empty_leader(self) -> None:
        """An empty tally has no leader."""
        assert ThemeTally().leader() is None


class TestCountThemes:
    """Tests for count_themes and top_themes over records."""

    def test_counts_across_records(self) -> None:
        """Mentions are counted across records after normalization."""
        records = [_make_record(1, ["API", "pricing"]), _make_record(2, ["api"])]
        tally = count_themes(records)
        assert tally.count("api") == 2
        assert tally.count("pricing") == 1

    def test_malformed_record_skipped(self) -> None:
        """A record with malformed themes contributes nothing."""
        records = [_make_record(1, "not json"), _make_record(2, ["api"])]
        assert count_themes(records).total == 1

    def test_top_limit_and_order(self) -> None:
        """top_themes caps the list and sorts by count desc."""
        records = [
            _make_record(1, ["a", "b", "c"]),
            _make_record(2, ["d", "e", "f"]),
            _make_record(3, ["f", "e"]),
        ]
        top = top_themes(records, limit=5)
        assert len(top) == 5
        assert [t.theme for t in top] == ["e", "f", "a", "b", "c"]

    def test_idempotent(self) -> None:
        """Repeated calls over unchanged data give equal results."""
        records = [_make_record(1, ["a", "b"]), _make_record(2, ["b"])]
        assert top_themes(records) == top_themes(records)

    def test_normalize_theme(self) -> None:
        """normalize_theme trims and lowercases."""
        assert normalize_theme(" Workers AI ") == "workers ai"


class TestGroupByTheme:
    """Tests for group_by_theme."""

    def test_examples_capped(self) -> None:
        """At most three example records are kept per theme, in scan order."""
        records = [_make_record(i, ["api"]) for i in range(1, 6)]
        [group] = group_by_theme(records)
        assert group.count == 5
        assert [r.id for r in group.examples] == [1, 2, 3]

    def test_ranked_groups(self) -> None:
        """Groups are ranked by count then first-seen order."""
        records = [_make_record(1, ["ui", "api"]), _make_record(2, ["api", "docs"])]
        groups = group_by_theme(records)
        assert [g.theme for g in groups] == ["api", "ui", "docs"]
        assert [r.id for r in groups[0].examples] == [1, 2]

    def test_empty(self) -> None:
        """No records means no groups."""
        assert group_by_theme([]) == []
