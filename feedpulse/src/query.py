"""Query service: filtered, paginated retrieval of feedback records.

All filters are optional and combined with AND. The predicate is built
once per request and shared by the count query and the page query, so
``total`` always describes exactly the rows being paged through.

Example::

    service = QueryService(storage)
    result = service.query(
        FeedbackFilters(sentiment=Sentiment.NEGATIVE, date_range=DateRange.LAST_7D),
        page=2,
        limit=20,
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from feedpulse.src.models import (
    PRIORITY_MAX,
    PRIORITY_MIN,
    Category,
    DateRange,
    FeedbackRecord,
    Pagination,
    QueryResult,
    Sentiment,
    Source,
)
from feedpulse.src.storage import FeedbackStorage, format_timestamp

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# Largest page whose row offset still fits a signed 64-bit SQLite integer.
MAX_PAGE = (2**63 - 1) // MAX_LIMIT + 1


@dataclass
class FeedbackFilters:
    """Conjunctive filter criteria for the feedback listing.

    Attributes:
        source: Exact source match.
        sentiment: Exact sentiment match.
        category: Exact category match.
        priority: Exact priority match (not a minimum). Values outside
            [1, 5] match nothing.
        date_range: Only records created within this look-back window.
    """

    source: Source | None = None
    sentiment: Sentiment | None = None
    category: Category | None = None
    priority: int | None = None
    date_range: DateRange | None = None

    def predicate(self, now: datetime | None = None) -> tuple[str, list[Any]]:
        """Build the SQL predicate for these filters.

        Args:
            now: Reference time for the date range (defaults to now).

        Returns:
            Tuple of WHERE clause (empty when unfiltered) and its parameters.
        """
        clauses: list[str] = []
        params: list[Any] = []

        if self.source is not None:
            clauses.append("source = ?")
            params.append(self.source.value)
        if self.sentiment is not None:
            clauses.append("sentiment = ?")
            params.append(self.sentiment.value)
        if self.category is not None:
            clauses.append("category = ?")
            params.append(self.category.value)
        if self.priority is not None:
            if PRIORITY_MIN <= self.priority <= PRIORITY_MAX:
                clauses.append("priority = ?")
                params.append(self.priority)
            else:
                # No stored record can carry this priority.
                clauses.append("0")
        if self.date_range is not None:
            threshold = (now or datetime.now()) - self.date_range.window
            clauses.append("created_at >= ?")
            params.append(format_timestamp(threshold))

        return " AND ".join(clauses), params


def page_window(page: int | None, limit: int | None) -> tuple[int, int, int]:
    """Clamp paging inputs and compute the row offset.

    Args:
        page: Requested 1-based page (None for the default).
        limit: Requested page size (None for the default).

    Returns:
        Tuple of (page, limit, offset) after clamping.
    """
    page = min(MAX_PAGE, max(DEFAULT_PAGE, page if page is not None else DEFAULT_PAGE))
    limit = min(MAX_LIMIT, max(1, limit if limit is not None else DEFAULT_LIMIT))
    return page, limit, (page - 1) * limit


class QueryService:
    """Runs filtered, paginated feedback queries against a store.

    Args:
        storage: The feedback store to read from.
    """

    def __init__(self, storage: FeedbackStorage) -> None:
        self._storage = storage

    def query(
        self,
        filters: FeedbackFilters | None = None,
        page: int | None = None,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> QueryResult:
        """Fetch one page of records matching *filters*, newest first.

        Args:
            filters: Filter criteria (None for all records).
            page: 1-based page number; values below 1 become 1.
            limit: Page size, clamped into [1, 100].
            now: Reference time for date-range filtering.

        Returns:
            QueryResult with the page's records and paging metadata.
        """
        page, limit, offset = page_window(page, limit)
        where, params = (filters or FeedbackFilters()).predicate(now)

        total = self._storage.count(where, params)
        records = self._storage.query(where, params, limit=limit, offset=offset)

        return QueryResult(
            records=records,
            pagination=Pagination(page=page, limit=limit, total=total),
        )

    def query_all(
        self,
        filters: FeedbackFilters | None = None,
        now: datetime | None = None,
    ) -> list[FeedbackRecord]:
        """Fetch every record matching *filters*, newest first, without paging."""
        where, params = (filters or FeedbackFilters()).predicate(now)
        return self._storage.query(where, params)
