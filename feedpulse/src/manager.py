"""Feedback service facade.

Coordinates validation, classification, storage, and the analytics
engines behind the operations the HTTP layer exposes. Input is
validated before any classifier or store call; classification never
fails ingestion; store failures propagate as StorageError.

Example::

    manager = FeedbackManager(storage, ClassifierGateway(MockInference()))
    record = manager.submit("The dashboard keeps logging me out", "discord")
    stats = manager.stats()
"""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from feedpulse.src.aggregation import aggregate
from feedpulse.src.classifier import ClassifierGateway
from feedpulse.src.insights import build_insights
from feedpulse.src.models import (
    FeedbackRecord,
    FeedbackStats,
    InsightReport,
    QueryResult,
    SeedSummary,
    Source,
    ThemeGroup,
)
from feedpulse.src.query import FeedbackFilters, QueryService
from feedpulse.src.seed import reseed
from feedpulse.src.storage import FeedbackStorage, StorageError
from feedpulse.src.themes import group_by_theme
from shared.hardening import InputValidator, ValidationError

logger = logging.getLogger(__name__)

CSV_HEADER = ["ID", "Source", "Content", "Sentiment", "Category", "Priority", "Themes", "Created At"]

__all__ = [
    "CSV_HEADER",
    "FeedbackError",
    "FeedbackManager",
    "FeedbackNotFoundError",
    "FeedbackValidationError",
    "StorageError",
]


class FeedbackError(Exception):
    """Base exception for feedback service errors."""


class FeedbackValidationError(FeedbackError):
    """Raised when client input is missing or malformed."""


class FeedbackNotFoundError(FeedbackError):
    """Raised when no feedback record has the requested ID."""


class FeedbackManager:
    """Main entry point for feedback ingestion and analytics.

    Attributes:
        storage: The feedback store.
        gateway: Classifier used on ingestion.
        validator: Input validator for the ingestion boundary.
    """

    def __init__(
        self,
        storage: FeedbackStorage,
        gateway: ClassifierGateway,
        validator: InputValidator | None = None,
    ) -> None:
        self.storage = storage
        self.gateway = gateway
        self.validator = validator or InputValidator()
        self._queries = QueryService(storage)

    # ---------------------------------------------------------------
    # Ingestion and single-record operations
    # ---------------------------------------------------------------

    def submit(self, content: Any, source: Any) -> FeedbackRecord:
        """Classify and store one feedback item.

        Args:
            content: Raw feedback text.
            source: Raw source value (one of the Source values).

        Returns:
            The stored record with its classifier annotations.

        Raises:
            FeedbackValidationError: If content or source is invalid.
            StorageError: If the insert fails.
        """
        try:
            text = self.validator.validate_content(content)
            channel = Source(
                self.validator.validate_choice(source, [s.value for s in Source], "source")
            )
        except ValidationError as exc:
            raise FeedbackValidationError(str(exc)) from exc

        analysis = self.gateway.analyze(text)
        record = self.storage.insert(channel, text, analysis)
        logger.info(
            "Stored feedback %d from %s (%s, %s, priority %d)",
            record.id,
            record.source.value,
            record.sentiment.value,
            record.category.value,
            record.priority,
        )
        return record

    def get(self, record_id: Any) -> FeedbackRecord:
        """Fetch one record by ID.

        Raises:
            FeedbackValidationError: If the ID is not a positive integer.
            FeedbackNotFoundError: If no record has this ID.
        """
        record = self.storage.get(self._record_id(record_id))
        if record is None:
            raise FeedbackNotFoundError(f"Feedback {record_id} not found")
        return record

    def mark_addressed(self, record_id: Any, addressed: Any) -> FeedbackRecord:
        """Set or clear the addressed flag on one record.

        Args:
            record_id: ID of the record.
            addressed: New flag value; must be a real boolean.

        Returns:
            The updated record.

        Raises:
            FeedbackValidationError: If the ID or flag is malformed.
            FeedbackNotFoundError: If no record has this ID.
        """
        rid = self._record_id(record_id)
        if not isinstance(addressed, bool):
            raise FeedbackValidationError("addressed must be a boolean")

        record = self.storage.update_addressed(rid, addressed)
        if record is None:
            raise FeedbackNotFoundError(f"Feedback {record_id} not found")
        logger.info("Feedback %d marked %s", rid, "addressed" if addressed else "open")
        return record

    # ---------------------------------------------------------------
    # Queries and analytics
    # ---------------------------------------------------------------

    def list_feedback(
        self,
        filters: FeedbackFilters | None = None,
        page: int | None = None,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> QueryResult:
        """Return one page of filtered feedback, newest first."""
        return self._queries.query(filters, page=page, limit=limit, now=now)

    def stats(self) -> FeedbackStats:
        """Aggregate statistics over every stored record."""
        return aggregate(self.storage.all_records())

    def insights(self) -> InsightReport:
        """Higher-order insights over every stored record."""
        return build_insights(self.storage.all_records())

    def theme_groups(self) -> list[ThemeGroup]:
        """All themes ranked by mentions, each with up to three examples."""
        return group_by_theme(self.storage.all_records())

    def reseed(self, now: datetime | None = None) -> SeedSummary:
        """Replace the store's contents with the demo dataset."""
        return reseed(self.storage, now=now)

    # ---------------------------------------------------------------
    # Export
    # ---------------------------------------------------------------

    def export_csv(
        self,
        filters: FeedbackFilters | None = None,
        now: datetime | None = None,
    ) -> str:
        """Render every record matching *filters* as CSV text.

        Rows follow the listing order (newest first). Themes are joined
        with ", " into a single column.

        Args:
            filters: Filter criteria (None for all records).
            now: Reference time for date-range filtering.

        Returns:
            CSV document including the header row.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for record in self._queries.query_all(filters, now=now):
            writer.writerow(
                [
                    record.id,
                    record.source.value,
                    record.content,
                    record.sentiment.value,
                    record.category.value,
                    record.priority,
                    ", ".join(record.themes),
                    record.created_at.isoformat(timespec="seconds"),
                ]
            )
        return buffer.getvalue()

    def export_jsonl(
        self,
        path: Path,
        filters: FeedbackFilters | None = None,
        now: datetime | None = None,
    ) -> int:
        """Export every record matching *filters* to a JSONL file.

        Args:
            path: File path to write the JSONL export.
            filters: Filter criteria (None for all records).
            now: Reference time for date-range filtering.

        Returns:
            Number of records exported.
        """
        records = self._queries.query_all(filters, now=now)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as fh:
            for record in records:
                fh.write(json.dumps(record.to_dict()) + "\n")

        logger.info("Exported %d feedback records to %s", len(records), path)
        return len(records)

    def _record_id(self, value: Any) -> int:
        try:
            return self.validator.validate_record_id(value)
        except ValidationError as exc:
            raise FeedbackValidationError(str(exc)) from exc
