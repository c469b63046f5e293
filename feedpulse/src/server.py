"""FastAPI router for FeedPulse.

Exposes REST endpoints for feedback ingestion, filtered listing, the
addressed flag, aggregate statistics, insights, theme groups, CSV
export, and demo reseeding. Designed to be mounted at ``/api/`` by the
parent application.

All endpoint functions are synchronous (not async) because the
underlying FeedbackStorage uses synchronous SQLite calls. FastAPI runs
sync handlers in a thread pool automatically.

Example::

    from fastapi import FastAPI
    from feedpulse.src.server import configure, router

    configure(manager)
    app = FastAPI()
    app.include_router(router, prefix="/api")
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel

from feedpulse.src.manager import (
    FeedbackManager,
    FeedbackNotFoundError,
    FeedbackValidationError,
)
from feedpulse.src.models import Category, DateRange, Sentiment, Source
from feedpulse.src.query import FeedbackFilters
from feedpulse.src.storage import StorageError
from shared.hardening import ErrorFormatter

logger = logging.getLogger(__name__)

_formatter = ErrorFormatter()

# ===================================================================
# Pydantic request models
# ===================================================================


class SubmitFeedbackRequest(BaseModel):
    """Request body for submitting feedback.

    Both fields are checked by the manager so that missing or invalid
    values produce a 400 with a readable message.
    """

    content: Any = None
    source: Any = None


class UpdateFeedbackRequest(BaseModel):
    """Request body for toggling the addressed flag."""

    addressed: Any = None


# ===================================================================
# Shared state and factory
# ===================================================================

_state: dict[str, Any] = {"manager": None}


def get_manager() -> FeedbackManager:
    """Return the FeedbackManager singleton, raising 503 if not initialised.

    Raises:
        HTTPException: 503 if configure() has not been called.
    """
    manager = _state.get("manager")
    if manager is None:
        raise HTTPException(
            status_code=503,
            detail="Feedback manager not initialised. Call configure() first.",
        )
    return manager


def configure(manager: FeedbackManager) -> None:
    """Inject the FeedbackManager used by every handler.

    Must be called before the router handles any requests.
    """
    _state["manager"] = manager


def _storage_failure(exc: StorageError) -> HTTPException:
    logger.error("Feedback store failure: %s", exc)
    return HTTPException(status_code=500, detail=_formatter.format_store_error(exc).to_dict())


def _build_filters(
    source: Source | None,
    sentiment: Sentiment | None,
    category: Category | None,
    priority: int | None,
    date_range: str | None,
) -> FeedbackFilters:
    return FeedbackFilters(
        source=source,
        sentiment=sentiment,
        category=category,
        priority=priority,
        date_range=DateRange.parse(date_range),
    )


# ===================================================================
# Router
# ===================================================================

router = APIRouter()


# -------------------------------------------------------------------
# Health
# -------------------------------------------------------------------


@router.get("/health")
def health() -> dict[str, Any]:
    """Return FeedPulse service health status."""
    manager = _state.get("manager")
    return {
        "status": "ok" if manager is not None else "not_configured",
        "version": "0.1.0",
        "components": {"manager": manager is not None},
    }


# -------------------------------------------------------------------
# Feedback
# -------------------------------------------------------------------


@router.post("/feedback", status_code=201)
def submit_feedback(request: SubmitFeedbackRequest) -> dict[str, Any]:
    """Classify and store a feedback item.

    Returns:
        Envelope with the stored record.
    """
    try:
        record = get_manager().submit(request.content, request.source)
        return {"success": True, "feedback": record.to_dict()}
    except FeedbackValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to submit feedback")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/feedback")
def list_feedback(
    source: Source | None = None,
    sentiment: Sentiment | None = None,
    category: Category | None = None,
    priority: int | None = None,
    date_range: str | None = Query(default=None, alias="dateRange"),
    page: int | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    """List feedback newest first with optional filters and pagination.

    Out-of-range page and limit values are clamped; an unrecognised
    ``dateRange`` applies no date filter.
    """
    try:
        filters = _build_filters(source, sentiment, category, priority, date_range)
        result = get_manager().list_feedback(filters, page=page, limit=limit)
        return {"success": True, **result.to_dict()}
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to list feedback")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/feedback/export")
def export_feedback(
    source: Source | None = None,
    sentiment: Sentiment | None = None,
    category: Category | None = None,
    priority: int | None = None,
    date_range: str | None = Query(default=None, alias="dateRange"),
) -> Response:
    """Download every record matching the filters as CSV."""
    try:
        filters = _build_filters(source, sentiment, category, priority, date_range)
        body = get_manager().export_csv(filters)
        return Response(
            content=body,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="feedback-export.csv"'},
        )
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to export feedback")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/feedback/{record_id}")
def get_feedback(record_id: int) -> dict[str, Any]:
    """Fetch a single feedback record."""
    try:
        record = get_manager().get(record_id)
        return {"success": True, "feedback": record.to_dict()}
    except FeedbackValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FeedbackNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Feedback not found") from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to get feedback %s", record_id)
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.patch("/feedback/{record_id}")
def update_feedback(record_id: int, request: UpdateFeedbackRequest) -> dict[str, Any]:
    """Set or clear the addressed flag on a feedback record."""
    try:
        record = get_manager().mark_addressed(record_id, request.addressed)
        return {"success": True, "feedback": record.to_dict()}
    except FeedbackValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FeedbackNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Feedback not found") from exc
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to update feedback %s", record_id)
        raise HTTPException(status_code=500, detail="Internal server error") from exc


# -------------------------------------------------------------------
# Analytics
# -------------------------------------------------------------------


@router.get("/insights")
def get_insights() -> dict[str, Any]:
    """Aggregate statistics over all feedback."""
    try:
        return {"success": True, "insights": get_manager().stats().to_dict()}
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to compute statistics")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/themes")
def get_themes() -> dict[str, Any]:
    """All themes ranked by mentions, with example feedback."""
    try:
        groups = get_manager().theme_groups()
        return {"success": True, "themes": [g.to_dict() for g in groups]}
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to group themes")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/ai-insights")
def get_ai_insights() -> dict[str, Any]:
    """Most urgent issue, trending topic, sentiment trend, and theme distribution."""
    try:
        return {"success": True, "aiInsights": get_manager().insights().to_dict()}
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to compute insights")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


# -------------------------------------------------------------------
# Demo data
# -------------------------------------------------------------------


@router.post("/seed")
def seed_feedback() -> dict[str, Any]:
    """Clear the store and load the demo dataset."""
    try:
        summary = get_manager().reseed()
        return {
            "success": True,
            "message": f"Seeded {summary.total} feedback entries",
            "counts": summary.to_dict(),
        }
    except StorageError as exc:
        raise _storage_failure(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to seed feedback")
        raise HTTPException(status_code=500, detail="Internal server error") from exc
