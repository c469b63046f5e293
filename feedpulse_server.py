"""FeedPulse backend server.

Builds the FastAPI application: CORS, the FeedPulse router under
``/api/``, a SQLite-backed store, and the classifier backend chosen
from settings (Workers AI when credentials are configured, otherwise a
mock whose output degrades to the default analysis).

Usage::

    # Development (auto-reload)
    uvicorn feedpulse_server:create_app --factory --reload --port 8787

    # Or run directly
    python feedpulse_server.py
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feedpulse.src.classifier import (
    ClassifierGateway,
    MockInference,
    ModelInference,
    WorkersAIInference,
)
from feedpulse.src.config import Settings, get_settings
from feedpulse.src.manager import FeedbackManager
from feedpulse.src.server import configure, router
from feedpulse.src.storage import FeedbackStorage
from shared.hardening import RetryConfig

logger = logging.getLogger("feedpulse")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Install the root log handler unless one is already configured."""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


def build_inference(settings: Settings) -> ModelInference:
    """Choose the text-generation backend for the classifier.

    Args:
        settings: Application settings.

    Returns:
        WorkersAIInference when credentials are set, else MockInference.
    """
    if settings.classifier_configured:
        inference = WorkersAIInference(
            account_id=settings.cf_account_id or "",
            api_token=settings.cf_api_token or "",
            model=settings.classifier_model,
            base_url=settings.classifier_base_url,
            timeout=settings.classifier_timeout,
            retry=RetryConfig(max_attempts=settings.classifier_max_attempts, base_delay=0.5),
        )
        # The URL embeds the account ID but never the token.
        logger.info("Using Workers AI endpoint %s", inference.url)
        return inference
    logger.warning("No Workers AI credentials configured; new feedback gets the default analysis")
    return MockInference(default_response="")


def build_storage(settings: Settings) -> FeedbackStorage:
    """Open the SQLite store shared by the server's worker threads."""
    if settings.db_path != ":memory:":
        Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
    storage = FeedbackStorage(settings.db_path, check_same_thread=False)
    storage.initialize_schema()
    return storage


def build_manager(settings: Settings) -> FeedbackManager:
    """Wire storage and classifier into a FeedbackManager."""
    gateway = ClassifierGateway(
        build_inference(settings),
        max_tokens=settings.classifier_max_tokens,
    )
    return FeedbackManager(build_storage(settings), gateway)


def create_app(
    settings: Settings | None = None,
    manager: FeedbackManager | None = None,
) -> FastAPI:
    """Create the FeedPulse FastAPI application.

    Args:
        settings: Application settings (defaults to the environment).
        manager: Pre-built manager; built from settings when None.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    manager = manager or build_manager(settings)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Feedback ingestion, classification, and analytics.",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    configure(manager)
    app.include_router(router, prefix="/api", tags=["feedpulse"])
    logger.info("FeedPulse router mounted at /api/ (store: %s)", manager.storage.db_path)

    if settings.auto_seed and manager.storage.count() == 0:
        summary = manager.reseed()
        logger.info("Seeded empty store with %d demo entries", summary.total)

    return app


def run_server(host: str = "127.0.0.1", port: int = 8787) -> None:
    """Start the FeedPulse server via uvicorn.

    Args:
        host: Bind address. Defaults to localhost.
        port: Port number. Defaults to 8787.
    """
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run_server()
