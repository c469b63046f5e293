"""Shared fixtures for FeedPulse tests."""

from __future__ import annotations

import pytest

from feedpulse.src.classifier import ClassifierGateway, MockInference
from feedpulse.src.manager import FeedbackManager
from feedpulse.src.storage import FeedbackStorage


@pytest.fixture
def memory_store() -> FeedbackStorage:
    """In-memory FeedbackStorage with schema initialized.

    The connection is shareable across threads because TestClient runs
    sync handlers in a worker thread.
    """
    store = FeedbackStorage(":memory:", check_same_thread=False)
    store.initialize_schema()
    yield store
    store.close()


@pytest.fixture
def mock_model() -> MockInference:
    """Mock classifier backend with a few canned analyses."""
    return MockInference(
        responses={
            "logging me out": (
                'Sure! {"sentiment": "negative", "category": "bug", '
                '"priority": 4, "themes": ["Dashboard", "auth"]}'
            ),
            "cold starts": (
                '{"sentiment": "positive", "category": "praise", '
                '"priority": 1, "themes": ["performance"]}'
            ),
        },
        default_response="I cannot classify this.",
    )


@pytest.fixture
def manager(memory_store: FeedbackStorage, mock_model: MockInference) -> FeedbackManager:
    """FeedbackManager over the in-memory store and mock classifier."""
    return FeedbackManager(memory_store, ClassifierGateway(mock_model))
