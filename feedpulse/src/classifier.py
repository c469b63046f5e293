"""Classifier gateway: turns free text into a sanitized FeedbackAnalysis.

The text-classification model is reached through the ModelInference
protocol so tests can use MockInference without network access. The
gateway never raises: inference failures, missing or malformed JSON,
and out-of-range values all degrade to safe defaults, field by field
where possible and to ``FeedbackAnalysis.default()`` otherwise.

Example::

    gateway = ClassifierGateway(WorkersAIInference(account_id, api_token))
    analysis = gateway.analyze("The dashboard keeps logging me out")
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Protocol, runtime_checkable

import requests

from feedpulse.src.models import (
    DEFAULT_PRIORITY,
    MAX_THEMES,
    PRIORITY_MAX,
    PRIORITY_MIN,
    Category,
    FeedbackAnalysis,
    Sentiment,
    round_half_up,
)
from shared.hardening import (
    ErrorFormatter,
    RetriesExhaustedError,
    RetryConfig,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)

CLASSIFIER_MAX_TOKENS = 200
DEFAULT_MODEL = "@cf/meta/llama-3.1-8b-instruct"
DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"

_PROMPT_TEMPLATE = """You are a feedback analyzer. Analyze the following customer feedback and respond with ONLY a valid JSON object, no other text.

Feedback: "{content}"

Analyze and respond with this exact JSON structure:
{{
  "sentiment": "<positive|negative|neutral>",
  "category": "<bug|feature|praise|complaint>",
  "priority": <1-5 where 5 is most urgent>,
  "themes": ["<theme1>", "<theme2>"]
}}

Rules:
- sentiment: positive (happy, satisfied, thankful), negative (frustrated, angry, disappointed), neutral (informational, questions)
- category: bug (something broken), feature (request for new functionality), praise (compliment), complaint (dissatisfaction)
- priority: 5 = critical/urgent, 4 = high, 3 = medium, 2 = low, 1 = minimal
- themes: 1-3 short keywords describing the main topics (e.g., "performance", "ui", "pricing", "documentation")

Respond with ONLY the JSON object."""


class ClassifierError(Exception):
    """Raised by inference backends; never escapes the gateway."""


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ModelInference(Protocol):
    """Protocol for text-generation backends.

    Any class implementing generate() can back the gateway, enabling
    mock inference in tests without a real model.
    """

    def generate(self, prompt: str, max_tokens: int = CLASSIFIER_MAX_TOKENS) -> str:
        """Generate a response for the given prompt.

        Args:
            prompt: The input prompt text.
            max_tokens: Maximum tokens to generate.

        Returns:
            Generated text response.
        """
        ...


# ---------------------------------------------------------------------------
# Inference implementations
# ---------------------------------------------------------------------------


class MockInference:
    """Mock model inference for testing and offline use.

    Returns pre-configured responses for prompts containing a known
    key, or a default response otherwise.

    Args:
        responses: Dict mapping a prompt substring to response text.
        default_response: Response for prompts matching no key.

    Example::

        model = MockInference(
            responses={"logging me out": '{"sentiment": "negative"}'},
            default_response="",
        )
    """

    def __init__(
        self,
        responses: dict[str, str] | None = None,
        default_response: str = "",
    ) -> None:
        self._responses = responses or {}
        self._default = default_response
        self.prompts: list[str] = []

    def generate(self, prompt: str, max_tokens: int = CLASSIFIER_MAX_TOKENS) -> str:
        """Return the first response whose key occurs in *prompt*, or the default."""
        self.prompts.append(prompt)
        for key, response in self._responses.items():
            if key in prompt:
                return response
        return self._default


class WorkersAIInference:
    """Cloudflare Workers AI text generation over the REST API.

    Args:
        account_id: Cloudflare account ID.
        api_token: API token with Workers AI permission.
        model: Model identifier.
        base_url: API base URL.
        timeout: Per-request timeout in seconds.
        retry: Retry policy for connection errors and timeouts.
        session: Optional requests session (injectable for tests).
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/accounts/{account_id}/ai/run/{model}"
        self._timeout = timeout
        self._retry = retry or RetryConfig(max_attempts=2, base_delay=0.5)
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {api_token}"})

    @property
    def url(self) -> str:
        return self._url

    def generate(self, prompt: str, max_tokens: int = CLASSIFIER_MAX_TOKENS) -> str:
        """Run the model on *prompt* and return its text output.

        Raises:
            ClassifierError: On HTTP errors, exhausted retries, or an
                unexpected response body.
        """
        try:
            response = retry_with_backoff(self._post, self._retry, prompt, max_tokens)
        except RetriesExhaustedError as exc:
            raise ClassifierError(f"Workers AI unreachable: {exc.last_error}") from exc

        if response.status_code >= 400:
            raise ClassifierError(f"Workers AI returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise ClassifierError("Workers AI returned a non-JSON body") from exc

        result = body.get("result") if isinstance(body, dict) else None
        text = result.get("response") if isinstance(result, dict) else None
        if text is None:
            raise ClassifierError("Workers AI response has no result.response field")
        if not isinstance(text, str):
            # Some models return the JSON object already parsed.
            text = json.dumps(text)
        return text

    def _post(self, prompt: str, max_tokens: int) -> requests.Response:
        return self._session.post(
            self._url,
            json={"prompt": prompt, "max_tokens": max_tokens},
            timeout=self._timeout,
        )


# ---------------------------------------------------------------------------
# Parsing and sanitization
# ---------------------------------------------------------------------------


def build_prompt(content: str) -> str:
    """Fill the fixed classification instruction with *content*."""
    return _PROMPT_TEMPLATE.format(content=content)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Parse the span from the first '{' to the last '}' of *text*.

    Args:
        text: Raw model output.

    Returns:
        The parsed object, or None if there is no span, the span is not
        valid JSON, or it does not decode to an object.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    try:
        value = json.loads(text[start : end + 1])
    except (ValueError, RecursionError):
        # Also covers the decoder's integer-length and nesting limits.
        return None
    return value if isinstance(value, dict) else None


def sanitize_sentiment(value: Any) -> Sentiment:
    try:
        return Sentiment(value)
    except (ValueError, TypeError):
        return Sentiment.NEUTRAL


def sanitize_category(value: Any) -> Category:
    try:
        return Category(value)
    except (ValueError, TypeError):
        return Category.COMPLAINT


def sanitize_priority(value: Any) -> int:
    """Round and clamp a priority into [1, 5]; non-numeric values become 3."""
    if isinstance(value, bool):
        return DEFAULT_PRIORITY
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_PRIORITY
    if isinstance(value, int):
        return min(PRIORITY_MAX, max(PRIORITY_MIN, value))
    if not isinstance(value, float) or not math.isfinite(value):
        return DEFAULT_PRIORITY
    return int(min(PRIORITY_MAX, max(PRIORITY_MIN, round_half_up(value))))


def sanitize_themes(value: Any) -> list[str]:
    """Keep at most five themes, each as a trimmed lowercase string.

    Duplicates are preserved; empty entries are dropped.
    """
    if not isinstance(value, list):
        return []
    themes = [str(t).strip().lower() for t in value[:MAX_THEMES]]
    return [t for t in themes if t]


def sanitize_analysis(data: dict[str, Any]) -> FeedbackAnalysis:
    """Build a FeedbackAnalysis from parsed model output, field by field."""
    return FeedbackAnalysis(
        sentiment=sanitize_sentiment(data.get("sentiment")),
        category=sanitize_category(data.get("category")),
        priority=sanitize_priority(data.get("priority")),
        themes=sanitize_themes(data.get("themes")),
    )


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class ClassifierGateway:
    """Classifies feedback text without ever failing ingestion.

    Args:
        model: Text-generation backend.
        max_tokens: Token budget for each classification call.
    """

    def __init__(self, model: ModelInference, max_tokens: int = CLASSIFIER_MAX_TOKENS) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._formatter = ErrorFormatter()

    def analyze(self, content: str) -> FeedbackAnalysis:
        """Classify *content* into sentiment, category, priority, and themes.

        Args:
            content: Feedback text.

        Returns:
            A sanitized FeedbackAnalysis; the default analysis on any failure.
        """
        try:
            text = self._model.generate(build_prompt(content), max_tokens=self._max_tokens)
        except Exception as exc:
            friendly = self._formatter.format_classifier_error(exc)
            logger.warning(
                "Classification call failed [%s] %s; using default analysis",
                friendly.error_code,
                friendly.message,
                exc_info=True,
            )
            return FeedbackAnalysis.default()

        data = extract_json_object(text if isinstance(text, str) else "")
        if data is None:
            logger.warning("No JSON object in classifier output; using default analysis")
            return FeedbackAnalysis.default()

        return sanitize_analysis(data)
