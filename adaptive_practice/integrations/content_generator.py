"""On-demand item generation for a student's weakest topic."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from adaptive_practice.core.app_exceptions import UpstreamTimeout
from adaptive_practice.core.config import Settings, settings
from adaptive_practice.integrations.payloads import parse_item_payload
from adaptive_practice.learning_engine.contracts import GeneratedItem, GenerationContext

logger = logging.getLogger(__name__)


class ContentGenerator(Protocol):
    def generate(self, context: GenerationContext) -> GeneratedItem:
        """
        Produce one item for ``context``.

        Raises:
            UpstreamTimeout: On timeout, transport error, or an unusable response
        """
        ...


class HttpContentGenerator:
    """Calls ``POST {base_url}/generate`` with the generation context as JSON."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: Settings = settings) -> HttpContentGenerator | None:
        if not config.GENERATOR_URL:
            return None
        return cls(
            base_url=config.GENERATOR_URL,
            api_key=config.GENERATOR_API_KEY,
            timeout_seconds=config.GENERATOR_TIMEOUT_SECONDS,
        )

    def generate(self, context: GenerationContext) -> GeneratedItem:
        payload = {
            "topic_name": context.topic_name,
            "category": context.category,
            "mastery_probability": round(context.mastery, 4),
            "common_mistakes": context.common_mistakes,
            "last_wrong_summary": context.last_wrong_summary,
            "days_since_review": context.days_since_review,
            "difficulty": context.difficulty.value,
        }
        try:
            resp = self.client.post("/generate", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise UpstreamTimeout("content generator timed out", details={"topic_id": context.topic_id}) from e
        except httpx.HTTPError as e:
            raise UpstreamTimeout(f"content generator failed: {e}", details={"topic_id": context.topic_id}) from e
        except ValueError as e:
            raise UpstreamTimeout("content generator returned invalid JSON") from e

        item = parse_item_payload(data)
        if item is None:
            raise UpstreamTimeout("content generator returned no usable item", details={"topic_id": context.topic_id})
        return item

    def close(self) -> None:
        self.client.close()
