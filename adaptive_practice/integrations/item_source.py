"""External item bank used to refill the local supply pool."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from adaptive_practice.core.app_exceptions import UpstreamTimeout
from adaptive_practice.core.config import Settings, settings
from adaptive_practice.integrations.payloads import parse_item_payload
from adaptive_practice.learning_engine.contracts import GeneratedItem

logger = logging.getLogger(__name__)


class ItemSource(Protocol):
    def fetch_batch(self, category: str, count: int) -> list[GeneratedItem]:
        """Up to ``count`` items for ``category``; fewer is not an error."""
        ...


class HttpItemSource:
    """Calls ``GET {base_url}/questions?section={category}&limit={count}``."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: Settings = settings) -> HttpItemSource | None:
        if not config.ITEM_SOURCE_URL:
            return None
        return cls(base_url=config.ITEM_SOURCE_URL, timeout_seconds=config.ITEM_SOURCE_TIMEOUT_SECONDS)

    def fetch_batch(self, category: str, count: int) -> list[GeneratedItem]:
        """
        Raises:
            UpstreamTimeout: If the source is unreachable, slow or erroring
        """
        if count <= 0:
            return []
        try:
            resp = self.client.get("/questions", params={"section": category, "limit": count})
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise UpstreamTimeout("item source timed out", details={"category": category}) from e
        except httpx.HTTPError as e:
            raise UpstreamTimeout(f"item source failed: {e}", details={"category": category}) from e
        except ValueError as e:
            raise UpstreamTimeout("item source returned invalid JSON", details={"category": category}) from e

        if isinstance(data, dict):
            data = data.get("questions", data.get("items", []))
        if not isinstance(data, list):
            logger.warning("item_source_bad_shape", extra={"event": "item_source_bad_shape", "category": category})
            return []

        items = [item for item in (parse_item_payload(raw) for raw in data) if item is not None]
        logger.info(f"Fetched {len(items)}/{count} items for category {category}")
        return items[:count]

    def close(self) -> None:
        self.client.close()
