"""
Content API Client

Async client for the remote content backend. It implements the three
transport protocols the authoring core depends on:
- GenerationTransport: POST /v1/orchestrator with {action, payload}
- PersistenceTransport: session records and generated posts
- OrderTransport: PUT /v1/saved-items/order
"""

import asyncio
import json
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import aiohttp

from src.authoring.config import AuthoringSettings
from src.authoring.models.enums import GenerationAction
from src.authoring.services.transport import TransportError

logger = logging.getLogger(__name__)


class ContentApiError(TransportError):
    """Non-2xx response, or no response at all (status is None)."""

    def __init__(self, status: Optional[int], body: str):
        self.status = status
        self.body = body
        super().__init__(f"Content API error {status}: {body[:200]}")


class ContentApiClient:
    """Client for the content backend's orchestrator and storage endpoints."""

    # HTTP timeout: (connect_timeout, read_timeout) in seconds.
    # Generation calls are slow, so the read timeout is generous.
    DEFAULT_TIMEOUT = (10, 120)

    # 3 retries with 2s base delay = max 14s total wait (2+4+8)
    MAX_RETRIES = 3
    RETRY_DELAY_BASE = 2  # seconds, exponential backoff: 2s, 4s, 8s
    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: tuple = None,
        max_retries: int = None,
    ):
        if not base_url:
            raise ValueError("CONTENT_API_URL not set")
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else self.MAX_RETRIES

    @classmethod
    def from_settings(cls, settings: AuthoringSettings) -> "ContentApiClient":
        return cls(
            base_url=settings.content_api_url,
            api_token=settings.content_api_token,
            timeout=(settings.connect_timeout, settings.read_timeout),
            max_retries=settings.max_retries,
        )

    @staticmethod
    def _parse_retry_after(header_value: str) -> int:
        """Seconds to wait from a Retry-After header (delay-seconds or HTTP-date)."""
        try:
            return max(1, int(header_value))
        except ValueError:
            try:
                retry_at = parsedate_to_datetime(header_value)
                if retry_at.tzinfo is None:
                    retry_at = retry_at.replace(tzinfo=timezone.utc)
                delta = (retry_at - datetime.now(timezone.utc)).total_seconds()
                return max(1, int(delta))
            except (ValueError, TypeError):
                return 10

    @staticmethod
    def _add_jitter(base_delay: float) -> float:
        """Add 0-50% of the base delay so concurrent retries spread out."""
        return base_delay + random.uniform(0, 0.5 * base_delay)

    def _backoff(self, attempt: int) -> float:
        return self._add_jitter(self.RETRY_DELAY_BASE * (2 ** attempt))

    def _get_aiohttp_session(self) -> aiohttp.ClientSession:
        """Create an aiohttp session with auth headers and timeout."""
        timeout = aiohttp.ClientTimeout(
            connect=self.timeout[0],
            sock_read=self.timeout[1],
            total=self.timeout[0] + self.timeout[1],
        )
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return aiohttp.ClientSession(timeout=timeout, headers=headers)

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Make a request, retrying 429/5xx and connection errors.

        Returns the decoded JSON body ({} for an empty body, e.g. 204).

        Raises:
            ContentApiError: on a non-retryable status or after max retries
        """
        url = f"{self.base_url}{endpoint}"

        async with self._get_aiohttp_session() as session:
            for attempt in range(self.max_retries + 1):
                try:
                    async with session.request(
                        method, url, json=json_data, params=params
                    ) as response:
                        body = await response.text()

                        if response.status in self.RETRYABLE_STATUS_CODES:
                            if attempt < self.max_retries:
                                retry_after = response.headers.get("Retry-After")
                                if response.status == 429 and retry_after:
                                    delay = self._add_jitter(self._parse_retry_after(retry_after))
                                else:
                                    delay = self._backoff(attempt)
                                logger.warning(
                                    "Content API %s on %s %s, retrying in %.1fs (attempt %d/%d)",
                                    response.status, method, endpoint, delay,
                                    attempt + 1, self.max_retries + 1,
                                )
                                await asyncio.sleep(delay)
                                continue
                            raise ContentApiError(response.status, body)

                        if response.status >= 400:
                            raise ContentApiError(response.status, body)

                        if not body:
                            return {}
                        try:
                            return json.loads(body)
                        except ValueError as e:
                            raise ContentApiError(response.status, f"Invalid JSON: {body}") from e

                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    if attempt < self.max_retries:
                        delay = self._backoff(attempt)
                        logger.warning(
                            "Content API connection error on %s %s: %s, retrying in %.1fs "
                            "(attempt %d/%d)",
                            method, endpoint, e, delay, attempt + 1, self.max_retries + 1,
                        )
                        await asyncio.sleep(delay)
                    else:
                        raise ContentApiError(None, str(e) or type(e).__name__) from e

        raise RuntimeError("Unexpected retry loop exit")

    # ========================================================================
    # GenerationTransport
    # ========================================================================

    async def orchestrate(self, action: GenerationAction, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run an orchestrator action. List responses are unwrapped to their first item."""
        data = await self._request(
            "POST", "/v1/orchestrator", json_data={"action": action.value, "payload": payload}
        )
        if isinstance(data, list):
            if not data:
                raise ContentApiError(200, f"{action.value} returned an empty list")
            data = data[0]
        return data

    # ========================================================================
    # PersistenceTransport
    # ========================================================================

    async def upsert_session(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._single(await self._request("POST", "/v1/content-sessions", json_data=record))

    async def create_content_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._single(await self._request("POST", "/v1/generated-posts", json_data=record))

    async def load_session(self, session_record_id: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self._request("GET", f"/v1/content-sessions/{session_record_id}")
        except ContentApiError as e:
            if e.status == 404:
                return None
            raise
        return self._single(data)

    @staticmethod
    def _single(data: Any) -> Dict[str, Any]:
        if isinstance(data, list):
            return data[0] if data else {}
        return data

    # ========================================================================
    # OrderTransport
    # ========================================================================

    async def confirm_order(self, owner_id: str, ordered_ids: List[str]) -> None:
        await self._request(
            "PUT",
            "/v1/saved-items/order",
            json_data={"owner_id": owner_id, "ordered_ids": list(ordered_ids)},
        )

    async def load_order(self, owner_id: str) -> List[str]:
        """Ids of an owner's saved items, in their stored display order."""
        data = await self._request("GET", "/v1/saved-items", params={"owner_id": owner_id})
        if isinstance(data, dict):
            data = data.get("items", [])
        items = sorted(data, key=lambda item: item.get("display_order") or 0)
        return [str(item["id"]) for item in items]
