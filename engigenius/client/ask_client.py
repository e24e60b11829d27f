"""
client/ask_client.py

HTTP client for POST /ask-ai.
Sends the question, maps error statuses to user-facing messages,
and decodes the event stream as it arrives.
"""

import asyncio
from typing import Callable, Optional

import httpx

from engigenius.client.decoder import SSEDecoder, assemble
from engigenius.core.config import settings
from engigenius.core.errors import AskError
from engigenius.core.logger import get_logger

logger = get_logger(__name__)

RATE_LIMITED = "Rate limit exceeded. Please try again in a moment."
CREDITS_EXHAUSTED = "AI credits exhausted. Please contact support."
GENERIC_FAILURE = "Failed to get AI response"


class AskClient:
    def __init__(
        self,
        relay_url: Optional[str] = None,
        access_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.relay_url = relay_url or settings.RELAY_URL
        self._access_token = access_token if access_token is not None else settings.RELAY_ACCESS_TOKEN
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.RELAY_TIMEOUT)
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def stream_answer(
        self,
        question: str,
        user_id: Optional[str] = None,
        *,
        on_delta: Optional[Callable[[str, str], None]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> str:
        """Return the full answer; `on_delta(delta, text_so_far)` sees it grow."""
        body = {"question": question}
        if user_id:
            body["userId"] = user_id

        async with self.client.stream("POST", self.relay_url, json=body, headers=self._headers()) as resp:
            if resp.status_code == 429:
                raise AskError(RATE_LIMITED, status_code=429)
            if resp.status_code == 402:
                raise AskError(CREDITS_EXHAUSTED, status_code=402)
            if not resp.is_success:
                await resp.aread()
                logger.warning(f"Relay error {resp.status_code}: {resp.text[:300]}")
                raise AskError(GENERIC_FAILURE, status_code=resp.status_code)

            decoder = SSEDecoder()
            text = await assemble(resp.aiter_bytes(), on_delta=on_delta, cancel=cancel, decoder=decoder)

        if decoder.dropped_lines:
            logger.warning(f"Answer assembled with {decoder.dropped_lines} dropped line(s)")
        return text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
