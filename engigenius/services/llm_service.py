"""
services/llm_service.py

Upstream side of the relay.
Opens ONE streamed chat completion against the AI gateway
(any OpenAI-compatible endpoint) and hands back the raw byte stream.

Upstream errors are translated here:
  429 → 429  rate limit
  402 → 402  credits exhausted
  *   → 500  generic, upstream body logged but never returned
"""

from contextlib import AsyncExitStack
from typing import AsyncIterator, Optional

import httpx
from fastapi import HTTPException
from openai import APIStatusError, AsyncOpenAI

from engigenius.core.config import settings
from engigenius.core.errors import ConfigurationError
from engigenius.core.logger import get_logger
from engigenius.services.material_service import MaterialContext

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
PAYMENT_REQUIRED_MESSAGE = "Payment required. Please add credits to continue."
SERVICE_ERROR_MESSAGE = "AI service error"

SYSTEM_PROMPT = """You are EngiGenius AI, an expert study assistant for engineering students. Your role is to:
1. Analyze questions and provide 10/10 exam-ready, easy-to-memorize answers
2. Identify important topics and predict likely exam questions
3. Provide clear explanations with examples
4. Generate summaries and quick revision notes

Context about user's materials:
{syllabus_context}
{papers_context}

IMPORTANT:
- Format your answers clearly with headings, bullet points, and numbered lists
- Include key formulas where relevant
- Provide exam tips and memory techniques
- Keep answers comprehensive but easy to understand
- Always return structured, well-formatted responses

At the end of your response, provide a JSON block with important topics extracted:
```json
{{
  "important_topics": ["topic1", "topic2", "topic3"],
  "summary": "Brief 2-3 sentence summary"
}}
```"""


class UpstreamStream:
    """
    An open upstream response. Iterate it once; the upstream connection
    is released when iteration ends, fails, or is abandoned via aclose().
    """

    def __init__(self, response, stack: AsyncExitStack):
        self._response = response
        self._stack = stack

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.iter_bytes():
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self._stack.aclose()


class LLMService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._model = model
        self._http_client = http_client
        self._client: Optional[AsyncOpenAI] = None

    @property
    def model(self) -> str:
        return self._model or settings.AI_MODEL

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self._api_key or settings.AI_GATEWAY_API_KEY
            if not api_key:
                raise ConfigurationError("AI_GATEWAY_API_KEY is not configured")
            kwargs = {
                "api_key": api_key,
                "base_url": self._base_url or settings.AI_GATEWAY_BASE_URL,
                "timeout": settings.LLM_TIMEOUT,
                "max_retries": 0,   # retry policy belongs to the caller
            }
            if self._http_client is not None:
                kwargs["http_client"] = self._http_client
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    def build_messages(self, question: str, context: MaterialContext) -> list[dict]:
        system = SYSTEM_PROMPT.format(
            syllabus_context=context.syllabus,
            papers_context=context.past_papers,
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": question},
        ]

    async def open_stream(self, question: str, context: MaterialContext) -> UpstreamStream:
        """
        Send the request and wait for upstream headers.
        Raises HTTPException for upstream error statuses so the router
        never starts a 200 stream for a failed call.
        """
        client = self.client
        messages = self.build_messages(question, context)
        stack = AsyncExitStack()
        try:
            response = await stack.enter_async_context(
                client.chat.completions.with_streaming_response.create(
                    model=self.model,
                    messages=messages,
                    stream=True,
                )
            )
        except APIStatusError as e:
            await stack.aclose()
            raise self._translate_status(e) from e
        except BaseException:
            await stack.aclose()
            raise

        logger.info(f"Upstream stream open: model={self.model} status={response.status_code}")
        return UpstreamStream(response, stack)

    def _translate_status(self, error: APIStatusError) -> HTTPException:
        status = error.status_code
        if status == 429:
            logger.warning("AI gateway rate limited the request")
            return HTTPException(status_code=429, detail=RATE_LIMIT_MESSAGE)
        if status == 402:
            logger.warning("AI gateway reports credits exhausted")
            return HTTPException(status_code=402, detail=PAYMENT_REQUIRED_MESSAGE)

        try:
            body = error.response.text
        except httpx.ResponseNotRead:
            body = str(error.body)
        logger.error(f"AI gateway error: status={status} body={body[:1000]}")
        return HTTPException(status_code=500, detail=SERVICE_ERROR_MESSAGE)


# Singleton
llm_service = LLMService()
