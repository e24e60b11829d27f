"""
routers/ask_ai.py

POST /ask-ai     → streamed AI answer (text/event-stream, upstream bytes as-is)
OPTIONS /ask-ai  → CORS pre-flight, empty body

Orchestration flow:
  1. Validate question
  2. Build material context (if userId given)
  3. Open upstream stream (errors become 429 / 402 / 500)
  4. Pipe upstream bytes back unchanged
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import StreamingResponse

from engigenius.models.request import AskRequest
from engigenius.models.response import ErrorResponse
from engigenius.services.llm_service import LLMService, llm_service
from engigenius.services.material_service import MaterialService, material_service
from engigenius.core.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["ask-ai"])


def get_llm_service() -> LLMService:
    return llm_service


def get_material_service() -> MaterialService:
    return material_service


@router.options("/ask-ai", status_code=204)
async def ask_ai_preflight():
    # CORS headers are attached by the app middleware
    return Response(status_code=204)


@router.post(
    "/ask-ai",
    response_class=StreamingResponse,
    responses={
        400: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def ask_ai(
    req: Optional[AskRequest] = None,
    llm: LLMService = Depends(get_llm_service),
    materials: MaterialService = Depends(get_material_service),
):
    if req is None or not req.has_question:
        raise HTTPException(status_code=400, detail="Question is required")

    logger.info(f"[{req.user_id or 'anon'}] Question: '{req.question.strip()[:80]}'")

    context = await materials.build_context(req.user_id)
    upstream = await llm.open_stream(req.question, context)

    return StreamingResponse(
        upstream.iter_bytes(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # disable nginx buffering
        },
    )
