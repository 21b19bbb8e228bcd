from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from deepsexa.models.schemas import SummarizeRequest, WebpageSummary
from deepsexa.services import logger as log_service
from deepsexa.tools import page_summarizer

router = APIRouter(prefix="/api/summarize", tags=["summarize"])


@router.post("", response_model=WebpageSummary, response_model_by_alias=True)
async def summarize(request: SummarizeRequest):
    log_service.log_event(
        event_type="summarize_started",
        message="Summarization request",
        query=request.query[:100],
        previous_queries=request.previous_queries,
        text_chars=len(request.text),
    )
    try:
        return await page_summarizer.summarize_page(
            request.text, request.query, request.previous_queries
        )
    except Exception as e:
        log_service.log_event(
            event_type="summarize_error",
            message="Summarization failed",
            error=str(e),
        )
        return JSONResponse(status_code=500, content={"error": str(e) or "Failed to summarize text"})
