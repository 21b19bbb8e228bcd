from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from deepsexa.models.schemas import SearchRequest, SearchResponse
from deepsexa.services import logger as log_service
from deepsexa.services.search_context import build_contextual_query
from deepsexa.tools import exa_search

router = APIRouter(prefix="/api/search", tags=["search"])


@router.post("", response_model=SearchResponse)
async def web_search(request: SearchRequest):
    """Search the web with the query framed by the recent conversation."""
    contextual_query = build_contextual_query(request.query, request.previous_queries)
    try:
        results = await exa_search.search(contextual_query, request.settings)
    except Exception as e:
        log_service.log_event(
            event_type="search_error",
            message="Exa search failed",
            error=str(e),
            query=request.query[:100],
        )
        return JSONResponse(status_code=500, content={"error": f"Failed to perform search | {e}"})

    log_service.log_event(
        event_type="search_complete",
        message="Exa search returned results",
        results_count=len(results),
        mode=request.settings.contents.mode,
    )
    return SearchResponse(results=results)
