from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from deepsexa.models.schemas import DateParserRequest, DateRangeResponse
from deepsexa.services import logger as log_service
from deepsexa.tools import date_parser

router = APIRouter(prefix="/api/parse-date", tags=["parse-date"])


@router.post("", response_model=DateRangeResponse, response_model_by_alias=True)
async def parse_date(request: DateParserRequest):
    try:
        parsed = await date_parser.parse_date_range(request.query, request.previous_queries)
    except Exception as e:
        log_service.log_event(
            event_type="date_parser_error",
            message="Failed to parse date range",
            error=str(e),
        )
        return JSONResponse(status_code=500, content={"error": "Failed to parse date range"})

    log_service.log_event(
        event_type="date_parser_complete",
        message="Date range parsed",
        date_range=parsed.model_dump(mode="json", by_alias=True),
    )
    return parsed
