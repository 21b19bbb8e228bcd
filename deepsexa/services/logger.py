"""Logging for the service routes and the conversation pipeline, via loguru.

Structured records are a tag followed by one JSON object, e.g.
`PIPELINE_STAGE: {"run_id": 3, "stage": "searching", ...}`, so they can be
grepped out of the daily log file and parsed line by line.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from deepsexa.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(parents=True, exist_ok=True)

logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "deepsexa_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
)

for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "openai._base_client",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _emit(tag: str, payload: dict[str, Any], level: str = "INFO") -> None:
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}
    # depth=2 attributes the record to the caller of the log_* helper
    logger.opt(depth=2).log(level, "{}: {}", tag, json.dumps(record, default=str))


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """One completion or stream against a model provider."""
    _emit(
        "LLM_CALL",
        {
            "model": model,
            "caller": caller,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "duration_ms": duration_ms,
            "status": status,
            "error": error,
        },
        "WARNING" if status == "error" else "INFO",
    )


def log_pipeline_stage(
    run_id: int,
    stage: str,
    status: str,
    data: Optional[dict[str, Any]] = None,
) -> None:
    _emit("PIPELINE_STAGE", {"run_id": run_id, "stage": stage, "status": status, "data": data})


def log_event(event_type: str, message: str, **kwargs: Any) -> None:
    _emit("EVENT", {"event_type": event_type, "message": message, **kwargs})
