from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deepsexa import __version__
from deepsexa.api.deps import build_rate_limiter
from deepsexa.api.middleware import RateLimitMiddleware
from deepsexa.api.routes import chat, parse_date, search, summarize
from deepsexa.config import settings
from deepsexa.services import logger as log_service

rate_limiter = build_rate_limiter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event(
        event_type="service_started",
        message="DeepSexa service starting",
        rate_limit=f"{rate_limiter.max_requests}/{rate_limiter.window_seconds:g}s",
    )
    yield
    rate_limiter.reset()


app = FastAPI(
    title="DeepSexa",
    description="Web search grounded reasoning chat",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router)
app.include_router(parse_date.router)
app.include_router(summarize.router)
app.include_router(chat.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "deepsexa"}
