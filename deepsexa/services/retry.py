"""Bounded exponential-backoff retry for collaborator calls."""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from deepsexa.config import settings
from deepsexa.errors import RunCancelledError, TransportError
from deepsexa.services import logger as log_service

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_retries=max(int(settings.retry_max_retries), 1),
            base_delay_ms=max(int(settings.retry_base_delay_ms), 0),
            max_delay_ms=max(int(settings.retry_max_delay_ms), 0),
        )


def backoff_delay_ms(attempt: int, config: RetryConfig, rng: random.Random | None = None) -> float:
    """Delay before the attempt following `attempt` (0-based), jitter included."""
    exponential = config.base_delay_ms * (2 ** attempt)
    jitter = (rng or random).uniform(0, 0.1 * exponential)
    return min(exponential + jitter, config.max_delay_ms)


async def retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    should_continue: Callable[[], bool] | None = None,
    sleep: SleepFunc = asyncio.sleep,
    rng: random.Random | None = None,
) -> T:
    """Run `operation` up to `config.max_retries` times.

    The last error is re-raised unchanged once attempts are exhausted.
    `should_continue` is polled before every retry; when it turns false the
    loop stops with RunCancelledError instead of sleeping again.
    """
    config = config or RetryConfig()
    attempts = max(config.max_retries, 1)
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if attempt == attempts - 1:
                break
            if should_continue is not None and not should_continue():
                raise RunCancelledError("run superseded while retrying") from e

            delay_ms = backoff_delay_ms(attempt, config, rng)
            log_service.log_event(
                event_type="retry_scheduled",
                message=f"Attempt {attempt + 1}/{attempts} failed, retrying",
                error=str(e),
                delay_ms=round(delay_ms, 1),
            )
            await sleep(delay_ms / 1000)

            if should_continue is not None and not should_continue():
                raise RunCancelledError("run superseded while retrying") from e

    if last_error is not None:
        raise last_error
    raise RuntimeError("retry: unexpected state")


async def retry_fetch(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "POST",
    config: RetryConfig | None = None,
    should_continue: Callable[[], bool] | None = None,
    sleep: SleepFunc = asyncio.sleep,
    rng: random.Random | None = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """HTTP request through `retry`; any non-2xx status counts as a failure."""

    async def _do_request() -> httpx.Response:
        try:
            response = await client.request(method, url, **request_kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        if not response.is_success:
            raise TransportError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    return await retry(
        _do_request,
        config,
        should_continue=should_continue,
        sleep=sleep,
        rng=rng,
    )
