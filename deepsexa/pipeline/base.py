from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx
from pydantic import BaseModel, ValidationError

from deepsexa.errors import CollaboratorContractError, TransportError
from deepsexa.services.retry import RetryConfig, SleepFunc, retry_fetch


class CollaboratorClient:
    """POST-JSON access to one collaborator route through the retry transport.

    Transport failures are retried; a payload that arrives but does not fit
    the expected model raises CollaboratorContractError without another attempt.
    """

    path: str = ""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str,
        retry_config: RetryConfig | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.retry_config = retry_config or RetryConfig()
        self.sleep = sleep

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def post_json(
        self,
        body: dict[str, Any],
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> dict[str, Any]:
        response = await retry_fetch(
            self.http_client,
            self.url,
            json=body,
            config=self.retry_config,
            should_continue=should_continue,
            sleep=self.sleep,
        )
        try:
            payload = response.json()
        except ValueError as e:
            raise CollaboratorContractError(f"{self.path} returned non-JSON body") from e
        if not isinstance(payload, dict):
            raise CollaboratorContractError(f"{self.path} returned {type(payload).__name__}, expected object")
        if "error" in payload:
            raise TransportError(str(payload["error"]))
        return payload

    def validate(self, model: type[BaseModel], payload: dict[str, Any]) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise CollaboratorContractError(f"{self.path} response failed validation: {e}") from e
