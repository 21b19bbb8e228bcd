"""Run coordinator for the conversational search pipeline.

One submitted query becomes one run:

    extracting -> searching -> [summarizing] -> streaming -> idle

Every run carries a token. A newer submit invalidates all older tokens, and
state is only written through `_commit`, which drops writes from stale runs.
Aborting the superseded task is best effort on top of that; correctness never
depends on the abort landing.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import httpx

from deepsexa.config import settings
from deepsexa.errors import (
    DeepSexaError,
    QueryValidationError,
    RunCancelledError,
    StreamTimeoutError,
)
from deepsexa.models.schemas import SearchResult, SearchSettings
from deepsexa.pipeline.chat_stream import ChatStreamClient
from deepsexa.pipeline.date_range import DateRangeClient, TemporalRange
from deepsexa.pipeline.history import QueryHistory
from deepsexa.pipeline.search_client import SearchClient
from deepsexa.pipeline.summarizer import SummarizationFanout
from deepsexa.services import logger as log_service
from deepsexa.services.retry import RetryConfig
from deepsexa.services.search_context import build_search_context_message
from deepsexa.services.stream_parser import ParsedMessage, parse_message_content

APOLOGY_MESSAGE = "Sorry, I ran into a problem while answering that. Please try again."


class PipelineStage(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    SEARCHING = "searching"
    SUMMARIZING = "summarizing"
    STREAMING = "streaming"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RunToken:
    generation: int


@dataclass
class ChatMessage:
    role: str
    content: str
    search_results: list[SearchResult] = field(default_factory=list)
    parsed: ParsedMessage | None = None
    run_id: int = 0

    def to_turn(self) -> dict[str, str]:
        # streamed replies go back as their answer only, never the reasoning
        content = self.parsed.answer if self.parsed is not None else self.content
        return {"role": self.role, "content": content}


def conversation_turns(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """Alternating user/assistant turns for the model.

    An exchange whose reply has no answer text is left out whole, so the
    request never carries two user turns in a row.
    """
    turns: list[dict[str, str]] = []
    for message in messages:
        if message.role not in ("user", "assistant"):
            continue
        turn = message.to_turn()
        if message.role == "user":
            if turns and turns[-1]["role"] == "user":
                turns.pop()
            if turn["content"]:
                turns.append(turn)
        elif turn["content"] and turns and turns[-1]["role"] == "user":
            turns.append(turn)
        elif turns and turns[-1]["role"] == "user":
            turns.pop()
    if turns and turns[-1]["role"] == "user":
        turns.pop()
    return turns


@dataclass
class SessionState:
    stage: PipelineStage = PipelineStage.IDLE
    messages: list[ChatMessage] = field(default_factory=list)
    search_results: list[SearchResult] = field(default_factory=list)
    temporal_range: TemporalRange | None = None
    parsed: ParsedMessage | None = None
    error: str | None = None
    history: list[str] = field(default_factory=list)
    run_id: int = 0

    @property
    def busy(self) -> bool:
        return self.stage != PipelineStage.IDLE


@dataclass
class RunOutcome:
    run_id: int
    status: RunStatus
    parsed: ParsedMessage | None = None
    search_results: list[SearchResult] = field(default_factory=list)
    error: str | None = None


def validate_query(query: str) -> str:
    if query is None or not str(query).strip():
        raise QueryValidationError("Query must not be empty")
    return str(query).strip()


class PipelineCoordinator:
    def __init__(
        self,
        *,
        date_range_client: DateRangeClient,
        search_client: SearchClient,
        summarizer: SummarizationFanout,
        chat_stream: ChatStreamClient,
        search_settings: SearchSettings | None = None,
        auto_date: bool = True,
        history: QueryHistory | None = None,
        stream_timeout: float | None = None,
        abort_in_flight: bool = True,
        on_update: Callable[[SessionState], None] | None = None,
    ):
        self.date_range_client = date_range_client
        self.search_client = search_client
        self.summarizer = summarizer
        self.chat_stream = chat_stream
        self.search_settings = search_settings or SearchSettings()
        self.auto_date = auto_date
        self.history = history if history is not None else QueryHistory(settings.query_history_size)
        self.stream_timeout = stream_timeout
        self.abort_in_flight = abort_in_flight
        self.on_update = on_update

        self._state = SessionState(history=self.history.as_list())
        self._generation = 0
        self._active_task: asyncio.Task | None = None
        # generation whose messages are in state but which has not settled yet
        self._open_run: int | None = None

    @classmethod
    def connect(
        cls,
        http_client: httpx.AsyncClient,
        *,
        base_url: str | None = None,
        retry_config: RetryConfig | None = None,
        **kwargs,
    ) -> "PipelineCoordinator":
        """Coordinator wired to the collaborator service at `base_url`."""
        base_url = base_url or settings.api_base_url
        retry_config = retry_config or RetryConfig.from_settings()
        kwargs.setdefault("stream_timeout", float(settings.chat_max_duration_seconds))
        kwargs.setdefault("auto_date", settings.auto_date_default)
        return cls(
            date_range_client=DateRangeClient(http_client, base_url=base_url, retry_config=retry_config),
            search_client=SearchClient(
                http_client,
                base_url=base_url,
                retry_config=retry_config,
                summarize_text_max_characters=settings.summarize_text_max_characters,
            ),
            summarizer=SummarizationFanout(http_client, base_url=base_url, retry_config=retry_config),
            chat_stream=ChatStreamClient(http_client, base_url=base_url),
            **kwargs,
        )

    # --- state ---

    @property
    def state(self) -> SessionState:
        return self._state

    def is_current(self, token: RunToken) -> bool:
        return token.generation == self._generation

    def _commit(self, token: RunToken, mutate: Callable[[SessionState], None]) -> bool:
        if not self.is_current(token):
            log_service.log_pipeline_stage(
                token.generation, self._state.stage.value, "stale_write_dropped"
            )
            return False
        mutate(self._state)
        if self.on_update:
            self.on_update(self._state)
        return True

    def _set_stage(self, token: RunToken, stage: PipelineStage) -> bool:
        def mutate(state: SessionState) -> None:
            state.stage = stage

        committed = self._commit(token, mutate)
        if committed:
            log_service.log_pipeline_stage(token.generation, stage.value, "entered")
        return committed

    def reset_conversation(self) -> None:
        """Forget messages and query history; any in-flight run is invalidated."""
        self.cancel()
        self.history.clear()
        self._state = SessionState(run_id=self._generation)
        if self.on_update:
            self.on_update(self._state)

    def cancel(self) -> None:
        """Invalidate the current run and return to idle."""
        self._generation += 1
        if self._active_task and not self._active_task.done() and self.abort_in_flight:
            self._active_task.cancel()
        self._discard_open_run(self._state)
        self._state.stage = PipelineStage.IDLE
        self._state.run_id = self._generation
        if self.on_update:
            self.on_update(self._state)

    def _discard_open_run(self, state: SessionState) -> None:
        """Drop the user turn and any partial reply of a run that never settled."""
        if self._open_run is None:
            return
        state.messages = [m for m in state.messages if m.run_id != self._open_run]
        self._open_run = None

    # --- runs ---

    def _start_run(self, query: str) -> tuple[RunToken, list[dict[str, str]]]:
        self._generation += 1
        token = RunToken(self._generation)

        previous = self._active_task
        if previous is not None and not previous.done():
            log_service.log_event(
                event_type="run_superseded",
                message="New query submitted while a run was in flight",
                superseded_by=token.generation,
                abort=self.abort_in_flight,
            )
            if self.abort_in_flight:
                previous.cancel()

        initial = PipelineStage.EXTRACTING if self.auto_date else PipelineStage.SEARCHING
        prior_turns: list[dict[str, str]] = []

        def mutate(state: SessionState) -> None:
            self._discard_open_run(state)
            prior_turns.extend(conversation_turns(state.messages))
            state.run_id = token.generation
            state.stage = initial
            state.error = None
            state.parsed = None
            state.search_results = []
            state.temporal_range = None
            state.messages.append(ChatMessage(role="user", content=query, run_id=token.generation))
            self._open_run = token.generation

        self._commit(token, mutate)
        log_service.log_pipeline_stage(token.generation, initial.value, "entered", {"query": query})
        return token, prior_turns

    async def submit(self, query: str) -> RunOutcome:
        """Run the full pipeline for `query`.

        Raises QueryValidationError for a blank query. A run superseded by a
        newer submit resolves to a CANCELLED outcome instead of raising.
        """
        query = validate_query(query)
        history = self.history.as_list()
        token, prior_turns = self._start_run(query)

        task = asyncio.create_task(self._run(token, query, history, prior_turns))
        self._active_task = task
        try:
            return await task
        except asyncio.CancelledError:
            if self.is_current(token):
                # cancelled by our own caller, not by a newer run
                raise
            return self._cancelled(token)

    def _cancelled(self, token: RunToken) -> RunOutcome:
        log_service.log_pipeline_stage(token.generation, "cancelled", "superseded")
        return RunOutcome(run_id=token.generation, status=RunStatus.CANCELLED)

    async def _run(
        self,
        token: RunToken,
        query: str,
        history: list[str],
        prior_turns: list[dict[str, str]],
    ) -> RunOutcome:
        def should_continue() -> bool:
            return self.is_current(token)

        try:
            search_settings = self.search_settings
            if self.auto_date:
                temporal = await self._extract(token, query, history, should_continue)
                if not should_continue():
                    return self._cancelled(token)
                if temporal is not None and temporal.has_constraint:
                    search_settings = search_settings.with_date_range(
                        temporal.start_date, temporal.end_date
                    )

            if not self._set_stage(token, PipelineStage.SEARCHING):
                return self._cancelled(token)
            outcome = await self.search_client.search(
                query, history, search_settings, should_continue=should_continue
            )
            results = outcome.results

            if search_settings.custom_model_mode and results:
                if not self._set_stage(token, PipelineStage.SUMMARIZING):
                    return self._cancelled(token)
                results = await self.summarizer.summarize_all(
                    results, query, history, should_continue=should_continue
                )

            def store_results(state: SessionState) -> None:
                state.search_results = list(results)

            if not self._commit(token, store_results):
                return self._cancelled(token)

            parsed = await self._stream_answer(token, query, results, prior_turns)
            if parsed is None:
                return self._cancelled(token)

            def complete(state: SessionState) -> None:
                state.stage = PipelineStage.IDLE
                self._open_run = None
                self.history.add(query)
                state.history = self.history.as_list()

            if not self._commit(token, complete):
                return self._cancelled(token)
            log_service.log_pipeline_stage(
                token.generation, PipelineStage.IDLE.value, "completed", {"results": len(results)}
            )
            return RunOutcome(
                run_id=token.generation,
                status=RunStatus.COMPLETED,
                parsed=parsed,
                search_results=list(results),
            )

        except RunCancelledError:
            return self._cancelled(token)
        except DeepSexaError as e:
            return self._fail(token, e)
        except Exception as e:
            log_service.logger.exception("Unexpected pipeline failure")
            return self._fail(token, e)

    async def _extract(
        self,
        token: RunToken,
        query: str,
        history: list[str],
        should_continue: Callable[[], bool],
    ) -> TemporalRange | None:
        """Best effort: any failure means "no date constraint"."""
        try:
            temporal = await self.date_range_client.extract_range(
                query, history, should_continue=should_continue
            )
        except RunCancelledError:
            raise
        except Exception as e:
            log_service.log_pipeline_stage(
                token.generation, PipelineStage.EXTRACTING.value, "skipped", {"error": str(e)}
            )
            return None

        def store(state: SessionState) -> None:
            state.temporal_range = temporal

        self._commit(token, store)
        return temporal

    async def _stream_answer(
        self,
        token: RunToken,
        query: str,
        results: list[SearchResult],
        prior_turns: list[dict[str, str]],
    ) -> ParsedMessage | None:
        if not self._set_stage(token, PipelineStage.STREAMING):
            return None

        messages = [*prior_turns, {"role": "user", "content": query}]
        context = build_search_context_message(results)
        if context:
            messages.append({"role": "system", "content": context})

        assistant = ChatMessage(
            role="assistant", content="", search_results=list(results), run_id=token.generation
        )

        def open_message(state: SessionState) -> None:
            state.messages.append(assistant)

        if not self._commit(token, open_message):
            return None

        buffer = ""
        parsed = parse_message_content(buffer)
        started = time.monotonic()
        try:
            async with asyncio.timeout(self.stream_timeout):
                async for chunk in self.chat_stream.stream(messages):
                    buffer += chunk
                    parsed = parse_message_content(buffer)

                    def update(state: SessionState, text: str = buffer, snapshot: ParsedMessage = parsed) -> None:
                        assistant.content = text
                        assistant.parsed = snapshot
                        state.parsed = snapshot

                    if not self._commit(token, update):
                        return None
        except TimeoutError as e:
            raise StreamTimeoutError(
                f"Model stream exceeded {self.stream_timeout:g}s"
            ) from e

        def finish(state: SessionState) -> None:
            assistant.parsed = parsed
            state.parsed = parsed

        self._commit(token, finish)
        log_service.log_pipeline_stage(
            token.generation,
            PipelineStage.STREAMING.value,
            "finished",
            {"chars": len(buffer), "duration_ms": int((time.monotonic() - started) * 1000)},
        )
        return parsed

    def _fail(self, token: RunToken, error: Exception) -> RunOutcome:
        stage = self._state.stage
        detail = str(error) or error.__class__.__name__
        if stage == PipelineStage.STREAMING:
            message = f"Failed to get response from the model: {detail}"
        else:
            message = f"Search failed: {detail}"

        def mutate(state: SessionState) -> None:
            state.error = message
            state.stage = PipelineStage.IDLE
            if state.messages and state.messages[-1].role == "assistant" and not state.messages[-1].content:
                state.messages.pop()
            state.messages.append(
                ChatMessage(role="assistant", content=APOLOGY_MESSAGE, run_id=token.generation)
            )
            self._open_run = None

        if not self._commit(token, mutate):
            return self._cancelled(token)
        log_service.log_pipeline_stage(
            token.generation, stage.value, "failed", {"error": message, "type": error.__class__.__name__}
        )
        return RunOutcome(run_id=token.generation, status=RunStatus.FAILED, error=message)
