"""DeepSexa - conversational web search

`serve` runs the collaborator service; `ask` talks to it.
"""

import argparse
import asyncio
import sys

import httpx

from deepsexa.config import settings
from deepsexa.errors import QueryValidationError
from deepsexa.models.schemas import ExternalSummaryContent, SearchSettings, TextContent
from deepsexa.pipeline.coordinator import PipelineCoordinator, RunStatus, SessionState

DIM = "\033[2m"
RESET = "\033[0m"


class TerminalRenderer:
    """Prints the streamed reasoning dimmed, then the answer, as they grow."""

    def __init__(self):
        self.reasoning_len = 0
        self.answer_len = 0
        self.stage = None

    def reset(self):
        self.reasoning_len = 0
        self.answer_len = 0

    def __call__(self, state: SessionState):
        if state.stage != self.stage:
            self.stage = state.stage
            if state.stage.value in ("extracting", "searching", "summarizing"):
                print(f"[~] {state.stage.value}...", file=sys.stderr)

        parsed = state.parsed
        if parsed is None:
            return
        if len(parsed.reasoning) > self.reasoning_len:
            if self.reasoning_len == 0:
                print(f"{DIM}[thinking]", end="")
            sys.stdout.write(DIM + parsed.reasoning[self.reasoning_len:] + RESET)
            self.reasoning_len = len(parsed.reasoning)
        if len(parsed.answer) > self.answer_len:
            if self.answer_len == 0 and self.reasoning_len:
                print("\n")
            sys.stdout.write(parsed.answer[self.answer_len:])
            self.answer_len = len(parsed.answer)
        sys.stdout.flush()


def build_search_settings(args) -> SearchSettings:
    contents = ExternalSummaryContent() if args.custom_model else TextContent(
        max_characters=settings.search_text_max_characters
    )
    return SearchSettings(
        type=args.type,
        num_results=args.num_results,
        livecrawl=args.livecrawl,
        contents=contents,
    )


async def ask_one(coordinator: PipelineCoordinator, renderer: TerminalRenderer, query: str) -> bool:
    renderer.reset()
    try:
        outcome = await coordinator.submit(query)
    except QueryValidationError as e:
        print(f"[!] {e}")
        return False

    print()
    if outcome.status == RunStatus.FAILED:
        print(f"[!] {outcome.error}")
        return False

    if outcome.search_results:
        print("\nSources:")
        for i, result in enumerate(outcome.search_results, 1):
            print(f"  [{i}] {result.title or result.url}")
            print(f"      {result.url}")
    return outcome.status == RunStatus.COMPLETED


async def run_ask(args) -> int:
    renderer = TerminalRenderer()
    timeout = httpx.Timeout(settings.search_timeout_seconds, read=settings.chat_max_duration_seconds)
    async with httpx.AsyncClient(timeout=timeout) as client:
        coordinator = PipelineCoordinator.connect(
            client,
            base_url=args.api_url,
            search_settings=build_search_settings(args),
            auto_date=not args.no_auto_date,
            on_update=renderer,
        )

        if args.query:
            ok = await ask_one(coordinator, renderer, args.query)
            return 0 if ok else 1

        print("Ask anything. Empty line or Ctrl-D to quit, /clear to start over.")
        while True:
            try:
                query = await asyncio.to_thread(input, "\n> ")
            except EOFError:
                return 0
            query = query.strip()
            if not query:
                return 0
            if query == "/clear":
                coordinator.reset_conversation()
                print("[*] Conversation cleared")
                continue
            await ask_one(coordinator, renderer, query)


def run_serve(args):
    import uvicorn

    uvicorn.run("deepsexa.main:app", host=args.host, port=args.port, reload=args.reload)


def main():
    parser = argparse.ArgumentParser(description="DeepSexa conversational web search")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the search/date/summarize/chat service")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    ask = sub.add_parser("ask", help="Ask a question (interactive when no query is given)")
    ask.add_argument("query", nargs="?", help="Question to ask")
    ask.add_argument("--api-url", default=settings.api_base_url, help="Service base URL")
    ask.add_argument("--no-auto-date", action="store_true", help="Skip date range extraction")
    ask.add_argument("--custom-model", action="store_true", help="Summarize each result before answering")
    ask.add_argument("--num-results", "-n", type=int, default=5, choices=range(1, 11), metavar="1-10")
    ask.add_argument("--type", choices=["auto", "keyword", "neural"], default="auto")
    ask.add_argument("--livecrawl", choices=["never", "fallback", "always"], default="never")

    args = parser.parse_args()

    if args.command == "serve":
        run_serve(args)
    else:
        sys.exit(asyncio.run(run_ask(args)))


if __name__ == "__main__":
    main()
