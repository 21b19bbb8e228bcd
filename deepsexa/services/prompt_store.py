"""Prompt text for the date parser, summarizer and chat routes.

Prompts live in `deepsexa/prompts/prompts.json` under dotted keys such as
`chat.search_context`. Long prompts are stored one line per list item and are
rendered with `string.Template`, so placeholders look like `$query`.
"""
from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    """JSON prompt catalog, reloaded when the file on disk changes."""

    def __init__(self, path: Path = PROMPTS_PATH):
        self.path = Path(path)
        self._entries: dict[str, Any] | None = None
        self._loaded_mtime_ns: int | None = None

    def entries(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._entries is None or self._loaded_mtime_ns != mtime_ns:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError(f"Prompt catalog {self.path} must be a JSON object.")
            self._entries = payload
            self._loaded_mtime_ns = mtime_ns
        return self._entries

    def keys(self) -> list[str]:
        found: list[str] = []

        def walk(node: Any, prefix: str) -> None:
            if isinstance(node, dict):
                for name, child in node.items():
                    walk(child, f"{prefix}.{name}" if prefix else name)
            else:
                found.append(prefix)

        walk(self.entries(), "")
        return sorted(found)

    def text(self, key: str) -> str:
        node: Any = self.entries()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if isinstance(node, list):
            node = "\n".join(str(line) for line in node)
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string or list of lines: {key}")
        return node

    def render(self, key: str, **values: Any) -> str:
        values.setdefault("today_iso", date.today().isoformat())
        template = Template(self.text(key))
        try:
            return template.substitute(**values)
        except KeyError as exc:
            raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    """Render a catalog prompt; `$today_iso` defaults to the current date."""
    return catalog.render(key, **values)
