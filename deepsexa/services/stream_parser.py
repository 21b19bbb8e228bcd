"""Split a streamed model reply into its reasoning and final-answer segments.

The whole buffer is re-parsed on every chunk. That is O(n) per chunk, which is
fine for model-sized outputs and keeps the parser free of hidden state.
"""
from __future__ import annotations

from dataclasses import dataclass

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


@dataclass(frozen=True)
class ParsedMessage:
    reasoning: str = ""
    answer: str = ""
    complete: bool = True

    def to_dict(self) -> dict[str, object]:
        return {"reasoning": self.reasoning, "answer": self.answer, "complete": self.complete}


def parse_message_content(buffer: str) -> ParsedMessage:
    # Only the first closing marker is the boundary; later ones belong to the answer.
    if THINK_CLOSE in buffer:
        reasoning, answer = buffer.split(THINK_CLOSE, 1)
        return ParsedMessage(
            reasoning=reasoning.replace(THINK_OPEN, "", 1).strip(),
            answer=answer.strip(),
            complete=True,
        )

    if THINK_OPEN in buffer:
        _, reasoning = buffer.split(THINK_OPEN, 1)
        return ParsedMessage(reasoning=reasoning.strip(), answer="", complete=False)

    return ParsedMessage(reasoning="", answer=buffer, complete=True)
