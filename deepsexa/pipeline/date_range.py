from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Sequence

from deepsexa.models.schemas import DateRangeResponse
from deepsexa.pipeline.base import CollaboratorClient


@dataclass(frozen=True)
class TemporalRange:
    start_date: date | None = None
    end_date: date | None = None
    confidence: str = "low"
    rationale: str = ""

    @property
    def has_constraint(self) -> bool:
        return self.start_date is not None or self.end_date is not None


class DateRangeClient(CollaboratorClient):
    path = "/api/parse-date"

    async def extract_range(
        self,
        query: str,
        history: Sequence[str] = (),
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> TemporalRange:
        """Temporal range implied by the query; raises on transport or shape errors."""
        payload = await self.post_json(
            {"query": query, "previousQueries": list(history)},
            should_continue=should_continue,
        )
        parsed: DateRangeResponse = self.validate(DateRangeResponse, payload)
        return TemporalRange(
            start_date=parsed.date_range.start_date,
            end_date=parsed.date_range.end_date,
            confidence=parsed.confidence,
            rationale=parsed.date_range.rationale,
        )
