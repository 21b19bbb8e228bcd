from __future__ import annotations

from collections import deque


class QueryHistory:
    """The last few successfully answered queries, oldest first."""

    def __init__(self, max_size: int = 3):
        self.max_size = max(max_size, 0)
        self._queries: deque[str] = deque(maxlen=self.max_size)

    def add(self, query: str) -> None:
        if self.max_size:
            self._queries.append(query)

    def clear(self) -> None:
        self._queries.clear()

    def as_list(self) -> list[str]:
        return list(self._queries)

    def __len__(self) -> int:
        return len(self._queries)

    def __iter__(self):
        return iter(list(self._queries))
