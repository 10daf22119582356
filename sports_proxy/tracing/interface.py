"""TraceCollector ABC plus an in-memory collector used by tests and the CLI."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any


class TraceCollector(ABC):
    """Collects structured per-Turn trace events, keyed by request id."""

    @abstractmethod
    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None: ...

    @abstractmethod
    async def flush(self, trace_id: str) -> None: ...


class InMemoryTraceCollector(TraceCollector):
    """Keeps the events of the most recent ``max_traces`` Turns.

    ``flush`` only marks a trace as finished; the oldest trace is evicted
    when a new one would exceed the cap.
    """

    def __init__(self, max_traces: int = 1000) -> None:
        self.events: dict[str, list[dict[str, Any]]] = {}
        self.flushed: set[str] = set()
        self._max_traces = max_traces

    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None:
        if trace_id not in self.events:
            while len(self.events) >= self._max_traces:
                oldest = next(iter(self.events))
                del self.events[oldest]
                self.flushed.discard(oldest)
            self.events[trace_id] = []
        self.events[trace_id].append({"ts": time.time(), "event": event_type, **data})

    async def flush(self, trace_id: str) -> None:
        if trace_id in self.events:
            self.flushed.add(trace_id)

    def names(self, trace_id: str) -> list[str]:
        return [e["event"] for e in self.events.get(trace_id, [])]
