"""JSONL file-based trace collector."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from sports_proxy.tracing.interface import TraceCollector

logger = logging.getLogger(__name__)


class JSONLTraceCollector(TraceCollector):
    """Writes each Turn's events to ``{trace_dir}/{request_id}.jsonl``.

    Events are buffered per request and written once the Turn reaches a
    terminal state, so a Turn never produces a partially written file.
    A request id that would resolve outside ``trace_dir`` is never written.
    """

    def __init__(self, trace_dir: str = "./traces") -> None:
        self._dir = Path(trace_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._root = self._dir.resolve()
        self._buffers: dict[str, list[dict[str, Any]]] = {}

    async def emit(self, trace_id: str, event_type: str, data: dict[str, Any]) -> None:
        entry = {"ts": time.time(), "request_id": trace_id, "event": event_type, **data}
        self._buffers.setdefault(trace_id, []).append(entry)

    async def flush(self, trace_id: str) -> None:
        entries = self._buffers.pop(trace_id, [])
        if not entries:
            return
        path = self.path_for(trace_id)
        if path is None:
            logger.warning("refusing to write trace for unsafe request id %r", trace_id)
            return
        try:
            with open(path, "a", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry, default=str) + "\n")
        except OSError:
            logger.warning("could not write trace file %s", path, exc_info=True)

    def path_for(self, trace_id: str) -> Path | None:
        path = (self._dir / f"{trace_id}.jsonl").resolve()
        if path.parent != self._root:
            return None
        return path
