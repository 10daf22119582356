"""In-process backend — an operation table of async handlers, no network hop."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from sports_proxy.backends.interface import Backend, BackendReply

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


class OperationError(Exception):
    """Raised by a handler to answer with an ``{error}`` reply and a status code."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


class InProcessBackend(Backend):
    """Dispatches ``operation`` to a handler through a static lookup table."""

    def __init__(self, name: str, handlers: dict[str, Handler]) -> None:
        self._name = name
        self._handlers = dict(handlers)

    @property
    def name(self) -> str:
        return self._name

    @property
    def operations(self) -> list[str]:
        return sorted(self._handlers)

    async def call(self, operation: str, arguments: dict[str, Any]) -> BackendReply:
        handler = self._handlers.get(operation)
        if handler is None:
            return BackendReply(
                error=f"Unknown operation '{operation}'. Available: {', '.join(self.operations)}",
                status=400,
            )
        try:
            result = await handler(arguments)
        except OperationError as exc:
            return BackendReply(error=str(exc), status=exc.status)
        except Exception as exc:
            logger.exception("backend=%s operation=%s handler failed", self._name, operation)
            return BackendReply(error=f"{type(exc).__name__}: {exc}", status=500)
        return BackendReply(result=result)
