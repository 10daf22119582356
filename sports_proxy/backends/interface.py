"""Backend ABC — the single operation-dispatch entry point every data service exposes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class BackendReply(BaseModel):
    """Wire shape of a backend answer: ``{result}`` on success, ``{error}`` otherwise."""

    result: Any = None
    error: str | None = None
    status: int = 200

    @property
    def ok(self) -> bool:
        return self.error is None and self.status < 400


class BackendTransportError(Exception):
    """The backend could not be reached or answered with a transport-level failure."""

    def __init__(self, message: str, status: int = 503) -> None:
        super().__init__(message)
        self.status = status


class Backend(ABC):
    """A data service reachable through ``call(operation, arguments)``."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def call(self, operation: str, arguments: dict[str, Any]) -> BackendReply: ...

    async def aclose(self) -> None:
        """Release transport resources. Default: nothing to release."""
