"""HTTP backend — posts ``{operation, arguments}`` to a service endpoint with httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sports_proxy.backends.interface import Backend, BackendReply, BackendTransportError

logger = logging.getLogger(__name__)


class HttpBackend(Backend):
    """Backend reached over HTTP (a service binding or internal URL).

    Timeouts are enforced by the dispatcher; the client-level timeout here is
    only an upper bound for stuck connections.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._name = name
        self._url = base_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Accept": "application/json", **(headers or {})}

    @property
    def name(self) -> str:
        return self._name

    async def call(self, operation: str, arguments: dict[str, Any]) -> BackendReply:
        try:
            response = await self._client.post(
                self._url,
                json={"operation": operation, "arguments": arguments},
                headers=self._headers,
            )
        except httpx.TimeoutException as exc:
            raise BackendTransportError(f"{self._name} timed out", status=504) from exc
        except httpx.HTTPError as exc:
            raise BackendTransportError(f"{self._name} unreachable: {type(exc).__name__}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"result": body}

        if response.status_code >= 400 or "error" in body:
            error = body.get("error") or response.reason_phrase or "backend error"
            if isinstance(error, dict):
                error = error.get("message") or str(error)
            status = response.status_code if response.status_code >= 400 else 500
            logger.debug("backend=%s operation=%s status=%d", self._name, operation, status)
            return BackendReply(error=str(error), status=status)

        return BackendReply(result=body.get("result", body))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
