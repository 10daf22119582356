"""Backend dispatcher — ToolCall → cache or backend → normalized ToolResult."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Mapping

from sports_proxy.backends.interface import Backend, BackendReply, BackendTransportError
from sports_proxy.cache.store import CacheStore, canonical_json, make_key
from sports_proxy.cache.ttl import TTLPolicy
from sports_proxy.engine.models import ToolCall, ToolResult
from sports_proxy.errors import (
    BackendRejectedError,
    BackendUnavailableError,
    ConfigurationError,
    OrchestratorError,
    UnresolvableToolError,
    sanitize_message,
)
from sports_proxy.tools.registry import ToolRegistry, ToolSpec, normalize_domain
from sports_proxy.tracing.interface import TraceCollector

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class _Transient(Exception):
    """Internal marker: the attempt failed in a way worth one retry."""


class BackendDispatcher:
    """Routes each ToolCall to exactly one backend through a static binding table.

    The table is built once from the registry and the backend map; a tool whose
    backend is not bound fails construction, not a request.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        backends: Mapping[str, Backend],
        cache: CacheStore,
        ttl_policy: TTLPolicy | None = None,
        *,
        timeout: float = 5.0,
        retry_backoff: float = 0.25,
        tracer: TraceCollector | None = None,
    ) -> None:
        missing = registry.backends() - set(backends)
        if missing:
            raise ConfigurationError(f"No backend bound for: {', '.join(sorted(missing))}")

        self._registry = registry
        self._backends = dict(backends)
        self._cache = cache
        self._ttl = ttl_policy or TTLPolicy()
        self._timeout = timeout
        self._backoff = retry_backoff
        self._trace = tracer
        self._bindings: dict[tuple[str, str], tuple[ToolSpec, Backend]] = {
            (domain, spec.name): (spec, self._backends[spec.backend])
            for domain in registry.domains()
            for spec in registry.tools_for(domain)
        }

    @property
    def backends(self) -> dict[str, Backend]:
        return dict(self._backends)

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    async def dispatch(self, tool_call: ToolCall, trace_id: str | None = None) -> ToolResult:
        """Recoverable per-tool failures come back as ``ok=False``; fatal ones propagate."""
        started = time.perf_counter()
        domain = normalize_domain(tool_call.domain)
        binding = self._bindings.get((domain, tool_call.name))

        if binding is None:
            available = ", ".join(s.name for s in self._registry.tools_for(domain)) or "none"
            result = self._failure(
                tool_call,
                UnresolvableToolError(
                    f"Tool '{tool_call.name}' is not available in domain '{domain}'. Available: {available}"
                ),
                started,
            )
            await self._emit(trace_id, result)
            return result

        spec, backend = binding
        try:
            arguments = self._registry.validate_arguments(spec, tool_call.arguments)
            result = await self._cached_or_live(tool_call, spec, backend, arguments, started)
        except OrchestratorError as exc:
            if exc.fatal:
                raise
            result = self._failure(tool_call, exc, started, backend=spec.backend)

        await self._emit(trace_id, result)
        return result

    def cache_key(self, spec: ToolSpec, arguments: dict) -> str:
        # Tool names repeat across domains, so the backend id scopes the key.
        return make_key(f"{spec.backend}.{spec.name}", arguments)

    async def aclose(self) -> None:
        for backend in self._backends.values():
            await backend.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _cached_or_live(
        self,
        tool_call: ToolCall,
        spec: ToolSpec,
        backend: Backend,
        arguments: dict,
        started: float,
    ) -> ToolResult:
        key = self.cache_key(spec, arguments)
        cached = await self._cache_get(key)
        if cached is not None:
            logger.debug("cache hit tool=%s key=%s", spec.name, key)
            return ToolResult(
                call_id=tool_call.call_id,
                name=spec.name,
                ok=True,
                source="cache",
                backend=spec.backend,
                content=cached,
                latency_ms=_elapsed_ms(started),
            )

        operation = arguments[spec.discriminator]
        reply = await self._call_with_retry(backend, operation, arguments)
        content = canonical_json(reply.result)
        await self._cache_set(key, content, self._ttl.ttl_for(spec.name, arguments, spec.discriminator))

        return ToolResult(
            call_id=tool_call.call_id,
            name=spec.name,
            ok=True,
            source="live",
            backend=spec.backend,
            content=content,
            latency_ms=_elapsed_ms(started),
        )

    async def _call_with_retry(self, backend: Backend, operation: str, arguments: dict) -> BackendReply:
        last_error = ""
        for attempt in range(1, MAX_ATTEMPTS + 1):
            t0 = time.perf_counter()
            try:
                reply = await self._attempt(backend, operation, arguments)
                logger.info(
                    "backend=%s operation=%s attempt=%d latency=%.3fs",
                    backend.name, operation, attempt, time.perf_counter() - t0,
                )
                return reply
            except _Transient as exc:
                last_error = str(exc)
                logger.warning(
                    "backend=%s operation=%s attempt=%d transient failure: %s",
                    backend.name, operation, attempt, last_error,
                )
            if attempt < MAX_ATTEMPTS:
                await asyncio.sleep(self._backoff)

        raise BackendUnavailableError(f"{backend.name} unavailable: {last_error}")

    async def _attempt(self, backend: Backend, operation: str, arguments: dict) -> BackendReply:
        try:
            reply = await asyncio.wait_for(backend.call(operation, arguments), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise _Transient(f"timed out after {self._timeout:.1f}s") from exc
        except BackendTransportError as exc:
            if exc.status >= 500:
                raise _Transient(sanitize_message(exc)) from exc
            raise BackendRejectedError(str(exc)) from exc

        if reply.ok:
            return reply
        if reply.status >= 500:
            raise _Transient(sanitize_message(reply.error or f"status {reply.status}"))
        raise BackendRejectedError(reply.error or f"{backend.name} rejected the request ({reply.status})")

    async def _cache_get(self, key: str) -> str | None:
        try:
            return await self._cache.get(key)
        except Exception:
            logger.warning("cache read failed for %s; fetching live", key, exc_info=True)
            return None

    async def _cache_set(self, key: str, content: str, ttl: float) -> None:
        try:
            await self._cache.set(key, content, ttl)
        except Exception:
            logger.warning("cache write failed for %s", key, exc_info=True)

    @staticmethod
    def _failure(
        tool_call: ToolCall,
        error: OrchestratorError,
        started: float,
        backend: str | None = None,
    ) -> ToolResult:
        return ToolResult(
            call_id=tool_call.call_id,
            name=tool_call.name,
            ok=False,
            source="none",
            backend=backend,
            content=canonical_json({"error": {"kind": error.kind, "message": error.message}}),
            error_kind=error.kind,
            error_message=error.message,
            latency_ms=_elapsed_ms(started),
        )

    async def _emit(self, trace_id: str | None, result: ToolResult) -> None:
        if self._trace is None or trace_id is None:
            return
        await self._trace.emit(trace_id, "tool_dispatch", {**result.summary(), "latency_ms": round(result.latency_ms, 2)})


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
