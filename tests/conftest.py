"""Shared fixtures for sports_proxy tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from sports_proxy.backends.demo import demo_backends
from sports_proxy.backends.interface import Backend, BackendReply
from sports_proxy.cache.store import MemoryCacheStore
from sports_proxy.cache.ttl import TTLPolicy
from sports_proxy.engine.conversation import ConversationStateTracker
from sports_proxy.engine.orchestrator import Orchestrator
from sports_proxy.prompts.assembler import InstructionAssembler
from sports_proxy.prompts.preferences import InMemoryPreferenceStore
from sports_proxy.tools.catalog import build_default_registry
from sports_proxy.tools.dispatcher import BackendDispatcher
from sports_proxy.tracing.interface import InMemoryTraceCollector


class FakeClock:
    """Manually advanced clock for TTL and retention tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedBackend(Backend):
    """Answers from a script of replies; an exception entry is raised instead.

    The last entry repeats once the script runs out.
    """

    def __init__(self, name: str, replies: list[BackendReply | Exception], delay: float = 0.0) -> None:
        self._name = name
        self._replies = list(replies)
        self._delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def name(self) -> str:
        return self._name

    async def call(self, operation: str, arguments: dict[str, Any]) -> BackendReply:
        self.calls.append((operation, arguments))
        if self._delay:
            await asyncio.sleep(self._delay)
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoryCacheStore(max_entries=100, clock=clock)


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def tracer():
    return InMemoryTraceCollector()


@pytest.fixture
def make_backend():
    return ScriptedBackend


@pytest.fixture
def preference_store():
    return InMemoryPreferenceStore()


@pytest.fixture
def build_orchestrator(registry, cache, tracer, clock, preference_store):
    """Factory: ``build_orchestrator(model, backends={...}, **orchestrator_options)``.

    Demo backends are bound unless replaced through *backends*.
    """

    def _build(model, backends: dict[str, Backend] | None = None, backend_timeout: float = 0.5, **options):
        bound = demo_backends()
        bound.update(backends or {})
        dispatcher = BackendDispatcher(
            registry,
            bound,
            cache,
            TTLPolicy(),
            timeout=backend_timeout,
            retry_backoff=0,
            tracer=tracer,
        )
        settings = dict(
            preferences=preference_store,
            conversations=ConversationStateTracker(clock=clock),
            max_tool_rounds=4,
            model_timeout=5.0,
            turn_budget=10.0,
        )
        settings.update(options)
        return Orchestrator(
            assembler=InstructionAssembler(cache=cache, domains=registry.domains()),
            registry=registry,
            dispatcher=dispatcher,
            model=model,
            cache=cache,
            tracer=tracer,
            **settings,
        )

    return _build
