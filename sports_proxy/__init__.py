"""sports_proxy — conversation orchestration and tool dispatch for a sports assistant.

Usage::

    from sports_proxy import create_orchestrator
    from sports_proxy.engine.models import TurnRequest

    orchestrator = create_orchestrator()
    async for event in orchestrator.handle(TurnRequest(input="Yankees record?", domain="mlb")):
        print(event)
"""

from __future__ import annotations

from typing import Mapping

from dotenv import load_dotenv

load_dotenv()  # reads .env into os.environ (no-op if file missing)

from sports_proxy.backends.demo import demo_backends
from sports_proxy.backends.interface import Backend
from sports_proxy.cache.store import CacheStore, MemoryCacheStore
from sports_proxy.cache.ttl import TTLPolicy
from sports_proxy.config import Settings, get_settings
from sports_proxy.engine.conversation import ConversationStateTracker
from sports_proxy.engine.llm import DemoMockModelClient, ModelClient, OpenAIResponsesClient
from sports_proxy.engine.models import EngineEvent, EngineEventType, TurnRequest, TurnResponse
from sports_proxy.engine.orchestrator import Orchestrator
from sports_proxy.prompts.assembler import InstructionAssembler
from sports_proxy.prompts.preferences import InMemoryPreferenceStore, PreferenceStore
from sports_proxy.tools.catalog import build_default_registry
from sports_proxy.tools.dispatcher import BackendDispatcher
from sports_proxy.tools.registry import ToolRegistry
from sports_proxy.tracing.interface import InMemoryTraceCollector, TraceCollector
from sports_proxy.tracing.jsonl_tracer import JSONLTraceCollector

__all__ = [
    "EngineEvent",
    "EngineEventType",
    "Orchestrator",
    "TurnRequest",
    "TurnResponse",
    "create_orchestrator",
]


def create_orchestrator(
    settings: Settings | None = None,
    *,
    model: ModelClient | None = None,
    backends: Mapping[str, Backend] | None = None,
    registry: ToolRegistry | None = None,
    cache: CacheStore | None = None,
    preferences: PreferenceStore | None = None,
    tracer: TraceCollector | None = None,
) -> Orchestrator:
    """Wire all components and return a ready-to-use Orchestrator.

    Every collaborator may be injected; anything left out is built from
    *settings* (environment variables, see :mod:`sports_proxy.config`).
    Without ``OPENAI_API_KEY`` (or with ``USE_MOCK_LLM=1``) the demo model
    is used; without explicit backends the offline demo backends are bound.
    Raises ConfigurationError when the wiring is invalid.
    """
    settings = settings or get_settings()

    # -- components --
    registry = registry or build_default_registry()
    cache = cache or MemoryCacheStore(max_entries=settings.cache.max_entries)
    ttl_policy = TTLPolicy(
        default_ttl=settings.cache.default_ttl,
        live_ttl=settings.cache.live_ttl,
    ).with_overrides(settings.cache.ttl_overrides)

    if tracer is None:
        tracer = JSONLTraceCollector(settings.trace_dir) if settings.trace_dir else InMemoryTraceCollector()

    dispatcher = BackendDispatcher(
        registry,
        backends if backends is not None else demo_backends(),
        cache,
        ttl_policy,
        timeout=settings.dispatch.backend_timeout,
        retry_backoff=settings.dispatch.retry_backoff,
        tracer=tracer,
    )
    assembler = InstructionAssembler(
        max_chars=settings.prompts.max_instruction_chars,
        max_preference_chars=settings.prompts.max_preference_chars,
        cache=cache,
        cache_ttl=settings.cache.instruction_ttl,
        domains=registry.domains(),
    )
    conversations = ConversationStateTracker(retention=settings.conversation.turn_retention)

    if model is None:
        api_key = settings.model.api_key.get_secret_value() if settings.model.api_key else None
        if settings.model.use_mock or not api_key:
            model = DemoMockModelClient()
        else:
            model = OpenAIResponsesClient(
                api_key=api_key,
                model=settings.model.name,
                temperature=settings.model.temperature,
                max_output_tokens=settings.model.max_output_tokens,
                timeout=settings.model.call_timeout,
            )

    return Orchestrator(
        assembler=assembler,
        registry=registry,
        dispatcher=dispatcher,
        conversations=conversations,
        model=model,
        preferences=preferences if preferences is not None else InMemoryPreferenceStore(),
        cache=cache,
        tracer=tracer,
        max_tool_rounds=settings.dispatch.max_tool_rounds,
        model_timeout=settings.model.call_timeout,
        turn_budget=settings.dispatch.turn_budget,
        store_timeout=settings.dispatch.store_timeout,
        max_input_chars=settings.max_input_chars,
    )
