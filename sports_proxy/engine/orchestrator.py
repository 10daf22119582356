"""Orchestrator — drives one Turn from request to completed answer or typed failure."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable

from sports_proxy.cache.store import CacheStore
from sports_proxy.engine.conversation import ConversationStateTracker
from sports_proxy.engine.llm import ModelClient, function_call_outputs
from sports_proxy.engine.models import (
    ConversationContext,
    EngineEvent,
    EngineEventType,
    ModelRequest,
    ModelResult,
    ModelStreamEventType,
    ToolCall,
    ToolResult,
    TurnRequest,
    TurnResponse,
)
from sports_proxy.errors import (
    ConversationStateMiss,
    InternalError,
    OrchestratorError,
    ToolCallLoopExceededError,
    TurnTimeoutError,
    TurnValidationError,
    UpstreamModelError,
)
from sports_proxy.prompts.assembler import InstructionAssembler, UserContext
from sports_proxy.prompts.preferences import (
    PreferenceStore,
    UserPreferences,
    extract_insights,
    facts_from_hints,
    merge_preferences,
)
from sports_proxy.tools.dispatcher import BackendDispatcher
from sports_proxy.tools.registry import ToolRegistry, normalize_domain
from sports_proxy.tracing.interface import InMemoryTraceCollector, TraceCollector

logger = logging.getLogger(__name__)


@dataclass
class _TurnState:
    """Mutable bookkeeping for one Turn. Never shared between Turns."""

    turn: TurnRequest
    domain: str
    deadline: float
    queue: asyncio.Queue | None = None
    sequence: int = 0
    rounds: int = 0
    disconnected: bool = False
    context: ConversationContext = field(default_factory=ConversationContext)
    tool_results: list[ToolResult] = field(default_factory=list)

    @property
    def request_id(self) -> str:
        return self.turn.request_id


class Orchestrator:
    """Public API::

        response = await orchestrator.run(turn)            # one payload
        async for event in orchestrator.handle(turn): ...  # typed event stream
    """

    def __init__(
        self,
        *,
        assembler: InstructionAssembler,
        registry: ToolRegistry,
        dispatcher: BackendDispatcher,
        conversations: ConversationStateTracker,
        model: ModelClient,
        preferences: PreferenceStore | None = None,
        cache: CacheStore | None = None,
        tracer: TraceCollector | None = None,
        max_tool_rounds: int = 4,
        model_timeout: float = 30.0,
        turn_budget: float = 60.0,
        store_timeout: float = 2.0,
        max_input_chars: int = 4000,
    ) -> None:
        self._assembler = assembler
        self._registry = registry
        self._dispatcher = dispatcher
        self._conversations = conversations
        self._model = model
        self._preferences = preferences
        self._cache = cache
        self._trace = tracer or InMemoryTraceCollector()
        self._max_rounds = max_tool_rounds
        self._model_timeout = model_timeout
        self._turn_budget = turn_budget
        self._store_timeout = store_timeout
        self._max_input_chars = max_input_chars
        self._background: set[asyncio.Task] = set()

    @property
    def model_name(self) -> str:
        return self._model.name

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def cache(self) -> CacheStore | None:
        return self._cache

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def validate(self, turn: TurnRequest) -> None:
        """Checks that need configuration; shape checks live on TurnRequest."""
        if len(turn.input) > self._max_input_chars:
            raise TurnValidationError(
                f"input is {len(turn.input)} characters; the limit is {self._max_input_chars}"
            )
        if turn.continue_conversation and not turn.user_id:
            raise TurnValidationError("continue_conversation requires user_id")

    async def run(self, turn: TurnRequest) -> TurnResponse:
        """Non-streaming Turn. Raises OrchestratorError on a fatal failure."""
        state = self._new_state(turn)
        try:
            return await self._execute(state, stream=False)
        except OrchestratorError as exc:
            await self._record_failure(state, exc)
            raise
        except Exception as exc:
            logger.exception("request_id=%s unexpected failure", turn.request_id)
            error = InternalError()
            await self._record_failure(state, error)
            raise error from exc
        finally:
            await self._trace.flush(turn.request_id)

    async def handle(self, turn: TurnRequest) -> AsyncIterator[EngineEvent]:
        """Streaming Turn. Always ends with ``response.completed`` or ``error``.

        Closing the iterator early counts as a client disconnect: in-flight
        dispatches still finish and fill the cache, nothing else runs.
        """
        state = self._new_state(turn)
        state.queue = asyncio.Queue()
        producer = self._spawn(self._produce(state))
        try:
            while True:
                event = await state.queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not producer.done():
                state.disconnected = True
                producer.cancel()
                logger.info("request_id=%s client disconnected; abandoning turn", turn.request_id)

    async def reset_conversation(self, conversation_key: str) -> bool:
        return await self._conversations.reset(conversation_key)

    async def wait_idle(self) -> None:
        """Wait for background work (detached dispatches, preference learning)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def describe(self) -> dict[str, Any]:
        return {
            "model": self.model_name,
            "domains": {d: [s.name for s in self._registry.tools_for(d)] for d in self._registry.domains()},
            "cache": self._cache.stats() if self._cache else {},
        }

    # ------------------------------------------------------------------
    # Turn pipeline
    # ------------------------------------------------------------------

    def _new_state(self, turn: TurnRequest) -> _TurnState:
        return _TurnState(
            turn=turn,
            domain=normalize_domain(turn.domain),
            deadline=time.monotonic() + self._turn_budget,
        )

    async def _produce(self, state: _TurnState) -> None:
        try:
            await self._execute(state, stream=True)
        except OrchestratorError as exc:
            await self._record_failure(state, exc)
        except Exception:
            logger.exception("request_id=%s unexpected failure", state.request_id)
            await self._record_failure(state, InternalError())
        finally:
            await self._trace.flush(state.request_id)
            if state.queue is not None:
                state.queue.put_nowait(None)

    async def _execute(self, state: _TurnState, *, stream: bool) -> TurnResponse:
        turn = state.turn
        t_start = time.perf_counter()

        # 1. Received ----------------------------------------------------
        self.validate(turn)
        await self._emit(state, EngineEventType.CREATED, {"domain": state.domain})

        conversation_key = turn.user_id if turn.continue_conversation else None
        state.context = await self._continue_conversation(state, conversation_key)
        if state.context.missed:
            await self._recover(state, ConversationStateMiss(
                "prior turn unknown or expired; starting a fresh conversation",
                detail={"previous_turn_id": turn.previous_turn_id, "conversation_key": conversation_key},
            ))

        # 2. InstructionsAssembled ----------------------------------------
        prefs = await self._load_preferences(state)
        instructions = await self._within_budget(
            self._assembler.assemble_cached(state.domain, UserContext(user_id=turn.user_id, preferences=prefs)),
            None, state, "instruction assembly",
        )
        await self._trace.emit(state.request_id, "assemble", {
            "domain": state.domain,
            "chars": len(instructions),
            "has_preferences": prefs is not None and not prefs.is_empty(),
        })

        # 3. ToolsSelected -------------------------------------------------
        tools = self._registry.schemas_for(state.domain)
        tool_names = [t["name"] for t in tools]
        await self._trace.emit(state.request_id, "tools_selected", {"tools": tool_names})
        await self._emit(state, EngineEventType.IN_PROGRESS, {
            "tools": tool_names,
            "continued_from": state.context.previous_response_id,
            "conversation_miss": state.context.missed,
        })

        # 4. ModelInvoked → (ToolCallsPending → Dispatching → ModelReinvoked)*
        request = ModelRequest(
            instructions=instructions,
            input=turn.input,
            tools=tools,
            previous_response_id=state.context.previous_response_id,
        )
        result = await self._call_model(request, state, stream)
        while result.tool_calls:
            if state.rounds >= self._max_rounds:
                raise ToolCallLoopExceededError(
                    f"model still requested tools after {self._max_rounds} dispatch rounds"
                )
            state.rounds += 1
            results = await self._dispatch_round(state, result)
            if state.disconnected:
                raise asyncio.CancelledError()
            request = ModelRequest(
                instructions=instructions,
                input=function_call_outputs([(r.call_id, r.content) for r in results]),
                tools=tools,
                previous_response_id=result.id,
            )
            result = await self._call_model(request, state, stream)

        # 5. Completed -------------------------------------------------------
        await self._record_turn(state, result.id)
        response = TurnResponse(
            id=result.id,
            request_id=state.request_id,
            domain=state.domain,
            output_text=result.text,
            tool_results=[r.summary() for r in state.tool_results],
            continued_from=state.context.previous_response_id,
            conversation_miss=state.context.missed,
            rounds=state.rounds,
            usage=result.usage,
        )
        await self._trace.emit(state.request_id, "turn_done", {
            "response_id": result.id,
            "rounds": state.rounds,
            "total_latency_ms": round((time.perf_counter() - t_start) * 1000, 2),
        })
        await self._emit(state, EngineEventType.COMPLETED, {"response": response.model_dump(mode="json")})

        if turn.user_id and self._preferences is not None:
            self._spawn(self._learn(turn.user_id, turn.input, state.domain))
        return response

    # ------------------------------------------------------------------
    # Model calls
    # ------------------------------------------------------------------

    async def _call_model(self, request: ModelRequest, state: _TurnState, stream: bool) -> ModelResult:
        call = self._consume_stream(request, state) if stream else self._model.create(request)
        t0 = time.perf_counter()
        result = await self._bounded(call, self._model_timeout, state, "model call")
        await self._trace.emit(state.request_id, "model_call", {
            "round": state.rounds,
            "response_id": result.id,
            "tool_calls": len(result.tool_calls),
            "latency_ms": round((time.perf_counter() - t0) * 1000, 2),
        })
        return result

    async def _consume_stream(self, request: ModelRequest, state: _TurnState) -> ModelResult:
        result: ModelResult | None = None
        streamed_calls = []
        async for event in self._model.stream(request):
            if event.type == ModelStreamEventType.TEXT_DELTA and event.delta:
                await self._emit(state, EngineEventType.TEXT_DELTA, {"delta": event.delta})
            elif event.type == ModelStreamEventType.TOOL_CALL and event.tool_call:
                streamed_calls.append(event.tool_call)
            elif event.type == ModelStreamEventType.COMPLETED:
                result = event.result
            elif event.type == ModelStreamEventType.ERROR:
                raise UpstreamModelError(event.error or "model stream reported an error")
        if result is None:
            raise UpstreamModelError("model stream ended without a completed response")
        if not result.tool_calls and streamed_calls:
            result = result.model_copy(update={"tool_calls": streamed_calls})
        return result

    async def _bounded(self, awaitable: Awaitable, timeout: float, state: _TurnState, what: str):
        remaining = state.deadline - time.monotonic()
        if remaining <= 0:
            _close(awaitable)
            raise TurnTimeoutError(f"turn exceeded its {self._turn_budget:.0f}s budget before {what}")
        bound = min(timeout, remaining)
        try:
            return await asyncio.wait_for(awaitable, timeout=bound)
        except asyncio.TimeoutError as exc:
            if bound < timeout:
                raise TurnTimeoutError(f"turn exceeded its {self._turn_budget:.0f}s budget during {what}") from exc
            raise UpstreamModelError(f"{what} timed out after {timeout:g}s") from exc
        except OrchestratorError:
            raise
        except Exception as exc:
            raise UpstreamModelError(f"{what} failed: {type(exc).__name__}: {exc}") from exc

    async def _within_budget(self, awaitable: Awaitable, timeout: float | None, state: _TurnState, what: str):
        """Await a store call under its own *timeout* and the remaining Turn budget.

        Running out of budget raises TurnTimeoutError; hitting *timeout* first
        raises ``asyncio.TimeoutError`` for the caller to degrade on.
        """
        remaining = state.deadline - time.monotonic()
        if remaining <= 0:
            _close(awaitable)
            raise TurnTimeoutError(f"turn exceeded its {self._turn_budget:g}s budget before {what}")
        bound = remaining if timeout is None else min(timeout, remaining)
        try:
            return await asyncio.wait_for(awaitable, timeout=bound)
        except asyncio.TimeoutError as exc:
            if timeout is None or bound < timeout:
                raise TurnTimeoutError(f"turn exceeded its {self._turn_budget:g}s budget during {what}") from exc
            raise

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch_round(self, state: _TurnState, result: ModelResult) -> list[ToolResult]:
        calls = [
            ToolCall(call_id=c.call_id, name=c.name, arguments=c.arguments, domain=state.domain)
            for c in result.tool_calls
        ]
        for call in calls:
            await self._emit(state, EngineEventType.TOOL_CALL_STARTED, {
                "call_id": call.call_id,
                "name": call.name,
                "arguments": call.arguments,
                "round": state.rounds,
            })

        # Dispatches run detached so a disconnect or timeout never aborts them.
        tasks = [self._spawn(self._dispatcher.dispatch(call, state.request_id)) for call in calls]
        gathered = asyncio.gather(*tasks)
        remaining = state.deadline - time.monotonic()
        try:
            results = await asyncio.wait_for(asyncio.shield(gathered), timeout=max(remaining, 0))
        except asyncio.TimeoutError as exc:
            raise TurnTimeoutError(f"turn exceeded its {self._turn_budget:.0f}s budget during tool dispatch") from exc

        state.tool_results.extend(results)
        for item in results:
            await self._emit(state, EngineEventType.TOOL_CALL_COMPLETED, item.summary())
        return results

    # ------------------------------------------------------------------
    # Conversation state
    # ------------------------------------------------------------------

    async def _continue_conversation(self, state: _TurnState, conversation_key: str | None) -> ConversationContext:
        turn = state.turn
        try:
            return await self._within_budget(
                self._conversations.continue_from(turn.previous_turn_id, conversation_key),
                self._store_timeout, state, "conversation lookup",
            )
        except asyncio.TimeoutError:
            logger.warning("request_id=%s conversation store timed out; starting fresh", state.request_id)
            referenced = bool(turn.previous_turn_id or conversation_key)
            return ConversationContext(conversation_key=conversation_key, missed=referenced)

    async def _record_turn(self, state: _TurnState, turn_id: str) -> None:
        try:
            await self._within_budget(
                self._conversations.record(turn_id, state.turn.user_id),
                self._store_timeout, state, "conversation record",
            )
        except asyncio.TimeoutError:
            logger.warning("request_id=%s conversation store timed out; turn %s not recorded", state.request_id, turn_id)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def _load_preferences(self, state: _TurnState) -> UserPreferences | None:
        turn = state.turn
        hints = facts_from_hints(turn.memories) if turn.memories else None
        if not turn.user_id or self._preferences is None:
            return hints
        try:
            prefs = await self._within_budget(
                self._preferences.get(turn.user_id), self._store_timeout, state, "preference lookup"
            )
        except Exception:
            logger.warning("preferences unavailable for user=%s; continuing without", turn.user_id, exc_info=True)
            return hints
        if hints is None:
            return prefs
        prefs = merge_preferences(prefs, hints)
        try:
            await self._within_budget(
                self._preferences.save(turn.user_id, prefs), self._store_timeout, state, "preference save"
            )
        except Exception:
            logger.warning("could not save memory hints for user=%s", turn.user_id, exc_info=True)
        return prefs

    async def _learn(self, user_id: str, text: str, domain: str) -> None:
        insights = extract_insights(text, domain)
        if insights.is_empty():
            return
        try:
            current = await asyncio.wait_for(self._preferences.get(user_id), timeout=self._store_timeout)
            await asyncio.wait_for(
                self._preferences.save(user_id, merge_preferences(current, insights)), timeout=self._store_timeout
            )
        except Exception:
            logger.warning("preference update failed for user=%s", user_id, exc_info=True)

    # ------------------------------------------------------------------
    # Events and failure
    # ------------------------------------------------------------------

    async def _emit(self, state: _TurnState, event_type: EngineEventType, data: dict[str, Any]) -> None:
        if state.queue is None or state.disconnected:
            return
        state.sequence += 1
        state.queue.put_nowait(
            EngineEvent(type=event_type, sequence=state.sequence, request_id=state.request_id, data=data)
        )

    async def _recover(self, state: _TurnState, error: OrchestratorError) -> None:
        """Record a recoverable classification and carry on; fatal ones end the Turn."""
        if error.fatal:
            raise error
        logger.info("request_id=%s recovered kind=%s: %s", state.request_id, error.kind, error.message)
        await self._trace.emit(state.request_id, error.kind, {"message": error.message, **error.detail})

    async def _record_failure(self, state: _TurnState, error: OrchestratorError) -> None:
        logger.warning("request_id=%s turn failed kind=%s: %s", state.request_id, error.kind, error.message)
        await self._trace.emit(state.request_id, "turn_failed", {
            "kind": error.kind,
            "message": error.message,
            "rounds": state.rounds,
        })
        await self._emit(state, EngineEventType.ERROR, error.to_payload(state.request_id))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task


def _close(awaitable: Awaitable) -> None:
    close = getattr(awaitable, "close", None)
    if close is not None:
        close()
