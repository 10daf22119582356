"""Conversation state — store ABC, in-memory store, and the continuity tracker."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

from pydantic import BaseModel

from sports_proxy.engine.models import ConversationContext

logger = logging.getLogger(__name__)


class ConversationState(BaseModel):
    conversation_key: str
    last_turn_id: str
    updated_at: float


class ConversationStore(ABC):
    """Async persistence for conversation state and known turn ids.

    Swap to Redis/Postgres by implementing this ABC.
    """

    @abstractmethod
    async def get(self, conversation_key: str) -> ConversationState | None: ...

    @abstractmethod
    async def put(self, state: ConversationState) -> None: ...

    @abstractmethod
    async def delete(self, conversation_key: str) -> bool: ...

    @abstractmethod
    async def remember_turn(self, turn_id: str, recorded_at: float) -> None: ...

    @abstractmethod
    async def turn_recorded_at(self, turn_id: str) -> float | None: ...

    @abstractmethod
    async def forget_turn(self, turn_id: str) -> None: ...


class InMemoryConversationStore(ConversationStore):
    """Dict-backed store — suitable for single-process dev/test.

    Known turn ids are kept in recording order. Ids older than *retention*
    are pruned on every insert and at most *max_turns* are kept.
    """

    def __init__(self, *, retention: float | None = None, max_turns: int = 10_000) -> None:
        self._states: dict[str, ConversationState] = {}
        self._turns: dict[str, float] = {}
        self._retention = retention
        self._max_turns = max_turns

    async def get(self, conversation_key: str) -> ConversationState | None:
        return self._states.get(conversation_key)

    async def put(self, state: ConversationState) -> None:
        self._states[state.conversation_key] = state

    async def delete(self, conversation_key: str) -> bool:
        return self._states.pop(conversation_key, None) is not None

    async def remember_turn(self, turn_id: str, recorded_at: float) -> None:
        self._turns.pop(turn_id, None)
        self._turns[turn_id] = recorded_at
        if self._retention is not None:
            cutoff = recorded_at - self._retention
            while self._turns:
                oldest = next(iter(self._turns))
                if self._turns[oldest] > cutoff:
                    break
                del self._turns[oldest]
        while len(self._turns) > self._max_turns:
            del self._turns[next(iter(self._turns))]

    async def turn_recorded_at(self, turn_id: str) -> float | None:
        return self._turns.get(turn_id)

    async def forget_turn(self, turn_id: str) -> None:
        self._turns.pop(turn_id, None)


class ConversationStateTracker:
    """Maps an optional prior-turn reference to a continuable model context.

    ``record`` is the only mutator and overwrites (last write wins);
    ``reset`` is the only deletion.
    """

    def __init__(
        self,
        store: ConversationStore | None = None,
        *,
        retention: float = 30 * 24 * 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store or InMemoryConversationStore(retention=retention)
        self._retention = retention
        self._clock = clock

    async def continue_from(
        self,
        prior_turn_id: str | None = None,
        conversation_key: str | None = None,
    ) -> ConversationContext:
        if prior_turn_id:
            if await self._is_continuable(prior_turn_id):
                return ConversationContext(
                    previous_response_id=prior_turn_id,
                    conversation_key=conversation_key,
                    fresh=False,
                )
            logger.info("conversation state miss: turn %s unknown or expired", prior_turn_id)
            return ConversationContext(conversation_key=conversation_key, fresh=True, missed=True)

        if conversation_key:
            state = await self._store.get(conversation_key)
            if state is None:
                return ConversationContext(conversation_key=conversation_key)
            if await self._is_continuable(state.last_turn_id):
                return ConversationContext(
                    previous_response_id=state.last_turn_id,
                    conversation_key=conversation_key,
                    fresh=False,
                )
            logger.info(
                "conversation state miss: last turn %s of %s expired",
                state.last_turn_id, conversation_key,
            )
            return ConversationContext(conversation_key=conversation_key, fresh=True, missed=True)

        return ConversationContext()

    async def record(self, turn_id: str, conversation_key: str | None = None) -> None:
        now = self._clock()
        await self._store.remember_turn(turn_id, now)
        if conversation_key:
            await self._store.put(
                ConversationState(conversation_key=conversation_key, last_turn_id=turn_id, updated_at=now)
            )

    async def reset(self, conversation_key: str) -> bool:
        removed = await self._store.delete(conversation_key)
        logger.info("conversation %s reset (existed=%s)", conversation_key, removed)
        return removed

    async def _is_continuable(self, turn_id: str) -> bool:
        recorded_at = await self._store.turn_recorded_at(turn_id)
        if recorded_at is None:
            return False
        if self._clock() - recorded_at >= self._retention:
            await self._store.forget_turn(turn_id)
            return False
        return True
