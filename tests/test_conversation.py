"""Tests for ConversationStateTracker — lookup/miss contract, record, reset."""

from __future__ import annotations

import pytest

from sports_proxy.engine.conversation import ConversationStateTracker, InMemoryConversationStore


@pytest.fixture
def tracker(clock):
    return ConversationStateTracker(InMemoryConversationStore(), retention=3600, clock=clock)


class TestContinueFrom:
    async def test_no_reference_is_fresh(self, tracker):
        ctx = await tracker.continue_from()
        assert ctx.fresh and not ctx.missed
        assert ctx.previous_response_id is None

    async def test_unknown_prior_turn_is_a_miss(self, tracker):
        ctx = await tracker.continue_from("resp_unknown")
        assert ctx.fresh and ctx.missed
        assert ctx.previous_response_id is None

    async def test_recorded_turn_continues(self, tracker):
        await tracker.record("resp_1")
        ctx = await tracker.continue_from("resp_1")
        assert not ctx.fresh
        assert ctx.previous_response_id == "resp_1"

    async def test_expired_turn_is_a_miss(self, tracker, clock):
        await tracker.record("resp_1")
        clock.advance(3600)
        ctx = await tracker.continue_from("resp_1")
        assert ctx.missed

    async def test_conversation_key_uses_last_turn(self, tracker):
        await tracker.record("resp_1", "user-7")
        await tracker.record("resp_2", "user-7")
        ctx = await tracker.continue_from(conversation_key="user-7")
        assert ctx.previous_response_id == "resp_2"

    async def test_unknown_key_is_fresh_without_miss(self, tracker):
        ctx = await tracker.continue_from(conversation_key="nobody")
        assert ctx.fresh and not ctx.missed


class TestReset:
    async def test_reset_deletes_state(self, tracker):
        await tracker.record("resp_1", "user-7")
        assert await tracker.reset("user-7") is True
        ctx = await tracker.continue_from(conversation_key="user-7")
        assert ctx.previous_response_id is None and not ctx.missed
        assert await tracker.reset("user-7") is False

    async def test_explicit_prior_turn_survives_reset(self, tracker):
        await tracker.record("resp_1", "user-7")
        await tracker.reset("user-7")
        ctx = await tracker.continue_from("resp_1")
        assert ctx.previous_response_id == "resp_1"


class TestInMemoryStoreBounds:
    async def test_expired_turn_ids_pruned_on_insert(self):
        store = InMemoryConversationStore(retention=100)
        await store.remember_turn("resp_old", 1000.0)
        await store.remember_turn("resp_mid", 1050.0)
        await store.remember_turn("resp_new", 1120.0)

        assert await store.turn_recorded_at("resp_old") is None
        assert await store.turn_recorded_at("resp_mid") == 1050.0
        assert await store.turn_recorded_at("resp_new") == 1120.0

    async def test_turn_ids_capped(self):
        store = InMemoryConversationStore(max_turns=3)
        for i in range(5):
            await store.remember_turn(f"resp_{i}", 1000.0 + i)

        assert await store.turn_recorded_at("resp_0") is None
        assert await store.turn_recorded_at("resp_1") is None
        assert await store.turn_recorded_at("resp_4") == 1004.0

    async def test_tracker_default_store_uses_retention(self, clock):
        tracker = ConversationStateTracker(retention=60, clock=clock)
        await tracker.record("resp_1")
        clock.advance(61)
        await tracker.record("resp_2")

        assert (await tracker.continue_from("resp_1")).missed
        assert (await tracker.continue_from("resp_2")).previous_response_id == "resp_2"
