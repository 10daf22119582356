"""Tests for InstructionAssembler — layer order, fallback, cap, caching."""

from __future__ import annotations

import pytest

from sports_proxy.errors import ConfigurationError
from sports_proxy.prompts.assembler import InstructionAssembler, UserContext
from sports_proxy.prompts.layers import DOMAIN_INSTRUCTIONS, GLOBAL_INSTRUCTIONS
from sports_proxy.prompts.preferences import (
    FRAGMENT_FOOTER,
    UserPreferences,
    extract_insights,
    facts_from_hints,
    format_preferences,
    merge_preferences,
)


def _prefs(**fields) -> UserContext:
    return UserContext(user_id="u1", preferences=UserPreferences(**fields))


class TestLayering:
    def test_merge_order(self):
        text = InstructionAssembler().assemble("baseball", _prefs(favorite_teams=["yankees"]))

        g = text.index(GLOBAL_INSTRUCTIONS.splitlines()[0])
        d = text.index("BASEBALL (MLB):")
        u = text.index("Favorite teams: yankees")
        assert g < d < u

    def test_unknown_domain_gets_global_only(self):
        text = InstructionAssembler().assemble("cricket")
        assert text == GLOBAL_INSTRUCTIONS.strip()

    def test_alias_selects_domain_layer(self):
        assert "HOCKEY (NHL):" in InstructionAssembler().assemble("nhl")

    def test_empty_preferences_add_nothing(self):
        assembler = InstructionAssembler()
        assert assembler.assemble("hockey", _prefs()) == assembler.assemble("hockey")


class TestCap:
    def test_preference_fragment_truncated_not_rules(self):
        base_len = len(InstructionAssembler().assemble("baseball"))
        assembler = InstructionAssembler(max_chars=base_len + 120)
        context = _prefs(facts=[f"fact number {i} " + "z" * 80 for i in range(5)])

        text = assembler.assemble("baseball", context)

        assert len(text) <= base_len + 120
        assert DOMAIN_INSTRUCTIONS["baseball"].strip() in text
        assert text.endswith(FRAGMENT_FOOTER)
        assert "..." in text

    def test_fragment_dropped_when_no_room(self):
        base_len = len(InstructionAssembler().assemble("baseball"))
        assembler = InstructionAssembler(max_chars=base_len)
        text = assembler.assemble("baseball", _prefs(favorite_teams=["mets"]))
        assert "mets" not in text

    def test_cap_too_small_is_startup_error(self):
        with pytest.raises(ConfigurationError, match="baseball"):
            InstructionAssembler(max_chars=len(GLOBAL_INSTRUCTIONS) + 10)

    def test_registry_domains_validated(self):
        with pytest.raises(ConfigurationError):
            InstructionAssembler(global_text="x" * 50, domain_texts={}, max_chars=40, domains=["general"])


class TestCaching:
    async def test_round_trip_within_window(self, cache, clock):
        assembler = InstructionAssembler(cache=cache, cache_ttl=300)
        first = await assembler.assemble_cached("baseball")
        clock.advance(299)
        second = await assembler.assemble_cached("baseball")

        assert first == second
        assert assembler.compositions == 1

    async def test_recomputed_after_expiry(self, cache, clock):
        assembler = InstructionAssembler(cache=cache, cache_ttl=300)
        await assembler.assemble_cached("baseball")
        clock.advance(300)
        await assembler.assemble_cached("baseball")
        assert assembler.compositions == 2

    async def test_user_context_changes_key(self, cache):
        assembler = InstructionAssembler(cache=cache)
        plain = await assembler.assemble_cached("hockey")
        personal = await assembler.assemble_cached("hockey", _prefs(favorite_teams=["oilers"]))

        assert plain != personal
        assert assembler.cache_key("hockey") != assembler.cache_key("hockey", _prefs(favorite_teams=["oilers"]))
        assert assembler.cache_key("hockey").startswith("instructions:hockey:")


class TestPreferences:
    def test_format_limits_and_sections(self):
        prefs = UserPreferences(
            favorite_players=["Aaron Judge"],
            common_queries=["statistics", "schedules", "trades", "fantasy_advice"],
            response_style="brief",
        )
        text = format_preferences(prefs)
        assert "Favorite players: Aaron Judge" in text
        assert "fantasy_advice" not in text  # only the top three query types
        assert "Preferred response style: brief" in text

    def test_extract_insights(self):
        insights = extract_insights("How did the Yankees and Red Sox do? Show MLB stats", "baseball")
        assert insights.favorite_teams == ["yankees", "red sox"]
        assert "statistics" in insights.common_queries
        assert insights.sports_interests == ["baseball"]

    def test_merge_is_bounded_and_deduplicated(self):
        current = UserPreferences(favorite_teams=[f"team{i}" for i in range(10)])
        merged = merge_preferences(current, UserPreferences(favorite_teams=["team3", "mets"]))
        assert merged.favorite_teams[:2] == ["team3", "mets"]
        assert len(merged.favorite_teams) == 10

    def test_hints_become_facts(self):
        prefs = facts_from_hints({"league": "Office pool", "response_style": "detailed"})
        assert prefs.facts == ["league: Office pool"]
        assert prefs.response_style == "detailed"
