"""Built-in meta-tool catalog: resolvers, stats and fantasy tools per sport."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from sports_proxy.tools.registry import GENERAL_DOMAIN, ToolRegistry, ToolSpec


# ---------------------------------------------------------------------------
# resolve_team — entity resolution (teams and players)
# ---------------------------------------------------------------------------

class ResolveInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: Literal["team", "player", "search"] = Field(
        default="team",
        description="team: resolve a team name; player: resolve a player name; search: list candidates",
    )
    name: str = Field(min_length=1, description="Free-text name, e.g. 'Yankees' or 'Aaron Judge'")
    team: str | None = Field(default=None, description="Optional team context to disambiguate a player")


def _resolver(sport: str) -> ToolSpec:
    return ToolSpec(
        name="resolve_team",
        description=(
            f"Resolve a {sport} team or player name to its canonical id. "
            "Call this before stats tools whenever the user names a team or player."
        ),
        backend=f"{sport}-resolver",
        operations=("team", "player", "search"),
        input_model=ResolveInput,
    )


# ---------------------------------------------------------------------------
# <sport>_stats — statistics fan-out
# ---------------------------------------------------------------------------

class StatsInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: Literal["player", "team", "roster", "game", "standings", "schedule", "advanced"]
    name: str | None = Field(default=None, description="Team or player name when no id is known")
    team_id: str | None = None
    player_id: str | None = None
    game_id: str | None = None
    season: str | None = Field(default=None, description="Season year, e.g. '2025'")
    date: str | None = Field(default=None, description="Date (YYYY-MM-DD) for schedules")
    group: Literal["hitting", "pitching", "skating", "goalie"] | None = None
    live: bool | None = Field(default=None, description="Set when the game is in progress")


def _stats(sport: str) -> ToolSpec:
    return ToolSpec(
        name=f"{sport}_stats",
        description=(
            f"Current {sport} statistics. Choose the endpoint: player, team, roster, game "
            "(live game feed), standings, schedule or advanced (situational splits)."
        ),
        backend=f"{sport}-stats",
        operations=("player", "team", "roster", "game", "standings", "schedule", "advanced"),
        input_model=StatsInput,
    )


# ---------------------------------------------------------------------------
# <sport>_fantasy — fantasy league data
# ---------------------------------------------------------------------------

class FantasyInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: Literal["team_roster", "scoreboard", "transactions", "league_settings", "leagues"]
    provider: Literal["espn", "yahoo"] = "espn"
    league_id: str | None = None
    team_id: str | None = None
    week: int | None = Field(default=None, ge=1, le=30)
    season: str | None = None


def _fantasy(sport: str) -> ToolSpec:
    return ToolSpec(
        name=f"{sport}_fantasy",
        description=(
            f"Fantasy {sport} league data from ESPN or Yahoo: team_roster, scoreboard, "
            "transactions, league_settings or leagues (discover the user's leagues)."
        ),
        backend=f"{sport}-fantasy",
        operations=("team_roster", "scoreboard", "transactions", "league_settings", "leagues"),
        input_model=FantasyInput,
    )


def build_default_registry() -> ToolRegistry:
    """Wire the catalog. Raises RegistryConfigError on any invariant violation."""
    registry = ToolRegistry()
    for sport in ("baseball", "hockey"):
        registry.register(sport, _resolver(sport))
        registry.register(sport, _stats(sport))
        registry.register(sport, _fantasy(sport))
    registry.register("football", _resolver("football"))
    registry.ensure_domain("basketball")
    registry.ensure_domain(GENERAL_DOMAIN)
    return registry
