"""User preference documents — storage, prompt fragment, and learning."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

FRAGMENT_HEADER = "--- USER CONTEXT & PREFERENCES ---"
FRAGMENT_FOOTER = "--- END USER CONTEXT ---"

MAX_TEAMS = 10
MAX_PLAYERS = 20
MAX_FACTS = 20


class UserPreferences(BaseModel):
    favorite_teams: list[str] = Field(default_factory=list)
    favorite_players: list[str] = Field(default_factory=list)
    fantasy_leagues: list[str] = Field(default_factory=list)
    sports_interests: list[str] = Field(default_factory=list)
    common_queries: list[str] = Field(default_factory=list)
    response_style: str | None = None
    facts: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(self.model_dump(exclude_none=True).values())


class PreferenceStore(ABC):
    """Preference documents keyed by user id."""

    @abstractmethod
    async def get(self, user_id: str) -> UserPreferences | None: ...

    @abstractmethod
    async def save(self, user_id: str, preferences: UserPreferences) -> None: ...


class InMemoryPreferenceStore(PreferenceStore):
    def __init__(self) -> None:
        self._docs: dict[str, UserPreferences] = {}

    async def get(self, user_id: str) -> UserPreferences | None:
        doc = self._docs.get(user_id)
        return doc.model_copy(deep=True) if doc else None

    async def save(self, user_id: str, preferences: UserPreferences) -> None:
        self._docs[user_id] = preferences.model_copy(deep=True)


# ---------------------------------------------------------------------------
# Prompt fragment
# ---------------------------------------------------------------------------

def format_preferences(prefs: UserPreferences | None, limit: int = 5000) -> str:
    """Render *prefs* as the highest-priority instruction layer, at most *limit* chars."""
    if prefs is None or prefs.is_empty():
        return ""

    lines = [FRAGMENT_HEADER]
    if prefs.favorite_teams:
        lines.append(f"Favorite teams: {', '.join(prefs.favorite_teams)}")
    if prefs.favorite_players:
        lines.append(f"Favorite players: {', '.join(prefs.favorite_players)}")
    if prefs.fantasy_leagues:
        lines.append(f"Fantasy leagues: {', '.join(prefs.fantasy_leagues)}")
    if prefs.sports_interests:
        lines.append(f"Sports interests: {', '.join(prefs.sports_interests)}")
    if prefs.common_queries:
        lines.append(f"Common question types: {', '.join(prefs.common_queries[:3])}")
    if prefs.response_style:
        lines.append(f"Preferred response style: {prefs.response_style}")
    if prefs.facts:
        lines.append(f"Important context: {'; '.join(prefs.facts[:5])}")
    lines.append(FRAGMENT_FOOTER)
    return truncate_fragment("\n".join(lines), limit)


def truncate_fragment(fragment: str, limit: int) -> str:
    if len(fragment) <= limit:
        return fragment
    tail = f"...\n{FRAGMENT_FOOTER}"
    if limit <= len(tail):
        return ""
    return fragment[: limit - len(tail)] + tail


# ---------------------------------------------------------------------------
# Learning from Turn input
# ---------------------------------------------------------------------------

_TEAM_PATTERN = re.compile(
    r"\b(yankees|red sox|dodgers|giants|cubs|mets|braves|phillies|cardinals|astros|"
    r"athletics|angels|mariners|padres|rockies|brewers|twins|white sox|tigers|guardians|"
    r"royals|orioles|rays|blue jays|nationals|marlins|reds|pirates|"
    r"patriots|bills|dolphins|steelers|ravens|chiefs|broncos|cowboys|eagles|packers|"
    r"bears|lions|vikings|49ers|seahawks|"
    r"bruins|sabres|rangers|islanders|devils|flyers|penguins|capitals|hurricanes|lightning|"
    r"maple leafs|senators|canadiens|red wings|blackhawks|predators|avalanche|oilers|"
    r"canucks|flames|kraken)\b",
    re.IGNORECASE,
)

_QUERY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "fantasy_advice": ("fantasy", "draft", "waiver"),
    "statistics": ("stats", "statistics", "performance"),
    "live_scores": ("score", "game", "match"),
    "trades": ("trade",),
    "injury_reports": ("injury", "injured"),
    "schedules": ("schedule", "next game", "when"),
}

_SPORT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "baseball": ("baseball", "mlb"),
    "football": ("football", "nfl"),
    "hockey": ("hockey", "nhl"),
    "basketball": ("basketball", "nba"),
}


def extract_insights(text: str, domain: str | None = None) -> UserPreferences:
    lowered = text.lower()
    teams = list(dict.fromkeys(m.lower() for m in _TEAM_PATTERN.findall(text)))
    queries = [kind for kind, words in _QUERY_KEYWORDS.items() if any(w in lowered for w in words)]
    sports = [sport for sport, words in _SPORT_KEYWORDS.items() if any(w in lowered for w in words)]
    if domain in _SPORT_KEYWORDS and domain not in sports:
        sports.append(domain)
    return UserPreferences(favorite_teams=teams[:MAX_TEAMS], common_queries=queries, sports_interests=sports)


def merge_preferences(current: UserPreferences | None, new: UserPreferences) -> UserPreferences:
    """Union list fields, newest first, bounded per field."""
    base = current or UserPreferences()

    def union(new_items: list[str], old_items: list[str], cap: int) -> list[str]:
        return list(dict.fromkeys([*new_items, *old_items]))[:cap]

    return UserPreferences(
        favorite_teams=union(new.favorite_teams, base.favorite_teams, MAX_TEAMS),
        favorite_players=union(new.favorite_players, base.favorite_players, MAX_PLAYERS),
        fantasy_leagues=union(new.fantasy_leagues, base.fantasy_leagues, MAX_TEAMS),
        sports_interests=union(new.sports_interests, base.sports_interests, 4),
        common_queries=union(new.common_queries, base.common_queries, len(_QUERY_KEYWORDS)),
        response_style=new.response_style or base.response_style,
        facts=union(new.facts, base.facts, MAX_FACTS),
    )


def facts_from_hints(hints: dict[str, str]) -> UserPreferences:
    """Memory hints become ``key: value`` facts; a ``response_style`` hint sets the style."""
    style = hints.get("response_style")
    facts = [f"{k}: {v}" for k, v in hints.items() if k != "response_style"]
    return UserPreferences(facts=facts, response_style=style)
