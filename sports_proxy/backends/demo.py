"""Demo backends — small static datasets so the proxy runs end-to-end offline.

Production deployments bind the same backend names to real services through
:class:`~sports_proxy.backends.http.HttpBackend`.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from typing import Any

from sports_proxy.backends.interface import Backend
from sports_proxy.backends.local import InProcessBackend, OperationError

EXACT_CONFIDENCE = 1.0
ALIAS_CONFIDENCE = 0.9
FUZZY_CONFIDENCE = 0.7
FUZZY_CUTOFF = 0.75
DEFAULT_SEASON = "2025"


@dataclass(frozen=True)
class Entity:
    id: str
    name: str
    aliases: tuple[str, ...] = ()
    team: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def _team(id: str, name: str, abbr: str, *aliases: str) -> Entity:
    return Entity(id=id, name=name, aliases=(abbr.lower(), *aliases), extra={"abbreviation": abbr})


def _player(id: str, name: str, team: str, position: str) -> Entity:
    return Entity(id=id, name=name, aliases=(name.split()[-1].lower(),), team=team, extra={"position": position})


TEAMS: dict[str, list[Entity]] = {
    "baseball": [
        _team("147", "New York Yankees", "NYY", "yankees", "bronx bombers"),
        _team("111", "Boston Red Sox", "BOS", "red sox", "boston"),
        _team("142", "Toronto Blue Jays", "TOR", "blue jays", "toronto"),
        _team("139", "Tampa Bay Rays", "TB", "rays", "tampa bay"),
        _team("110", "Baltimore Orioles", "BAL", "orioles", "baltimore"),
        _team("119", "Los Angeles Dodgers", "LAD", "dodgers", "la dodgers"),
        _team("137", "San Francisco Giants", "SF", "giants", "san francisco"),
        _team("117", "Houston Astros", "HOU", "astros", "houston"),
        _team("144", "Atlanta Braves", "ATL", "braves", "atlanta"),
        _team("121", "New York Mets", "NYM", "mets"),
    ],
    "hockey": [
        _team("3", "New York Rangers", "NYR", "rangers", "blueshirts"),
        _team("6", "Boston Bruins", "BOS", "bruins"),
        _team("5", "Pittsburgh Penguins", "PIT", "penguins", "pens"),
        _team("22", "Edmonton Oilers", "EDM", "oilers"),
        _team("14", "Tampa Bay Lightning", "TBL", "lightning", "bolts"),
        _team("16", "Chicago Blackhawks", "CHI", "blackhawks", "hawks"),
    ],
    "football": [
        _team("NE", "New England Patriots", "NE", "patriots", "pats"),
        _team("KC", "Kansas City Chiefs", "KC", "chiefs"),
        _team("DAL", "Dallas Cowboys", "DAL", "cowboys"),
        _team("PHI", "Philadelphia Eagles", "PHI", "eagles"),
    ],
}

PLAYERS: dict[str, list[Entity]] = {
    "baseball": [
        _player("592450", "Aaron Judge", "New York Yankees", "RF"),
        _player("605141", "Mookie Betts", "Los Angeles Dodgers", "SS"),
        _player("660271", "Shohei Ohtani", "Los Angeles Dodgers", "DH"),
        _player("518692", "Freddie Freeman", "Los Angeles Dodgers", "1B"),
        _player("660670", "Ronald Acuna Jr.", "Atlanta Braves", "RF"),
        _player("545361", "Mike Trout", "Los Angeles Angels", "CF"),
    ],
    "hockey": [
        _player("8478402", "Connor McDavid", "Edmonton Oilers", "C"),
        _player("8477934", "Leon Draisaitl", "Edmonton Oilers", "C"),
        _player("8471675", "Sidney Crosby", "Pittsburgh Penguins", "C"),
        _player("8471214", "Alex Ovechkin", "Washington Capitals", "LW"),
        _player("8477956", "David Pastrnak", "Boston Bruins", "RW"),
        _player("8477492", "Nathan MacKinnon", "Colorado Avalanche", "C"),
    ],
    "football": [],
}


class Resolver:
    """Exact → alias → fuzzy lookup over one sport's entities."""

    def __init__(self, teams: list[Entity], players: list[Entity]) -> None:
        self._tables = {"team": teams, "player": players}

    def resolve(self, kind: str, name: str, team: str | None = None) -> dict[str, Any]:
        query = " ".join(name.lower().split())
        candidates = self._tables[kind]
        if team:
            scoped = [e for e in candidates if e.team and team.lower() in e.team.lower()]
            candidates = scoped or candidates

        for entity in candidates:
            if query == entity.name.lower():
                return self._hit(kind, entity, "exact", EXACT_CONFIDENCE, name)
        for entity in candidates:
            if query in entity.aliases:
                return self._hit(kind, entity, "alias", ALIAS_CONFIDENCE, name)

        index = self._index(candidates)
        close = difflib.get_close_matches(query, list(index), n=1, cutoff=FUZZY_CUTOFF)
        if close:
            return self._hit(kind, index[close[0]], "fuzzy", FUZZY_CONFIDENCE, name)

        return {"resolved": False, "query": name, "suggestions": self.suggest(kind, query)}

    def suggest(self, kind: str, query: str, limit: int = 5) -> list[str]:
        index = self._index(self._tables[kind])
        names: list[str] = []
        for key in difflib.get_close_matches(query.lower(), list(index), n=limit * 2, cutoff=0.4):
            if index[key].name not in names:
                names.append(index[key].name)
        return names[:limit]

    def lookup_id(self, kind: str, entity_id: str) -> Entity | None:
        return next((e for e in self._tables[kind] if e.id == str(entity_id)), None)

    @staticmethod
    def _index(entities: list[Entity]) -> dict[str, Entity]:
        index: dict[str, Entity] = {}
        for entity in entities:
            index[entity.name.lower()] = entity
            for alias in entity.aliases:
                index.setdefault(alias, entity)
        return index

    @staticmethod
    def _hit(kind: str, entity: Entity, match_type: str, confidence: float, query: str) -> dict[str, Any]:
        hit = {
            "resolved": True,
            "query": query,
            "type": kind,
            "id": entity.id,
            "name": entity.name,
            "confidence": confidence,
            "match_type": match_type,
            **entity.extra,
        }
        if entity.team:
            hit["team"] = entity.team
        return hit


def make_resolver_backend(sport: str) -> InProcessBackend:
    resolver = Resolver(TEAMS.get(sport, []), PLAYERS.get(sport, []))

    async def team(args: dict[str, Any]) -> dict[str, Any]:
        return resolver.resolve("team", _require(args, "name"))

    async def player(args: dict[str, Any]) -> dict[str, Any]:
        return resolver.resolve("player", _require(args, "name"), team=args.get("team"))

    async def search(args: dict[str, Any]) -> dict[str, Any]:
        query = _require(args, "name")
        return {
            "query": query,
            "teams": resolver.suggest("team", query),
            "players": resolver.suggest("player", query),
        }

    return InProcessBackend(f"{sport}-resolver", {"team": team, "player": player, "search": search})


def make_stats_backend(sport: str) -> InProcessBackend:
    resolver = Resolver(TEAMS.get(sport, []), PLAYERS.get(sport, []))

    def team_entity(args: dict[str, Any]) -> Entity:
        if args.get("team_id"):
            entity = resolver.lookup_id("team", args["team_id"])
        elif args.get("name"):
            hit = resolver.resolve("team", args["name"])
            entity = resolver.lookup_id("team", hit["id"]) if hit["resolved"] else None
        else:
            raise OperationError("Team ID required")
        if entity is None:
            raise OperationError(f"Team not found: {args.get('team_id') or args.get('name')}", status=404)
        return entity

    def player_entity(args: dict[str, Any]) -> Entity:
        if args.get("player_id"):
            entity = resolver.lookup_id("player", args["player_id"])
        elif args.get("name"):
            hit = resolver.resolve("player", args["name"])
            entity = resolver.lookup_id("player", hit["id"]) if hit["resolved"] else None
        else:
            raise OperationError("Player ID required")
        if entity is None:
            raise OperationError(f"Player not found: {args.get('player_id') or args.get('name')}", status=404)
        return entity

    def envelope(endpoint: str, args: dict[str, Any], data: Any) -> dict[str, Any]:
        return {"endpoint": endpoint, "season": args.get("season", DEFAULT_SEASON), "data": data}

    async def player(args: dict[str, Any]) -> dict[str, Any]:
        entity = player_entity(args)
        seed = int(entity.id[-3:])
        if sport == "hockey":
            stats = {"games": 60 + seed % 22, "goals": 20 + seed % 35, "assists": 30 + seed % 50}
        else:
            stats = {"games": 120 + seed % 42, "avg": round(0.250 + (seed % 70) / 1000, 3), "home_runs": 15 + seed % 40}
        return envelope("player", args, {"player": entity.name, "team": entity.team, "stats": stats})

    async def team(args: dict[str, Any]) -> dict[str, Any]:
        entity = team_entity(args)
        return envelope("team", args, {"id": entity.id, "name": entity.name, **entity.extra})

    async def roster(args: dict[str, Any]) -> dict[str, Any]:
        entity = team_entity(args)
        players = [
            {"id": p.id, "name": p.name, **p.extra}
            for p in PLAYERS.get(sport, [])
            if p.team == entity.name
        ]
        return envelope("roster", args, {"team": entity.name, "players": players})

    async def game(args: dict[str, Any]) -> dict[str, Any]:
        game_id = args.get("game_id")
        if not game_id:
            raise OperationError("Game ID required")
        teams = TEAMS.get(sport, [])
        slot = sum(map(ord, str(game_id))) % len(teams)
        home, away = teams[slot], teams[(slot + 1) % len(teams)]
        return envelope("game", args, {"game_id": game_id, "status": "in_progress", "home": home.name, "away": away.name})

    async def standings(args: dict[str, Any]) -> dict[str, Any]:
        table = [{"rank": i + 1, "team": t.name} for i, t in enumerate(TEAMS.get(sport, []))]
        return envelope("standings", args, {"standings": table})

    async def schedule(args: dict[str, Any]) -> dict[str, Any]:
        teams = TEAMS.get(sport, [])
        if args.get("team_id") or args.get("name"):
            focus = team_entity(args)
            teams = [focus] + [t for t in teams if t.id != focus.id]
        games = [
            {"home": teams[i].name, "away": teams[i + 1].name}
            for i in range(0, len(teams) - 1, 2)
        ]
        return envelope("schedule", args, {"date": args.get("date"), "games": games})

    async def advanced(args: dict[str, Any]) -> dict[str, Any]:
        entity = player_entity(args)
        return envelope("advanced", args, {"player": entity.name, "splits": {"vs_left": ".301", "vs_right": ".276"}})

    return InProcessBackend(
        f"{sport}-stats",
        {
            "player": player,
            "team": team,
            "roster": roster,
            "game": game,
            "standings": standings,
            "schedule": schedule,
            "advanced": advanced,
        },
    )


def make_fantasy_backend(sport: str) -> InProcessBackend:
    async def leagues(args: dict[str, Any]) -> dict[str, Any]:
        return {
            "provider": args.get("provider", "espn"),
            "leagues": [{"league_id": f"{sport[:2]}-1001", "name": f"Office {sport.title()} League", "teams": 10}],
        }

    def league_scoped(endpoint: str, build):
        async def handler(args: dict[str, Any]) -> dict[str, Any]:
            league_id = args.get("league_id")
            if not league_id:
                raise OperationError("league_id is required; call the leagues endpoint first")
            return {"provider": args.get("provider", "espn"), "league_id": league_id, endpoint: build(args)}
        return handler

    return InProcessBackend(
        f"{sport}-fantasy",
        {
            "leagues": leagues,
            "team_roster": league_scoped("roster", lambda a: [p.name for p in PLAYERS.get(sport, [])[:4]]),
            "scoreboard": league_scoped("matchups", lambda a: [{"week": a.get("week", 1), "home": 101.4, "away": 97.2}]),
            "transactions": league_scoped("transactions", lambda a: []),
            "league_settings": league_scoped("settings", lambda a: {"scoring": "categories", "teams": 10}),
        },
    )


def demo_backends() -> dict[str, Backend]:
    backends: dict[str, Backend] = {}
    for sport in ("baseball", "hockey"):
        for backend in (make_resolver_backend(sport), make_stats_backend(sport), make_fantasy_backend(sport)):
            backends[backend.name] = backend
    football = make_resolver_backend("football")
    backends[football.name] = football
    return backends


def _require(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not value:
        raise OperationError(f"'{key}' is required")
    return str(value)
