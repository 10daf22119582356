"""Content-aware TTL selection for cached tool results."""

from __future__ import annotations

from typing import Any, Mapping

MINUTE = 60.0
HOUR = 60 * MINUTE

# Rules are matched most-specific first: "tool:endpoint", "tool", "*:endpoint".
DEFAULT_TTL_RULES: dict[str, float] = {
    "resolve_team": 24 * HOUR,
    "*:player": 30 * MINUTE,
    "*:team": 6 * HOUR,
    "*:roster": 6 * HOUR,
    "*:team_roster": 15 * MINUTE,
    "*:standings": 10 * MINUTE,
    "*:schedule": 30 * MINUTE,
    "*:advanced": 1 * HOUR,
    "*:game": 15.0,
    "*:scoreboard": 30.0,
    "*:transactions": 5 * MINUTE,
    "*:league_settings": 12 * HOUR,
    "*:leagues": 1 * HOUR,
    "*:search": 1 * HOUR,
}

LIVE_STATUSES = frozenset({"live", "in_progress", "in-progress"})


class TTLPolicy:
    """Pluggable table mapping a tool invocation to a cache lifetime.

    A call flagged as live (``live=True`` or ``status`` in an in-progress state)
    is capped at ``live_ttl`` regardless of what the table says.
    """

    def __init__(
        self,
        rules: Mapping[str, float] | None = None,
        default_ttl: float = 5 * MINUTE,
        live_ttl: float = 15.0,
        discriminator: str = "endpoint",
    ) -> None:
        self._rules = dict(DEFAULT_TTL_RULES if rules is None else rules)
        self._default = default_ttl
        self._live = live_ttl
        self._discriminator = discriminator

    def with_overrides(self, overrides: Mapping[str, float]) -> "TTLPolicy":
        merged = {**self._rules, **overrides}
        return TTLPolicy(merged, self._default, self._live, self._discriminator)

    def ttl_for(
        self,
        tool_name: str,
        arguments: Mapping[str, Any],
        discriminator: str | None = None,
    ) -> float:
        """*discriminator* names the argument holding the operation; defaults to the policy's."""
        endpoint = arguments.get(discriminator or self._discriminator)
        candidates = []
        if endpoint:
            candidates.append(f"{tool_name}:{endpoint}")
        candidates.append(tool_name)
        if endpoint:
            candidates.append(f"*:{endpoint}")

        ttl = self._default
        for key in candidates:
            if key in self._rules:
                ttl = self._rules[key]
                break

        if self.is_live(arguments):
            ttl = min(ttl, self._live)
        return ttl

    @staticmethod
    def is_live(arguments: Mapping[str, Any]) -> bool:
        if arguments.get("live") is True:
            return True
        status = arguments.get("status")
        return isinstance(status, str) and status.lower() in LIVE_STATUSES
