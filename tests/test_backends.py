"""Tests for backend implementations — in-process table, HTTP, demo resolvers."""

from __future__ import annotations

import httpx
import pytest

from sports_proxy.backends.demo import make_fantasy_backend, make_resolver_backend, make_stats_backend
from sports_proxy.backends.http import HttpBackend
from sports_proxy.backends.interface import BackendTransportError
from sports_proxy.backends.local import InProcessBackend, OperationError


class TestInProcessBackend:
    async def test_unknown_operation_is_400(self):
        backend = InProcessBackend("b", {})
        reply = await backend.call("nope", {})
        assert reply.status == 400
        assert "Unknown operation" in reply.error

    async def test_operation_error_status(self):
        async def handler(args):
            raise OperationError("missing thing", status=404)

        reply = await InProcessBackend("b", {"op": handler}).call("op", {})
        assert (reply.ok, reply.status, reply.error) == (False, 404, "missing thing")

    async def test_handler_crash_is_500(self):
        async def handler(args):
            raise RuntimeError("boom")

        reply = await InProcessBackend("b", {"op": handler}).call("op", {})
        assert reply.status == 500


class TestHttpBackend:
    def _backend(self, handler) -> HttpBackend:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpBackend("remote", "http://stats.internal/call", client=client)

    async def test_posts_operation_envelope(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.read()
            return httpx.Response(200, json={"result": {"wins": 94}})

        reply = await self._backend(handler).call("team", {"team_id": "147"})
        assert reply.ok
        assert reply.result == {"wins": 94}
        assert b'"operation":"team"' in seen["body"].replace(b" ", b"")

    async def test_error_status_becomes_reply(self):
        def handler(request):
            return httpx.Response(404, json={"error": "Team not found"})

        reply = await self._backend(handler).call("team", {})
        assert reply.status == 404
        assert reply.error == "Team not found"

    async def test_error_body_with_200(self):
        def handler(request):
            return httpx.Response(200, json={"error": {"message": "quota exceeded"}})

        reply = await self._backend(handler).call("team", {})
        assert reply.status == 500
        assert reply.error == "quota exceeded"

    async def test_connect_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(BackendTransportError) as info:
            await self._backend(handler).call("team", {})
        assert info.value.status == 503


class TestDemoResolver:
    async def test_exact_alias_and_fuzzy(self):
        backend = make_resolver_backend("baseball")

        exact = (await backend.call("team", {"name": "New York Yankees"})).result
        alias = (await backend.call("team", {"name": "yankees"})).result
        fuzzy = (await backend.call("team", {"name": "Yankes"})).result

        assert (exact["match_type"], exact["confidence"]) == ("exact", 1.0)
        assert (alias["match_type"], alias["confidence"]) == ("alias", 0.9)
        assert (fuzzy["match_type"], fuzzy["confidence"]) == ("fuzzy", 0.7)
        assert exact["id"] == alias["id"] == fuzzy["id"] == "147"

    async def test_unresolved_has_suggestions(self):
        backend = make_resolver_backend("hockey")
        result = (await backend.call("team", {"name": "Penguinz of Pittsburg"})).result
        assert result["resolved"] is False
        assert isinstance(result["suggestions"], list)

    async def test_player_with_team_context(self):
        backend = make_resolver_backend("hockey")
        result = (await backend.call("player", {"name": "McDavid", "team": "Oilers"})).result
        assert result["resolved"] is True
        assert result["id"] == "8478402"

    async def test_missing_name_rejected(self):
        reply = await make_resolver_backend("baseball").call("team", {})
        assert reply.status == 400


class TestDemoStatsAndFantasy:
    async def test_team_requires_id_or_name(self):
        reply = await make_stats_backend("baseball").call("team", {"endpoint": "team"})
        assert reply.status == 400
        assert "Team ID required" in reply.error

    async def test_roster_by_name(self):
        reply = await make_stats_backend("baseball").call("roster", {"name": "Dodgers"})
        players = reply.result["data"]["players"]
        assert {p["name"] for p in players} >= {"Mookie Betts", "Shohei Ohtani"}

    async def test_fantasy_needs_league(self):
        backend = make_fantasy_backend("hockey")
        assert (await backend.call("scoreboard", {})).status == 400
        leagues = (await backend.call("leagues", {"provider": "yahoo"})).result
        assert leagues["provider"] == "yahoo"
        assert leagues["leagues"]
