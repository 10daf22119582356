"""End-to-end wiring through create_orchestrator with the demo model and backends."""

from __future__ import annotations

import json

import pytest

from sports_proxy import create_orchestrator
from sports_proxy.config import Settings
from sports_proxy.engine.llm import DemoMockModelClient
from sports_proxy.engine.models import EngineEventType, TurnRequest
from sports_proxy.errors import ConfigurationError


@pytest.fixture
def demo_settings(tmp_path):
    return Settings(trace_dir=str(tmp_path / "traces"), model={"use_mock": True})


class TestCreateOrchestrator:
    async def test_demo_turn_end_to_end(self, demo_settings):
        orchestrator = create_orchestrator(demo_settings)
        assert isinstance(orchestrator._model, DemoMockModelClient)

        response = await orchestrator.run(TurnRequest(input="Tell me about the Yankees", domain="baseball"))

        assert response.rounds == 1
        assert "New York Yankees" in response.output_text
        assert response.tool_results[0]["source"] == "live"

    async def test_demo_stream_and_trace_file(self, demo_settings, tmp_path):
        orchestrator = create_orchestrator(demo_settings)
        turn = TurnRequest(input="How about the Oilers?", domain="nhl", stream=True)

        events = [e async for e in orchestrator.handle(turn)]
        assert events[-1].type == EngineEventType.COMPLETED

        trace_file = tmp_path / "traces" / f"{turn.request_id}.jsonl"
        lines = [json.loads(line) for line in trace_file.read_text().splitlines()]
        assert lines[0]["request_id"] == turn.request_id
        assert "tool_dispatch" in {line["event"] for line in lines}

    async def test_general_domain_has_no_tools(self, demo_settings):
        orchestrator = create_orchestrator(demo_settings)
        response = await orchestrator.run(TurnRequest(input="hello"))
        assert response.rounds == 0
        assert "demo response" in response.output_text

    def test_instruction_cap_checked_at_startup(self, demo_settings):
        settings = demo_settings.model_copy(update={"prompts": demo_settings.prompts.model_copy(
            update={"max_instruction_chars": 100},
        )})
        with pytest.raises(ConfigurationError):
            create_orchestrator(settings)


class TestSettings:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SPORTS_PROXY_DISPATCH__MAX_TOOL_ROUNDS", "2")
        monkeypatch.setenv("SPORTS_PROXY_DISPATCH__STORE_TIMEOUT", "0.5")
        monkeypatch.setenv("SPORTS_PROXY_CACHE__TTL_OVERRIDES", '{"baseball_stats:game": 5}')
        settings = Settings()
        assert settings.dispatch.max_tool_rounds == 2
        assert settings.dispatch.store_timeout == 0.5
        assert settings.cache.ttl_overrides == {"baseball_stats:game": 5}

    def test_api_key_is_secret(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-secret-value")
        settings = Settings()
        assert "sk-test" not in repr(settings)
        assert settings.model.api_key.get_secret_value() == "sk-test-secret-value"
