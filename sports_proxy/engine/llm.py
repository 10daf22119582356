"""Model client — ABC, OpenAI Responses API implementation, and mocks."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from sports_proxy.engine.models import (
    ModelRequest,
    ModelResult,
    ModelStreamEvent,
    ModelStreamEventType,
    ModelToolCall,
)
from sports_proxy.errors import UpstreamModelError
from sports_proxy.prompts.preferences import extract_insights

logger = logging.getLogger(__name__)


class ModelClient(ABC):
    """Abstract model endpoint.

    ``create`` returns a complete response; ``stream`` yields typed events and
    always ends with ``completed`` (carrying the full result) or ``error``.
    """

    name: str = "model"

    @abstractmethod
    async def create(self, request: ModelRequest) -> ModelResult: ...

    @abstractmethod
    def stream(self, request: ModelRequest) -> AsyncIterator[ModelStreamEvent]: ...


def function_call_outputs(results: list[tuple[str, str]]) -> list[dict[str, Any]]:
    """Input items that hand tool outputs back to the model, in call order."""
    return [{"type": "function_call_output", "call_id": call_id, "output": output} for call_id, output in results]


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("model produced non-JSON tool arguments: %.80s", raw)
        return {"_raw_arguments": raw}
    return parsed if isinstance(parsed, dict) else {"_raw_arguments": raw}


# ---------------------------------------------------------------------------
# OpenAI Responses API implementation
# ---------------------------------------------------------------------------

class OpenAIResponsesClient(ModelClient):
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4.1-mini",
        *,
        temperature: float | None = 0.7,
        max_output_tokens: int | None = 1000,
        timeout: float = 30.0,
    ) -> None:
        # Late import so the rest of the package works without openai installed
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.name = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    def _kwargs(self, request: ModelRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.name,
            "instructions": request.instructions,
            "input": request.input,
        }
        if request.tools:
            kwargs["tools"] = request.tools
        if request.previous_response_id:
            kwargs["previous_response_id"] = request.previous_response_id
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        if self._max_output_tokens is not None:
            kwargs["max_output_tokens"] = self._max_output_tokens
        return kwargs

    @staticmethod
    def _to_result(response: Any) -> ModelResult:
        tool_calls = [
            ModelToolCall(call_id=item.call_id, name=item.name, arguments=_parse_arguments(item.arguments))
            for item in (response.output or [])
            if getattr(item, "type", None) == "function_call"
        ]
        usage = response.usage.model_dump() if getattr(response, "usage", None) else None
        return ModelResult(id=response.id, text=response.output_text or "", tool_calls=tool_calls, usage=usage)

    async def create(self, request: ModelRequest) -> ModelResult:
        from openai import OpenAIError

        try:
            response = await self._client.responses.create(**self._kwargs(request))
        except OpenAIError as exc:
            raise UpstreamModelError(f"model request failed: {type(exc).__name__}: {exc}") from exc
        if getattr(response, "error", None):
            raise UpstreamModelError(f"model returned an error: {response.error.message}")
        return self._to_result(response)

    async def stream(self, request: ModelRequest) -> AsyncIterator[ModelStreamEvent]:
        from openai import OpenAIError

        try:
            events = await self._client.responses.create(**self._kwargs(request), stream=True)
            async for event in events:
                kind = event.type
                if kind == "response.created":
                    yield ModelStreamEvent(type=ModelStreamEventType.CREATED, response_id=event.response.id)
                elif kind == "response.in_progress":
                    yield ModelStreamEvent(type=ModelStreamEventType.IN_PROGRESS, response_id=event.response.id)
                elif kind == "response.output_text.delta":
                    yield ModelStreamEvent(type=ModelStreamEventType.TEXT_DELTA, delta=event.delta)
                elif kind == "response.output_item.done" and event.item.type == "function_call":
                    yield ModelStreamEvent(
                        type=ModelStreamEventType.TOOL_CALL,
                        tool_call=ModelToolCall(
                            call_id=event.item.call_id,
                            name=event.item.name,
                            arguments=_parse_arguments(event.item.arguments),
                        ),
                    )
                elif kind == "response.completed":
                    result = self._to_result(event.response)
                    yield ModelStreamEvent(type=ModelStreamEventType.COMPLETED, response_id=result.id, result=result)
                elif kind == "response.failed":
                    message = event.response.error.message if event.response.error else "response failed"
                    yield ModelStreamEvent(type=ModelStreamEventType.ERROR, error=message)
                elif kind == "error":
                    yield ModelStreamEvent(type=ModelStreamEventType.ERROR, error=event.message)
        except OpenAIError as exc:
            raise UpstreamModelError(f"model stream failed: {type(exc).__name__}: {exc}") from exc


# ---------------------------------------------------------------------------
# Test mock — deterministic, pre-loaded responses
# ---------------------------------------------------------------------------

class MockModelClient(ModelClient):
    """Returns pre-configured results in order. Used in unit tests.

    An entry may be an exception instance, which is raised instead. Every
    request is kept in ``requests`` for assertions.
    """

    name = "mock"

    def __init__(self, responses: list[ModelResult | Exception], delay: float = 0.0) -> None:
        self._responses = list(responses)
        self._call_index = 0
        self._delay = delay
        self.requests: list[ModelRequest] = []

    async def create(self, request: ModelRequest) -> ModelResult:
        self.requests.append(request)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._call_index >= len(self._responses):
            self._call_index += 1
            return ModelResult(id=f"mock_resp_{self._call_index}", text="[mock responses exhausted]")
        item = self._responses[self._call_index]
        self._call_index += 1
        if isinstance(item, Exception):
            raise item
        return item

    async def stream(self, request: ModelRequest) -> AsyncIterator[ModelStreamEvent]:
        result = await self.create(request)
        yield ModelStreamEvent(type=ModelStreamEventType.CREATED, response_id=result.id)
        if result.text:
            words = result.text.split(" ")
            for i, word in enumerate(words):
                delta = word if i == len(words) - 1 else word + " "
                yield ModelStreamEvent(type=ModelStreamEventType.TEXT_DELTA, response_id=result.id, delta=delta)
        for call in result.tool_calls:
            yield ModelStreamEvent(type=ModelStreamEventType.TOOL_CALL, response_id=result.id, tool_call=call)
        yield ModelStreamEvent(type=ModelStreamEventType.COMPLETED, response_id=result.id, result=result)

    @property
    def call_count(self) -> int:
        return self._call_index


# ---------------------------------------------------------------------------
# Demo mock — context-aware, for running without an API key
# ---------------------------------------------------------------------------

class DemoMockModelClient(ModelClient):
    """Demonstrates the full tool-calling loop without a real model.

    Behaviour:
    1. If the input is tool output → summarize it.
    2. If a resolver tool is available → resolve the team named in the input.
    3. Otherwise → return a generic text response.
    """

    name = "demo-mock"

    async def create(self, request: ModelRequest) -> ModelResult:
        response_id = f"demo_resp_{uuid.uuid4().hex[:12]}"

        if isinstance(request.input, list):
            outputs = [item.get("output", "") for item in request.input if item.get("type") == "function_call_output"]
            summary = " | ".join(o[:200] for o in outputs) or "no data"
            return ModelResult(id=response_id, text=f"Based on the gathered information: {summary}")

        names = [t.get("name") for t in request.tools]
        if "resolve_team" in names:
            teams = extract_insights(request.input).favorite_teams
            query = teams[0] if teams else request.input.strip().rstrip("?!.")
            return ModelResult(
                id=response_id,
                tool_calls=[
                    ModelToolCall(
                        call_id=f"demo_call_{uuid.uuid4().hex[:8]}",
                        name="resolve_team",
                        arguments={"endpoint": "team", "name": query},
                    )
                ],
            )

        return ModelResult(
            id=response_id,
            text="This is a demo response. Set OPENAI_API_KEY for real model output.",
        )

    async def stream(self, request: ModelRequest) -> AsyncIterator[ModelStreamEvent]:
        result = await self.create(request)
        yield ModelStreamEvent(type=ModelStreamEventType.CREATED, response_id=result.id)
        for word in result.text.split(" ") if result.text else []:
            yield ModelStreamEvent(type=ModelStreamEventType.TEXT_DELTA, response_id=result.id, delta=word + " ")
        for call in result.tool_calls:
            yield ModelStreamEvent(type=ModelStreamEventType.TOOL_CALL, response_id=result.id, tool_call=call)
        yield ModelStreamEvent(type=ModelStreamEventType.COMPLETED, response_id=result.id, result=result)
