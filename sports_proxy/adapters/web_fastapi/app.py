"""FastAPI adapter — JSON and SSE translation layer, no business logic."""

from __future__ import annotations

import json
import logging
import re

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from sports_proxy import create_orchestrator
from sports_proxy.config import get_settings, setup_logging
from sports_proxy.engine.models import REQUEST_ID_PATTERN, TurnRequest, new_request_id
from sports_proxy.engine.orchestrator import Orchestrator
from sports_proxy.errors import OrchestratorError, TurnValidationError

logger = logging.getLogger(__name__)


def _error_response(exc: OrchestratorError, request_id: str) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_payload(request_id)})


def _request_id_from(body: object) -> str:
    """Echo a well-formed client request id, otherwise mint a fresh one."""
    candidate = body.get("request_id") if isinstance(body, dict) else None
    if isinstance(candidate, str) and re.fullmatch(REQUEST_ID_PATTERN, candidate):
        return candidate
    return new_request_id()


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    orchestrator = orchestrator or create_orchestrator()
    app = FastAPI(title="Sports Proxy API", version="0.1.0")

    @app.post("/v1/turns")
    async def create_turn(request: Request):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return _error_response(TurnValidationError("request body must be a JSON object"), _request_id_from(body))
        try:
            turn = TurnRequest(**body)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in exc.errors()
            )
            return _error_response(TurnValidationError(problems), _request_id_from(body))

        try:
            orchestrator.validate(turn)
        except TurnValidationError as exc:
            return _error_response(exc, turn.request_id)

        if not turn.stream:
            try:
                response = await orchestrator.run(turn)
            except OrchestratorError as exc:
                return _error_response(exc, turn.request_id)
            return JSONResponse(response.model_dump(mode="json"))

        async def sse_stream():
            events = orchestrator.handle(turn)
            try:
                async for event in events:
                    payload = json.dumps(event.model_dump(mode="json"), default=str)
                    yield f"event: {event.type.value}\ndata: {payload}\n\n"
            finally:
                await events.aclose()

        return StreamingResponse(
            sse_stream(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "X-Request-Id": turn.request_id,
            },
        )

    @app.post("/v1/conversations/{conversation_key}/reset")
    async def reset_conversation(conversation_key: str) -> JSONResponse:
        removed = await orchestrator.reset_conversation(conversation_key)
        return JSONResponse({"conversation_key": conversation_key, "reset": removed})

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", **orchestrator.describe()})

    return app


def serve() -> None:
    """Entry-point for ``sports-web`` console script."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings)
    uvicorn.run(
        "sports_proxy.adapters.web_fastapi.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.logging.level.lower(),
    )
