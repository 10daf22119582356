"""CLI JSON-lines adapter — reads a Turn from argv/stdin, prints EngineEvents as JSON."""

from __future__ import annotations

import asyncio
import json
import sys

from pydantic import ValidationError

from sports_proxy import create_orchestrator
from sports_proxy.config import setup_logging
from sports_proxy.engine.models import TurnRequest, new_request_id
from sports_proxy.errors import TurnValidationError


async def run_cli(turn: TurnRequest) -> int:
    orchestrator = create_orchestrator()
    exit_code = 0
    async for event in orchestrator.handle(turn):
        print(json.dumps(event.model_dump(mode="json"), default=str), flush=True)
        if event.type.value == "error":
            exit_code = 2
    await orchestrator.wait_idle()
    return exit_code


def main() -> None:
    setup_logging()
    if len(sys.argv) > 1:
        data = {"input": " ".join(sys.argv[1:])}
    else:
        raw = sys.stdin.read().strip()
        if not raw:
            print(
                "Usage: sports-cli <text>  OR  echo '{\"input\":\"...\",\"domain\":\"mlb\"}' | sports-cli",
                file=sys.stderr,
            )
            sys.exit(1)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = {"input": raw}
        if not isinstance(data, dict):
            data = {"input": raw}

    try:
        turn = TurnRequest(**{**data, "stream": True})
    except ValidationError as exc:
        error = TurnValidationError(str(exc.errors()[0]["msg"]))
        print(json.dumps({"error": error.to_payload(new_request_id())}), file=sys.stderr)
        sys.exit(1)

    sys.exit(asyncio.run(run_cli(turn)))


if __name__ == "__main__":
    main()
