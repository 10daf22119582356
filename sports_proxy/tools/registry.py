"""Tool registry — per-domain meta-tool declarations with Pydantic v2 schemas."""

from __future__ import annotations

import logging
import typing
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from sports_proxy.errors import BackendRejectedError, RegistryConfigError

logger = logging.getLogger(__name__)

MAX_TOOLS_PER_DOMAIN = 3
GENERAL_DOMAIN = "general"

DOMAIN_ALIASES: dict[str, str] = {
    "mlb": "baseball",
    "nhl": "hockey",
    "nfl": "football",
    "nba": "basketball",
}


def normalize_domain(domain: str | None) -> str:
    """Map a client-supplied domain tag onto a canonical domain name."""
    if not domain:
        return GENERAL_DOMAIN
    tag = domain.strip().lower()
    return DOMAIN_ALIASES.get(tag, tag) or GENERAL_DOMAIN


@dataclass(frozen=True)
class ToolSpec:
    """Declaration of one meta-tool.

    ``operations`` are the backend operations the tool multiplexes; the model
    picks one through the ``discriminator`` argument, whose ``Literal`` values
    in ``input_model`` must match ``operations`` exactly.
    """

    name: str
    description: str
    backend: str
    operations: tuple[str, ...]
    input_model: type[BaseModel]
    discriminator: str = "endpoint"

    def __post_init__(self) -> None:
        if not self.operations:
            raise RegistryConfigError(f"Tool '{self.name}' declares no backend operations")
        field = self.input_model.model_fields.get(self.discriminator)
        if field is None:
            raise RegistryConfigError(
                f"Tool '{self.name}' has no '{self.discriminator}' discriminator argument"
            )
        allowed = set(typing.get_args(field.annotation))
        if typing.get_origin(field.annotation) is not typing.Literal or allowed != set(self.operations):
            raise RegistryConfigError(
                f"Tool '{self.name}': '{self.discriminator}' must be a Literal of {list(self.operations)}"
            )

    def schema(self) -> dict[str, Any]:
        """Function schema in the shape the Responses API expects."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.input_model.model_json_schema(),
        }


class ToolRegistry:
    """Static per-domain tool table, populated at startup."""

    def __init__(self, max_tools_per_domain: int = MAX_TOOLS_PER_DOMAIN) -> None:
        self._max = max_tools_per_domain
        self._tools: dict[str, dict[str, ToolSpec]] = {}

    # -- registration -------------------------------------------------------

    def register(self, domain: str, spec: ToolSpec) -> None:
        domain = normalize_domain(domain)
        tools = self._tools.setdefault(domain, {})
        if spec.name in tools:
            raise RegistryConfigError(f"Tool '{spec.name}' registered twice for domain '{domain}'")
        if len(tools) >= self._max:
            raise RegistryConfigError(
                f"Domain '{domain}' would expose {len(tools) + 1} tools; the limit is {self._max}"
            )
        tools[spec.name] = spec
        logger.info("Registered tool %s for %s (operations=%s)", spec.name, domain, ",".join(spec.operations))

    def ensure_domain(self, domain: str) -> None:
        """Declare a domain that intentionally exposes no tools."""
        self._tools.setdefault(normalize_domain(domain), {})

    # -- lookup -------------------------------------------------------------

    def tools_for(self, domain: str | None) -> list[ToolSpec]:
        return list(self._tools.get(normalize_domain(domain), {}).values())

    def lookup(self, domain: str | None, name: str) -> ToolSpec | None:
        return self._tools.get(normalize_domain(domain), {}).get(name)

    def domains(self) -> list[str]:
        return sorted(self._tools)

    def schemas_for(self, domain: str | None) -> list[dict[str, Any]]:
        return [spec.schema() for spec in self.tools_for(domain)]

    def backends(self) -> set[str]:
        return {spec.backend for tools in self._tools.values() for spec in tools.values()}

    # -- argument contract --------------------------------------------------

    @staticmethod
    def validate_arguments(spec: ToolSpec, arguments: dict[str, Any]) -> dict[str, Any]:
        """Validate *arguments* against the tool's input model and return the normalized dict."""
        try:
            validated = spec.input_model.model_validate(arguments)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in exc.errors()
            )
            raise BackendRejectedError(f"Invalid arguments for {spec.name}: {problems}") from exc
        return validated.model_dump(mode="json", exclude_none=True)
