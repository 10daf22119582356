"""Instruction assembler — layered system instructions with a bounded size."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from sports_proxy.cache.store import CacheStore, canonical_json
from sports_proxy.errors import ConfigurationError
from sports_proxy.prompts.layers import DOMAIN_INSTRUCTIONS, GLOBAL_INSTRUCTIONS, LAYER_SEPARATOR
from sports_proxy.prompts.preferences import UserPreferences, format_preferences, truncate_fragment
from sports_proxy.tools.registry import normalize_domain

logger = logging.getLogger(__name__)

INSTRUCTION_KEY_PREFIX = "instructions:"


@dataclass(frozen=True)
class UserContext:
    user_id: str | None = None
    preferences: UserPreferences | None = field(default=None, compare=False)

    def fingerprint(self) -> str:
        if self.preferences is None or self.preferences.is_empty():
            return "anonymous"
        payload = canonical_json(self.preferences.model_dump())
        return hashlib.sha256(payload.encode()).hexdigest()[:16]


class InstructionAssembler:
    """Merges global → domain → user-preference layers, in that order.

    Later layers may add detail but are placed after the rules they must not
    contradict; nothing checks this at runtime. Only the preference layer is
    ever truncated.
    """

    def __init__(
        self,
        *,
        global_text: str = GLOBAL_INSTRUCTIONS,
        domain_texts: Mapping[str, str] | None = None,
        max_chars: int = 12000,
        max_preference_chars: int = 5000,
        cache: CacheStore | None = None,
        cache_ttl: float = 300.0,
        domains: Iterable[str] = (),
    ) -> None:
        self._global = global_text.strip()
        self._domains = {
            normalize_domain(k): v.strip()
            for k, v in (DOMAIN_INSTRUCTIONS if domain_texts is None else domain_texts).items()
        }
        self._max_chars = max_chars
        self._max_pref = max_preference_chars
        self._cache = cache
        self._cache_ttl = cache_ttl
        self.compositions = 0
        self._validate({*self._domains, *(normalize_domain(d) for d in domains)})

    def _validate(self, domains: set[str]) -> None:
        for domain in sorted(domains) or ["general"]:
            size = len(self._base(domain))
            if size > self._max_chars:
                raise ConfigurationError(
                    f"Instruction cap {self._max_chars} is smaller than the {size} characters "
                    f"of global+domain rules for '{domain}'"
                )

    def _base(self, domain: str) -> str:
        domain_text = self._domains.get(domain)
        if domain_text:
            return self._global + LAYER_SEPARATOR + domain_text
        return self._global

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def assemble(self, domain: str | None, user_context: UserContext | None = None) -> str:
        """Compose instructions synchronously. Unknown domains get global rules only."""
        self.compositions += 1
        canonical = normalize_domain(domain)
        if domain and canonical not in self._domains:
            logger.debug("no domain instructions for %s; using global rules only", canonical)
        base = self._base(canonical)

        prefs = user_context.preferences if user_context else None
        fragment = format_preferences(prefs, self._max_pref)
        if not fragment:
            return base

        room = self._max_chars - len(base) - len(LAYER_SEPARATOR)
        fragment = truncate_fragment(fragment, room)
        if not fragment:
            logger.info("preference fragment dropped for domain=%s: no room under cap", canonical)
            return base
        return base + LAYER_SEPARATOR + fragment

    async def assemble_cached(self, domain: str | None, user_context: UserContext | None = None) -> str:
        """Like :meth:`assemble`, reusing a composition for ``cache_ttl`` seconds."""
        if self._cache is None:
            return self.assemble(domain, user_context)

        key = self.cache_key(domain, user_context)
        try:
            cached = await self._cache.get(key)
        except Exception:
            logger.warning("instruction cache read failed for %s", key, exc_info=True)
            cached = None
        if cached is not None:
            return cached

        text = self.assemble(domain, user_context)
        try:
            await self._cache.set(key, text, self._cache_ttl)
        except Exception:
            logger.warning("instruction cache write failed for %s", key, exc_info=True)
        return text

    def cache_key(self, domain: str | None, user_context: UserContext | None = None) -> str:
        fingerprint = (user_context or UserContext()).fingerprint()
        return f"{INSTRUCTION_KEY_PREFIX}{normalize_domain(domain)}:{fingerprint}"
