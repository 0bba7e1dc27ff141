"""Provider Registry — static, ordered catalogue of candidate backends.

Built once at startup from Settings. Ordering encodes cost/quality
preference: best paid model first, then free-tier models of the same
provider, then an alternate provider. Candidates without a credential are
skipped; a registry with zero usable candidates is a ConfigurationError.

Route profiles reorder the same catalogue per kind of question:
  - DEFAULT:       premium → free models → alternate provider
  - CURRENT_TOPIC: recent-knowledge free models → other free models → alternate
  - PLATFORM:      free models → alternate provider
  - VISION:        vision-capable models only (image parts are OpenRouter-specific here)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import MappingProxyType

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.gateway.types import ProviderCandidate, ProviderName, RouteProfile

logger = logging.getLogger(__name__)


def _dedupe(candidates: Iterable[ProviderCandidate]) -> tuple[ProviderCandidate, ...]:
    """Drop repeated (provider, model) pairs, keeping first position."""
    seen: set[tuple[ProviderName, str]] = set()
    result: list[ProviderCandidate] = []
    for c in candidates:
        key = (c.provider, c.model)
        if key not in seen:
            seen.add(key)
            result.append(c)
    return tuple(result)


class ProviderRegistry:
    """Read-only candidate orderings, safe to share across concurrent requests."""

    def __init__(self, routes: dict[RouteProfile, Iterable[ProviderCandidate]]):
        frozen = {profile: _dedupe(cands) for profile, cands in routes.items()}
        if not any(frozen.values()):
            raise ConfigurationError("No usable LLM provider candidate is configured")
        if not frozen.get(RouteProfile.DEFAULT):
            raise ConfigurationError("The default route has no usable LLM provider candidate")
        self._routes = MappingProxyType(frozen)

    @classmethod
    def from_candidates(cls, candidates: Iterable[ProviderCandidate]) -> ProviderRegistry:
        """Single ordering used for every route profile."""
        ordered = tuple(candidates)
        return cls({profile: ordered for profile in RouteProfile})

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderRegistry:
        def openrouter(model: str) -> ProviderCandidate:
            return ProviderCandidate(
                provider=ProviderName.OPENROUTER,
                endpoint=settings.openrouter_api_url,
                model=model,
                api_key=settings.openrouter_api_key,
                timeout_seconds=settings.llm_timeout_seconds,
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
            )

        premium: list[ProviderCandidate] = []
        free: list[ProviderCandidate] = []
        recent: list[ProviderCandidate] = []
        vision: list[ProviderCandidate] = []
        alternate: list[ProviderCandidate] = []

        if settings.openrouter_api_key:
            if settings.openrouter_premium_model:
                premium.append(openrouter(settings.openrouter_premium_model))
            free = [openrouter(m) for m in settings.openrouter_free_models]
            recent = [openrouter(m) for m in settings.openrouter_current_topic_models]
            vision = [openrouter(m) for m in settings.openrouter_vision_models]
        else:
            logger.warning("OPENROUTER_API_KEY not set — OpenRouter candidates disabled")

        if settings.together_api_key:
            alternate.append(
                ProviderCandidate(
                    provider=ProviderName.TOGETHER,
                    endpoint=settings.together_api_url,
                    model=settings.together_model,
                    api_key=settings.together_api_key,
                    timeout_seconds=settings.llm_timeout_seconds,
                    max_tokens=settings.llm_max_tokens,
                    temperature=settings.llm_temperature,
                )
            )
        else:
            logger.warning("TOGETHER_API_KEY not set — Together.ai candidate disabled")

        registry = cls(
            {
                RouteProfile.DEFAULT: premium + free + alternate,
                RouteProfile.CURRENT_TOPIC: recent + free + alternate,
                RouteProfile.PLATFORM: free + alternate,
                RouteProfile.VISION: vision,
            }
        )
        logger.info(
            "Provider registry ready: %s",
            ", ".join(f"{p.value}={len(c)}" for p, c in registry._routes.items()),
        )
        return registry

    def candidates(self, profile: RouteProfile = RouteProfile.DEFAULT) -> tuple[ProviderCandidate, ...]:
        """Ordered candidates for a profile; empty profiles fall back to DEFAULT."""
        return self._routes.get(profile) or self._routes[RouteProfile.DEFAULT]

    @property
    def providers(self) -> set[ProviderName]:
        return {c.provider for cands in self._routes.values() for c in cands}
