"""Generation Dispatcher — ordered, bounded, cancellable sequential attempts.

Walks the candidate list in declared order:
  1. Sends the request through the candidate's vendor adapter, bounded by
     the candidate's timeout (the in-flight call is cancelled on expiry)
  2. Normalizes the 2xx body
  3. Returns on the first usable result; otherwise records the outcome
     (http_error | timeout | parse_error) and advances

Each candidate is tried at most once and never in parallel. Exhaustion is a
normal result (``DispatchResult.exhausted``), not an exception.

Usage:
    dispatcher = Dispatcher(ProviderRegistry.from_settings(settings))
    outcome = await dispatcher.run(CompletionRequest(system_prompt, message))
    if outcome.exhausted:
        ...
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

import httpx

from app.core import metrics
from app.core.exceptions import ConfigurationError, ProviderError, ProviderHTTPError, ProviderParseError
from app.gateway.normalizer import normalize
from app.gateway.registry import ProviderRegistry
from app.gateway.types import (
    AttemptOutcome,
    CompletionRequest,
    CompletionResult,
    DispatchResult,
    NormalizationFailure,
    OutcomeKind,
    ProviderCandidate,
    ProviderName,
    RouteProfile,
)
from app.gateway.vendor_adapters import BaseVendorAdapter, get_adapter

logger = logging.getLogger(__name__)


class Dispatcher:
    """Stateless across requests; safe to share between concurrent tasks."""

    def __init__(
        self,
        registry: ProviderRegistry,
        client: httpx.AsyncClient | None = None,
        adapter_kwargs: dict[str, dict] | None = None,
    ):
        """
        Args:
            registry: Candidate orderings (already validated non-empty)
            client: Shared connection pool; one client per attempt when omitted
            adapter_kwargs: Extra kwargs per provider (e.g. referer/title for OpenRouter)
        """
        if registry is None:
            raise ConfigurationError("Dispatcher requires a provider registry")
        self.registry = registry
        self.client = client
        self._adapters: dict[ProviderName, BaseVendorAdapter] = {}
        kwargs = adapter_kwargs or {}
        for provider in registry.providers:
            self._adapters[provider] = get_adapter(provider, **kwargs.get(provider.value, {}))

    async def run(
        self,
        request: CompletionRequest,
        candidates: Sequence[ProviderCandidate] | None = None,
        profile: RouteProfile = RouteProfile.DEFAULT,
    ) -> DispatchResult:
        """Try ``candidates`` (default: the registry's ordering for ``profile``) until one succeeds."""
        ordered = tuple(candidates) if candidates is not None else self.registry.candidates(profile)
        outcome = DispatchResult()

        for index, candidate in enumerate(ordered):
            attempt, result = await self._attempt(request, candidate)
            outcome.attempts.append(attempt)

            if result is not None:
                logger.info(
                    "Generation served by %s (attempt %d/%d, %d ms)",
                    candidate.label,
                    index + 1,
                    len(ordered),
                    attempt.latency_ms,
                )
                outcome.result = result
                return outcome

            logger.warning(
                "Candidate %s failed (%s): %s",
                candidate.label,
                attempt.kind.value,
                attempt.error,
                extra={"provider": candidate.provider.value, "model": candidate.model, "outcome": attempt.kind.value},
            )

        metrics.DISPATCH_EXHAUSTED.inc()
        logger.error("All %d candidates failed for this request", len(ordered))
        return outcome

    async def _attempt(
        self,
        request: CompletionRequest,
        candidate: ProviderCandidate,
    ) -> tuple[AttemptOutcome, CompletionResult | None]:
        """Run one candidate. Any failure becomes an AttemptOutcome; only cancellation propagates."""
        start = time.monotonic()
        result: CompletionResult | None = None
        status_code = 0
        error = ""

        try:
            payload = await asyncio.wait_for(
                self._send(request, candidate),
                timeout=candidate.timeout_seconds,
            )
            normalized = normalize(candidate.provider.value, payload, model=candidate.model)
            if isinstance(normalized, NormalizationFailure):
                raise ProviderParseError(normalized.reason, candidate)
            result = normalized
            kind = OutcomeKind.SUCCESS
        except asyncio.TimeoutError:
            # wait_for has already cancelled and awaited the pending request
            kind = OutcomeKind.TIMEOUT
            error = f"no response within {candidate.timeout_seconds}s"
        except ProviderError as e:
            kind = e.kind
            error = str(e)
            if isinstance(e, ProviderHTTPError):
                status_code = e.status_code
        except Exception as e:
            # Adapter or normalizer bug: count it against this candidate and move on
            logger.exception("Unexpected error while trying %s", candidate.label)
            kind = OutcomeKind.HTTP_ERROR
            error = f"unexpected {type(e).__name__}"

        elapsed = time.monotonic() - start
        metrics.GENERATION_ATTEMPTS.labels(
            provider=candidate.provider.value, model=candidate.model, outcome=kind.value
        ).inc()
        metrics.ATTEMPT_DURATION.labels(provider=candidate.provider.value).observe(elapsed)

        attempt = AttemptOutcome(
            candidate=candidate,
            kind=kind,
            latency_ms=int(elapsed * 1000),
            status_code=status_code,
            error=error,
        )
        return attempt, result

    async def _send(self, request: CompletionRequest, candidate: ProviderCandidate):
        adapter = self._adapters.get(candidate.provider)
        if adapter is None:
            adapter = get_adapter(candidate.provider)
            self._adapters[candidate.provider] = adapter
        return await adapter.send(request, candidate, client=self.client)
