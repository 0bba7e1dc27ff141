"""Vendor-Specific Adapters — protocol-level handling for each provider.

Each adapter translates a CompletionRequest + ProviderCandidate into the
provider's HTTP request, sends it, and returns the decoded JSON body of a 2xx
response. Failures are raised as ProviderError subclasses; classification of
the body (usable content or not) is the normalizer's job.

Requests with images send the user turn as OpenAI content parts
(one text part, then one image_url part per image).

Vendor-specific behaviors:
  - OpenRouter: OpenAI-compatible, requires attribution headers
    (HTTP-Referer, X-Title)
  - Together.ai: plain OpenAI-compatible chat completions
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.exceptions import ProviderHTTPError, ProviderParseError, ProviderTimeout
from app.gateway.types import CompletionRequest, ProviderCandidate, ProviderName

logger = logging.getLogger(__name__)

# Provider error bodies are truncated to this many characters in logs
_ERROR_BODY_LIMIT = 300


class BaseVendorAdapter:
    """OpenAI-compatible chat completions adapter."""

    provider: ProviderName

    def build_payload(self, request: CompletionRequest, candidate: ProviderCandidate) -> dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        if request.has_image:
            content: Any = [{"type": "text", "text": request.user_message}]
            content.extend({"type": "image_url", "image_url": {"url": url}} for url in request.image_urls)
        else:
            content = request.user_message
        messages.append({"role": "user", "content": content})
        return {
            "model": candidate.model,
            "messages": messages,
            "max_tokens": candidate.max_tokens,
            "temperature": candidate.temperature,
        }

    def build_headers(self, candidate: ProviderCandidate) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {candidate.api_key}",
            "Content-Type": "application/json",
        }

    async def send(
        self,
        request: CompletionRequest,
        candidate: ProviderCandidate,
        client: httpx.AsyncClient | None = None,
    ) -> Any:
        """POST the request and return the decoded 2xx body.

        With no shared ``client``, a client is opened for this call only and
        closed on return, error or cancellation.
        """
        if client is None:
            async with httpx.AsyncClient(timeout=candidate.timeout_seconds) as own_client:
                return await self._post(own_client, request, candidate)
        return await self._post(client, request, candidate)

    async def _post(self, client: httpx.AsyncClient, request: CompletionRequest, candidate: ProviderCandidate) -> Any:
        try:
            resp = await client.post(
                candidate.endpoint,
                json=self.build_payload(request, candidate),
                headers=self.build_headers(candidate),
                timeout=candidate.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"{candidate.label} timed out after {candidate.timeout_seconds}s", candidate) from e
        except httpx.HTTPError as e:
            raise ProviderHTTPError(f"{candidate.label} transport error: {e}", 0, candidate) from e
        except Exception as e:
            # Request never left the process (bad header value, malformed endpoint, ...)
            raise ProviderHTTPError(
                f"{candidate.label} request could not be sent: {type(e).__name__}: {e}", 0, candidate
            ) from e

        if not resp.is_success:
            raise ProviderHTTPError(
                f"{candidate.label} returned HTTP {resp.status_code}: {resp.text[:_ERROR_BODY_LIMIT]}",
                resp.status_code,
                candidate,
            )

        try:
            return resp.json()
        except (ValueError, RecursionError) as e:
            raise ProviderParseError(f"{candidate.label} returned an undecodable body", candidate) from e


# ---------------------------------------------------------------------------
# OpenRouter Adapter
# ---------------------------------------------------------------------------


class OpenRouterAdapter(BaseVendorAdapter):
    """OpenRouter adapter with app attribution headers."""

    provider = ProviderName.OPENROUTER

    def __init__(self, referer: str = "", title: str = ""):
        self.referer = referer
        self.title = title

    def build_headers(self, candidate: ProviderCandidate) -> dict[str, str]:
        headers = super().build_headers(candidate)
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.title:
            headers["X-Title"] = self.title
        return headers


# ---------------------------------------------------------------------------
# Together.ai Adapter
# ---------------------------------------------------------------------------


class TogetherAdapter(BaseVendorAdapter):
    """Together.ai adapter (plain OpenAI-compatible)."""

    provider = ProviderName.TOGETHER


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[ProviderName, type[BaseVendorAdapter]] = {
    ProviderName.OPENROUTER: OpenRouterAdapter,
    ProviderName.TOGETHER: TogetherAdapter,
}


def get_adapter(provider: ProviderName, **kwargs) -> BaseVendorAdapter:
    """Factory: get the appropriate adapter for a provider."""
    cls = ADAPTER_REGISTRY.get(provider)
    if cls is None:
        raise ValueError(f"No adapter registered for provider: {provider}")
    return cls(**kwargs)
