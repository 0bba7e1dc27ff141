"""Response Normalizer — provider payload → uniform CompletionResult.

Expected success envelope (OpenAI-compatible chat completions):

    {"choices": [{"message": {"content": "..."}}], "usage": {"total_tokens": 42}}

Anything else, including an envelope whose text is empty or whitespace-only,
is reported as a NormalizationFailure so the dispatcher advances instead of
terminating on a useless result.
"""

from __future__ import annotations

import logging
from typing import Any

from app.gateway.types import CompletionResult, NormalizationFailure

logger = logging.getLogger(__name__)

# Reported when the provider omits usage, so a real call never records zero cost
DEFAULT_TOKENS_USED = 100


def normalize(provider: str, payload: Any, model: str = "") -> CompletionResult | NormalizationFailure:
    """Extract generated text and token usage from a provider payload.

    ``model`` is the candidate's configured model id; results always report
    the configured value rather than whatever alias the provider echoes.
    """
    if not isinstance(payload, dict):
        return NormalizationFailure(provider, f"payload is {type(payload).__name__}, expected object")

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return NormalizationFailure(provider, "missing or empty 'choices'")

    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        return NormalizationFailure(provider, "missing 'message' in first choice")

    content = message.get("content")
    if not isinstance(content, str):
        return NormalizationFailure(provider, "message content is not a string")

    content = content.strip()
    if not content:
        return NormalizationFailure(provider, "empty message content")

    return CompletionResult(
        content=content,
        tokens_used=_extract_tokens(payload.get("usage")),
        model=model or str(payload.get("model", "")),
        provider=provider,
    )


def _extract_tokens(usage: Any) -> int:
    if not isinstance(usage, dict):
        return DEFAULT_TOKENS_USED
    total = usage.get("total_tokens")
    # bool is an int subclass
    if isinstance(total, bool) or not isinstance(total, int) or total <= 0:
        prompt = usage.get("prompt_tokens")
        completion = usage.get("completion_tokens")
        if isinstance(prompt, int) and isinstance(completion, int) and prompt + completion > 0:
            return prompt + completion
        return DEFAULT_TOKENS_USED
    return total
