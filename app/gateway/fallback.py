"""Fallback Responder — canned content after dispatcher exhaustion."""

from __future__ import annotations

import random
from collections.abc import Sequence

from app.gateway.types import CompletionResult, ProviderName

FALLBACK_MODEL = "fallback"
FALLBACK_TOKENS_USED = 50

FALLBACK_RESPONSES: tuple[str, ...] = (
    "Desculpe, estou com dificuldades técnicas no momento. Tente novamente em alguns instantes.",
    "Nossos serviços de IA estão temporariamente indisponíveis. Nossa equipe já está trabalhando nisso.",
    "No momento não consegui elaborar uma resposta completa. Por favor, reformule sua pergunta ou tente mais tarde.",
    "Estou recebendo muitas solicitações agora. Aguarde alguns minutos e envie sua mensagem novamente.",
)


class FallbackResponder:
    """Always returns usable, topic-neutral content tagged with provider ``internal``."""

    def __init__(self, responses: Sequence[str] = FALLBACK_RESPONSES, rng: random.Random | None = None):
        cleaned = tuple(r for r in responses if r and r.strip())
        if not cleaned:
            raise ValueError("FallbackResponder needs at least one non-empty response")
        self._responses = cleaned
        self._rng = rng or random.Random()

    def respond(self) -> CompletionResult:
        return CompletionResult(
            content=self._rng.choice(self._responses),
            tokens_used=FALLBACK_TOKENS_USED,
            model=FALLBACK_MODEL,
            provider=ProviderName.INTERNAL.value,
        )
