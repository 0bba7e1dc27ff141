"""Route classifier — picks a candidate ordering from the user's message.

Keyword heuristics only: current-affairs questions go to the models with
the most recent knowledge, questions about the platform itself go straight
to free models, everything else takes the default (premium first) route.
Messages carrying images always take the vision route. Otherwise a
platform keyword wins over a current-topic keyword.
"""

from __future__ import annotations

from app.gateway.types import RouteProfile

CURRENT_TOPIC_KEYWORDS: tuple[str, ...] = (
    # politics
    "2025", "2026", "eleições", "governo atual", "presidente", "ministro", "congresso",
    "senado", "câmara", "stf", "política atual", "reforma",
    # economy
    "inflação", "pix", "real digital", "economia brasileira", "mercado financeiro",
    "bolsa de valores", "dólar", "juros", "selic", "copom",
    # technology
    "inteligência artificial", "regulamentação", "marco civil", "lgpd",
    # events
    "copa do mundo", "olimpíadas", "pandemia", "covid", "aquecimento global",
    # society
    "direitos humanos", "segurança pública", "criminalidade",
)  # fmt: skip

PLATFORM_KEYWORDS: tuple[str, ...] = (
    "direitai", "plataforma", "como usar", "funcionalidade", "perfil",
    "pontos", "ranking", "gamificação", "conquistas", "badges",
    "quiz", "verdade ou fake", "ia criativa", "blog",
    "check-in", "eventos", "constituição", "ajuda", "suporte",
    "tutorial", "dúvida sobre o site",
)  # fmt: skip


def is_platform_query(message: str) -> bool:
    text = message.lower()
    return any(keyword in text for keyword in PLATFORM_KEYWORDS)


def is_current_topic_query(message: str) -> bool:
    text = message.lower()
    return any(keyword in text for keyword in CURRENT_TOPIC_KEYWORDS) and not is_platform_query(text)


def classify_route(message: str, has_image: bool = False) -> RouteProfile:
    if has_image:
        return RouteProfile.VISION
    if is_platform_query(message):
        return RouteProfile.PLATFORM
    if is_current_topic_query(message):
        return RouteProfile.CURRENT_TOPIC
    return RouteProfile.DEFAULT
