"""Core types and DTOs for the generation dispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderName(str, Enum):
    """Supported completion providers."""

    OPENROUTER = "openrouter"
    TOGETHER = "together"
    INTERNAL = "internal"  # FallbackResponder, never called over HTTP


class OutcomeKind(str, Enum):
    """Classification of a single candidate attempt."""

    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"


class RouteProfile(str, Enum):
    """Named candidate orderings, chosen per message."""

    DEFAULT = "default"  # premium first
    CURRENT_TOPIC = "current_topic"  # recent-knowledge models first
    PLATFORM = "platform"  # questions about the site itself: free models are enough
    VISION = "vision"  # message carries images: vision-capable models only


# ---------------------------------------------------------------------------
# Candidate configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderCandidate:
    """One configured backend the dispatcher may try."""

    provider: ProviderName
    endpoint: str
    model: str
    api_key: str = field(default="", repr=False)
    timeout_seconds: float = 25.0
    max_tokens: int = 500
    temperature: float = 0.7

    @property
    def label(self) -> str:
        return f"{self.provider.value}:{self.model}"


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompletionRequest:
    """A single generation request. No identity, discarded after use."""

    system_prompt: str
    user_message: str
    image_urls: tuple[str, ...] = ()

    @property
    def has_image(self) -> bool:
        return bool(self.image_urls)


@dataclass
class CompletionResult:
    """Uniform result of a successful generation. ``content`` is never empty."""

    content: str
    tokens_used: int
    model: str
    provider: str
    success: bool = True

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "tokens_used": self.tokens_used,
            "model": self.model,
            "provider": self.provider,
            "success": self.success,
        }


@dataclass(frozen=True)
class NormalizationFailure:
    """A syntactically successful provider response that yields no usable content."""

    provider: str
    reason: str


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@dataclass
class AttemptOutcome:
    """Transient record of one candidate attempt (diagnostics/tests only)."""

    candidate: ProviderCandidate
    kind: OutcomeKind
    latency_ms: int = 0
    status_code: int = 0
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS


@dataclass
class DispatchResult:
    """Outcome of walking a candidate list."""

    result: CompletionResult | None = None
    attempts: list[AttemptOutcome] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.result is None

    def summary(self) -> dict:
        return {
            "exhausted": self.exhausted,
            "attempts": [
                {
                    "provider": a.candidate.provider.value,
                    "model": a.candidate.model,
                    "outcome": a.kind.value,
                    "latency_ms": a.latency_ms,
                    "status_code": a.status_code,
                }
                for a in self.attempts
            ],
        }
