"""Generation service — the inbound ``generate(user_id, plan, message)`` contract.

Flow per request:
  1. QuotaGate.check_limits — rejected requests never reach a provider
  2. Atomic slot reservation in the usage store (lost race = rejection)
  3. Dispatcher.run over the route profile chosen for the message
  4. Exhaustion → FallbackResponder, still ``success=True``

Conversation persistence, history and billing belong to the caller.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import metrics
from app.core.config import Settings
from app.core.exceptions import QuotaExceeded
from app.core.plan_limits import Feature
from app.gateway.dispatcher import Dispatcher
from app.gateway.fallback import FallbackResponder
from app.gateway.registry import ProviderRegistry
from app.gateway.routing import classify_route
from app.gateway.types import AttemptOutcome, CompletionRequest, CompletionResult, DispatchResult, ProviderName
from app.services.quota import QuotaGate, QuotaStatus
from app.services.usage_store import SqlUsageStore

logger = logging.getLogger(__name__)


@dataclass
class GenerationResponse:
    success: bool
    content: str = ""
    model: str = ""
    provider: str = ""
    tokens_used: int = 0
    quota: QuotaStatus | None = None
    error: str = ""
    # Diagnostics only; not part of the caller-visible dict
    attempts: list[AttemptOutcome] = field(default_factory=list)

    @classmethod
    def from_result(
        cls,
        result: CompletionResult,
        quota: QuotaStatus | None,
        attempts: list[AttemptOutcome] | None = None,
    ) -> "GenerationResponse":
        return cls(
            success=True,
            content=result.content,
            model=result.model,
            provider=result.provider,
            tokens_used=result.tokens_used,
            quota=quota,
            attempts=attempts or [],
        )

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "content": self.content,
            "model": self.model,
            "provider": self.provider,
            "tokensUsed": self.tokens_used,
        }
        if self.quota is not None:
            data["quota"] = self.quota.to_dict()
        if self.error:
            data["error"] = self.error
        return data

    def attempt_summary(self) -> dict:
        return DispatchResult(attempts=self.attempts).summary()["attempts"]


class GenerationService:
    def __init__(
        self,
        quota_gate: QuotaGate,
        dispatcher: Dispatcher,
        fallback: FallbackResponder | None = None,
        system_prompt: str = "",
    ):
        self.quota_gate = quota_gate
        self.dispatcher = dispatcher
        self.fallback = fallback or FallbackResponder()
        self.system_prompt = system_prompt
        # Slot releases still running after their request was cancelled
        self._pending_releases: set[asyncio.Task] = set()

    @property
    def store(self):
        return self.quota_gate.store

    async def generate(
        self,
        user_id: str,
        plan: str | None,
        message: str,
        feature: Feature = Feature.AI_USES,
        system_prompt: str | None = None,
        image_urls: Sequence[str] | None = None,
    ) -> GenerationResponse:
        if not message or not message.strip():
            raise ValueError("message must not be empty")

        day = self.quota_gate.today()
        try:
            status = await self.quota_gate.ensure_allowed(user_id, plan, feature)
            status, reserved = await self._reserve(user_id, status, day)
        except QuotaExceeded as e:
            metrics.QUOTA_REJECTIONS.labels(plan=e.plan, feature=e.feature, reason="limit").inc()
            logger.info("Quota rejection for user %s: %s", user_id, e)
            return GenerationResponse(
                success=False,
                quota=QuotaStatus(
                    can_use=False, used=e.used, limit=e.limit, remaining=e.remaining, plan=e.plan, feature=e.feature
                ),
                error=str(e),
            )

        request = CompletionRequest(
            system_prompt=system_prompt if system_prompt is not None else self.system_prompt,
            user_message=message.strip(),
            image_urls=tuple(image_urls or ()),
        )
        profile = classify_route(message, has_image=request.has_image)

        try:
            outcome = await self.dispatcher.run(request, profile=profile)
        except (asyncio.CancelledError, Exception):
            # Cancelled or failed mid-dispatch: give the slot back, then re-raise
            if reserved:
                await asyncio.shield(self._schedule_release(user_id, feature, day))
            raise

        if outcome.exhausted:
            metrics.FALLBACK_RESPONSES.inc()
            logger.warning(
                "Serving fallback response to user %s after %d failed attempts", user_id, len(outcome.attempts)
            )
            return GenerationResponse.from_result(self.fallback.respond(), status, outcome.attempts)

        return GenerationResponse.from_result(outcome.result, status, outcome.attempts)

    async def _reserve(self, user_id: str, status: QuotaStatus, day: date) -> tuple[QuotaStatus, bool]:
        """Consume one slot atomically. Returns the updated status and whether a slot is held."""
        if status.unlimited:
            try:
                await self.store.increment(user_id, status.feature, day)
            except (SQLAlchemyError, OSError):
                logger.exception("Could not record unlimited-plan usage for user %s", user_id)
                return status, False
            return status, True

        try:
            count = await self.store.consume(user_id, status.feature, day, status.limit)
        except (SQLAlchemyError, OSError):
            logger.exception("Usage store unavailable while reserving a slot for user %s", user_id)
            raise QuotaExceeded(status.plan, status.feature, status.used, status.limit, 0)

        if count is None:
            # Another request from the same user took the last slot
            raise QuotaExceeded(status.plan, status.feature, status.limit, status.limit, 0)

        return (
            replace(status, used=count, remaining=max(0, status.limit - count), can_use=count < status.limit),
            True,
        )

    async def _release(self, user_id: str, feature: str, day: date) -> None:
        try:
            await self.store.release(user_id, feature, day)
        except (SQLAlchemyError, OSError):
            logger.exception("Could not release usage slot for user %s", user_id)

    def _schedule_release(self, user_id: str, feature: str, day: date) -> asyncio.Task:
        """Run the release as a tracked task so a second cancellation cannot orphan it."""
        task = asyncio.create_task(self._release(user_id, feature, day))
        self._pending_releases.add(task)
        task.add_done_callback(self._release_done)
        return task

    def _release_done(self, task: asyncio.Task) -> None:
        self._pending_releases.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Usage slot release failed", exc_info=task.exception())


def build_generation_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    client: httpx.AsyncClient | None = None,
) -> GenerationService:
    """Wire the production service. Raises ConfigurationError when no provider is usable."""
    if session_factory is None:
        from app.db.postgres import async_session_factory

        session_factory = async_session_factory

    registry = ProviderRegistry.from_settings(settings)
    dispatcher = Dispatcher(
        registry,
        client=client,
        adapter_kwargs={
            ProviderName.OPENROUTER.value: {"referer": settings.app_referer, "title": settings.app_title},
        },
    )
    return GenerationService(
        quota_gate=QuotaGate(SqlUsageStore(session_factory), day_boundary=settings.quota_day_boundary),
        dispatcher=dispatcher,
        fallback=FallbackResponder(),
        system_prompt=settings.default_system_prompt,
    )
