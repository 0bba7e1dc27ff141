"""Quota gate — check a user's daily generation allowance before any provider call.

Read-only: consuming a slot is the generation service's job and goes
through the store's atomic conditional increment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import QuotaExceeded
from app.core.plan_limits import UNLIMITED, Feature, get_plan_quota
from app.services.usage_store import UsageStore

logger = logging.getLogger(__name__)


def quota_day(boundary: str = "utc") -> date:
    """Current quota day: UTC calendar day, or the server's local day with ``boundary="local"``."""
    if boundary == "local":
        return date.today()
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class QuotaStatus:
    can_use: bool
    used: int
    limit: int
    remaining: int
    plan: str = ""
    feature: str = Feature.AI_USES.value

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED

    def to_dict(self) -> dict:
        return {
            "can_use": self.can_use,
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "unlimited": self.unlimited,
            "plan": self.plan,
            "feature": self.feature,
        }


class QuotaGate:
    """Decides whether a new generation is permitted today and how many remain."""

    def __init__(self, store: UsageStore, day_boundary: str = "utc"):
        self.store = store
        self.day_boundary = day_boundary

    def today(self) -> date:
        return quota_day(self.day_boundary)

    async def check_limits(
        self,
        user_id: str,
        plan: str | None,
        feature: Feature = Feature.AI_USES,
    ) -> QuotaStatus:
        quota = get_plan_quota(plan, feature)

        if quota.unlimited:
            return QuotaStatus(
                can_use=True,
                used=0,
                limit=UNLIMITED,
                remaining=UNLIMITED,
                plan=quota.plan,
                feature=feature.value,
            )

        try:
            used = await self.store.get_count(user_id, feature.value, self.today())
        except (SQLAlchemyError, OSError):
            # Fail closed: an unreadable store must not mean unmetered use
            logger.exception("Usage store unavailable; denying generation for user %s", user_id)
            return QuotaStatus(
                can_use=False,
                used=0,
                limit=quota.daily_limit,
                remaining=0,
                plan=quota.plan,
                feature=feature.value,
            )

        return QuotaStatus(
            can_use=used < quota.daily_limit,
            used=used,
            limit=quota.daily_limit,
            remaining=max(0, quota.daily_limit - used),
            plan=quota.plan,
            feature=feature.value,
        )

    async def ensure_allowed(
        self,
        user_id: str,
        plan: str | None,
        feature: Feature = Feature.AI_USES,
    ) -> QuotaStatus:
        """Raise QuotaExceeded if the user can't generate now."""
        status = await self.check_limits(user_id, plan, feature)
        if not status.can_use:
            raise QuotaExceeded(
                plan=status.plan,
                feature=status.feature,
                used=status.used,
                limit=status.limit,
                remaining=status.remaining,
            )
        return status
