"""Plan limits — static per-plan, per-feature daily generation ceilings."""

from dataclasses import dataclass
from enum import Enum

UNLIMITED = -1


class Feature(str, Enum):
    """Quota dimension a generation request is counted against."""

    AI_USES = "ai_uses"  # general chat
    FAKE_NEWS = "fake_news"
    AI_CREATIVE = "ai_creative"
    POLITICAL_AGENTS = "political_agents"


@dataclass(frozen=True)
class PlanQuota:
    plan: str
    feature: Feature
    daily_limit: int  # -1 = unlimited

    @property
    def unlimited(self) -> bool:
        return self.daily_limit == UNLIMITED


# Most restrictive first; unknown plans resolve to it
DEFAULT_PLAN = "free"

PLAN_LIMITS: dict[str, dict[Feature, int]] = {
    "free": {
        Feature.AI_USES: 10,
        Feature.FAKE_NEWS: 1,
        Feature.AI_CREATIVE: 3,
        Feature.POLITICAL_AGENTS: 1,
    },
    "engaged": {
        Feature.AI_USES: 50,
        Feature.FAKE_NEWS: 5,
        Feature.AI_CREATIVE: 20,
        Feature.POLITICAL_AGENTS: 3,
    },
    "leader": {
        Feature.AI_USES: 100,
        Feature.FAKE_NEWS: 10,
        Feature.AI_CREATIVE: 50,
        Feature.POLITICAL_AGENTS: UNLIMITED,
    },
    "supreme": {
        Feature.AI_USES: UNLIMITED,
        Feature.FAKE_NEWS: 20,
        Feature.AI_CREATIVE: UNLIMITED,
        Feature.POLITICAL_AGENTS: UNLIMITED,
    },
}

# Plan names as stored by the platform's subscription tables
PLAN_ALIASES: dict[str, str] = {
    "gratuito": "free",
    "engajado": "engaged",
    "lider": "leader",
    "líder": "leader",
    "supremo": "supreme",
}


def resolve_plan(plan: str | None) -> str:
    """Canonical plan name; unknown or missing plans fall back to the most restrictive tier."""
    name = (plan or "").strip().lower()
    name = PLAN_ALIASES.get(name, name)
    return name if name in PLAN_LIMITS else DEFAULT_PLAN


def get_plan_quota(plan: str | None, feature: Feature = Feature.AI_USES) -> PlanQuota:
    name = resolve_plan(plan)
    limits = PLAN_LIMITS[name]
    return PlanQuota(plan=name, feature=feature, daily_limit=limits.get(feature, limits[Feature.AI_USES]))
