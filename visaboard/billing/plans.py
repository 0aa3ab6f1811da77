"""Plan catalogue and AI-suggestion quota derivation.

Plan names are free text entered by admins, so quotas are derived from
keywords in the name first and from an exact-name table second. These are
pure functions; nothing here touches the database.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("visaboard.billing")


class PlanTier(str, enum.Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


TIER_QUOTAS: dict[PlanTier, int] = {
    PlanTier.BASIC: 20,
    PlanTier.PREMIUM: 80,
    PlanTier.ENTERPRISE: 300,
}

# Checked in this order; the first tier with a matching keyword wins.
TIER_KEYWORDS: list[tuple[PlanTier, tuple[str, ...]]] = [
    (PlanTier.BASIC, ("basic", "基础", "一月")),
    (PlanTier.PREMIUM, ("premium", "高级", "三月")),
    (PlanTier.ENTERPRISE, ("enterprise", "企业", "半年")),
]

EXACT_NAME_QUOTAS: dict[str, int] = {
    "Basic Plan": 20,
    "Premium Plan": 80,
    "Enterprise Plan": 300,
}


def match_tier(membership_name: Optional[str]) -> Optional[PlanTier]:
    if not membership_name:
        return None
    lowered = membership_name.lower()
    for tier, keywords in TIER_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return tier
    return None


def derive_quota(membership_name: Optional[str]) -> int:
    """Map a plan name to its AI-suggestion quota; 0 when absent or unknown."""
    if not membership_name:
        return 0
    tier = match_tier(membership_name)
    if tier is not None:
        return TIER_QUOTAS[tier]
    quota = EXACT_NAME_QUOTAS.get(membership_name)
    if quota is None:
        logger.warning(f"Unknown membership type: {membership_name}")
        return 0
    return quota


def duration_fallback_quota(duration_days: int) -> int:
    """Quota for an active plan whose name matched nothing."""
    if duration_days <= 180:
        return 20
    if duration_days <= 365:
        return 80
    return 300


@dataclass(frozen=True)
class PlanSpec:
    name: str
    description: str
    price: float
    duration: int
    features: list[str] = field(default_factory=list)
    order: int = 0


DEFAULT_PLANS: list[PlanSpec] = [
    PlanSpec(
        name="Basic Plan",
        description="Perfect for individuals who need basic visa guidance and support.",
        price=20,
        duration=180,
        features=[
            "Access to basic visa information",
            "Email support",
            "Standard processing guides",
            "Community forum access",
        ],
        order=1,
    ),
    PlanSpec(
        name="Premium Plan",
        description="Ideal for professionals and frequent travelers with comprehensive needs.",
        price=50,
        duration=365,
        features=[
            "All Basic Plan features",
            "Advanced visa processing guides",
            "One-on-one consultation (1 hour)",
            "Document review service",
            "Video tutorials access",
        ],
        order=2,
    ),
    PlanSpec(
        name="Enterprise Plan",
        description="Complete visa solution for businesses and immigration professionals.",
        price=80,
        duration=730,
        features=[
            "All Premium Plan features",
            "Priority support",
            "Unlimited consultations",
            "Custom document templates",
            "Dedicated account manager",
        ],
        order=3,
    ),
]
