from typing import Dict, List, Optional

# Tier limits configuration
# monthly_limit of -1 means unlimited
FREE_FEATURES: List[str] = ["overallTone", "healthScore", "pdfExport"]

PERSONAL_FEATURES: List[str] = FREE_FEATURES + [
    "participantTones",
    "communicationInsights",
    "advancedToneAnalysis",
    "tensionContributions",
    "keyQuotes",
    "manipulationScore",
    "redFlags",
    "communicationStyles",
    "accountabilityMeters",
    "empatheticSummary",
]

PRO_FEATURES: List[str] = PERSONAL_FEATURES + [
    "unlimitedUploads",
    "conversationDynamics",
    "behaviouralPatterns",
    "advancedTrendLines",
    "evasionIdentification",
    "messageDominance",
    "emotionalShiftsTimeline",
    "powerDynamics",
    "redFlagsTimeline",
]

TIER_LIMITS: Dict[str, Dict] = {
    "free": {
        "monthly_limit": 5,
        "features": FREE_FEATURES,
    },
    "personal": {
        "monthly_limit": 5,
        "features": PERSONAL_FEATURES,
    },
    "pro": {
        "monthly_limit": -1,  # -1 means unlimited
        "features": PRO_FEATURES,
    },
    "instant": {
        "monthly_limit": 1,  # One-time deep dive with the pro feature set
        "features": PRO_FEATURES,
    },
}

VALID_TIERS = tuple(TIER_LIMITS.keys())

# Free trial for visitors without an account, counted per X-Device-Id
ANONYMOUS_TRIAL_LIMIT = 2


def normalize_tier(tier: Optional[str]) -> str:
    """Return a known tier name, falling back to free."""
    tier = (tier or "free").strip().lower()
    return tier if tier in TIER_LIMITS else "free"


def get_tier_limit(tier: str) -> int:
    """Get the monthly analysis limit for a tier (-1 for unlimited)."""
    return TIER_LIMITS[normalize_tier(tier)]["monthly_limit"]


def get_tier_features(tier: str) -> List[str]:
    return TIER_LIMITS[normalize_tier(tier)]["features"]


def has_feature(tier: str, feature: str) -> bool:
    return feature in get_tier_features(tier)
