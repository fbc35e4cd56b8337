"""
Strip analysis fields the caller's tier does not include.
Unknown tiers are treated as free.
"""
from typing import Optional

from app.core.tier_limits import get_tier_features, normalize_tier

# Chat fields gated by a feature name. A field is kept if the tier has any listed feature.
CHAT_FIELD_FEATURES = {
    "healthScore": ("healthScore",),
    "keyQuotes": ("keyQuotes",),
    "redFlags": ("redFlags",),
    "highTensionFactors": ("advancedToneAnalysis",),
    "participantConflictScores": ("communicationStyles",),
    "tensionContributions": ("tensionContributions",),
    "tensionMeaning": ("tensionContributions",),
}

DERIVED_FIELDS = ("conflictDynamics", "evasionDetection")


def _allowed(features: list, required: tuple) -> bool:
    return any(feature in features for feature in required)


def filter_chat_analysis_by_tier(analysis: dict, tier: Optional[str]) -> dict:
    """Return a copy of a chat analysis containing only the fields the tier includes."""
    features = get_tier_features(tier)
    tone = analysis.get("toneAnalysis")
    tone = tone if isinstance(tone, dict) else {}
    communication = analysis.get("communication")
    communication = communication if isinstance(communication, dict) else {}

    filtered_tone = {
        "overallTone": tone.get("overallTone", ""),
        "emotionalState": tone.get("emotionalState", []),
    }
    if tone.get("participantTones") and "participantTones" in features:
        filtered_tone["participantTones"] = tone["participantTones"]

    filtered = {
        "toneAnalysis": filtered_tone,
        # Basic patterns are available to all tiers
        "communication": {"patterns": communication.get("patterns") or []},
    }

    for field, required in CHAT_FIELD_FEATURES.items():
        if analysis.get(field) is not None and _allowed(features, required):
            filtered[field] = analysis[field]

    if communication.get("dynamics") and _allowed(features, ("conversationDynamics", "communicationStyles")):
        filtered["communication"]["dynamics"] = communication["dynamics"]

    if communication.get("suggestions"):
        filtered["communication"]["suggestions"] = communication["suggestions"]

    # Already shaped for the tier when they were built
    for field in DERIVED_FIELDS:
        if analysis.get(field) is not None:
            filtered[field] = analysis[field]

    return filtered


def filter_message_analysis_by_tier(analysis: dict, tier: Optional[str]) -> dict:
    tier = normalize_tier(tier)
    filtered = {
        "tone": analysis.get("tone", ""),
        "intent": analysis.get("intent", []),
    }
    if tier in ("personal", "pro", "instant") and analysis.get("suggestedReply"):
        filtered["suggestedReply"] = analysis["suggestedReply"]
    if tier in ("pro", "instant"):
        for field in ("potentialResponse", "possibleReword"):
            if analysis.get(field):
                filtered[field] = analysis[field]
    return filtered


def filter_vent_result_by_tier(result: dict, tier: Optional[str]) -> dict:
    tier = normalize_tier(tier)
    filtered = {
        "original": result.get("original", ""),
        "rewritten": result.get("rewritten", ""),
        "explanation": result.get("explanation", ""),
    }
    if tier == "personal" and result.get("alternativeOptions"):
        filtered["alternativeOptions"] = result["alternativeOptions"]
    if tier in ("pro", "instant"):
        for field in ("additionalContextInsights", "longTermStrategy"):
            if result.get(field):
                filtered[field] = result[field]
    return filtered
