"""
Evasion detection: topic shifting, question dodging, deflection and the like,
read from the model's notes on each key quote.
Personal tier gets the pattern names, pro and instant get quoted examples.
"""
import logging
from typing import Optional

from app.core.tier_limits import normalize_tier

logger = logging.getLogger(__name__)

BASIC_EVASION_KEYWORDS = ("avoid", "deflect", "dodge", "shift", "divert", "ignore", "vague", "non-committal")

# (details key, label, keywords, context); the first matching keyword in each group counts
EVASION_CATEGORIES = [
    (
        "topicShifting", "Topic Shifting",
        ("change subject", "different topic", "shift", "unrelated", "tangent"),
        "Changed the subject instead of addressing the previous point",
    ),
    (
        "questionDodging", "Question Dodging",
        ("dodge", "avoid question", "not answer", "redirect question"),
        "Failed to provide a direct answer to a question",
    ),
    (
        "nonCommittal", "Non-committal Response",
        ("vague", "ambiguous", "unclear", "non-committal", "maybe", "perhaps"),
        "Used vague language to avoid taking a clear position",
    ),
    (
        "deflection", "Deflection",
        ("deflect", "counter-question", "blame", "defensive", "accusatory"),
        "Redirected attention away from the issue",
    ),
    (
        "avoidance", "Avoidance",
        ("avoid", "ignore", "silent", "withdraw", "distance"),
        "Actively avoided addressing the topic",
    ),
    (
        "refusalToEngage", "Refusal to Engage",
        ("refuse", "won't discuss", "shut down", "disengage", "not talk about"),
        "Explicitly refused to participate in meaningful dialogue",
    ),
]

DETAILED_TITLE = "Avoidance Detection Activated"


def _quotes(key_quotes) -> list:
    return [quote for quote in key_quotes or [] if isinstance(quote, dict)]


def detect_basic_evasion(key_quotes: list) -> list[str]:
    """Evasion pattern names per speaker, e.g. "deflection (Sam)"."""
    found: dict[str, list[str]] = {}
    for quote in _quotes(key_quotes):
        notes = str(quote.get("analysis") or "").lower()
        if not any(keyword in notes for keyword in BASIC_EVASION_KEYWORDS):
            continue
        if "deflect" in notes or "divert" in notes:
            pattern = "deflection"
        elif "vague" in notes or "non-committal" in notes:
            pattern = "refusal to engage in meaningful dialogue"
        else:
            pattern = "avoidance"
        speaker_patterns = found.setdefault(quote.get("speaker") or "Unknown", [])
        if pattern not in speaker_patterns:
            speaker_patterns.append(pattern)

    return [f"{pattern} ({speaker})" for speaker, patterns in found.items() for pattern in patterns]


def detect_detailed_evasion(key_quotes: list) -> dict:
    """Quoted evasion instances grouped by category. Every category key is present."""
    details = {key: [] for key, _, _, _ in EVASION_CATEGORIES}
    for quote in _quotes(key_quotes):
        notes = str(quote.get("analysis") or "").lower()
        for key, label, keywords, context in EVASION_CATEGORIES:
            if any(keyword in notes for keyword in keywords):
                details[key].append({
                    "type": label,
                    "participant": quote.get("speaker"),
                    "example": quote.get("quote"),
                    "context": context,
                })
    return details


def enhance_with_evasion_detection(analysis: dict, tier: Optional[str]) -> dict:
    """Add an evasionDetection section for paid tiers. Free tier analyses are returned unchanged."""
    tier = normalize_tier(tier)
    if tier == "free":
        return analysis

    key_quotes = analysis.get("keyQuotes")
    if tier == "personal":
        patterns = detect_basic_evasion(key_quotes)
        if patterns:
            analysis["evasionDetection"] = {"detected": True, "patterns": patterns}
            return analysis
    else:
        details = detect_detailed_evasion(key_quotes)
        if any(details.values()):
            logger.info("Evasion detected: %s", {key: len(items) for key, items in details.items() if items})
            analysis["evasionDetection"] = {
                "detected": True,
                "analysisTitle": DETAILED_TITLE,
                "details": details,
            }
            return analysis

    analysis["evasionDetection"] = {"detected": False}
    return analysis
