"""
Conflict dynamics: who escalates and who calms things down.
Scores each participant from the key quotes of an analysis; the amount of
detail returned depends on the tier.
"""
import logging
from typing import Optional

from app.core.tier_limits import normalize_tier

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50
ESCALATES_BELOW = 40
DE_ESCALATES_ABOVE = 65
IMBALANCE_GAP = 30

ESCALATION_INDICATORS = [
    "attack", "accuse", "blame", "criticize", "demand",
    "insult", "interrupt", "mock", "shout", "threaten",
    "curse", "aggressive", "hostile", "angry", "deny",
    "gaslight", "manipulat", "twist", "distort", "never",
    "always", "dismiss", "deflect", "avoid", "defensive",
]

DE_ESCALATION_INDICATORS = [
    "listen", "understand", "acknowledge", "appreciate", "apologize",
    "suggest", "compromise", "clarify", "calm", "reassure",
    "empathize", "validate", "supportive", "soothe", "evidence",
    "explain", "patient", "reasonable", "accurate", "fact",
]

# Weighted higher than the plain escalation indicators
REALITY_DISTORTION_PHRASES = [
    "never said", "didn't say", "don't remember", "you always",
    "making me feel", "twisting my words", "obsessed with proving",
    "you never", "crazy", "always trying to",
]

MUTUAL_ESCALATION_PHRASES = [
    "never listen", "you ignore", "don't make an effort", "impossible to talk",
    "always starting fights", "make me feel", "you never", "you always",
    "fine!", "because you", "i'm done", "should be done",
]

REPAIR_PHRASES = ("i felt", "sorry", "appreciate you")

# One side accuses, the other tries to keep things calm
ACCUSATION_PHRASES = ("too busy for me",)


def _new_participant() -> dict:
    return {"tendency": "mixed", "examples": [], "score": NEUTRAL_SCORE}


def _score_quote(entry: dict, quote_text: str, analysis_text: str, quote: str, with_examples: bool) -> None:
    escalation = 0
    de_escalation = 0
    distortion = 0

    for indicator in ESCALATION_INDICATORS:
        if indicator in analysis_text or indicator in quote_text:
            escalation += 1
    for indicator in DE_ESCALATION_INDICATORS:
        if indicator in analysis_text or indicator in quote_text:
            de_escalation += 1
    for phrase in REALITY_DISTORTION_PHRASES:
        if phrase in quote_text:
            distortion += 1
            escalation += 2

    if with_examples and quote and (escalation or de_escalation) and quote not in entry["examples"]:
        if distortion:
            # Distortion examples go first
            entry["examples"].insert(0, quote)
        else:
            entry["examples"].append(quote)

    if not (escalation or de_escalation or distortion):
        return

    score = entry["score"] + de_escalation * 5 - escalation * 7 - distortion * 10
    score = max(0, min(100, score))
    entry["score"] = score

    if score < ESCALATES_BELOW:
        entry["tendency"] = "escalates"
        if distortion > 2:
            entry["description"] = "Distorts facts and dismisses partner's feelings"
        elif escalation > 5:
            entry["description"] = "Uses hostile language and increases conflict intensity"
        else:
            entry["description"] = "Introduces blame and negative framing to the conversation"
    elif score > DE_ESCALATES_ABOVE:
        entry["tendency"] = "de-escalates"
        if de_escalation > 5:
            entry["description"] = "Actively validates feelings and offers solutions"
        else:
            entry["description"] = "Maintains calm tone and acknowledges partner's perspective"
    else:
        entry["tendency"] = "mixed"
        entry["description"] = "Shows both escalating and calming behaviors in different moments"


def _set(entry: dict, tendency: str, score: int, description: str) -> None:
    entry["tendency"] = tendency
    entry["score"] = score
    entry["description"] = description


def _apply_two_person_patterns(participants: dict, names: list, content: str) -> None:
    """Whole-conversation patterns that override the per-quote scores."""
    first, second = (participants[name] for name in names)

    if "never listen" in content and "you never" in content and "fine!" in content:
        for entry in (first, second):
            _set(entry, "escalates", 20, "Uses accusatory language and refuses to acknowledge partner's perspective")
        return

    if all(phrase in content for phrase in REPAIR_PHRASES) and (
        "glad we're talking" in content or "glad we are talking" in content
    ):
        for entry in (first, second):
            _set(entry, "de-escalates", 85, "Expresses feelings respectfully and listens to partner's perspective")
        return

    if any(phrase in content for phrase in ACCUSATION_PHRASES) or (
        "beg for attention" in content and "calmly" in content
    ):
        escalator, calmer = (first, second) if first["score"] < second["score"] else (second, first)
        _set(escalator, "escalates", 25, "Uses accusatory language and emotional withdrawal to control the interaction")
        _set(calmer, "de-escalates", 70, "Attempts to de-escalate and address concerns calmly despite accusations")
        return

    phrase_count = sum(1 for phrase in MUTUAL_ESCALATION_PHRASES if phrase in content)
    heated = content.count("!") >= 3
    all_low = all(entry["score"] < 45 for entry in (first, second))
    if all_low or (phrase_count >= 3 and heated) or phrase_count >= 5:
        logger.info("Mutual escalation: phrases=%s exclamations=%s low_scores=%s", phrase_count, heated, all_low)
        for entry in (first, second):
            _set(entry, "escalates", min(entry["score"], 30),
                 "Uses exaggerated language and contributes to increasing tension")


def _names_with(participants: dict, tendency: str) -> list:
    return [name for name, entry in participants.items() if entry["tendency"] == tendency]


def _summary(participants: dict, names: list, escalating: list, calming: list) -> str:
    if len(names) == 2:
        first, second = names
        gap = participants[first]["score"] - participants[second]["score"]
        if abs(gap) > IMBALANCE_GAP:
            escalator, calmer = (first, second) if gap < 0 else (second, first)
            return (
                f"{escalator} is the primary source of conflict escalation, "
                f"while {calmer} attempts to maintain constructive communication."
            )
    if escalating and calming:
        return (
            f"{' and '.join(escalating)} tend(s) to escalate conflict, "
            f"while {' and '.join(calming)} tend(s) to de-escalate."
        )
    if escalating:
        return "All participants tend to escalate conflicts."
    if calming:
        return "All participants show de-escalating communication patterns."
    return "The conversation shows mixed conflict patterns."


def _interaction(participants: dict, escalating: list, calming: list, mixed: list) -> str:
    scores = [(name, entry["score"]) for name, entry in participants.items()]
    if len(scores) == 2:
        (name_a, score_a), (name_b, score_b) = scores
        if abs(score_a - score_b) > IMBALANCE_GAP:
            lower, higher = (name_a, name_b) if score_a < score_b else (name_b, name_a)
            return (
                f"This conversation shows a clearly imbalanced dynamic where {lower} consistently "
                f"escalates conflict, while {higher} attempts to maintain reasonable communication."
            )
        if escalating and calming:
            return (
                f"This conversation shows an imbalanced conflict dynamic where {' and '.join(escalating)} "
                f"tend(s) to escalate while {' and '.join(calming)} attempt(s) to calm the situation."
            )
        if len(escalating) > 1:
            return "This conversation shows a mutually escalating pattern that may intensify conflicts over time."
        if len(calming) > 1:
            return (
                "This conversation shows a healthy conflict resolution pattern where both participants "
                "work to maintain calm communication."
            )
        if all(score < 45 for _, score in scores):
            return (
                "This conversation shows a clear pattern of mutual escalation where both participants "
                "contribute equally to intensifying the conflict."
            )
        if all(score > 75 for _, score in scores):
            return (
                "This conversation shows a healthy pattern of mutual respect and de-escalation where both "
                "participants contribute to resolving conflicts constructively."
            )
        if mixed and not escalating and not calming:
            return (
                "This conversation shows inconsistent conflict management patterns with mixed "
                "contributions from participants."
            )
        return ""

    if escalating and calming:
        return (
            f"This conversation shows an imbalanced conflict dynamic where {' and '.join(escalating)} "
            f"escalate(s) while {' and '.join(calming)} attempt(s) to calm the situation."
        )
    if len(escalating) > 1:
        return "This conversation shows a mutually escalating pattern that may intensify conflicts over time."
    if len(calming) > 1:
        return (
            "This conversation shows a healthy conflict resolution pattern where participants work to "
            "maintain calm communication."
        )
    if mixed:
        return "This conversation shows inconsistent conflict management patterns."
    return ""


def analyze_conflict_dynamics(key_quotes: list, participant_names: list, tier: Optional[str]) -> Optional[dict]:
    """
    Score each participant from 0 (escalating) to 100 (de-escalating).

    Free tier gets the summary and tendencies, personal adds one example per
    participant and the interaction pattern, pro and instant get up to three
    examples and recommendations. Returns None without quotes or participants.
    """
    if not key_quotes or not participant_names:
        return None
    tier = normalize_tier(tier)

    participants = {name: _new_participant() for name in participant_names}
    for quote in key_quotes:
        if not isinstance(quote, dict):
            continue
        entry = participants.get(quote.get("speaker"))
        if entry is None:
            continue
        text = str(quote.get("quote") or "")
        _score_quote(entry, text.lower(), str(quote.get("analysis") or "").lower(), text, tier != "free")

    example_limit = {"free": 0, "personal": 1}.get(tier, 3)
    for entry in participants.values():
        entry["examples"] = entry["examples"][:example_limit]

    content = " ".join(
        str(quote.get("quote") or "").lower() for quote in key_quotes if isinstance(quote, dict)
    )
    if len(participant_names) == 2:
        _apply_two_person_patterns(participants, participant_names, content)

    escalating = _names_with(participants, "escalates")
    calming = _names_with(participants, "de-escalates")
    mixed = _names_with(participants, "mixed")

    result = {
        "summary": _summary(participants, participant_names, escalating, calming),
        "participants": participants,
        "interaction": "",
        "recommendations": [],
    }

    if tier in ("personal", "pro", "instant"):
        result["interaction"] = _interaction(participants, escalating, calming, mixed)

    if tier in ("pro", "instant"):
        if escalating:
            result["recommendations"].append(
                f"{' and '.join(escalating)} could benefit from practicing active listening and "
                "acknowledging the other person's perspective before responding."
            )
        if calming:
            result["recommendations"].append(
                f"{' and '.join(calming)} show(s) healthy de-escalation patterns that should be maintained."
            )
        if escalating and calming:
            result["recommendations"].append(
                "Consider establishing communication ground rules to prevent escalation cycles."
            )

    return result


def enhance_with_conflict_dynamics(analysis: dict, tier: Optional[str]) -> dict:
    """Add a conflictDynamics section built from keyQuotes and the participantTones names."""
    tone = analysis.get("toneAnalysis")
    participant_tones = tone.get("participantTones") if isinstance(tone, dict) else None
    names = list(participant_tones) if isinstance(participant_tones, dict) else []
    key_quotes = analysis.get("keyQuotes") if isinstance(analysis.get("keyQuotes"), list) else []

    dynamics = analyze_conflict_dynamics(key_quotes, names, tier)
    if dynamics:
        analysis["conflictDynamics"] = dynamics
    return analysis
