"""
Direct red flag detection.
Catches common manipulative or unhealthy phrasing straight from the transcript,
as a backstop when the model misses them.
"""
import copy
import logging
import re

from app.utils.chat_parsing import parse_message_line

logger = logging.getLogger(__name__)

HEALTHY_SCORE_THRESHOLD = 85

RED_FLAG_PATTERNS = [
    {
        "pattern": re.compile(r"(shouldn['’]t have to|too busy for me|make me feel|always .* for you|guess you['’]re too)", re.I),
        "type": "Emotional Manipulation",
        "description": "Using guilt to control or manipulate the other person",
        "severity": 7,
    },
    {
        "pattern": re.compile(r"(not talking|done talking|whatever|forget it|not discussing this|don['’]t want to talk)", re.I),
        "type": "Stonewalling",
        "description": "Refusing to communicate or engage in discussion",
        "severity": 6,
    },
    {
        "pattern": re.compile(r"(blame me|always my fault|make me the problem|always my problem)", re.I),
        "type": "Blame Shifting",
        "description": "Avoiding responsibility by blaming the other person",
        "severity": 7,
    },
    {
        "pattern": re.compile(r"\b(always|never|nothing ever|everything is)\b", re.I),
        "type": "All-or-Nothing Thinking",
        "description": "Using absolutes to exaggerate situations",
        "severity": 5,
    },
    {
        "pattern": re.compile(r"(care more than you|care about you|love you more)", re.I),
        "type": "Affection Manipulation",
        "description": "Manipulating through withdrawal or excessive affection claims",
        "severity": 6,
    },
    {
        "pattern": re.compile(r"(that['’]s not true|didn['’]t happen|making things up|imagining things|being dramatic)", re.I),
        "type": "Gaslighting",
        "description": "Making someone question their own reality or experiences",
        "severity": 8,
    },
]


def detect_red_flags_directly(conversation: str) -> list[dict]:
    """Scan dialogue lines for red flag phrasing. Each flag type is reported once."""
    if not conversation:
        return []

    red_flags = []
    found_types = set()
    for line in conversation.split("\n"):
        parsed = parse_message_line(line)
        if not parsed:
            continue
        speaker, message = parsed
        for entry in RED_FLAG_PATTERNS:
            if entry["type"] in found_types or not entry["pattern"].search(message):
                continue
            found_types.add(entry["type"])
            red_flags.append({
                "type": entry["type"],
                "description": entry["description"],
                "severity": entry["severity"],
                "participant": speaker,
                "quote": message,
                "examples": [{"text": message, "from": speaker}],
            })
    return red_flags


def enhance_with_direct_red_flags(analysis: dict, conversation: str) -> dict:
    """Return a copy of analysis with directly detected flags merged in (no duplicate types)."""
    enhanced = copy.deepcopy(analysis)
    direct_flags = detect_red_flags_directly(conversation)
    if not direct_flags:
        return enhanced

    existing = enhanced.get("redFlags")
    if not isinstance(existing, list):
        existing = []
    existing_types = {flag.get("type") for flag in existing if isinstance(flag, dict)}
    for flag in direct_flags:
        if flag["type"] not in existing_types:
            existing.append(flag)
            existing_types.add(flag["type"])
    enhanced["redFlags"] = existing
    logger.info("Direct detection added flags; %s red flags total", len(existing))
    return enhanced


def is_stonewalling_flag(flag: dict) -> bool:
    flag_type = (flag.get("type") or "").lower()
    description = (flag.get("description") or "").lower()
    if flag_type in ("stonewalling", "emotional withdrawal"):
        return True
    return "stonewalling" in flag_type and any(
        phrase in description for phrase in ("stonewalling", "silent treatment", "shutting down")
    )


def remove_stonewalling_flags(flags: list) -> list:
    if not isinstance(flags, list):
        return []
    return [flag for flag in flags if isinstance(flag, dict) and not is_stonewalling_flag(flag)]


def clear_flags_for_healthy_conversations(analysis: dict) -> dict:
    """Healthy conversations (score >= 85) report no red flags."""
    health = analysis.get("healthScore")
    score = health.get("score") if isinstance(health, dict) else None
    if isinstance(score, (int, float)) and score >= HEALTHY_SCORE_THRESHOLD:
        analysis["redFlags"] = []
    return analysis
