"""
Helpers for reading JSON out of LLM responses.
Claude usually answers with a ```json fenced block, but responses are sometimes
truncated or carry trailing commas and smart quotes, so parsing is done in stages.
"""
import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_ME_RE = re.compile(r'"me"\s*:\s*"([^"]*)"')
_THEM_RE = re.compile(r'"them"\s*:\s*"([^"]*)"')
_OVERALL_TONE_RE = re.compile(r'"overallTone"\s*:\s*"([^"]*)"')
_TONE_RE = re.compile(r'"tone"\s*:\s*"([^"]*)"')
_SCORE_RE = re.compile(r'"score"\s*:\s*(\d+)')
_RED_FLAGS_SECTION_RE = re.compile(r"redFlags[\"'\s:]+\[([\s\S]*?)\]")
_TYPE_KEY_RE = re.compile(r"type[\"'\s:]+")
_SEVERITY_RE = re.compile(r"severity[\"'\s:]+\d+")


def get_text_from_content_blocks(content: Any) -> str:
    """
    Return the text of the first content block of a Messages API response.
    Accepts SDK block objects or plain dicts.
    """
    if not content:
        raise ValueError("Empty response from Anthropic API")
    first = content[0]
    block_type = first.get("type") if isinstance(first, dict) else getattr(first, "type", None)
    text = first.get("text") if isinstance(first, dict) else getattr(first, "text", None)
    if block_type != "text" or not isinstance(text, str):
        raise ValueError("Invalid response format from Anthropic API")
    return text


def _clean(text: str) -> str:
    text = text.replace("“", '"').replace("”", '"')
    return _TRAILING_COMMA_RE.sub(r"\1", text).strip()


def _try_load(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def extract_balanced_object(text: str) -> Optional[str]:
    """
    Return the first {...} object in text, matching braces outside of strings.
    A truncated object is closed with the missing brackets.
    """
    start = text.find("{")
    if start == -1:
        return None

    stack = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]":
            if stack:
                stack.pop()
            if not stack:
                return text[start:i + 1]

    # Truncated response: close whatever is still open
    tail = text[start:].rstrip()
    if in_string:
        tail += '"'
    tail = tail.rstrip(",")
    return tail + "".join(reversed(stack))


def health_score_label(score: int) -> dict:
    """Label and colour for a 0-100 health score."""
    if score <= 20:
        label, color = "Conflict", "red"
    elif score <= 40:
        label, color = "Troubled", "red"
    elif score <= 60:
        label, color = "Mixed", "yellow"
    elif score <= 80:
        label, color = "Good", "light-green"
    else:
        label, color = "Very Healthy", "green"
    return {"score": score, "label": label, "color": color}


def _degraded_chat_analysis(content: str, tone: str) -> dict:
    score_match = _SCORE_RE.search(content)
    health = health_score_label(int(score_match.group(1))) if score_match else health_score_label(40)
    return {
        "toneAnalysis": {
            "overallTone": tone,
            "emotionalState": [
                {"emotion": "concern", "intensity": 0.8},
                {"emotion": "tension", "intensity": 0.7},
            ],
        },
        "communication": {
            "patterns": [],
            "suggestions": ["Express needs directly", "Listen actively"],
        },
        "healthScore": health,
        "redFlags": [],
        "partial": True,
    }


def parse_llm_json(content: str) -> Any:
    """
    Parse JSON from an LLM response.

    Tries, in order: the raw text, a fenced ```json block, the first balanced
    object (closing a truncated one), a me/them name pair, and finally a
    degraded chat or message object built from the tone field.
    Raises ValueError when nothing usable is found.
    """
    if not content or not content.strip():
        raise ValueError("Empty response content")

    parsed = _try_load(content.strip())
    if parsed is not None:
        return parsed

    text = content
    block = _CODE_BLOCK_RE.search(content)
    if block:
        text = block.group(1)
        parsed = _try_load(_clean(text))
        if parsed is not None:
            return parsed

    candidate = extract_balanced_object(text)
    if candidate:
        parsed = _try_load(_clean(candidate))
        if parsed is not None:
            return parsed
        logger.warning("Balanced JSON extraction failed, trying field extraction")

    me_match = _ME_RE.search(text)
    them_match = _THEM_RE.search(text)
    if me_match and them_match:
        return {"me": me_match.group(1).strip(), "them": them_match.group(1).strip()}

    tone_match = _OVERALL_TONE_RE.search(text)
    if tone_match:
        logger.warning("Returning partial chat analysis recovered from malformed JSON")
        return _degraded_chat_analysis(text, tone_match.group(1))

    tone_match = _TONE_RE.search(text)
    if tone_match:
        logger.warning("Returning partial message analysis recovered from malformed JSON")
        return {
            "tone": tone_match.group(1),
            "intent": ["Expressing concerns"],
            "partial": True,
        }

    raise ValueError("Invalid JSON format that could not be repaired automatically")


def extract_red_flags_count(content: str) -> int:
    """Count red flags in a raw response without parsing it."""
    if not content:
        return 0
    section = _RED_FLAGS_SECTION_RE.search(content)
    if section:
        types = _TYPE_KEY_RE.findall(section.group(1))
        if types:
            return len(types)
    return len(_SEVERITY_RE.findall(content))


def normalize_chat_analysis(analysis: dict) -> dict:
    """
    Coerce the sections of a chat analysis into the shapes the pipeline expects.
    A bare number for healthScore becomes a labelled score; other malformed
    sections are dropped or emptied.
    """
    health = analysis.get("healthScore")
    if isinstance(health, bool):
        analysis.pop("healthScore")
    elif isinstance(health, (int, float)):
        analysis["healthScore"] = health_score_label(int(health))
    elif health is not None and not isinstance(health, dict):
        logger.warning("Dropping malformed healthScore: %r", health)
        analysis.pop("healthScore")

    if not isinstance(analysis.get("communication"), dict):
        analysis["communication"] = {}
    for field in ("redFlags", "keyQuotes"):
        if field in analysis and not isinstance(analysis[field], list):
            logger.warning("Dropping malformed %s section", field)
            analysis[field] = []
    return analysis
