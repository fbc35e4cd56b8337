"""
Anthropic Claude integration: chat analysis, single-message analysis,
vent mode rewrites, participant detection and screenshot OCR.
"""
import logging
import re
from typing import Optional

import anthropic

from app.core.config import ANTHROPIC_API_KEY, ANTHROPIC_MODEL, SUPPORT_EMAIL
from app.core.tier_limits import normalize_tier
from app.services.llm_json import get_text_from_content_blocks, normalize_chat_analysis, parse_llm_json
from app.utils.chat_parsing import extract_speakers

logger = logging.getLogger(__name__)

SUPPORT_MESSAGE = (
    "We apologize, but we are unable to process your request at this time. "
    f"Please contact support at {SUPPORT_EMAIL}"
)
OCR_ERROR_MESSAGE = (
    "We encountered an issue processing your image. "
    f"Please contact support at {SUPPORT_EMAIL}"
)

CHAT_MAX_TOKENS = 2000
MESSAGE_MAX_TOKENS = 800
VENT_MAX_TOKENS = 800
NAMES_MAX_TOKENS = 100
OCR_MAX_TOKENS = 1000
TEMPERATURE = 0.1
NAME_DETECTION_EXCERPT = 500


class AnalysisServiceError(Exception):
    """Raised when the model cannot be reached or returns nothing usable."""


JSON_RULES = """You MUST follow these output format requirements EXACTLY:
1. Return ONLY clean, syntactically valid JSON with NO explanations outside the JSON
2. Wrap your output in a ```json code block
3. Use double quotes for all property names and string values, never single quotes
4. Do not use trailing commas
5. Never use line returns inside string values
6. Keep text concise

Your output is consumed directly by a program."""

CHAT_SYSTEM_PROMPT = (
    "You are a relationship communication expert who analyzes conversations for tone, "
    "emotional dynamics and unhealthy patterns.\n\n" + JSON_RULES
)
MESSAGE_SYSTEM_PROMPT = (
    "You are a communication expert who analyzes messages to determine tone and intent.\n\n" + JSON_RULES
)
VENT_SYSTEM_PROMPT = (
    "You are a communication expert who transforms emotional messages into constructive ones.\n\n" + JSON_RULES
)
NAMES_SYSTEM_PROMPT = """You are a name extraction system. ONLY respond with a simple JSON object with "me" and "them" fields.
NO explanations. NO markdown. JUST a JSON object like this:
{"me":"Name1","them":"Name2"}"""

CHAT_PROMPTS = {
    "free": """Analyze this conversation between {me} and {them}.
Return a JSON object with the following structure:
{{
  "toneAnalysis": {{
    "overallTone": "string describing the conversation's overall tone",
    "emotionalState": [{{"emotion": "string", "intensity": number between 0-1}}],
    "participantTones": {{"participant name": "tone description"}}
  }},
  "redFlags": [{{"type": "string", "description": "string", "severity": number between 1-5}}],
  "communication": {{
    "patterns": ["distinct, non-repetitive communication patterns"],
    "suggestions": ["suggestions for improvement"]
  }},
  "healthScore": {{
    "score": number between 0-100,
    "label": "Troubled/Needs Work/Good/Excellent",
    "color": "red/yellow/light-green/green"
  }}
}}

Here's the conversation:
{conversation}""",

    "personal": """Analyze this conversation between {me} and {them}.

Carefully distinguish between participants and their behaviors.
Each red flag must be associated with the specific participant who exhibits the behavior.
Do not label a behavior as present in both participants without clear evidence from multiple messages.

Return a JSON object with the following structure:
{{
  "toneAnalysis": {{
    "overallTone": "string describing the conversation's overall tone",
    "emotionalState": [{{"emotion": "string", "intensity": number between 0-1}}],
    "participantTones": {{"participant name": "tone description"}}
  }},
  "redFlags": [{{"type": "string", "description": "string", "severity": number between 1-5, "participant": "name", "quote": "exact message text"}}],
  "communication": {{
    "patterns": ["specific patterns observed for each participant"],
    "suggestions": ["suggestions for improvement"]
  }},
  "healthScore": {{
    "score": number between 0-100,
    "label": "Troubled/Needs Work/Good/Excellent",
    "color": "red/yellow/light-green/green"
  }},
  "keyQuotes": [{{"speaker": "name", "quote": "message text", "analysis": "interpretation", "improvement": "more constructive rewording"}}],
  "highTensionFactors": ["reason"],
  "participantConflictScores": {{"participant name": {{"score": number between 0-100, "label": "string", "isEscalating": boolean}}}},
  "tensionContributions": {{"participant name": ["how this participant adds to the tension"]}},
  "tensionMeaning": "what the tension in this conversation means"
}}

Here's the conversation:
{conversation}""",

    "pro": """Perform an in-depth analysis of this conversation between {me} and {them}.

Carefully distinguish between participants and their behaviors.
Each red flag must be associated with the specific participant who exhibits the behavior.
Identify evasion, power dynamics, message dominance and emotional shifts across the conversation.

Return a JSON object with the following structure:
{{
  "toneAnalysis": {{
    "overallTone": "string describing the conversation's overall tone",
    "emotionalState": [{{"emotion": "string", "intensity": number between 0-1}}],
    "participantTones": {{"participant name": "tone description"}}
  }},
  "redFlags": [{{"type": "string", "description": "string", "severity": number between 1-5, "participant": "name", "quote": "exact message text", "impact": "string", "recommendedAction": "string"}}],
  "communication": {{
    "patterns": ["specific patterns observed for each participant"],
    "dynamics": ["how participants interact with each other"],
    "suggestions": ["suggestions for improvement"]
  }},
  "healthScore": {{
    "score": number between 0-100,
    "label": "Troubled/Needs Work/Good/Excellent",
    "color": "red/yellow/light-green/green"
  }},
  "keyQuotes": [{{"speaker": "name", "quote": "message text", "analysis": "interpretation", "improvement": "more constructive rewording"}}],
  "highTensionFactors": ["reason"],
  "participantConflictScores": {{"participant name": {{"score": number between 0-100, "label": "string", "isEscalating": boolean}}}},
  "tensionContributions": {{"participant name": ["how this participant adds to the tension"]}},
  "tensionMeaning": "what the tension in this conversation means"
}}

Here's the conversation:
{conversation}""",
}

MESSAGE_PROMPTS = {
    "free": """Analyze this single message written by {author}.
Return a JSON object with the following structure:
{{
  "tone": "string describing the tone",
  "intent": ["likely intentions behind the message"]
}}

Here's the message:
{message}""",

    "personal": """Analyze this single message written by {author}.
Return a JSON object with the following structure:
{{
  "tone": "string describing the tone",
  "intent": ["likely intentions behind the message"],
  "suggestedReply": "a calm, constructive reply"
}}

Here's the message:
{message}""",

    "pro": """Analyze this single message written by {author} in depth.
Return a JSON object with the following structure:
{{
  "tone": "string describing the tone",
  "intent": ["likely intentions behind the message"],
  "suggestedReply": "a calm, constructive reply",
  "potentialResponse": "how the recipient is likely to react",
  "possibleReword": "a clearer, kinder version of the same message"
}}

Here's the message:
{message}""",
}

VENT_PROMPTS = {
    "free": """Rewrite this emotional message into a calmer, more constructive one.
Return a JSON object with the following structure:
{{
  "original": "the original message",
  "rewritten": "calmer rewritten message",
  "explanation": "brief explanation of what was changed"
}}

Here's the message:
{message}""",

    "personal": """Transform this emotional message into a more effective communication with personalized guidance.
Return a JSON object with the following structure:
{{
  "original": "the original message",
  "rewritten": "thoughtfully rewritten message that is calmer and more constructive",
  "explanation": "clear explanation of the communication issues and improvements made",
  "alternativeOptions": "1-2 alternative approaches that could also work"
}}

Here's the message:
{message}""",

    "pro": """Provide a professional-level transformation of this emotional message into a more effective communication.
Return a JSON object with the following structure:
{{
  "original": "the original message",
  "rewritten": "rewritten message that is strategic, constructive and effective",
  "explanation": "detailed explanation of the communication issues and the reasoning behind the changes",
  "additionalContextInsights": "potential underlying issues that may need addressing",
  "longTermStrategy": "how to address the deeper pattern beyond this single message"
}}

Here's the message:
{message}""",
}

_client: Optional[anthropic.Anthropic] = None


def get_client() -> anthropic.Anthropic:
    global _client
    if _client is None:
        if not ANTHROPIC_API_KEY:
            logger.error("ANTHROPIC_API_KEY not set in environment variables")
        _client = anthropic.Anthropic(api_key=ANTHROPIC_API_KEY)
    return _client


def _prompt_tier(tier: Optional[str]) -> str:
    tier = normalize_tier(tier)
    # The one-time deep dive gets the pro prompts
    return "pro" if tier == "instant" else tier


def _create_message(system: str, content, max_tokens: int) -> str:
    """Call the Messages API and return the text of the first block."""
    try:
        kwargs = {
            "model": ANTHROPIC_MODEL,
            "max_tokens": max_tokens,
            "temperature": TEMPERATURE,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            kwargs["system"] = system
        response = get_client().messages.create(**kwargs)
        return get_text_from_content_blocks(response.content)
    except anthropic.APIStatusError as e:
        logger.error("Anthropic API error: status=%s message=%s", e.status_code, e.message)
        raise AnalysisServiceError(SUPPORT_MESSAGE) from e
    except (anthropic.APIError, ValueError) as e:
        logger.error("Anthropic request failed: %s", e)
        raise AnalysisServiceError(SUPPORT_MESSAGE) from e


def analyze_chat_conversation(conversation: str, me: str, them: str, tier: Optional[str] = "free") -> dict:
    prompt_tier = _prompt_tier(tier)
    logger.info("Running %s chat analysis for %s and %s", prompt_tier, me, them)
    prompt = CHAT_PROMPTS[prompt_tier].format(me=me, them=them, conversation=conversation)
    content = _create_message(CHAT_SYSTEM_PROMPT, prompt, CHAT_MAX_TOKENS)
    try:
        result = parse_llm_json(content)
    except ValueError as e:
        logger.error("Chat analysis JSON could not be parsed: %s", e)
        raise AnalysisServiceError(SUPPORT_MESSAGE) from e
    if not isinstance(result, dict) or not isinstance(result.get("toneAnalysis"), dict):
        logger.error("Chat analysis response is missing toneAnalysis")
        raise AnalysisServiceError(SUPPORT_MESSAGE)
    return normalize_chat_analysis(result)


def _message_fallback() -> dict:
    return {
        "tone": "We couldn't complete the analysis due to a technical issue.",
        "intent": ["Please try again later or contact support."],
        "suggestedReply": "We apologize for the inconvenience.",
    }


def _vent_fallback(message: str) -> dict:
    return {
        "original": message,
        "rewritten": "We're sorry, we couldn't complete the rewriting of this message due to a technical issue. Please try again.",
        "explanation": "There was an error processing your request. Please contact support if this issue persists.",
    }


def analyze_message(message: str, author: str, tier: Optional[str] = "free") -> dict:
    prompt_tier = _prompt_tier(tier)
    prompt = MESSAGE_PROMPTS[prompt_tier].format(message=message, author=author)
    content = _create_message(MESSAGE_SYSTEM_PROMPT, prompt, MESSAGE_MAX_TOKENS)
    try:
        result = parse_llm_json(content)
    except ValueError as e:
        logger.error("Message analysis JSON could not be parsed, using fallback: %s", e)
        return _message_fallback()
    if not isinstance(result, dict):
        logger.error("Message analysis returned %s instead of an object, using fallback", type(result).__name__)
        return _message_fallback()
    return result


def vent_message(message: str, tier: Optional[str] = "free") -> dict:
    prompt_tier = _prompt_tier(tier)
    prompt = VENT_PROMPTS[prompt_tier].format(message=message)
    content = _create_message(VENT_SYSTEM_PROMPT, prompt, VENT_MAX_TOKENS)
    try:
        result = parse_llm_json(content)
    except ValueError as e:
        logger.error("Vent mode JSON could not be parsed, using fallback: %s", e)
        return _vent_fallback(message)
    if not isinstance(result, dict):
        logger.error("Vent mode returned %s instead of an object, using fallback", type(result).__name__)
        return _vent_fallback(message)
    result.setdefault("original", message)
    return result


_NAME_RE = re.compile(r"[^A-Za-z ]")
_ME_NAME_RE = re.compile(r'"me"\s*:\s*"([^"\\]*(?:\\.[^"\\]*)*)"')
_THEM_NAME_RE = re.compile(r'"them"\s*:\s*"([^"\\]*(?:\\.[^"\\]*)*)"')


def _sanitize_name(name: str) -> str:
    return _NAME_RE.sub("", name or "").strip()


def detect_participants(conversation: str) -> dict:
    """
    Work out the two participant names: {"me": ..., "them": ...}.
    Tries the transcript itself first, then asks the model.
    Never raises; returns generic names when detection fails.
    """
    try:
        excerpt = (conversation or "")[:NAME_DETECTION_EXCERPT]
        speakers = extract_speakers(excerpt)
        if len(speakers) >= 2:
            logger.info("Participants detected from transcript: %s and %s", speakers[0], speakers[1])
            return {"me": speakers[0], "them": speakers[1]}

        prompt = (
            'Identify the two main names in this conversation, in this JSON format:\n'
            '{"me": "Name1", "them": "Name2"}\n\n'
            f"First few lines of conversation:\n{excerpt}"
        )
        content = _create_message(NAMES_SYSTEM_PROMPT, prompt, NAMES_MAX_TOKENS)

        me_match = _ME_NAME_RE.search(content)
        them_match = _THEM_NAME_RE.search(content)
        if me_match and them_match:
            me = _sanitize_name(me_match.group(1))
            them = _sanitize_name(them_match.group(1))
            if me and them:
                return {"me": me, "them": them}

        logger.warning("All name detection methods failed, using generic names")
        return {"me": "User", "them": "Contact"}
    except Exception as e:
        logger.error("Error in participant detection: %s", e)
        return {"me": "Me", "them": "Them"}


def extract_text_from_image(base64_image: str, media_type: str = "image/jpeg") -> str:
    """OCR a screenshot with Claude vision. Returns the raw text."""
    content = [
        {"type": "text", "text": "Extract all the text from this image. Return just the raw text."},
        {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": base64_image},
        },
    ]
    try:
        return _create_message("", content, OCR_MAX_TOKENS)
    except AnalysisServiceError as e:
        raise AnalysisServiceError(OCR_ERROR_MESSAGE) from e
