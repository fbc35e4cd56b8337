"""
Chat analysis pipeline: model call, red flag post-processing, pattern clean-up
and tier filtering.
"""
import logging
from typing import Optional

from app.core.tier_limits import normalize_tier
from app.services import anthropic_service
from app.services.anthropic_service import AnalysisServiceError
from app.services.conflict_dynamics import enhance_with_conflict_dynamics
from app.services.evasion_detection import enhance_with_evasion_detection
from app.services.llm_json import normalize_chat_analysis
from app.services.red_flag_detector import (
    clear_flags_for_healthy_conversations,
    enhance_with_direct_red_flags,
    remove_stonewalling_flags,
)
from app.services.tier_filter import filter_chat_analysis_by_tier
from app.utils.analysis_utils import clean_communication_patterns, clean_pattern_for_display

logger = logging.getLogger(__name__)

UPGRADE_PROMPT = "Upgrade to Personal tier for specific red flag details and participant analysis"
LOW_HEALTH_SCORE = 60


def post_process_analysis(analysis: dict, conversation: str, tier: Optional[str] = "free") -> dict:
    """
    Merge direct red flags, drop stonewalling flags, clean up patterns,
    then add conflict dynamics (all tiers) and evasion detection (paid tiers).
    """
    analysis = enhance_with_direct_red_flags(normalize_chat_analysis(analysis), conversation)
    analysis["redFlags"] = remove_stonewalling_flags(analysis.get("redFlags"))
    analysis = clear_flags_for_healthy_conversations(analysis)

    communication = analysis["communication"]
    patterns = communication.get("patterns")
    if isinstance(patterns, list):
        patterns = [clean_pattern_for_display(p) for p in patterns if isinstance(p, str)]
    communication["patterns"] = clean_communication_patterns(patterns)

    analysis = enhance_with_conflict_dynamics(analysis, tier)
    analysis = enhance_with_evasion_detection(analysis, tier)
    return analysis


def _health_score(analysis: dict) -> Optional[float]:
    health = analysis.get("healthScore")
    score = health.get("score") if isinstance(health, dict) else None
    return score if isinstance(score, (int, float)) else None


def add_free_tier_red_flag_summary(result: dict, full_analysis: dict, conversation: str, me: str, them: str) -> dict:
    """
    Free tier sees how many red flags exist, not what they are.
    The count comes from a personal-tier analysis of the same conversation.
    """
    result["redFlags"] = []
    try:
        personal = anthropic_service.analyze_chat_conversation(conversation, me, them, "personal")
    except AnalysisServiceError as e:
        logger.error("Personal analysis for free tier red flag count failed: %s", e)
        result["redFlagsDetected"] = False
        return result

    flags = remove_stonewalling_flags(personal.get("redFlags"))
    if flags:
        types = []
        for flag in flags:
            flag_type = flag.get("type")
            if flag_type and flag_type not in types:
                types.append(flag_type)
        result["redFlagsDetected"] = True
        result["redFlagCount"] = len(flags)
        result["redFlagTypes"] = types
        result["upgradePrompt"] = UPGRADE_PROMPT
        logger.info("Free tier: detected %s red flags, showing count only", len(flags))
        return result

    score = _health_score(full_analysis)
    if score is not None and score < LOW_HEALTH_SCORE:
        result["redFlagTypes"] = ["communication issues"]
        result["redFlagsDetected"] = True
        result["upgradePrompt"] = UPGRADE_PROMPT
    else:
        result["redFlagsDetected"] = False
    result["redFlagCount"] = 0
    return result


def run_chat_analysis(conversation: str, me: str, them: str, tier: Optional[str]) -> dict:
    """
    Analyze a conversation for the given tier.
    Raises AnalysisServiceError when the model call fails.
    """
    tier = normalize_tier(tier)
    analysis = anthropic_service.analyze_chat_conversation(conversation, me, them, tier)
    analysis = post_process_analysis(analysis, conversation, tier)

    result = filter_chat_analysis_by_tier(analysis, tier)
    if tier == "free":
        add_free_tier_red_flag_summary(result, analysis, conversation, me, them)
    elif result.get("redFlags") is not None:
        result["redFlagCount"] = len(result["redFlags"])
        result["redFlagsDetected"] = bool(result["redFlags"])

    result["participants"] = {"me": me, "them": them}
    return result
