"""
Clean-up helpers for LLM-generated communication patterns.
Model output sometimes repeats itself ("X attacks, Y defends cycleX attacks, Y defends cycle"),
so patterns are de-duplicated before they are returned to clients.
"""
import re
from typing import Iterable, List

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION = ".,;:!?\"'()[]"


def _normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def _collapse_half_repeat(text: str) -> str:
    # "abc defabc def" -> "abc def"
    if len(text) < 10:
        return text
    half = len(text) // 2
    first_half, second_half = text[:half], text[half:]
    if second_half.startswith(first_half[:min(10, len(first_half))]):
        return first_half.strip()
    return text


def _word_key(word: str) -> str:
    return word.strip(_PUNCTUATION).lower()


def collapse_adjacent_words(text: str) -> str:
    """Collapse immediately repeated words longer than 3 characters: "keeps keeps" -> "keeps"."""
    words = text.split(" ")
    collapsed: List[str] = []
    for word in words:
        if collapsed:
            key = _word_key(word)
            if len(key) > 3 and key == _word_key(collapsed[-1]):
                # Keep the trailing punctuation of the dropped word: "keeps keeps," -> "keeps,"
                trailing = word[len(word.rstrip(_PUNCTUATION)):]
                if trailing:
                    collapsed[-1] = collapsed[-1].rstrip(_PUNCTUATION) + trailing
                continue
        collapsed.append(word)
    return " ".join(collapsed)


def _collapse_phrase_repeat(text: str) -> str:
    # Checks for repeating 3+ word phrases at the start of the pattern
    words = text.split(" ")
    if len(words) < 6:
        return text
    for i in range(3, len(words) // 2 + 1):
        if words[:i] == words[i:2 * i]:
            return " ".join(words[:i])
    return text


def clean_pattern(pattern: str) -> str:
    """Remove internal duplication from a single pattern string."""
    text = _normalize_whitespace(pattern)
    if not text:
        return ""
    text = _collapse_half_repeat(text)
    text = collapse_adjacent_words(text)
    text = _collapse_phrase_repeat(text)
    return text


def clean_communication_patterns(patterns: Iterable[str]) -> List[str]:
    """
    De-duplicate a list of communication patterns.

    Each pattern is cleaned on its own first. Then exact duplicates are dropped
    (case-insensitive) and any pattern contained in a longer one is removed,
    keeping the longer pattern. Order of the surviving patterns is preserved.
    """
    if not patterns or isinstance(patterns, (str, bytes)):
        return []

    cleaned: List[str] = []
    seen = set()
    for pattern in patterns:
        if not isinstance(pattern, str):
            continue
        text = clean_pattern(pattern)
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        cleaned.append(text)

    lowered = [p.lower() for p in cleaned]
    result = []
    for i, pattern in enumerate(cleaned):
        contained = any(
            i != j and len(other) > len(lowered[i]) and lowered[i] in other
            for j, other in enumerate(lowered)
        )
        if not contained:
            result.append(pattern)
    return result


def clean_pattern_for_display(pattern: str) -> str:
    """Return the first half of a pattern whose second half repeats its opening."""
    if not pattern:
        return ""
    result = _normalize_whitespace(pattern)
    half = len(result) // 2
    if half > 10:
        first_half, second_half = result[:half], result[half:]
        if first_half[:min(15, len(first_half))] in second_half:
            return first_half.strip()
    return result
