import pytest

from app.services.llm_json import (
    extract_balanced_object,
    extract_red_flags_count,
    get_text_from_content_blocks,
    health_score_label,
    parse_llm_json,
)


def test_plain_json_is_parsed():
    assert parse_llm_json('{"tone": "calm", "intent": []}') == {"tone": "calm", "intent": []}


def test_fenced_block_with_trailing_comma_and_smart_quotes():
    content = 'Here is the analysis:\n```json\n{“tone”: “hurt”, "intent": ["venting",],}\n```\nHope that helps.'

    assert parse_llm_json(content) == {"tone": "hurt", "intent": ["venting"]}


def test_object_embedded_in_prose():
    content = 'Sure! {"me": "Alex", "them": "Sam"} Let me know if you need more.'

    assert parse_llm_json(content) == {"me": "Alex", "them": "Sam"}


def test_truncated_object_is_closed():
    assert extract_balanced_object('{"a": {"b": [1, 2') == '{"a": {"b": [1, 2]}}'
    assert parse_llm_json('{"toneAnalysis": {"overallTone": "tense"}, "redFlags": [') == {
        "toneAnalysis": {"overallTone": "tense"},
        "redFlags": [],
    }


def test_braces_inside_strings_are_ignored():
    text = 'prefix {"quote": "she said } and left", "n": 1} suffix'
    assert extract_balanced_object(text) == '{"quote": "she said } and left", "n": 1}'


def test_degraded_chat_analysis_from_broken_json():
    content = '{"toneAnalysis": {"overallTone": "Guarded" "emotionalState": oops}, "healthScore": {"score": 72'

    result = parse_llm_json(content)

    assert result["partial"] is True
    assert result["toneAnalysis"]["overallTone"] == "Guarded"
    assert result["healthScore"] == {"score": 72, "label": "Good", "color": "light-green"}
    assert result["redFlags"] == []


def test_degraded_message_analysis_from_broken_json():
    result = parse_llm_json('"tone": "apologetic" and then garbage')

    assert result == {"tone": "apologetic", "intent": ["Expressing concerns"], "partial": True}


def test_unusable_content_raises():
    with pytest.raises(ValueError):
        parse_llm_json("I'm sorry, I can't help with that.")
    with pytest.raises(ValueError):
        parse_llm_json("   ")


@pytest.mark.parametrize("score, label, color", [
    (10, "Conflict", "red"),
    (40, "Troubled", "red"),
    (60, "Mixed", "yellow"),
    (75, "Good", "light-green"),
    (95, "Very Healthy", "green"),
])
def test_health_score_label(score, label, color):
    assert health_score_label(score) == {"score": score, "label": label, "color": color}


def test_content_blocks_accept_dicts_and_objects():
    class Block:
        type = "text"
        text = "hello"

    assert get_text_from_content_blocks([{"type": "text", "text": "hi"}]) == "hi"
    assert get_text_from_content_blocks([Block()]) == "hello"
    with pytest.raises(ValueError):
        get_text_from_content_blocks([])
    with pytest.raises(ValueError):
        get_text_from_content_blocks([{"type": "tool_use", "id": "x"}])


def test_red_flag_count_from_raw_text():
    content = '"redFlags": [{"type": "Gaslighting", "severity": 8}, {"type": "Stonewalling", "severity": 6}]'
    assert extract_red_flags_count(content) == 2
    assert extract_red_flags_count("") == 0
