from app.services.red_flag_detector import (
    clear_flags_for_healthy_conversations,
    detect_red_flags_directly,
    enhance_with_direct_red_flags,
    is_stonewalling_flag,
    remove_stonewalling_flags,
)


def test_detects_gaslighting_with_speaker_and_quote():
    conversation = "Alex: You said you'd call me back\nSam: That didn't happen, you're imagining things"

    flags = detect_red_flags_directly(conversation)

    assert len(flags) == 1
    flag = flags[0]
    assert flag["type"] == "Gaslighting"
    assert flag["severity"] == 8
    assert flag["participant"] == "Sam"
    assert flag["quote"] == "That didn't happen, you're imagining things"
    assert flag["examples"] == [{"text": flag["quote"], "from": "Sam"}]


def test_each_flag_type_reported_once():
    conversation = "Sam: You never listen\nSam: You always do this\nAlex: Nothing ever changes"

    flags = detect_red_flags_directly(conversation)

    assert [f["type"] for f in flags] == ["All-or-Nothing Thinking"]


def test_absolutes_need_word_boundaries():
    assert detect_red_flags_directly("Alex: I'm nevertheless coming\nSam: Alwaysville is far") == []


def test_whatsapp_export_lines_are_parsed():
    conversation = "[12/05/2026, 21:14:03] Sam: Fine, forget it"

    flags = detect_red_flags_directly(conversation)

    assert flags[0]["type"] == "Stonewalling"
    assert flags[0]["participant"] == "Sam"


def test_enhance_merges_without_duplicate_types():
    analysis = {"redFlags": [{"type": "Gaslighting", "description": "from the model"}]}
    conversation = "Sam: You're being dramatic\nSam: It's always my fault apparently"

    enhanced = enhance_with_direct_red_flags(analysis, conversation)

    types = [f["type"] for f in enhanced["redFlags"]]
    assert types.count("Gaslighting") == 1
    assert "Blame Shifting" in types
    # The input analysis is left untouched
    assert len(analysis["redFlags"]) == 1


def test_stonewalling_flags_are_removed():
    flags = [
        {"type": "Stonewalling", "description": "Refusing to engage"},
        {"type": "Emotional Withdrawal", "description": "Goes quiet"},
        {"type": "Passive stonewalling", "description": "silent treatment after arguments"},
        {"type": "Gaslighting", "description": "Denies events"},
    ]

    assert remove_stonewalling_flags(flags) == [{"type": "Gaslighting", "description": "Denies events"}]
    assert not is_stonewalling_flag({"type": "Passive stonewalling", "description": "quiet"})
    assert remove_stonewalling_flags(None) == []
    assert remove_stonewalling_flags("oops") == []
    assert remove_stonewalling_flags(["oops", {"type": "Gaslighting"}]) == [{"type": "Gaslighting"}]


def test_healthy_conversations_have_no_red_flags():
    healthy = clear_flags_for_healthy_conversations({"healthScore": {"score": 85}, "redFlags": [{"type": "x"}]})
    tense = clear_flags_for_healthy_conversations({"healthScore": {"score": 84}, "redFlags": [{"type": "x"}]})

    assert healthy["redFlags"] == []
    assert tense["redFlags"] == [{"type": "x"}]


def test_malformed_health_score_keeps_flags():
    analysis = {"healthScore": "great", "redFlags": [{"type": "Gaslighting"}]}

    assert clear_flags_for_healthy_conversations(analysis)["redFlags"] == [{"type": "Gaslighting"}]
