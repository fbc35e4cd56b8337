import base64
import io

import pytest
from PIL import Image

from app.models import Analysis, UsageLimit, UserEvent
from app.services import anthropic_service, azure_vision
from app.services.anthropic_service import AnalysisServiceError

DEVICE = {"X-Device-Id": "device-abc"}


@pytest.fixture
def model_calls(monkeypatch):
    """Replace the chat analysis model call; records the tier of each call."""
    calls = []

    def fake_analyze(conversation, me, them, tier="free"):
        calls.append(tier)
        return {
            "toneAnalysis": {
                "overallTone": "Tense but salvageable",
                "emotionalState": [{"emotion": "frustration", "intensity": 0.6}],
                "participantTones": {me: "defensive", them: "critical"},
            },
            "communication": {
                "patterns": ["Sam generalizes", "Sam generalizes about lateness"],
                "suggestions": ["Agree on plans in advance"],
            },
            "healthScore": {"score": 45, "label": "Mixed", "color": "yellow"},
            "keyQuotes": [{"speaker": them, "quote": "You always have an excuse"}],
            "redFlags": [{"type": "Guilt Tripping", "description": "Uses guilt", "severity": 6}],
        }

    monkeypatch.setattr(anthropic_service, "analyze_chat_conversation", fake_analyze)
    return calls


def _chat_payload(sample_chat):
    return {"conversation": sample_chat, "me": "Alex", "them": "Sam"}


def test_anonymous_chat_analysis_uses_device_trial(client, db, model_calls, sample_chat):
    response = client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=DEVICE)

    assert response.status_code == 200
    body = response.json()
    assert model_calls == ["free", "personal"]
    assert body["participants"] == {"me": "Alex", "them": "Sam"}
    assert body["redFlags"] == []
    assert body["redFlagsDetected"] is True
    assert body["redFlagCount"] == 1
    assert body["redFlagTypes"] == ["Guilt Tripping"]
    assert "upgradePrompt" in body
    assert "keyQuotes" not in body
    assert body["communication"]["patterns"] == ["Sam generalizes about lateness"]
    assert db.query(Analysis).count() == 0

    assert client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=DEVICE).status_code == 200
    blocked = client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=DEVICE)
    assert blocked.status_code == 403
    assert "trial" in blocked.json()["detail"].lower()


def test_anonymous_chat_without_device_id_is_rejected(client, model_calls, sample_chat):
    response = client.post("/api/analyze/chat", json=_chat_payload(sample_chat))

    assert response.status_code == 400
    assert model_calls == []


def test_personal_user_gets_red_flag_details_and_usage_is_recorded(
    client, db, make_user, auth_headers, model_calls, sample_chat
):
    user = make_user(tier="personal")

    response = client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert model_calls == ["personal"]
    types = [flag["type"] for flag in body["redFlags"]]
    # Model flag plus the directly detected absolute ("You always have an excuse")
    assert types == ["Guilt Tripping", "All-or-Nothing Thinking"]
    assert body["redFlagCount"] == 2
    assert body["keyQuotes"]

    analysis = db.query(Analysis).filter(Analysis.user_id == user.id).one()
    assert analysis.type == "chat"
    assert analysis.result["participants"] == {"me": "Alex", "them": "Sam"}
    assert db.query(UsageLimit).filter(UsageLimit.user_id == user.id).one().monthly_total == 1
    assert db.query(UserEvent).filter(UserEvent.event_type == "analysis").count() == 1


def test_usage_and_history_after_analysis(client, make_user, auth_headers, model_calls, sample_chat):
    user = make_user(tier="pro")
    headers = auth_headers(user)

    assert client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=headers).status_code == 200

    usage = client.get("/api/user/usage", headers=headers).json()
    assert usage == {"used": 1, "limit": None, "tier": "pro"}

    history = client.get("/api/user/analyses", headers=headers).json()
    assert len(history) == 1
    assert history[0]["type"] == "chat"
    assert history[0]["content"] == sample_chat
    assert history[0]["result"]["participants"] == {"me": "Alex", "them": "Sam"}

    assert client.get("/api/user/usage").status_code == 401


def test_monthly_limit_blocks_chat_analysis(client, db, make_user, auth_headers, model_calls, sample_chat):
    user = make_user(tier="free")
    db.add(UsageLimit(user_id=user.id, monthly_total=5))
    db.commit()

    response = client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=auth_headers(user))

    assert response.status_code == 403
    assert "Monthly limit reached" in response.json()["detail"]
    assert model_calls == []


def test_invalid_conversation_is_rejected(client, make_user, auth_headers, model_calls):
    user = make_user()
    payload = {"conversation": "hi\nthere", "me": "Alex", "them": "Sam"}

    response = client.post("/api/analyze/chat", json=payload, headers=auth_headers(user))

    assert response.status_code == 400
    assert model_calls == []


def test_model_failure_returns_422(client, make_user, auth_headers, monkeypatch, sample_chat):
    def failing(*args, **kwargs):
        raise AnalysisServiceError("We're having trouble analyzing this conversation.")

    monkeypatch.setattr(anthropic_service, "analyze_chat_conversation", failing)
    user = make_user(tier="pro")

    response = client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=auth_headers(user))

    assert response.status_code == 422
    assert "trouble" in response.json()["detail"]


def test_message_analysis_is_filtered_by_tier(client, db, make_user, auth_headers, monkeypatch):
    monkeypatch.setattr(anthropic_service, "analyze_message", lambda message, author, tier: {
        "tone": "hurt",
        "intent": ["seeking reassurance"],
        "suggestedReply": "I'm sorry I was late",
        "possibleReword": "I felt let down",
    })
    user = make_user(tier="personal")

    response = client.post(
        "/api/analyze/message",
        json={"message": "You forgot again.", "author": "them"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert response.json() == {
        "tone": "hurt",
        "intent": ["seeking reassurance"],
        "suggestedReply": "I'm sorry I was late",
    }
    assert db.query(UsageLimit).filter(UsageLimit.user_id == user.id).one().monthly_total == 1


def test_de_escalate_does_not_count_usage(client, db, make_user, auth_headers, monkeypatch):
    monkeypatch.setattr(anthropic_service, "vent_message", lambda message, tier: {
        "original": message,
        "rewritten": "I felt hurt when plans changed",
        "explanation": "Uses an I-statement",
    })
    user = make_user()

    response = client.post("/api/analyze/de-escalate", json={"message": "You ALWAYS cancel!!"}, headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["rewritten"] == "I felt hurt when plans changed"
    usage = db.query(UsageLimit).filter(UsageLimit.user_id == user.id).first()
    assert usage is None or usage.monthly_total == 0
    assert db.query(Analysis).filter(Analysis.type == "vent").count() == 1


def test_detect_names_reads_speakers_from_transcript(client, sample_chat):
    response = client.post("/api/analyze/detect-names", json={"conversation": sample_chat})

    assert response.status_code == 200
    assert response.json() == {"me": "Alex", "them": "Sam"}


def _screenshot_base64():
    image = Image.new("RGB", (400, 400), (0, 0, 0))
    image.paste((37, 211, 102), (220, 50, 380, 150))
    image.paste((32, 44, 51), (20, 200, 180, 300))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


def test_whatsapp_screenshot_not_configured(client):
    response = client.post("/api/analyze/whatsapp-screenshot", json={"image": _screenshot_base64()})
    assert response.status_code == 503


def test_whatsapp_screenshot_attributes_lines_by_bubble_colour(client, monkeypatch):
    monkeypatch.setattr(azure_vision, "is_configured", lambda: True)
    monkeypatch.setattr(azure_vision, "read_image_lines", lambda image_bytes: {
        "lines": [
            {"text": "online", "x": 200, "y": 10, "left": 180},
            {"text": "are you coming?", "x": 100, "y": 250, "left": 30},
            {"text": "on my way", "x": 300, "y": 100, "left": 230},
        ],
        "width": 400,
        "height": 400,
        "raw_text": "online\nare you coming?\non my way",
    })

    response = client.post("/api/analyze/whatsapp-screenshot", json={"image": _screenshot_base64()})

    assert response.status_code == 200
    body = response.json()
    assert body["detection_method"] == "bubble_color"
    assert [m["text"] for m in body["messages"]] == ["on my way", "are you coming?"]
    assert body["conversation"] == "Me: on my way\nThem: are you coming?"


def test_whatsapp_screenshot_ocr_failure_is_bad_gateway(client, monkeypatch):
    def failing(image_bytes):
        raise azure_vision.AzureVisionError("Read operation failed")

    monkeypatch.setattr(azure_vision, "is_configured", lambda: True)
    monkeypatch.setattr(azure_vision, "read_image_lines", failing)

    response = client.post("/api/analyze/whatsapp-screenshot", json={"image": _screenshot_base64()})

    assert response.status_code == 502


def test_ocr_strips_data_url_prefix(client, monkeypatch):
    captured = {}

    def fake_ocr(base64_image, media_type):
        captured.update({"image": base64_image, "media_type": media_type})
        return "Alex: hi"

    monkeypatch.setattr(anthropic_service, "extract_text_from_image", fake_ocr)

    response = client.post("/api/analyze/ocr", json={"image": "data:image/png;base64,QUJD", "media_type": "image/png"})

    assert response.status_code == 200
    assert response.json() == {"text": "Alex: hi"}
    assert captured == {"image": "QUJD", "media_type": "image/png"}


def test_ocr_model_failure_is_server_error(client, monkeypatch):
    def failing_ocr(base64_image, media_type):
        raise AnalysisServiceError("unavailable")

    monkeypatch.setattr(anthropic_service, "extract_text_from_image", failing_ocr)

    response = client.post("/api/analyze/ocr", json={"image": "QUJD"})

    assert response.status_code == 500
    assert response.json()["detail"] == "unavailable"


def test_import_single_export(client, make_user, auth_headers, model_calls, sample_chat):
    user = make_user(tier="pro")

    response = client.post(
        "/api/analyze/import",
        files=[("files", ("WhatsApp Chat.txt", sample_chat.encode("utf-8"), "text/plain"))],
        data={"me": "Alex", "them": "Sam"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert response.json()["participants"] == {"me": "Alex", "them": "Sam"}
    assert model_calls == ["pro"]


def test_import_several_exports_detects_names(client, make_user, auth_headers, model_calls, sample_chat):
    user = make_user(tier="pro")
    files = [
        ("files", ("first.txt", sample_chat.encode("utf-8"), "text/plain")),
        ("files", ("second.txt", sample_chat.encode("utf-8"), "text/plain")),
    ]

    response = client.post("/api/analyze/import", files=files, headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [r["filename"] for r in body["results"]] == ["first.txt", "second.txt"]
    assert body["results"][0]["analysis"]["participants"] == {"me": "Alex", "them": "Sam"}


def test_import_rejects_unsupported_files(client, make_user, auth_headers, model_calls):
    user = make_user(tier="pro")

    response = client.post(
        "/api/analyze/import",
        files=[("files", ("photo.png", b"\x89PNG", "image/png"))],
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert model_calls == []


def test_import_validates_every_file_before_analyzing(
    client, db, make_user, auth_headers, model_calls, sample_chat, monkeypatch
):
    user = make_user(tier="personal")
    detected = []
    monkeypatch.setattr(anthropic_service, "detect_participants", lambda conversation: detected.append(conversation))
    files = [
        ("files", ("a.txt", sample_chat.encode("utf-8"), "text/plain")),
        ("files", ("b.pdf", b"%PDF-1.4", "application/pdf")),
    ]

    response = client.post("/api/analyze/import", files=files, headers=auth_headers(user))

    assert response.status_code == 400
    assert response.json()["detail"].startswith("b.pdf")
    assert model_calls == []
    assert detected == []
    assert db.query(Analysis).count() == 0
    usage = db.query(UsageLimit).filter(UsageLimit.user_id == user.id).first()
    assert usage is None or usage.monthly_total == 0


def test_import_without_caller_identity_is_rejected_before_name_detection(
    client, model_calls, sample_chat, monkeypatch
):
    detected = []
    monkeypatch.setattr(anthropic_service, "detect_participants", lambda conversation: detected.append(conversation))

    response = client.post(
        "/api/analyze/import",
        files=[("files", ("a.txt", sample_chat.encode("utf-8"), "text/plain"))],
    )

    assert response.status_code == 400
    assert detected == []
    assert model_calls == []


def test_chat_response_includes_conflict_dynamics(client, make_user, auth_headers, model_calls, sample_chat):
    user = make_user(tier="pro")

    response = client.post("/api/analyze/chat", json=_chat_payload(sample_chat), headers=auth_headers(user))

    assert response.status_code == 200
    dynamics = response.json()["conflictDynamics"]
    assert dynamics["participants"]["Sam"]["tendency"] == "escalates"
    assert dynamics["participants"]["Sam"]["examples"] == ["You always have an excuse"]


def test_debug_colors_is_admin_only(client, make_user, auth_headers):
    user = make_user()
    admin = make_user(username="boss", email="boss@dramallama.ai", is_admin=True)
    payload = {"image": _screenshot_base64(), "points": [{"x": 300, "y": 100, "label": "sent"}], "radius": 10}

    assert client.post("/api/analyze/debug-colors", json=payload, headers=auth_headers(user)).status_code == 403

    response = client.post("/api/analyze/debug-colors", json=payload, headers=auth_headers(admin))
    assert response.status_code == 200
    point = response.json()["points"][0]
    assert point["label"] == "sent"
    assert point["color_types"] == ["bright-green"]
