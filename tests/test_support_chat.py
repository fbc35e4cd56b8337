from app.models import ChatConversation, ChatMessage


def test_anonymous_visitor_starts_conversation_and_admin_is_notified(client, db, sent_emails):
    response = client.post(
        "/api/chat/conversations",
        json={"user_name": "Riley", "user_email": "riley@dramallama.ai", "message": "How do I export a chat?"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["user_name"] == "Riley"
    assert body["user_id"] is None
    assert body["unread_count"] == 1
    assert body["last_message"] == "How do I export a chat?"

    assert len(sent_emails) == 1
    assert sent_emails[0]["to"] == "owner@dramallama.ai"
    assert "Riley" in sent_emails[0]["subject"]


def test_messages_update_preview_and_unread_count(client, db, sent_emails):
    conversation_id = client.post("/api/chat/conversations", json={"user_name": "Riley"}).json()["id"]
    long_message = "a" * 150

    client.post(f"/api/chat/conversations/{conversation_id}/messages", json={"message": "Hello?"})
    response = client.post(f"/api/chat/conversations/{conversation_id}/messages", json={"message": long_message})

    assert response.status_code == 200
    assert response.json()["is_admin"] is False
    conversation = db.query(ChatConversation).filter(ChatConversation.id == conversation_id).one()
    assert conversation.unread_count == 2
    assert conversation.last_message == "a" * 100
    assert len(sent_emails) == 2

    messages = client.get(f"/api/chat/conversations/{conversation_id}/messages").json()
    assert [m["message"] for m in messages] == ["Hello?", long_message]


def test_signed_in_conversation_is_private(client, make_user, auth_headers):
    owner = make_user()
    other = make_user(username="other", email="other@dramallama.ai")
    created = client.post("/api/chat/conversations", json={}, headers=auth_headers(owner)).json()

    assert created["user_name"] == "jamie"
    assert created["user_email"] == "jamie@dramallama.ai"

    url = f"/api/chat/conversations/{created['id']}/messages"
    assert client.get(url).status_code == 403
    assert client.get(url, headers=auth_headers(other)).status_code == 403
    assert client.get(url, headers=auth_headers(owner)).status_code == 200


def test_unknown_conversation_is_404(client):
    assert client.get("/api/chat/conversations/999/messages").status_code == 404


def test_closed_conversation_rejects_messages(client, db):
    conversation_id = client.post("/api/chat/conversations", json={"user_name": "Riley"}).json()["id"]
    db.query(ChatConversation).filter(ChatConversation.id == conversation_id).update({"status": "closed"})
    db.commit()

    response = client.post(f"/api/chat/conversations/{conversation_id}/messages", json={"message": "still there?"})

    assert response.status_code == 400
    assert db.query(ChatMessage).count() == 0
