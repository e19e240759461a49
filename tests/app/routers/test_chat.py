"""Tests for the direct-chat route."""

from fastapi.testclient import TestClient

from app.core.runtime import Runtime
from app.db import get_db
from app.main import create_app
from app.schemas.conversa import Role
from app.services.history_store import ConversationHistoryService
from tests.fixtures.fakes import (
    FakeGenerationClient,
    InMemoryHistoryStore,
    failing_generator,
)


def test_chat_defaults_chat_id(client: TestClient, store, generator):
    resp = client.post(
        "/chat", json={"uid": "u1", "messages": [{"role": "user", "content": "hi"}]}
    )
    assert resp.status_code == 200
    assert resp.json() == {"reply": "Olá! Como posso ajudar?"}

    stored = store.chats[("u1", "default")]
    assert [(t.role, t.content) for t in stored] == [
        (Role.USER, "hi"),
        (Role.MODEL, "Olá! Como posso ajudar?"),
    ]
    (turns,) = generator.calls
    assert [(t.role, t.content) for t in turns] == [(Role.USER, "hi")]


def test_chat_uses_given_chat_id(client: TestClient, store):
    resp = client.post(
        "/chat",
        json={
            "uid": "u1",
            "chatId": "trip",
            "messages": [{"role": "user", "content": "hi"}],
        },
    )
    assert resp.status_code == 200
    assert ("u1", "trip") in store.chats


def test_chat_windows_and_collapses_roles(client: TestClient, generator):
    messages = [
        {"role": "model" if i % 2 else "system", "content": f"m{i}"} for i in range(15)
    ]
    resp = client.post("/chat", json={"uid": "u1", "messages": messages})
    assert resp.status_code == 200

    (turns,) = generator.calls
    assert [t.content for t in turns] == [f"m{i}" for i in range(3, 15)]
    assert {t.role for t in turns} == {Role.USER, Role.MODEL}


def test_chat_empty_generation_uses_fallback(make_client):
    client = make_client(generator=FakeGenerationClient(reply=""))
    resp = client.post(
        "/chat", json={"uid": "u1", "messages": [{"role": "user", "content": "hi"}]}
    )
    assert resp.status_code == 200
    assert resp.json() == {"reply": "Desculpe, não consegui responder agora."}


def test_chat_missing_uid_is_bad_request(client: TestClient, store, generator):
    resp = client.post("/chat", json={"messages": []})
    assert resp.status_code == 400
    assert "error" in resp.json()
    assert generator.calls == []
    assert store.calls == []


def test_chat_messages_must_be_a_list(client: TestClient):
    resp = client.post("/chat", json={"uid": "u1", "messages": "hi"})
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_chat_invalid_json_is_bad_request(client: TestClient):
    resp = client.post(
        "/chat", content=b"{", headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 400


def test_chat_generation_failure_is_server_error(make_client, store):
    client = make_client(generator=failing_generator())
    resp = client.post(
        "/chat", json={"uid": "u1", "messages": [{"role": "user", "content": "hi"}]}
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "LLM error"}
    assert store.chats == {}


def test_chat_store_failure_is_server_error(make_client):
    client = make_client(store=InMemoryHistoryStore(fail_on={"append_chat_messages"}))
    resp = client.post(
        "/chat", json={"uid": "u1", "messages": [{"role": "user", "content": "hi"}]}
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "LLM error"}


def test_chat_preflight(client: TestClient):
    resp = client.options("/chat")
    assert resp.status_code == 204
    assert resp.content == b""


def test_chat_cross_origin_preflight_has_no_content(client: TestClient):
    resp = client.options(
        "/chat",
        headers={
            "Origin": "http://a.example",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 204
    assert resp.content == b""
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]


def test_chat_accepts_numeric_uid(client: TestClient, store):
    resp = client.post(
        "/chat", json={"uid": 42, "messages": [{"role": "user", "content": "hi"}]}
    )
    assert resp.status_code == 200
    assert ("42", "default") in store.chats


def test_chat_rejects_falsy_uid(client: TestClient, store):
    for uid in (0, "", None, False):
        resp = client.post(
            "/chat", json={"uid": uid, "messages": [{"role": "user", "content": "hi"}]}
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "uid and messages are required"}
    assert store.chats == {}


def test_chat_other_methods_not_allowed(client: TestClient):
    assert client.get("/chat").status_code == 405
    assert client.put("/chat", json={}).status_code == 405


def test_chat_stores_truncated_content(db, whatsapp_adapter):
    generator = FakeGenerationClient(reply="ok")
    app = create_app(
        testing=True, runtime=Runtime(generator=generator, whatsapp=whatsapp_adapter)
    )
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as client:
        resp = client.post(
            "/chat",
            json={"uid": "u1", "messages": [{"role": "user", "content": "a" * 5000}]},
        )
    assert resp.status_code == 200

    stored = ConversationHistoryService(db).get_chat_messages("u1", "default")
    assert len(stored[0].content) == 4000
    assert stored[1].content == "ok"
    assert len(generator.calls[0][0].content) == 4000
