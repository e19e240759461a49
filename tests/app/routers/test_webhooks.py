"""Tests for the WhatsApp webhook routes."""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.adapters.whatsapp import WhatsAppAdapter, compute_signature
from app.core.runtime import Runtime
from app.core.step_result import DeliveryError
from app.db import get_db
from app.main import create_app
from app.schemas.conversa import Channel, OutboundMessage, Role
from app.services.history_store import ConversationHistoryService
from tests.fixtures.fakes import (
    FakeGenerationClient,
    InMemoryHistoryStore,
    failing_generator,
)
from tests.fixtures.payloads import whatsapp_message_payload, whatsapp_status_payload
from tests.fixtures.relay_fixtures import APP_SECRET, PHONE_ID, VERIFY_TOKEN, stub_send

SENDER = "+551199999999"


def _verify_params(mode="subscribe", token=VERIFY_TOKEN, challenge="1158201444"):
    return {"hub.mode": mode, "hub.verify_token": token, "hub.challenge": challenge}


@pytest.fixture
def signed_adapter():
    return stub_send(
        WhatsAppAdapter(
            access_token="wa-token",
            phone_number_id=PHONE_ID,
            verify_token=VERIFY_TOKEN,
            app_secret=APP_SECRET,
        )
    )


def test_health(client: TestClient):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.text == "ok"


def test_verification_echoes_challenge(client: TestClient):
    resp = client.get("/webhook", params=_verify_params())
    assert resp.status_code == 200
    assert resp.text == "1158201444"


@pytest.mark.parametrize(
    "params",
    [
        _verify_params(token="wrong"),
        _verify_params(mode="unsubscribe"),
        {"hub.challenge": "1158201444"},
    ],
)
def test_verification_mismatch_is_forbidden(client: TestClient, store, params):
    resp = client.get("/webhook", params=params)
    assert resp.status_code == 403
    assert store.calls == []


def test_end_to_end_reply(client: TestClient, store, generator, whatsapp_adapter):
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert store.calls == ["get_record", "merge_write_user", "merge_write_model"]

    (turns,) = generator.calls
    assert len(turns) == 1
    assert turns[0].role == Role.USER
    assert "oi" in turns[0].content

    record = store.records[SENDER]
    assert record.last_text == "oi"
    assert record.last_message_at is not None
    assert [(t.role, t.content) for t in record.history] == [
        (Role.USER, "oi"),
        (Role.MODEL, "Olá! Como posso ajudar?"),
    ]
    assert all(t.at is not None for t in record.history)

    whatsapp_adapter.send.assert_awaited_once_with(
        OutboundMessage(
            channel=Channel.WHATSAPP,
            external_user_id=SENDER,
            text="Olá! Como posso ajudar?",
        )
    )


def test_status_callback_is_acknowledged_without_side_effects(
    client: TestClient, store, generator, whatsapp_adapter
):
    resp = client.post("/webhook", json=whatsapp_status_payload())
    assert resp.status_code == 200
    assert store.calls == []
    assert store.records == {}
    assert generator.calls == []
    whatsapp_adapter.send.assert_not_awaited()


@pytest.mark.parametrize("body", [b"", b"not json", b"[]", b'{"entry": []}'])
def test_malformed_body_is_acknowledged(client: TestClient, store, body):
    resp = client.post(
        "/webhook", content=body, headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 200
    assert store.calls == []


def test_bad_signature_is_rejected_before_side_effects(
    make_client, store, generator, signed_adapter
):
    client = make_client(adapter=signed_adapter)
    body = json.dumps(whatsapp_message_payload(SENDER, "oi")).encode()
    resp = client.post(
        "/webhook",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Hub-Signature-256": compute_signature("wrong-secret", body),
        },
    )
    assert resp.status_code == 401
    assert store.calls == []
    assert generator.calls == []
    signed_adapter.send.assert_not_awaited()


def test_valid_signature_is_processed(make_client, store, signed_adapter):
    client = make_client(adapter=signed_adapter)
    body = json.dumps(whatsapp_message_payload(SENDER, "oi")).encode()
    resp = client.post(
        "/webhook",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Hub-Signature-256": compute_signature(APP_SECRET, body),
        },
    )
    assert resp.status_code == 200
    signed_adapter.send.assert_awaited_once()


def test_missing_signature_is_skipped_in_optional_mode(
    make_client, store, signed_adapter
):
    client = make_client(adapter=signed_adapter)
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 200
    signed_adapter.send.assert_awaited_once()


def test_missing_signature_is_rejected_in_required_mode(make_client, store):
    adapter = stub_send(
        WhatsAppAdapter(
            access_token="wa-token",
            phone_number_id=PHONE_ID,
            app_secret=APP_SECRET,
            signature_required=True,
        )
    )
    client = make_client(adapter=adapter)
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 401
    assert store.calls == []


def test_generation_failure_still_acks_and_sends_nothing(
    make_client, store, whatsapp_adapter
):
    client = make_client(generator=failing_generator())
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 200
    whatsapp_adapter.send.assert_not_awaited()
    assert [t.role for t in store.records[SENDER].history] == [Role.USER]


def test_empty_generation_delivers_fallback(make_client, whatsapp_adapter):
    client = make_client(generator=FakeGenerationClient(reply=None))
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 200
    sent = whatsapp_adapter.send.await_args.args[0]
    assert sent.text == "Não consegui gerar uma resposta agora."


def test_store_read_failure_acks_without_generation(
    make_client, generator, whatsapp_adapter
):
    store = InMemoryHistoryStore(fail_on={"get_record"})
    client = make_client(store=store)
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 200
    assert generator.calls == []
    whatsapp_adapter.send.assert_not_awaited()


def test_user_turn_write_failure_acks_without_generation(
    make_client, generator, whatsapp_adapter
):
    store = InMemoryHistoryStore(fail_on={"merge_write_user"})
    client = make_client(store=store)
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 200
    assert generator.calls == []
    whatsapp_adapter.send.assert_not_awaited()


def test_model_turn_write_failure_still_delivers(make_client, whatsapp_adapter):
    store = InMemoryHistoryStore(fail_on={"merge_write_model"})
    client = make_client(store=store)
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 200
    whatsapp_adapter.send.assert_awaited_once()


def test_delivery_failure_still_acks(make_client, store, whatsapp_adapter):
    whatsapp_adapter.send = AsyncMock(side_effect=DeliveryError("graph api 500"))
    client = make_client(adapter=whatsapp_adapter)
    resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert [t.role for t in store.records[SENDER].history] == [Role.USER, Role.MODEL]


def test_end_to_end_with_database(db, generator, whatsapp_adapter):
    app = create_app(
        testing=True, runtime=Runtime(generator=generator, whatsapp=whatsapp_adapter)
    )
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as client:
        resp = client.post("/webhook", json=whatsapp_message_payload(SENDER, "oi"))
        assert resp.status_code == 200
        resp = client.post(
            "/webhook", json=whatsapp_message_payload(SENDER, "tudo bem?")
        )
        assert resp.status_code == 200

    record = ConversationHistoryService(db).get_record(SENDER)
    assert record.last_text == "tudo bem?"
    assert [t.role for t in record.history] == [
        Role.USER,
        Role.MODEL,
        Role.USER,
        Role.MODEL,
    ]
    assert whatsapp_adapter.send.await_count == 2


def test_unencodable_text_is_acknowledged_without_side_effects(
    db, generator, whatsapp_adapter
):
    app = create_app(
        testing=True, runtime=Runtime(generator=generator, whatsapp=whatsapp_adapter)
    )
    app.dependency_overrides[get_db] = lambda: db
    body = (
        b'{"entry":[{"changes":[{"value":{"messages":'
        b'[{"from":"+5511","text":{"body":"oi \\ud800"}}]}}]}]}'
    )
    with TestClient(app) as client:
        resp = client.post(
            "/webhook", content=body, headers={"Content-Type": "application/json"}
        )

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert generator.calls == []
    whatsapp_adapter.send.assert_not_awaited()
    record = ConversationHistoryService(db).get_record("+5511")
    assert record.history == []
    assert record.last_text is None
