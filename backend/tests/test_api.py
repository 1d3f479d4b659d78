# backend/tests/test_api.py
"""
HTTP surface: auth (401) before tenant (403) before validation (400),
error translation, and the webhook status code contract.

Services are replaced through dependency_overrides so no database is needed.
"""
from unittest.mock import MagicMock, AsyncMock

from app.main import app
from app.modules.places.api.places_endpoints import get_places_service
from app.modules.whatsapp_inbox.api.inbox_endpoints import get_conversation_service, get_dispatcher
from app.modules.whatsapp_inbox.api.webhook_endpoints import get_webhook_service, get_webhook_verifier
from app.modules.whatsapp_inbox.services.webhook_auth import WebhookVerifier
from app.shared.auth.identity import CurrentUser, get_current_user
from app.shared.utils.exceptions import PersistenceError, PhoneNotFoundError

WEBHOOK_HEADERS = {"X-Zapi-Token": "test-webhook-secret"}


def login(tenant_claim=None):
    user = CurrentUser(id="user-1", email="agent@example.com", tenant_claim=tenant_claim)
    app.dependency_overrides[get_current_user] = lambda: user
    return user


def override_dispatcher(results=None):
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock(return_value=results or [])
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return dispatcher


def override_webhook_service(result=None, error=None):
    service = MagicMock()
    service.handle_event = AsyncMock(return_value=result, side_effect=error)
    app.dependency_overrides[get_webhook_service] = lambda: service
    return service


# --- 1. HEALTH & REQUEST ID ---

def test_health(test_client):
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"].startswith("req-")


def test_incoming_request_id_is_echoed(test_client):
    response = test_client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


# --- 2. OUTBOUND SEND ---

def test_send_requires_authentication(test_client):
    override_dispatcher()
    response = test_client.post("/api/inbox/send", json={"phones": ["11987654321"], "message": "Oi"})
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"


def test_send_on_unmapped_host_is_forbidden(test_client):
    login()
    dispatcher = override_dispatcher()
    response = test_client.post(
        "/api/inbox/send",
        json={"phones": ["11987654321"], "message": "Oi"},
        headers={"Host": "evil.test"},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "TENANT_NOT_RESOLVED"
    dispatcher.dispatch.assert_not_awaited()


def test_send_without_phones_is_400(test_client):
    login()
    override_dispatcher()
    response = test_client.post("/api/inbox/send", json={"phones": [], "message": "Oi"})
    assert response.status_code == 400


def test_send_reports_partial_failure_with_200(test_client):
    login()
    dispatcher = override_dispatcher([
        {"phone": "5511900000001", "status": "sent", "provider_message_id": "M1"},
        {"phone": "5511900000002", "status": "failed", "error": "Z-API rejected the request (400)"},
        {"phone": "5511900000003", "status": "skipped"},
    ])

    response = test_client.post(
        "/api/inbox/send",
        json={"phones": "11900000001, 11900000002\n11900000003", "message": "Oi", "template": "promo_1"},
    )

    assert response.status_code == 200
    assert [r["status"] for r in response.json()["results"]] == ["sent", "failed", "skipped"]
    args, kwargs = dispatcher.dispatch.await_args
    assert args[0] == "tenant-a"
    assert args[1] == ["11900000001", "11900000002", "11900000003"]
    assert kwargs["template"] == "promo_1"


def test_user_tenant_claim_wins_over_host(test_client):
    login(tenant_claim="tenant-z")
    dispatcher = override_dispatcher([{"phone": "5511987654321", "status": "sent"}])

    response = test_client.post("/api/inbox/send", json={"phones": ["11987654321"], "message": "Oi"})

    assert response.status_code == 200
    assert dispatcher.dispatch.await_args.args[0] == "tenant-z"


def test_send_with_invalid_attachment_is_400(test_client):
    login()
    override_dispatcher()
    response = test_client.post("/api/inbox/send", json={
        "phones": ["11987654321"],
        "attachment": {"data": "not base64!", "mimeType": "image/png"},
    })
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ATTACHMENT"


def test_send_without_body_is_400(test_client):
    login()
    dispatcher = override_dispatcher()
    dispatcher.dispatch.side_effect = ValueError("Message body or attachment is required")
    response = test_client.post("/api/inbox/send", json={"phones": ["11987654321"], "template": "custom"})
    assert response.status_code == 400


# --- 3. CONVERSATIONS ---

def test_list_conversations_is_tenant_scoped(test_client):
    login()
    service = MagicMock()
    service.list_conversations = AsyncMock(return_value=[{
        "contact": {"id": 1, "tenant_id": "tenant-a", "phone": "5511987654321", "name": "Maria", "chat_unread": True},
        "last_message": {
            "id": 10, "contact_id": 1, "direction": "inbound", "body": "Oi",
            "status": "received", "provider_message_id": "M1",
        },
    }])
    app.dependency_overrides[get_conversation_service] = lambda: service

    response = test_client.get("/api/inbox/conversations?limit=10")

    assert response.status_code == 200
    body = response.json()
    assert body["conversations"][0]["contact"]["phone_display"] == "+55 11 98765-4321"
    assert body["conversations"][0]["last_message"]["body"] == "Oi"
    service.list_conversations.assert_awaited_once_with("tenant-a", limit=10, offset=0)


def test_other_host_gets_other_tenant(test_client):
    login()
    service = MagicMock()
    service.list_conversations = AsyncMock(return_value=[])
    app.dependency_overrides[get_conversation_service] = lambda: service

    response = test_client.get("/api/inbox/conversations", headers={"Host": "other.test"})

    assert response.status_code == 200
    assert service.list_conversations.await_args.args[0] == "tenant-b"


# --- 4. WEBHOOK ---

def test_webhook_ack_get(test_client):
    response = test_client.get("/api/webhooks/zapi")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_webhook_without_token_is_401(test_client, received_text_payload):
    service = override_webhook_service({"outcome": "persisted"})
    response = test_client.post("/api/webhooks/zapi", json=received_text_payload)
    assert response.status_code == 401
    service.handle_event.assert_not_awaited()


def test_webhook_without_configured_secret_is_500(test_client, received_text_payload):
    override_webhook_service({"outcome": "persisted"})
    app.dependency_overrides[get_webhook_verifier] = lambda: WebhookVerifier("")
    response = test_client.post("/api/webhooks/zapi", json=received_text_payload, headers=WEBHOOK_HEADERS)
    assert response.status_code == 500
    assert response.json()["code"] == "WEBHOOK_SECRET_MISSING"


def test_webhook_persisted(test_client, received_text_payload):
    service = override_webhook_service({"outcome": "persisted", "message_id": 7, "contact_id": 3})
    response = test_client.post("/api/webhooks/zapi", json=received_text_payload, headers=WEBHOOK_HEADERS)

    assert response.status_code == 200
    assert response.json()["outcome"] == "persisted"
    assert response.json()["message_id"] == 7
    service.handle_event.assert_awaited_once_with("tenant-a", received_text_payload)


def test_webhook_duplicate_is_200(test_client, received_text_payload):
    override_webhook_service({"outcome": "duplicate", "message_id": 7})
    response = test_client.post("/api/webhooks/zapi", json=received_text_payload, headers=WEBHOOK_HEADERS)
    assert response.status_code == 200
    assert response.json()["outcome"] == "duplicate"


def test_webhook_invalid_json_is_400(test_client):
    override_webhook_service({"outcome": "persisted"})
    response = test_client.post(
        "/api/webhooks/zapi",
        content=b"{not json",
        headers={**WEBHOOK_HEADERS, "Content-Type": "application/json"},
    )
    assert response.status_code == 400


def test_webhook_without_phone_is_400(test_client):
    override_webhook_service(error=PhoneNotFoundError("No sender phone found in webhook payload"))
    response = test_client.post(
        "/api/webhooks/zapi",
        json={"type": "ReceivedCallback", "text": {"message": "hi"}},
        headers=WEBHOOK_HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "PHONE_NOT_FOUND"


def test_webhook_persistence_failure_is_500(test_client, received_text_payload):
    override_webhook_service(error=PersistenceError("message insert", RuntimeError("db down")))
    response = test_client.post("/api/webhooks/zapi", json=received_text_payload, headers=WEBHOOK_HEADERS)
    assert response.status_code == 500
    assert response.json()["code"] == "PERSISTENCE_FAILED"


def test_webhook_on_unmapped_host_is_403(test_client, received_text_payload):
    service = override_webhook_service({"outcome": "persisted"})
    response = test_client.post(
        "/api/webhooks/zapi",
        json=received_text_payload,
        headers={**WEBHOOK_HEADERS, "Host": "evil.test"},
    )
    assert response.status_code == 403
    service.handle_event.assert_not_awaited()


# --- 5. PLACES ---

def test_places_search_without_login_uses_public_tenant(test_client):
    service = MagicMock()
    service.search = AsyncMock(return_value=[{
        "id": "p1",
        "name": "Pet Shop Recreio",
        "address": "Av. das Américas, 10000",
        "phone": "(21) 99876-5432",
        "rating": 4.6,
        "maps_url": "https://maps.google.com/?cid=1",
        "photo_url": None,
        "has_whatsapp": True,
    }])
    app.dependency_overrides[get_places_service] = lambda: service

    response = test_client.get(
        "/api/places/search?type=pet%20shop&location=Recreio&only_whatsapp=true",
        headers={"Host": "open.test"},
    )

    assert response.status_code == 200
    assert response.json()["results"][0]["has_whatsapp"] is True
    assert response.headers["Cache-Control"].startswith("s-maxage=60")
    service.search.assert_awaited_once_with("pet shop", "Recreio", only_whatsapp=True)


def test_places_photo_proxy(test_client):
    service = MagicMock()
    service.fetch_photo = AsyncMock(return_value=(b"JPEGDATA", "image/jpeg"))
    app.dependency_overrides[get_places_service] = lambda: service

    response = test_client.get("/api/places/photo?ref=abc&maxwidth=600", headers={"Host": "open.test"})

    assert response.status_code == 200
    assert response.content == b"JPEGDATA"
    assert response.headers["content-type"] == "image/jpeg"
    service.fetch_photo.assert_awaited_once_with("abc", maxwidth=600)
