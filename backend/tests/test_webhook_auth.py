# backend/tests/test_webhook_auth.py
import pytest

from app.modules.whatsapp_inbox.services.webhook_auth import WebhookVerifier
from app.shared.utils.exceptions import WebhookAuthenticationError, WebhookConfigurationError

SECRET = "s3cret-token"


@pytest.mark.parametrize("header", ["X-Zapi-Signature", "X-Zapi-Token", "X-Webhook-Token", "Client-Token"])
def test_token_accepted_in_any_known_header(header):
    verifier = WebhookVerifier(SECRET)
    assert verifier.verify({header: SECRET}) is True


@pytest.mark.parametrize("scheme", ["Bearer", "bearer", "BEARER", "Bearer  "])
def test_bearer_authorization_accepted(scheme):
    verifier = WebhookVerifier(SECRET)
    assert verifier.verify({"Authorization": f"{scheme} {SECRET}"}) is True


def test_strict_mode_rejects_missing_token():
    verifier = WebhookVerifier(SECRET, mode="strict")
    with pytest.raises(WebhookAuthenticationError) as exc:
        verifier.verify({})
    assert exc.value.status_code == 401


def test_strict_mode_rejects_wrong_token():
    verifier = WebhookVerifier(SECRET)
    with pytest.raises(WebhookAuthenticationError):
        verifier.verify({"X-Zapi-Token": "wrong"})


def test_permissive_mode_lets_unverified_through():
    verifier = WebhookVerifier(SECRET, mode="permissive")
    assert verifier.permissive
    assert verifier.verify({"X-Zapi-Token": "wrong"}) is False


def test_missing_secret_fails_closed_even_in_permissive_mode():
    verifier = WebhookVerifier("", mode="permissive")
    with pytest.raises(WebhookConfigurationError) as exc:
        verifier.verify({"X-Zapi-Token": "anything"})
    assert exc.value.status_code == 500


def test_unknown_mode_falls_back_to_strict():
    verifier = WebhookVerifier(SECRET, mode="yolo")
    assert not verifier.permissive


def test_ip_allowlist():
    verifier = WebhookVerifier(SECRET, allowed_ips="10.0.0.1, 10.0.0.2")
    assert verifier.verify({"X-Zapi-Token": SECRET}, client_ip="10.0.0.2") is True
    with pytest.raises(WebhookAuthenticationError):
        verifier.verify({"X-Zapi-Token": SECRET}, client_ip="203.0.113.9")
