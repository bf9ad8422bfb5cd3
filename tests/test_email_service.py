import asyncio
import json

import httpx

from accounts.email.service import EmailService

from conftest import make_settings


def send(service, link="https://app.example.com/reset-password?token=abc"):
    return asyncio.run(service.send_password_reset_email("alice@example.com", link))


def service_with(handler, **overrides):
    settings = make_settings(sendgrid_api_key="SG.test-key", sendgrid_from_email="noreply@example.com", **overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmailService(settings, client=client)


def test_reset_email_payload():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    assert send(service_with(handler)) is True

    request = seen[0]
    assert str(request.url) == EmailService.SENDGRID_API_URL
    assert request.headers["authorization"] == "Bearer SG.test-key"
    payload = json.loads(request.content)
    assert payload["personalizations"][0]["to"] == [{"email": "alice@example.com"}]
    assert payload["personalizations"][0]["subject"] == "Password Reset Request"
    assert payload["from"]["email"] == "noreply@example.com"
    assert [c["type"] for c in payload["content"]] == ["text/plain", "text/html"]
    assert all("token=abc" in c["value"] for c in payload["content"])


def test_provider_rejection_returns_false():
    service = service_with(lambda request: httpx.Response(401, text="bad key"))
    assert send(service) is False


def test_transport_error_returns_false():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert send(service_with(handler)) is False


def test_disabled_without_api_key():
    def handler(request):
        raise AssertionError("no request expected")

    service = EmailService(make_settings(sendgrid_api_key=None), client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert service.enabled is False
    assert send(service) is False
