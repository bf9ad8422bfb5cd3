from fastapi.testclient import TestClient

from accounts.api.main import create_app
from accounts.auth.middleware import require_user_id

from conftest import FakeMailer, make_settings

ALICE = {"username": "alice", "email": "alice@example.com", "password": "password123"}


def register(client, **overrides):
    return client.post("/api/register", json={**ALICE, **overrides})


def login(client, email="alice@example.com", password="password123"):
    return client.post("/api/login", json={"email": email, "password": password})


def bearer(client, email="alice@example.com"):
    token = login(client, email=email).json()["token"]
    return {"Authorization": f"Bearer {token}"}


# ==================== REGISTER / LOGIN ====================


def test_register_login_flow(client):
    response = register(client)
    assert response.status_code == 201
    assert response.json() == {"message": "User registered successfully"}

    duplicate = register(client, username="alice2")
    assert duplicate.status_code == 409
    assert duplicate.json() == {"message": "Email already in use"}

    ok = login(client)
    assert ok.status_code == 200
    assert ok.json()["message"] == "Login successful"
    assert ok.json()["token"]

    wrong = login(client, password="wrongpass")
    assert wrong.status_code == 400
    assert wrong.json() == {"message": "Invalid credentials"}


def test_register_never_echoes_password(client):
    response = register(client)
    assert "password123" not in response.text
    assert "$2" not in response.text


def test_register_validation_messages(client):
    missing = client.post("/api/register", json={"username": "alice"})
    assert missing.status_code == 400
    assert missing.json() == {"message": "Missing required fields"}

    short = register(client, password="short")
    assert short.status_code == 400

    bad_code = register(client, referral_code="NOPE0000")
    assert bad_code.status_code == 400
    assert bad_code.json() == {"message": "Invalid referral code"}


def test_login_failures_are_indistinguishable(client):
    register(client)

    wrong_password = login(client, password="wrongpass")
    unknown_email = login(client, email="ghost@example.com")

    assert wrong_password.status_code == unknown_email.status_code == 400
    assert wrong_password.content == unknown_email.content


def test_login_sets_session_cookie(client):
    register(client)
    response = login(client)

    cookie = response.headers["set-cookie"].lower()
    assert cookie.startswith("token=")
    assert "httponly" in cookie
    assert "samesite=strict" in cookie
    assert "max-age=3600" in cookie
    assert "secure" not in cookie


def test_wrong_types_are_rejected(client):
    response = client.post("/api/register", json={"username": 123, "email": ["x"], "password": True})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid request body"}


def test_malformed_json_is_rejected(client):
    response = client.post("/api/login", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid request body"}


def test_login_without_secret_is_server_error(mailer):
    app = create_app(make_settings(jwt_secret=None), mailer=mailer)
    with TestClient(app) as client:
        register(client)
        response = login(client)

    assert response.status_code == 500
    assert response.json() == {"message": "Server error"}


# ==================== REFERRALS ====================


def test_referral_listing_and_stats(client, app):
    register(client)
    code = app.state.auth_service.users.get_by_email("alice@example.com").referral_code
    register(client, username="bob", email="bob@example.com", referral_code=code)
    register(client, username="carol", email="carol@example.com", referral_code=code)

    headers = bearer(client)
    listed = client.get("/api/referrals", headers=headers)
    assert listed.status_code == 200
    body = listed.json()
    assert [r["referred_user"]["username"] for r in body] == ["bob", "carol"]
    assert all(r["status"] == "successful" for r in body)
    assert "password_hash" not in listed.text

    alias = client.get("/api/referral", headers=headers)
    assert alias.json() == body

    stats = client.get("/api/referral-stats", headers=headers)
    assert stats.json() == {"totalReferrals": 2, "successfulReferrals": 2}

    bob_stats = client.get("/api/referral-stats", headers=bearer(client, "bob@example.com"))
    assert bob_stats.json() == {"totalReferrals": 0, "successfulReferrals": 0}


def test_referrals_require_bearer_token(client):
    for path in ("/api/referrals", "/api/referral-stats"):
        missing = client.get(path)
        assert missing.status_code == 401
        assert missing.headers["www-authenticate"] == "Bearer"

        wrong_scheme = client.get(path, headers={"Authorization": "Token abc"})
        assert wrong_scheme.status_code == 401

        garbage = client.get(path, headers={"Authorization": "Bearer not.a.jwt"})
        assert garbage.status_code == 401
        assert garbage.json() == {"message": "Invalid token"}


# ==================== PASSWORD RESET ====================


def test_forgot_password_responses_match(client, mailer):
    register(client)

    known = client.post("/api/forgot-password", json={"email": "alice@example.com"})
    unknown = client.post("/api/forgot-password", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.content == unknown.content
    assert [to for to, _ in mailer.sent] == ["alice@example.com"]
    assert mailer.sent[0][1].startswith("https://app.example.com/reset-password?token=")


def test_forgot_password_survives_mail_failure(client, mailer):
    register(client)
    mailer.fail_with = RuntimeError("provider down")

    response = client.post("/api/forgot-password", json={"email": "alice@example.com"})

    assert response.status_code == 200


# ==================== SECURITY LAYER ====================


def test_csrf_token_required_when_enabled():
    app = create_app(make_settings(csrf_enabled=True), mailer=FakeMailer())
    with TestClient(app) as client:
        rejected = register(client)
        assert rejected.status_code == 403
        assert rejected.json() == {"message": "Invalid CSRF token"}

        issued = client.get("/api/csrf-token")
        token = issued.json()["csrfToken"]
        assert "_csrf=" in issued.headers["set-cookie"]

        mismatched = client.post("/api/register", json=ALICE, headers={"X-CSRF-Token": "wrong"})
        assert mismatched.status_code == 403

        accepted = client.post("/api/register", json=ALICE, headers={"X-CSRF-Token": token})
        assert accepted.status_code == 201

        assert client.get("/health").status_code == 200


def test_login_is_rate_limited():
    app = create_app(make_settings(rate_limit_enabled=True), mailer=FakeMailer())
    with TestClient(app) as client:
        for _ in range(5):
            assert login(client, email="ghost@example.com").status_code == 400

        limited = login(client, email="ghost@example.com")

    assert limited.status_code == 429
    assert limited.json() == {"message": "Too many requests, please try again later."}


def test_security_headers(client):
    response = client.get("/health")

    assert response.headers["x-frame-options"] == "DENY"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert "default-src 'none'" in response.headers["content-security-policy"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_nul_password_login_does_not_reveal_accounts(app):
    with TestClient(app, raise_server_exceptions=False) as client:
        register(client)

        known = login(client, password="wrong\u0000pass")
        unknown = login(client, email="ghost@example.com", password="wrong\u0000pass")

    assert known.status_code == unknown.status_code == 400
    assert known.content == unknown.content


def test_nul_password_register_is_rejected(app):
    with TestClient(app, raise_server_exceptions=False) as client:
        response = register(client, username="bob", email="bob@example.com", password="pass\u0000word123")

    assert response.status_code == 400
    assert response.json() == {"message": "Password contains invalid characters"}


def test_unexpected_errors_keep_json_envelope(app, monkeypatch):
    def broken_register(data):
        raise RuntimeError("boom")

    monkeypatch.setattr(app.state.auth_service, "register", broken_register)

    with TestClient(app, raise_server_exceptions=False) as client:
        response = register(client)

    assert response.status_code == 500
    assert response.json() == {"message": "Server error"}
    assert "boom" not in response.text


def test_referral_routes_use_resolved_user_id(client, app):
    register(client)
    alice = app.state.auth_service.users.get_by_email("alice@example.com")
    register(client, username="bob", email="bob@example.com", referral_code=alice.referral_code)

    app.dependency_overrides[require_user_id] = lambda: alice.id
    try:
        listed = client.get("/api/referrals")
        stats = client.get("/api/referral-stats")
    finally:
        app.dependency_overrides.clear()

    assert [r["referred_user"]["username"] for r in listed.json()] == ["bob"]
    assert stats.json() == {"totalReferrals": 1, "successfulReferrals": 1}
