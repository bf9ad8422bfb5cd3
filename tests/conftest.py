"""Shared fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from accounts.api.main import create_app
from accounts.api.rate_limit import limiter
from accounts.auth.service import AuthService
from accounts.auth.tokens import TokenService
from accounts.settings import Settings
from accounts.storage.memory import InMemoryReferralStore, InMemoryUserStore

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class FakeMailer:
    """Records reset emails instead of sending them."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail_with: Exception | None = None
        self.result = True

    async def send_password_reset_email(self, to_email: str, reset_link: str) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((to_email, reset_link))
        return self.result


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_settings(**overrides) -> Settings:
    values = dict(
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        database_url="sqlite://",
        base_url="https://app.example.com",
        rate_limit_enabled=False,
        csrf_enabled=False,
        db_connect_retry_seconds=0,
        log_level="WARNING",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 1, 15, 12, 0, 0))


@pytest.fixture
def users() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def referrals(users) -> InMemoryReferralStore:
    return InMemoryReferralStore(users)


@pytest.fixture
def tokens(settings) -> TokenService:
    return TokenService(settings)


@pytest.fixture
def auth_service(users, referrals, settings, mailer, clock, tokens) -> AuthService:
    return AuthService(
        users=users,
        referrals=referrals,
        settings=settings,
        mailer=mailer,
        tokens=tokens,
        clock=clock,
    )


@pytest.fixture
def app(settings, mailer):
    return create_app(settings, mailer=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()
