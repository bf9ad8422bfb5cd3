import pytest
from typer.testing import CliRunner

from accounts.cli import app
from accounts.storage import Database, ReferralStatus, SqlReferralStore, SqlUserStore
from accounts.storage.models import utcnow

from conftest import make_settings

runner = CliRunner()


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path}/accounts.db"
    monkeypatch.setenv("DATABASE_URL", url)
    # Keep structlog pointed at the real stdout rather than the runner's buffer
    monkeypatch.setattr("accounts.cli.configure_logging", lambda settings: None)
    return url


def test_init_db_creates_tables(database_url):
    result = runner.invoke(app, ["init-db"])

    assert result.exit_code == 0
    assert "Database initialized" in result.output


def test_referral_stats_for_unknown_user(database_url):
    runner.invoke(app, ["init-db"])

    result = runner.invoke(app, ["referral-stats", "ghost@example.com"])

    assert result.exit_code == 1
    assert "No user with email" in result.output


def test_referral_stats_table(database_url):
    runner.invoke(app, ["init-db"])
    db = Database(make_settings(), database_url=database_url)
    users = SqlUserStore(db)
    alice = users.create(username="alice", email="alice@example.com", password_hash="x", referral_code="ALICE000")
    bob = users.create(username="bob", email="bob@example.com", password_hash="x", referral_code="BOB00000", referred_by=alice.id)
    SqlReferralStore(db).create(
        referrer_id=alice.id,
        referred_user_id=bob.id,
        status=ReferralStatus.SUCCESSFUL,
        date_referred=utcnow(),
    )
    db.dispose()

    result = runner.invoke(app, ["referral-stats", "alice@example.com"])

    assert result.exit_code == 0
    assert "ALICE000" in result.output
    assert "bob" in result.output
    assert "Total: 1" in result.output
