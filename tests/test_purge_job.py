import logging
from datetime import datetime, timedelta, timezone

from mkrfoods.dependencies import otp as otp_deps
from mkrfoods.main import app
from mkrfoods.utils.errors import DependencyError
from mkrfoods.utils.otp_manager import OtpManager
from mkrfoods.utils.otp_store import MemoryOtpStore, OtpRecord, SqlOtpStore


class DownStore(MemoryOtpStore):
    backend = "down"

    def get(self, key):
        raise DependencyError("Service temporarily unavailable. Please try again.", detail="connection refused")

    def put(self, record):
        raise DependencyError("Service temporarily unavailable. Please try again.", detail="connection refused")

    def purge_expired(self, now=None):
        raise DependencyError("Service temporarily unavailable. Please try again.", detail="connection refused")


def _expired(key):
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    return OtpRecord(key=key, code="123456", issued_at=past, expires_at=past + timedelta(seconds=600))


def _live(key):
    now = datetime.now(timezone.utc)
    return OtpRecord(key=key, code="654321", issued_at=now, expires_at=now + timedelta(seconds=600))


def test_purge_job_sweeps_every_flow(monkeypatch, session_factory, sender):
    signup_store = SqlOtpStore(session_factory, "signup")
    signup_store.put(_expired("old@x.com"))
    signup_store.put(_live("new@x.com"))
    email_store = MemoryOtpStore()
    email_store.put(_expired("gone@x.com"))
    managers = [
        OtpManager(email_store, sender, 300, flow="email"),
        OtpManager(signup_store, sender, 600, flow="signup"),
    ]
    monkeypatch.setattr(otp_deps, "all_managers", lambda: managers)

    assert otp_deps.purge_expired_challenges() == 2
    assert signup_store.get("old@x.com") is None
    assert signup_store.get("new@x.com") is not None
    assert len(email_store) == 0


def test_purge_job_keeps_going_when_a_store_is_down(monkeypatch, session_factory, sender, caplog):
    signup_store = SqlOtpStore(session_factory, "signup")
    signup_store.put(_expired("old@x.com"))
    managers = [
        OtpManager(DownStore(), sender, 300, flow="email"),
        OtpManager(signup_store, sender, 600, flow="signup"),
    ]
    monkeypatch.setattr(otp_deps, "all_managers", lambda: managers)

    with caplog.at_level(logging.ERROR, logger="mkrfoods.dependencies.otp"):
        removed = otp_deps.purge_expired_challenges()

    assert removed == 1
    assert signup_store.get("old@x.com") is None
    assert any("flow email" in r.getMessage() for r in caplog.records)


def test_store_outage_is_a_server_error(client, sender):
    app.dependency_overrides[otp_deps.get_email_otp_manager] = lambda: OtpManager(
        DownStore(), sender, 300, flow="email"
    )

    send = client.post("/api/email-otp/send", json={"email": "user@x.com"})
    verify = client.post("/api/email-otp/verify", json={"email": "user@x.com", "otp": "123456"})

    for resp in (send, verify):
        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Service temporarily unavailable. Please try again."
        assert body["error"] == "connection refused"
    assert sender.sent == []


def test_store_outage_hides_detail_outside_development(client, sender, production):
    app.dependency_overrides[otp_deps.get_email_otp_manager] = lambda: OtpManager(
        DownStore(), sender, 300, flow="email"
    )

    resp = client.post("/api/email-otp/send", json={"email": "user@x.com"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Service temporarily unavailable. Please try again."}
