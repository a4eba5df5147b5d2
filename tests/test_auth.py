import pytest

from portal.auth import AuthError, SessionStore, authenticate, get_sessions
from portal.config import Settings, get_settings


def test_admin_login():
    identity = authenticate("admin", "admin123", Settings())
    assert identity.role == "admin"


def test_admin_wrong_password():
    with pytest.raises(AuthError, match="Invalid Partner ID or Password"):
        authenticate("admin", "nope", Settings())


def test_partner_demo_login():
    identity = authenticate("demo", "demo123", Settings())
    assert identity.role == "partner"
    assert identity.display_name == "Partner DEMO"


@pytest.mark.parametrize("partner_id,password", [("", "x"), ("demo", ""), ("   ", "x")])
def test_blank_credentials_rejected(partner_id, password):
    with pytest.raises(AuthError):
        authenticate(partner_id, password, Settings())


def test_custom_admin_credentials():
    settings = Settings(admin_user="boss", admin_password="s3cret")
    assert authenticate("boss", "s3cret", settings).role == "admin"
    # The default admin name is now an ordinary partner id.
    assert authenticate("admin", "admin123", settings).role == "partner"


def test_session_lifecycle():
    sessions = SessionStore()
    session = sessions.login("demo", "demo123", Settings())
    assert session.is_partner and not session.is_admin
    assert session.owner == "demo"
    assert sessions.require(session.token) == session
    assert sessions.revoke(session.token) is True
    assert sessions.get(session.token) is None
    with pytest.raises(AuthError):
        sessions.require(session.token)


def test_admin_session_sees_all_owners():
    session = SessionStore().login("admin", "admin123", Settings())
    assert session.owner is None


def test_tokens_are_unique():
    sessions = SessionStore()
    a = sessions.login("demo", "x", Settings())
    b = sessions.login("demo", "x", Settings())
    assert a.token != b.token


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_sessions_expire_after_ttl():
    clock = FakeClock()
    sessions = SessionStore(ttl_seconds=60, clock=clock)
    session = sessions.login("demo", "demo123", Settings())
    clock.now += 59
    assert sessions.get(session.token) == session
    clock.now += 1
    assert sessions.get(session.token) is None
    with pytest.raises(AuthError):
        sessions.require(session.token)
    assert len(sessions) == 0


def test_expired_sessions_are_purged_on_login():
    clock = FakeClock()
    sessions = SessionStore(ttl_seconds=60, clock=clock)
    for _ in range(3):
        sessions.login("demo", "demo123", Settings())
    clock.now += 120
    fresh = sessions.login("demo", "demo123", Settings())
    assert len(sessions) == 1
    assert sessions.get(fresh.token) == fresh


def test_get_sessions_uses_configured_ttl(monkeypatch):
    monkeypatch.setenv("PORTAL_SESSION_TTL_MINUTES", "0")
    get_settings.cache_clear()
    get_sessions.cache_clear()
    sessions = get_sessions()
    session = sessions.login("demo", "demo123")
    assert sessions.get(session.token) is None
