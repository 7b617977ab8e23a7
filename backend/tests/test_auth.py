# Overview: Pytest coverage for login, sessions, lockout and password reset.

"""
Authentication Tests

Covers:
- Login success/failure and the session payload
- Session check and logout
- Account lockout after repeated failures
- Session absolute and idle timeouts
- Password reset request/submit
"""

from datetime import timedelta

import pytest

from stockroom.models import User, SessionToken, SecurityEvent
from stockroom.services import session_service
from stockroom.services.mail_service import MAIL_SENDER_KEY
from stockroom.time_utils import utcnow
from conftest import get_auth_token, auth_headers, ADMIN_PASSWORD, BASIC_PASSWORD


class CapturingMailSender:
    def __init__(self):
        self.sent = []

    def send(self, recipient, subject, body):
        self.sent.append((recipient, subject, body))
        return True


def _token_from_mail(body: str) -> str:
    for line in body.splitlines():
        if line.startswith("Reset token: "):
            return line[len("Reset token: "):].strip()
    raise AssertionError("no reset token in mail body")


class TestLogin:

    def test_login_success(self, client, seed):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
        assert resp.status_code == 200

        data = resp.get_json()
        assert data["token"]
        assert data["user"]["username"] == "admin"
        assert data["access_level_name"] == "Administrator"
        assert all(data["permissions"].values())
        assert "password_hash" not in data["user"]

    def test_login_is_case_insensitive(self, client, seed):
        resp = client.post("/api/auth/login", json={"username": "MARIA", "password": BASIC_PASSWORD})
        assert resp.status_code == 200
        perms = resp.get_json()["permissions"]
        assert perms["record_movements"] is True
        assert perms["manage_access"] is False

    def test_login_with_email(self, client, seed):
        resp = client.post(
            "/api/auth/login",
            json={"username": "maria@example.com", "password": BASIC_PASSWORD},
        )
        assert resp.status_code == 200

    def test_wrong_password(self, client, seed):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "wrong-pass1"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"

    def test_unknown_user_same_error(self, client, seed):
        resp = client.post("/api/auth/login", json={"username": "ghost", "password": "whatever1"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"

    @pytest.mark.parametrize("payload", [{}, {"username": "admin"}, {"password": "x"}])
    def test_missing_fields(self, client, seed, payload):
        resp = client.post("/api/auth/login", json=payload)
        assert resp.status_code == 400

    def test_success_records_last_login(self, client, seed, db_session):
        client.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
        admin = db_session.query(User).filter_by(username="admin").first()
        assert admin.last_login_at is not None


class TestLockout:

    def test_five_failures_lock_the_account(self, client, seed, db_session):
        for _ in range(5):
            resp = client.post("/api/auth/login", json={"username": "maria", "password": "bad-pass1"})
            assert resp.status_code == 401

        # Even the right password is refused while locked
        resp = client.post("/api/auth/login", json={"username": "maria", "password": BASIC_PASSWORD})
        assert resp.status_code == 429
        data = resp.get_json()
        assert data["locked"] is True
        assert data["retry_after_seconds"] > 0

        locked = db_session.query(SecurityEvent).filter_by(event_type="ACCOUNT_LOCKED").count()
        assert locked == 1

    def test_four_failures_do_not_lock(self, client, seed):
        for _ in range(4):
            client.post("/api/auth/login", json={"username": "maria", "password": "bad-pass1"})

        resp = client.post("/api/auth/login", json={"username": "maria", "password": BASIC_PASSWORD})
        assert resp.status_code == 200

    def test_success_resets_failure_count(self, client, seed, db_session):
        for _ in range(3):
            client.post("/api/auth/login", json={"username": "maria", "password": "bad-pass1"})
        client.post("/api/auth/login", json={"username": "maria", "password": BASIC_PASSWORD})

        maria = db_session.query(User).filter_by(username="maria").first()
        assert maria.failed_attempts == 0

    def test_expired_lock_is_cleared(self, client, seed, db_session):
        maria = db_session.query(User).filter_by(username="maria").first()
        maria.failed_attempts = 5
        maria.locked_until = utcnow() - timedelta(minutes=1)
        db_session.commit()

        resp = client.post("/api/auth/login", json={"username": "maria", "password": BASIC_PASSWORD})
        assert resp.status_code == 200

    def test_unknown_user_locks_like_a_real_one(self, client, seed):
        def attempts(username):
            codes = []
            for _ in range(6):
                resp = client.post("/api/auth/login", json={"username": username, "password": "bad-pass1"})
                codes.append(resp.status_code)
            return codes, resp.get_json()

        real_codes, real_last = attempts("maria")
        ghost_codes, ghost_last = attempts("ghost")

        assert real_codes == ghost_codes == [401, 401, 401, 401, 401, 429]
        assert set(real_last) == set(ghost_last)
        assert ghost_last["locked"] is True
        assert ghost_last["retry_after_seconds"] > 0

    def test_unknown_identifier_is_normalized(self, client, seed):
        for name in ["Ghost", "GHOST", " ghost", "ghost", "gHoSt"]:
            client.post("/api/auth/login", json={"username": name, "password": "bad-pass1"})

        resp = client.post("/api/auth/login", json={"username": "ghost", "password": "bad-pass1"})
        assert resp.status_code == 429

    def test_unknown_identifier_lock_expires(self, client, seed, db_session):
        for _ in range(5):
            client.post("/api/auth/login", json={"username": "ghost", "password": "bad-pass1"})

        lock = db_session.query(SecurityEvent).filter_by(event_type="ACCOUNT_LOCKED", action="ghost").one()
        assert lock.user_id is None
        lock.occurred_at = utcnow() - timedelta(minutes=16)
        db_session.commit()

        resp = client.post("/api/auth/login", json={"username": "ghost", "password": "bad-pass1"})
        assert resp.status_code == 401


class TestSession:

    def test_session_without_token(self, client, seed):
        resp = client.get("/api/auth/session")
        assert resp.status_code == 200
        assert resp.get_json() == {"authenticated": False}

    def test_session_with_token(self, client, basic_headers):
        resp = client.get("/api/auth/session", headers=basic_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["authenticated"] is True
        assert data["user"]["username"] == "maria"
        assert data["access_level_name"] == "User"
        assert data["permissions"]["delete_products"] is False

    def test_logout_revokes_token(self, client, basic_headers):
        resp = client.post("/api/auth/logout", headers=basic_headers)
        assert resp.status_code == 200

        resp = client.get("/api/auth/session", headers=basic_headers)
        assert resp.get_json() == {"authenticated": False}

        resp = client.get("/api/products", headers=basic_headers)
        assert resp.status_code == 401

    def test_absolute_timeout(self, client, seed, db_session):
        token = get_auth_token(client, "maria", BASIC_PASSWORD)
        session = db_session.query(SessionToken).filter_by(
            token_hash=session_service.hash_token(token)
        ).first()
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_idle_timeout_revokes(self, client, seed, db_session):
        token = get_auth_token(client, "maria", BASIC_PASSWORD)
        session = db_session.query(SessionToken).filter_by(
            token_hash=session_service.hash_token(token)
        ).first()
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.refresh(session)
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_deleted_user_session_invalid(self, client, admin_headers, seed):
        token = get_auth_token(client, "maria", BASIC_PASSWORD)

        resp = client.delete(f"/api/users/{seed['basic_id']}", headers=admin_headers)
        assert resp.status_code == 200

        resp = client.get("/api/products", headers=auth_headers(token))
        assert resp.status_code == 401


class TestPasswordReset:

    @pytest.fixture
    def mailbox(self, app, monkeypatch):
        sender = CapturingMailSender()
        monkeypatch.setitem(app.extensions, MAIL_SENDER_KEY, sender)
        return sender

    def test_unknown_email_same_response(self, client, seed, mailbox):
        known = client.post("/api/auth/password-reset/request", json={"email": "maria@example.com"})
        unknown = client.post("/api/auth/password-reset/request", json={"email": "nobody@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.get_json() == unknown.get_json()
        assert len(mailbox.sent) == 1
        assert mailbox.sent[0][0] == "maria@example.com"

    def test_full_reset_flow(self, client, seed, mailbox, db_session):
        old_token = get_auth_token(client, "maria", BASIC_PASSWORD)

        client.post("/api/auth/password-reset/request", json={"email": "Maria@Example.com"})
        reset_token = _token_from_mail(mailbox.sent[0][2])

        resp = client.post(
            "/api/auth/password-reset/submit",
            json={"token": reset_token, "password": "brandnew99"},
        )
        assert resp.status_code == 200

        # Old sessions are gone, old password no longer works
        assert client.get("/api/products", headers=auth_headers(old_token)).status_code == 401
        assert get_auth_token(client, "maria", BASIC_PASSWORD) is None
        assert get_auth_token(client, "maria", "brandnew99") is not None

        # Token is single use
        resp = client.post(
            "/api/auth/password-reset/submit",
            json={"token": reset_token, "password": "another99"},
        )
        assert resp.status_code == 400

    def test_reset_unlocks_account(self, client, seed, mailbox, db_session):
        for _ in range(5):
            client.post("/api/auth/login", json={"username": "maria", "password": "bad-pass1"})

        client.post("/api/auth/password-reset/request", json={"email": "maria@example.com"})
        reset_token = _token_from_mail(mailbox.sent[0][2])
        client.post("/api/auth/password-reset/submit", json={"token": reset_token, "password": "brandnew99"})

        resp = client.post("/api/auth/login", json={"username": "maria", "password": "brandnew99"})
        assert resp.status_code == 200

    def test_expired_token_rejected(self, client, seed, mailbox, db_session):
        client.post("/api/auth/password-reset/request", json={"email": "maria@example.com"})
        reset_token = _token_from_mail(mailbox.sent[0][2])

        maria = db_session.query(User).filter_by(username="maria").first()
        maria.reset_token_expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        resp = client.post(
            "/api/auth/password-reset/submit",
            json={"token": reset_token, "password": "brandnew99"},
        )
        assert resp.status_code == 400

    def test_weak_new_password_rejected(self, client, seed, mailbox):
        client.post("/api/auth/password-reset/request", json={"email": "maria@example.com"})
        reset_token = _token_from_mail(mailbox.sent[0][2])

        resp = client.post(
            "/api/auth/password-reset/submit",
            json={"token": reset_token, "password": "short"},
        )
        assert resp.status_code == 400

    def test_unknown_token_rejected(self, client, seed):
        resp = client.post(
            "/api/auth/password-reset/submit",
            json={"token": "nope", "password": "brandnew99"},
        )
        assert resp.status_code == 400
