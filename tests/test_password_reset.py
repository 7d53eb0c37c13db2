"""Email verification, password reset and expired-token cleanup."""

import asyncio
from datetime import datetime, timedelta

import pytest

from conftest import DEFAULT_PASSWORD
from eventreg.models.audit_log import AuditLog
from eventreg.models.email_verification import EmailVerification
from eventreg.models.password_reset_token import PasswordResetToken
from eventreg.services import mail, scheduler
from eventreg.services.cleanup import cleanup_expired_tokens
from eventreg.services.scheduler import seconds_until_midnight
from eventreg.utils.password_reset import hash_token
from eventreg.utils.timeutils import utcnow

NEW_PASSWORD = "BrandNew42"


@pytest.fixture
def outbox(monkeypatch):
    """Capture outgoing mail instead of talking to SMTP."""
    sent = {"verification": [], "reset": []}

    def fake_verification(to_email, token):
        sent["verification"].append((to_email, token))
        return True

    def fake_reset(to_email, token):
        sent["reset"].append((to_email, token))
        return True

    monkeypatch.setattr(mail, "send_verification_email", fake_verification)
    monkeypatch.setattr(mail, "send_password_reset_email", fake_reset)
    return sent


def actions(session_factory):
    with session_factory() as db:
        return [a.action for a in db.query(AuditLog).order_by(AuditLog.id)]


class TestForgotPassword:
    def test_unknown_email_gets_same_answer(self, client, create_user, outbox, session_factory):
        create_user()

        known = client.post("/auth/forgot-password", json={"email": "jane@university.edu"})
        unknown = client.post("/auth/forgot-password", json={"email": "ghost@university.edu"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert [to for to, _ in outbox["reset"]] == ["jane@university.edu"]

    def test_only_hash_is_stored(self, client, create_user, outbox, session_factory):
        create_user()

        client.post("/auth/forgot-password", json={"email": "jane@university.edu"})

        _, plain = outbox["reset"][0]
        with session_factory() as db:
            row = db.query(PasswordResetToken).one()
            assert row.token_hash == hash_token(plain)
            assert row.token_hash != plain
            assert row.used_at is None
            assert row.expires_at > utcnow()
        assert "PASSWORD_RESET_REQUESTED" in actions(session_factory)

    def test_new_request_replaces_old_token(self, client, create_user, outbox, session_factory):
        create_user()

        client.post("/auth/forgot-password", json={"email": "jane@university.edu"})
        client.post("/auth/forgot-password", json={"email": "jane@university.edu"})

        with session_factory() as db:
            assert db.query(PasswordResetToken).count() == 1
        first_token = outbox["reset"][0][1]
        resp = client.post("/auth/reset-password", json={"token": first_token, "password": NEW_PASSWORD})
        assert resp.status_code == 404

    def test_mail_failure_is_not_surfaced(self, client, create_user, monkeypatch, session_factory):
        create_user()

        def broken(to_email, token):
            raise OSError("smtp unreachable")

        monkeypatch.setattr(mail, "send_password_reset_email", broken)

        resp = client.post("/auth/forgot-password", json={"email": "jane@university.edu"})

        assert resp.status_code == 200
        assert "PASSWORD_RESET_REQUEST_ERROR" in actions(session_factory)

    def test_rate_limited(self, client, outbox):
        statuses = [
            client.post("/auth/forgot-password", json={"email": "ghost@university.edu"}).status_code
            for _ in range(6)
        ]

        assert statuses[:5] == [200] * 5
        assert statuses[5] == 429

    def test_rate_limit_response_has_retry_after(self, client, outbox):
        for _ in range(5):
            client.post("/auth/forgot-password", json={"email": "ghost@university.edu"})

        resp = client.post("/auth/forgot-password", json={"email": "ghost@university.edu"})

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == str(15 * 60)


class TestResetPassword:
    def _request_token(self, client, outbox):
        client.post("/auth/forgot-password", json={"email": "jane@university.edu"})
        return outbox["reset"][-1][1]

    def test_reset_changes_password_once(self, client, create_user, outbox, session_factory):
        create_user()
        token = self._request_token(client, outbox)

        resp = client.post("/auth/reset-password", json={"token": token, "password": NEW_PASSWORD})

        assert resp.status_code == 200
        old = client.post("/auth/login", json={"email": "jane@university.edu", "password": DEFAULT_PASSWORD})
        new = client.post("/auth/login", json={"email": "jane@university.edu", "password": NEW_PASSWORD})
        assert old.status_code == 401
        assert new.status_code == 200

        again = client.post("/auth/reset-password", json={"token": token, "password": "Another99"})
        assert again.status_code == 404
        assert again.json()["message"] == "Invalid or expired reset token"
        assert "PASSWORD_RESET_COMPLETED" in actions(session_factory)

    def test_expired_token(self, client, create_user, outbox, session_factory):
        create_user()
        token = self._request_token(client, outbox)
        with session_factory() as db:
            db.query(PasswordResetToken).update({"expires_at": utcnow() - timedelta(minutes=1)})
            db.commit()

        resp = client.post("/auth/reset-password", json={"token": token, "password": NEW_PASSWORD})

        assert resp.status_code == 404

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsOrSpecial"])
    def test_weak_passwords_rejected(self, client, create_user, outbox, password):
        create_user()
        token = self._request_token(client, outbox)

        resp = client.post("/auth/reset-password", json={"token": token, "password": password})

        assert resp.status_code == 400


class TestEmailVerification:
    def test_signup_verify_then_login(self, client, outbox, session_factory):
        resp = client.post(
            "/user/create-user",
            json={"email": "new@university.edu", "password": DEFAULT_PASSWORD, "username": "newbie"},
        )
        assert resp.status_code == 201
        assert resp.json()["email"] == "new@university.edu"

        blocked = client.post("/auth/login", json={"email": "new@university.edu", "password": DEFAULT_PASSWORD})
        assert blocked.status_code == 401

        _, token = outbox["verification"][0]
        verified = client.get("/auth/verify-email", params={"token": token})
        assert verified.status_code == 200

        ok = client.post("/auth/login", json={"email": "new@university.edu", "password": DEFAULT_PASSWORD})
        assert ok.status_code == 200
        with session_factory() as db:
            assert db.query(EmailVerification).count() == 0
        assert "USER_REGISTERED" in actions(session_factory)

    def test_unknown_token(self, client):
        resp = client.get("/auth/verify-email", params={"token": "nope"})

        assert resp.status_code == 404
        assert resp.json()["message"] == "Invalid verification token"

    def test_expired_token(self, client, outbox, session_factory):
        client.post("/user/create-user", json={"email": "new@university.edu", "password": DEFAULT_PASSWORD})
        _, token = outbox["verification"][0]
        with session_factory() as db:
            db.query(EmailVerification).update({"expires_at": utcnow() - timedelta(seconds=1)})
            db.commit()

        resp = client.get("/auth/verify-email", params={"token": token})

        assert resp.status_code == 400
        assert resp.json()["message"] == "Verification token has expired"

    def test_resend_replaces_token(self, client, outbox, session_factory):
        client.post("/user/create-user", json={"email": "new@university.edu", "password": DEFAULT_PASSWORD})

        resp = client.post("/auth/resend-verification", json={"email": "new@university.edu"})

        assert resp.status_code == 200
        assert len(outbox["verification"]) == 2
        with session_factory() as db:
            rows = db.query(EmailVerification).all()
            assert [r.token for r in rows] == [outbox["verification"][1][1]]
        assert "VERIFICATION_EMAIL_RESENT" in actions(session_factory)

    def test_resend_is_silent_for_verified_and_unknown(self, client, create_user, outbox):
        create_user()

        verified = client.post("/auth/resend-verification", json={"email": "jane@university.edu"})
        unknown = client.post("/auth/resend-verification", json={"email": "ghost@university.edu"})

        assert verified.status_code == unknown.status_code == 200
        assert outbox["verification"] == []


class TestTokenCleanup:
    def test_removes_expired_and_used_tokens(self, create_user, session_factory):
        user = create_user()
        now = utcnow()
        with session_factory() as db:
            db.add_all([
                PasswordResetToken(user_id=user.id, token_hash="a" * 64, expires_at=now - timedelta(hours=1)),
                PasswordResetToken(
                    user_id=user.id, token_hash="b" * 64, expires_at=now + timedelta(hours=1), used_at=now
                ),
                PasswordResetToken(user_id=user.id, token_hash="c" * 64, expires_at=now + timedelta(hours=1)),
                EmailVerification(user_id=user.id, token="old", expires_at=now - timedelta(days=1)),
                EmailVerification(user_id=user.id, token="fresh", expires_at=now + timedelta(days=1)),
            ])
            db.commit()

            counts = cleanup_expired_tokens(db)

            assert counts == {"resetTokens": 2, "emailVerifications": 1}
            assert [t.token_hash for t in db.query(PasswordResetToken)] == ["c" * 64]
            assert [v.token for v in db.query(EmailVerification)] == ["fresh"]
            audit = db.query(AuditLog).filter(AuditLog.action == "TOKENS_CLEANUP").one()
            assert audit.meta_data["deletedCount"] == counts

    def test_seconds_until_midnight(self):
        assert seconds_until_midnight(datetime(2024, 1, 1, 23, 0, 0)) == 3600
        assert seconds_until_midnight(datetime(2024, 1, 1, 0, 0, 0)) == 24 * 3600

    def test_failed_run_is_logged_not_raised(self, monkeypatch, session_factory, caplog):
        def broken(db):
            raise RuntimeError("disk full")

        monkeypatch.setattr(scheduler, "SessionLocal", session_factory)
        monkeypatch.setattr(scheduler, "cleanup_expired_tokens", broken)

        scheduler.run_token_cleanup()

        assert "Error cleaning up expired tokens" in caplog.text

    def test_cleanup_loop_survives_a_failed_run(self, monkeypatch):
        calls = []

        def flaky():
            calls.append(len(calls))
            if len(calls) == 1:
                raise RuntimeError("boom")

        monkeypatch.setattr(scheduler, "seconds_until_midnight", lambda now=None: 0)
        monkeypatch.setattr(scheduler, "run_token_cleanup", flaky)

        async def run():
            jobs = scheduler.BackgroundJobs()
            await jobs.start()
            while len(calls) < 2:
                await asyncio.sleep(0.01)
            await jobs.stop()

        asyncio.run(asyncio.wait_for(run(), timeout=5))

        assert len(calls) >= 2
