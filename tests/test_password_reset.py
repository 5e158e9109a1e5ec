"""Tests for the forgot/reset password flow."""

from datetime import timedelta
from unittest.mock import MagicMock
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import InvalidOrExpiredTokenError, NotFoundError, ValidationError
from app.models.session import UserSession
from app.repositories.user import UserRepository
from app.services.auth import AuthService
from app.services.password_reset import PasswordResetService
from app.services.token_signer import TokenSigner, derive_reset_key


def _service() -> PasswordResetService:
    return PasswordResetService(mailer=MagicMock())


def _expired_token(db_session: Session, user_id: int) -> str:
    user = UserRepository(db_session).get_by_id(user_id)
    key = derive_reset_key(get_settings().SECRET_KEY, user.password_hash)
    return TokenSigner().sign({"email": user.email, "id": user.id}, key, timedelta(seconds=-1))


class TestTokenSigner:
    """Tests for TokenSigner and key derivation."""

    def test_sign_and_verify(self):
        signer = TokenSigner()
        token = signer.sign({"email": "a@x.com", "id": 1}, "key", timedelta(minutes=15))
        payload = signer.verify(token, "key")
        assert payload["email"] == "a@x.com"
        assert payload["id"] == 1

    def test_wrong_key_rejected(self):
        signer = TokenSigner()
        token = signer.sign({"id": 1}, "key", timedelta(minutes=15))
        with pytest.raises(InvalidOrExpiredTokenError):
            signer.verify(token, "other-key")

    def test_expired_token_rejected(self):
        signer = TokenSigner()
        token = signer.sign({"id": 1}, "key", timedelta(seconds=-1))
        with pytest.raises(InvalidOrExpiredTokenError):
            signer.verify(token, "key")

    def test_garbage_rejected(self):
        with pytest.raises(InvalidOrExpiredTokenError):
            TokenSigner().verify("not-a-token", "key")

    def test_derive_reset_key(self):
        assert derive_reset_key("secret", "$2b$10$hash") == "secret$2b$10$hash"


class TestPasswordResetService:
    """Tests for PasswordResetService."""

    def test_request_reset_unknown_email(self, db_session: Session):
        with pytest.raises(NotFoundError) as exc:
            _service().request_reset(db_session, "nobody@example.com", "http://testserver/")
        assert "not registered" in exc.value.message

    def test_request_reset_mails_link(self, db_session: Session, test_user: dict):
        service = _service()
        link = service.request_reset(db_session, "test@example.com", "http://testserver/")
        assert link.startswith(f"http://testserver/user/reset-password/{test_user['user_id']}/")
        service.mailer.send_reset_link.assert_called_once_with("test@example.com", link)

    def test_request_reset_defaults_to_configured_base_url(self, db_session: Session, test_user: dict):
        link = _service().request_reset(db_session, "test@example.com")
        base_url = get_settings().BASE_URL.rstrip("/")
        assert link.startswith(f"{base_url}/user/reset-password/{test_user['user_id']}/")

    def test_token_verifies_before_password_change(self, db_session: Session, test_user: dict):
        service = _service()
        user = UserRepository(db_session).get_by_id(test_user["user_id"])
        token = service.issue_token(user)
        assert service.verify(db_session, user.id, token).email == "test@example.com"
        # Verification stores nothing, so it can be repeated
        assert service.verify(db_session, user.id, token).id == user.id

    def test_token_invalid_after_password_change(self, db_session: Session, test_user: dict):
        service = _service()
        user = UserRepository(db_session).get_by_id(test_user["user_id"])
        token = service.issue_token(user)

        service.reset_password(db_session, user.id, token, "newpass", "newpass")

        with pytest.raises(InvalidOrExpiredTokenError):
            service.verify(db_session, user.id, token)
        with pytest.raises(InvalidOrExpiredTokenError):
            service.reset_password(db_session, user.id, token, "again1", "again1")

    def test_expired_token_with_valid_signature(self, db_session: Session, test_user: dict):
        token = _expired_token(db_session, test_user["user_id"])
        with pytest.raises(InvalidOrExpiredTokenError):
            _service().reset_password(db_session, test_user["user_id"], token, "newpass", "newpass")

    def test_token_for_other_user_rejected(self, db_session: Session, test_user: dict):
        service = _service()
        other = AuthService().register(db_session, "Other", "other@example.com", "pass1", "pass1")
        token = service.issue_token(other)
        with pytest.raises(InvalidOrExpiredTokenError):
            service.verify(db_session, test_user["user_id"], token)

    def test_verify_unknown_user(self, db_session: Session):
        with pytest.raises(NotFoundError):
            _service().verify(db_session, 999, "token")

    def test_reset_unknown_user_is_invalid_token(self, db_session: Session):
        with pytest.raises(InvalidOrExpiredTokenError):
            _service().reset_password(db_session, 999, "token", "newpass", "newpass")

    def test_reset_validates_new_password(self, db_session: Session, test_user: dict):
        service = _service()
        token = service.issue_token(UserRepository(db_session).get_by_id(test_user["user_id"]))
        with pytest.raises(ValidationError) as exc:
            service.reset_password(db_session, test_user["user_id"], token, "abc", "abc")
        assert exc.value.errors == ["Password must be at least 4 characters"]

    def test_reset_changes_login_password(self, db_session: Session, test_user: dict):
        service = _service()
        token = service.issue_token(UserRepository(db_session).get_by_id(test_user["user_id"]))
        service.reset_password(db_session, test_user["user_id"], token, "newpass", "newpass")

        assert AuthService().login(db_session, "test@example.com", "newpass").id == test_user["user_id"]


class TestPasswordResetRoutes:
    """Tests for the /user/showForgot and /user/reset-password endpoints."""

    def _link(self, caplog, client: TestClient) -> str:
        with caplog.at_level("INFO", logger="vidjot"):
            client.post("/user/showForgot", data={"email": "test@example.com"})
        lines = [r.getMessage() for r in caplog.records if "PASSWORD RESET" in r.getMessage()]
        assert lines
        return urlsplit(lines[-1].split(": ", 1)[1]).path

    def test_forgot_unknown_email_flash(self, client: TestClient):
        response = client.post("/user/showForgot", data={"email": "nobody@example.com"})
        assert response.status_code == 200
        assert "nobody@example.com not registered" in response.text

    def test_forgot_unknown_email_starts_no_session(self, client: TestClient, db_session: Session):
        response = client.post("/user/showForgot", data={"email": "nobody@example.com"})
        assert "nobody@example.com not registered" in response.text
        assert "vidjot_session" not in response.cookies
        assert db_session.query(UserSession).count() == 0

    def test_forgot_logs_reset_link(self, client: TestClient, test_user: dict, caplog):
        link = self._link(caplog, client)
        assert f"/user/reset-password/{test_user['user_id']}/" in link

    def test_reset_link_uses_configured_base_url(self, client: TestClient, test_user: dict, caplog):
        with caplog.at_level("INFO", logger="vidjot"):
            client.post("/user/showForgot", data={"email": "test@example.com"}, headers={"host": "evil.example"})
        links = [r.getMessage().split(": ", 1)[1] for r in caplog.records if "PASSWORD RESET" in r.getMessage()]
        assert links
        assert links[-1].startswith(get_settings().BASE_URL.rstrip("/") + "/user/reset-password/")

    def test_reset_page_renders_form(self, client: TestClient, test_user: dict, caplog):
        link = self._link(caplog, client)
        response = client.get(link)
        assert response.status_code == 200
        assert "Set a new password" in response.text
        assert "test@example.com" in response.text

    def test_reset_page_invalid_token_shows_error(self, client: TestClient, test_user: dict):
        response = client.get(f"/user/reset-password/{test_user['user_id']}/bogus")
        assert response.status_code == 400
        assert "invalid or has expired" in response.text

    def test_reset_page_expired_token_shows_error(self, client: TestClient, test_user: dict, db_session: Session):
        token = _expired_token(db_session, test_user["user_id"])
        response = client.get(f"/user/reset-password/{test_user['user_id']}/{token}")
        assert response.status_code == 400

    def test_reset_page_unknown_user(self, client: TestClient):
        response = client.get("/user/reset-password/999/bogus")
        assert response.status_code == 200
        assert "Invalid ID" in response.text

    def test_reset_submit_validation_errors(self, client: TestClient, test_user: dict, caplog):
        link = self._link(caplog, client)
        response = client.post(link, data={"password": "newpass", "password2": "other"})
        assert response.status_code == 200
        assert "Passwords do not match" in response.text
        assert "For test@example.com" in response.text

    def test_reset_submit_changes_password_once(self, client: TestClient, test_user: dict, caplog):
        link = self._link(caplog, client)
        response = client.post(link, data={"password": "newpass", "password2": "newpass"}, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/showLogin"

        login = client.post(
            "/user/login",
            data={"email": "test@example.com", "password": "newpass"},
            follow_redirects=False,
        )
        assert login.headers["location"] == "/chat"

        reused = client.post(link, data={"password": "again1", "password2": "again1"})
        assert reused.status_code == 400
