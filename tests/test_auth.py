from unittest.mock import MagicMock, patch

import pytest
import requests
from firebase_admin import exceptions as fb_exceptions

from records.errors import AuthError, NotAuthenticated, OperationFailed
from records.user import User
from session.auth import AuthManager


def response(status: int, body: dict) -> MagicMock:
    r = MagicMock()
    r.status_code = status
    r.json.return_value = body
    return r


SIGN_IN_OK = {"localId": "uid-1", "email": "ada@example.com", "idToken": "tok", "refreshToken": "ref"}


@pytest.fixture
def users() -> MagicMock:
    u = MagicMock()
    u.fetch.return_value = User(name="Ada Lovelace", email="ada@example.com", id="uid-1")
    u.save.side_effect = lambda uid, user: User(name=user.name, email=user.email, id=uid)
    return u


@pytest.fixture
def auth(users, prefs) -> AuthManager:
    return AuthManager("web-key", users, prefs)


class TestSignIn:
    def test_success_loads_profile(self, auth, users):
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)) as post:
            session = auth.sign_in("ada@example.com", "secret")

        assert session.uid == "uid-1"
        assert auth.is_signed_in
        assert auth.current_user.initials == "AL"
        users.fetch.assert_called_once_with("uid-1")
        url = post.call_args[0][0]
        assert url.endswith("accounts:signInWithPassword")
        assert post.call_args.kwargs["params"] == {"key": "web-key"}

    def test_rejected_credentials(self, auth):
        body = {"error": {"code": 400, "message": "INVALID_LOGIN_CREDENTIALS : bad"}}
        with patch("session.auth.requests.post", return_value=response(400, body)):
            with pytest.raises(AuthError) as exc:
                auth.sign_in("ada@example.com", "wrong")
        assert exc.value.code == "INVALID_LOGIN_CREDENTIALS"
        assert not auth.is_signed_in

    def test_network_failure(self, auth):
        with patch("session.auth.requests.post", side_effect=requests.ConnectionError("offline")):
            with pytest.raises(AuthError) as exc:
                auth.sign_in("ada@example.com", "secret")
        assert exc.value.code == "NETWORK_ERROR"
        assert isinstance(exc.value, OperationFailed)

    def test_profile_fetch_failure_keeps_session(self, auth, users):
        users.fetch.side_effect = OperationFailed("unavailable")
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)):
            auth.sign_in("ada@example.com", "secret")
        assert auth.is_signed_in
        assert auth.current_user is None


class TestAccount:
    def test_create_user_saves_profile(self, auth, users):
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)):
            user = auth.create_user("ada@example.com", "secret", "  Ada Lovelace ")
        assert user.id == "uid-1"
        assert user.name == "Ada Lovelace"
        assert auth.uid == "uid-1"
        users.save.assert_called_once()

    def test_create_user_profile_failure_leaves_signed_out(self, auth, users):
        users.save.side_effect = OperationFailed("write failed")
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)):
            with pytest.raises(OperationFailed):
                auth.create_user("ada@example.com", "secret", "Ada")
        assert not auth.is_signed_in

    def test_sign_out_clears_session(self, auth):
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)):
            auth.sign_in("ada@example.com", "secret")
        auth.sign_out()
        assert not auth.is_signed_in
        assert auth.current_user is None
        assert auth.uid == ""

    def test_change_password_reauthenticates_first(self, auth):
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)) as post:
            auth.sign_in("ada@example.com", "secret")
            auth.change_password("secret", "new-secret")
        endpoints = [c[0][0].rsplit(":", 1)[1] for c in post.call_args_list]
        assert endpoints == ["signInWithPassword", "signInWithPassword", "update"]
        assert post.call_args.kwargs["json"]["password"] == "new-secret"

    def test_change_password_requires_session(self, auth):
        with pytest.raises(NotAuthenticated):
            auth.change_password("a", "b")

    def test_reset_password(self, auth):
        with patch("session.auth.requests.post", return_value=response(200, {})) as post:
            auth.reset_password("ada@example.com")
        assert post.call_args.kwargs["json"] == {"requestType": "PASSWORD_RESET", "email": "ada@example.com"}

    def test_delete_account(self, auth, users):
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)):
            auth.sign_in("ada@example.com", "secret")
        with patch("session.auth.admin_auth.delete_user") as delete_user:
            auth.delete_account()
        users.delete.assert_called_once_with("uid-1")
        delete_user.assert_called_once_with("uid-1")
        assert not auth.is_signed_in

    def test_delete_account_auth_failure(self, auth):
        with patch("session.auth.requests.post", return_value=response(200, SIGN_IN_OK)):
            auth.sign_in("ada@example.com", "secret")
        err = fb_exceptions.FirebaseError("INTERNAL", "boom")
        with patch("session.auth.admin_auth.delete_user", side_effect=err):
            with pytest.raises(OperationFailed):
                auth.delete_account()
        assert auth.is_signed_in


def test_onboarding_flag_persists(auth, prefs):
    assert auth.has_completed_onboarding is False
    auth.complete_onboarding()
    assert prefs.get("hasCompletedOnboarding") is True
    auth.reset_onboarding()
    assert auth.has_completed_onboarding is False
