"""
Email/password authentication against Firebase Authentication.

End-user operations (sign-up, sign-in, password reset and change) go through
the Identity Toolkit REST API with the project's web API key, the same calls
the mobile SDK makes. Privileged operations (deleting the auth user) go
through the Admin SDK.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from firebase_admin import auth as admin_auth
from firebase_admin import exceptions as fb_exceptions

from records.errors import AuthError, NotAuthenticated, OperationFailed
from records.user import User
from session.prefs import Preferences
from store.users import UserStore

logger = logging.getLogger("auth")

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
ONBOARDING_KEY = "hasCompletedOnboarding"


@dataclass
class SessionUser:
    uid: str
    email: str
    id_token: str
    refresh_token: str = ""


class AuthManager:
    def __init__(
        self,
        api_key: str,
        users: UserStore,
        prefs: Preferences,
        timeout: float = 30,
    ):
        self.api_key = api_key
        self.users = users
        self.prefs = prefs
        self.timeout = timeout
        self.user_session: Optional[SessionUser] = None
        self.current_user: Optional[User] = None

    # --- REST plumbing -----------------------------------------------------

    def _call(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{IDENTITY_TOOLKIT_URL}/accounts:{endpoint}"
        try:
            r = requests.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.exception("auth_request_failed endpoint=%s", endpoint)
            raise AuthError("NETWORK_ERROR", "No internet connection") from e

        try:
            data = r.json()
        except ValueError:
            data = {}
        if r.status_code >= 400:
            err = (data.get("error") or {}) if isinstance(data, dict) else {}
            code = str(err.get("message") or f"HTTP_{r.status_code}")
            logger.warning("auth_rejected endpoint=%s code=%s", endpoint, code)
            raise AuthError(code.split(" : ", 1)[0], code)
        return data if isinstance(data, dict) else {}

    def _session_from(self, data: Dict[str, Any], email: str) -> SessionUser:
        uid = str(data.get("localId") or "")
        if not uid:
            raise AuthError("INVALID_RESPONSE", "Auth response did not include a user id")
        return SessionUser(
            uid=uid,
            email=str(data.get("email") or email),
            id_token=str(data.get("idToken") or ""),
            refresh_token=str(data.get("refreshToken") or ""),
        )

    def _require_session(self) -> SessionUser:
        if self.user_session is None:
            raise NotAuthenticated("No user logged in")
        return self.user_session

    # --- session -----------------------------------------------------------

    @property
    def is_signed_in(self) -> bool:
        return self.user_session is not None

    @property
    def uid(self) -> str:
        return self.user_session.uid if self.user_session else ""

    def sign_in(self, email: str, password: str) -> SessionUser:
        data = self._call("signInWithPassword", {"email": email, "password": password, "returnSecureToken": True})
        self.user_session = self._session_from(data, email)
        logger.info("signed_in uid=%s", self.user_session.uid)
        self.fetch_user()
        return self.user_session

    def create_user(self, email: str, password: str, name: str) -> User:
        data = self._call("signUp", {"email": email, "password": password, "returnSecureToken": True})
        session = self._session_from(data, email)
        user = self.users.save(session.uid, User(name=name, email=email))
        self.user_session = session
        self.current_user = user
        logger.info("user_created uid=%s", session.uid)
        return user

    def sign_out(self) -> None:
        uid = self.uid
        self.user_session = None
        self.current_user = None
        logger.info("signed_out uid=%s", uid)

    def fetch_user(self) -> Optional[User]:
        if self.user_session is None:
            return None
        try:
            self.current_user = self.users.fetch(self.user_session.uid)
        except OperationFailed as e:
            logger.warning("fetch_user_failed uid=%s error=%s", self.user_session.uid, e)
        return self.current_user

    # --- account management ------------------------------------------------

    def reset_password(self, email: str) -> None:
        self._call("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})
        logger.info("password_reset_sent")

    def change_password(self, current_password: str, new_password: str) -> None:
        session = self._require_session()
        fresh = self._call(
            "signInWithPassword",
            {"email": session.email, "password": current_password, "returnSecureToken": True},
        )
        data = self._call(
            "update",
            {"idToken": fresh.get("idToken") or session.id_token, "password": new_password, "returnSecureToken": True},
        )
        self.user_session = SessionUser(
            uid=session.uid,
            email=session.email,
            id_token=str(data.get("idToken") or fresh.get("idToken") or session.id_token),
            refresh_token=str(data.get("refreshToken") or session.refresh_token),
        )
        logger.info("password_changed uid=%s", session.uid)

    def update_profile(self, name: str) -> User:
        session = self._require_session()
        self.current_user = self.users.save(session.uid, User(name=name, email=session.email))
        return self.current_user

    def delete_account(self) -> None:
        session = self._require_session()
        self.users.delete(session.uid)
        try:
            admin_auth.delete_user(session.uid)
        except fb_exceptions.FirebaseError as e:
            logger.exception("delete_user_failed uid=%s", session.uid)
            raise OperationFailed(f"Failed to delete account: {e}") from e
        logger.info("account_deleted uid=%s", session.uid)
        self.sign_out()

    # --- onboarding --------------------------------------------------------

    @property
    def has_completed_onboarding(self) -> bool:
        return self.prefs.get_bool(ONBOARDING_KEY)

    def complete_onboarding(self) -> None:
        self.prefs.set(ONBOARDING_KEY, True)

    def reset_onboarding(self) -> None:
        self.prefs.remove(ONBOARDING_KEY)
