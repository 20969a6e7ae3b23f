import logging
from typing import Optional

from firebase_admin import firestore
from google.api_core import exceptions as gexc

from records.errors import OperationFailed
from records.user import User

logger = logging.getLogger("store")


class UserStore:
    """Profile documents at ``users/{uid}``."""

    def __init__(self, db: firestore.Client):
        self.db = db

    def save(self, uid: str, user: User) -> User:
        try:
            self.db.collection("users").document(uid).set(user.to_dict())
        except gexc.GoogleAPIError as e:
            logger.exception("user_save_failed uid=%s", uid)
            raise OperationFailed(f"Failed to save profile: {e}") from e
        logger.info("user_saved uid=%s", uid)
        return User(name=user.name, email=user.email, id=uid)

    def fetch(self, uid: str) -> Optional[User]:
        try:
            snap = self.db.collection("users").document(uid).get()
        except gexc.GoogleAPIError as e:
            logger.exception("user_fetch_failed uid=%s", uid)
            raise OperationFailed(f"Failed to fetch profile: {e}") from e
        if not snap.exists:
            return None
        return User.from_snapshot(snap)

    def delete(self, uid: str) -> None:
        try:
            self.db.collection("users").document(uid).delete()
        except gexc.GoogleAPIError as e:
            logger.exception("user_delete_failed uid=%s", uid)
            raise OperationFailed(f"Failed to delete profile: {e}") from e
        logger.info("user_deleted uid=%s", uid)
