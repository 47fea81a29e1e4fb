# storefront/services/session_service.py
import base64
import hashlib
import secrets
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from storefront.data.models.session import SessionModel
from storefront.data.models.user import UserModel
from storefront.data.types import utcnow
from storefront.repos.session_repo import SessionRepo
from storefront.utils.settings import SESSION_TTL_DAYS, SESSION_RENEW_DAYS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "auth-session"


def generate_token() -> str:
    """18 losowych bajtow, base64url bez paddingu."""
    return base64.urlsafe_b64encode(secrets.token_bytes(18)).decode("ascii").rstrip("=")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionService:
    """
    Sesje logowania - w bazie trzymamy tylko sha256(token).
    Walidacja moze przedluzyc sesje (zapis), wiec nie jest idempotentna.
    """

    def __init__(self, db: Session):
        self.repo = SessionRepo(db)

    def create_session(self, token: str, user_id: str) -> SessionModel:
        session = SessionModel(
            id=hash_token(token),
            user_id=user_id,
            expires_at=utcnow() + timedelta(days=SESSION_TTL_DAYS),
        )
        created = self.repo.create_session(session)
        logger.info(f"Created session for user {user_id}")
        return created

    def validate_token(self, token: str) -> Tuple[Optional[SessionModel], Optional[UserModel]]:
        session_id = hash_token(token)
        session, user = self.repo.get_session_with_user(session_id)
        if session is None:
            return None, None

        now = utcnow()
        if now >= session.expires_at:
            self.repo.delete_session(session_id)
            logger.info(f"Session of user {session.user_id} expired and was deleted")
            return None, None

        #przedluzenie gdy zostalo mniej niz 15 dni
        if now >= session.expires_at - timedelta(days=SESSION_RENEW_DAYS):
            self.repo.update_expiry(session, now + timedelta(days=SESSION_TTL_DAYS))
            logger.info(f"Renewed session for user {session.user_id}")

        return session, user

    def invalidate(self, session_id: str) -> None:
        self.repo.delete_session(session_id)

    def invalidate_all_for_user(self, user_id: str) -> None:
        count = self.repo.delete_user_sessions(user_id)
        logger.info(f"Invalidated {count} sessions of user {user_id}")
