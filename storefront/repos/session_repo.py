# storefront/repos/session_repo.py
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.orm import Session

from storefront.data.models.session import (
    SessionModel,
    PasswordResetSessionModel,
    EmailVerificationRequestModel,
)
from storefront.data.models.user import UserModel


class SessionRepo:
    def __init__(self, db: Session):
        self.db = db

    # sesje logowania
    def create_session(self, session: SessionModel) -> SessionModel:
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def get_session_with_user(self, session_id: str) -> Tuple[Optional[SessionModel], Optional[UserModel]]:
        row = (
            self.db.query(SessionModel, UserModel)
            .join(UserModel, UserModel.id == SessionModel.user_id)
            .filter(SessionModel.id == session_id)
            .first()
        )
        if row is None:
            return None, None
        return row[0], row[1]

    def update_expiry(self, session: SessionModel, expires_at: datetime) -> SessionModel:
        session.expires_at = expires_at
        self.db.commit()
        self.db.refresh(session)
        return session

    def delete_session(self, session_id: str) -> None:
        self.db.execute(delete(SessionModel).where(SessionModel.id == session_id))
        self.db.commit()

    def delete_user_sessions(self, user_id: str) -> int:
        result = self.db.execute(delete(SessionModel).where(SessionModel.user_id == user_id))
        self.db.commit()
        return result.rowcount

    def delete_expired_sessions(self, now: datetime) -> int:
        result = self.db.execute(delete(SessionModel).where(SessionModel.expires_at <= now))
        return result.rowcount

    # reset hasla
    def create_reset_session(self, reset: PasswordResetSessionModel) -> PasswordResetSessionModel:
        self.db.add(reset)
        self.db.commit()
        self.db.refresh(reset)
        return reset

    def get_reset_session(self, reset_id: str) -> Optional[PasswordResetSessionModel]:
        return self.db.get(PasswordResetSessionModel, reset_id)

    def mark_reset_email_verified(self, reset: PasswordResetSessionModel) -> None:
        reset.email_verified = True
        self.db.commit()

    def delete_reset_session(self, reset_id: str) -> None:
        self.db.execute(delete(PasswordResetSessionModel).where(PasswordResetSessionModel.id == reset_id))
        self.db.commit()

    def delete_user_reset_sessions(self, user_id: str) -> int:
        result = self.db.execute(
            delete(PasswordResetSessionModel).where(PasswordResetSessionModel.user_id == user_id)
        )
        self.db.commit()
        return result.rowcount

    def delete_expired_reset_sessions(self, now: datetime) -> int:
        result = self.db.execute(
            delete(PasswordResetSessionModel).where(PasswordResetSessionModel.expires_at <= now)
        )
        return result.rowcount

    # weryfikacja emaila
    def create_verification_request(
        self, request: EmailVerificationRequestModel
    ) -> EmailVerificationRequestModel:
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request

    def get_user_verification_request(self, user_id: str) -> Optional[EmailVerificationRequestModel]:
        return (
            self.db.query(EmailVerificationRequestModel)
            .filter(EmailVerificationRequestModel.user_id == user_id)
            .first()
        )

    def delete_user_verification_requests(self, user_id: str) -> None:
        self.db.execute(
            delete(EmailVerificationRequestModel).where(EmailVerificationRequestModel.user_id == user_id)
        )
        self.db.commit()

    def delete_expired_verification_requests(self, now: datetime) -> int:
        result = self.db.execute(
            delete(EmailVerificationRequestModel).where(EmailVerificationRequestModel.expires_at <= now)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()
