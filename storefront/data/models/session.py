from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime


class SessionModel(Base):
    __tablename__ = "sessions"

    # sha256(token) hex - surowy token nigdy nie trafia do bazy
    id = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(UTCDateTime, nullable=False)

    user = relationship("UserModel", back_populates="sessions")


class PasswordResetSessionModel(Base):
    __tablename__ = "password_reset_sessions"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    code = Column(String(8), nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    email_verified = Column(Boolean, nullable=False, default=False)


class EmailVerificationRequestModel(Base):
    __tablename__ = "email_verification_requests"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    code = Column(String(8), nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
