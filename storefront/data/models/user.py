from sqlalchemy import Boolean, Column, String, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime, new_id, utcnow

PROVIDERS = ("email", "google", "github", "facebook", "microsoft")
USER_STATUSES = ("active", "inactive", "banned")


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)

    #klucz tozsamosci federacyjnej
    provider = Column(String(20), nullable=False, default="email")
    provider_id = Column(String(255), nullable=False)

    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    image = Column(String(255), nullable=True)

    email_verified = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    sessions = relationship("SessionModel", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("provider", "provider_id", name="u_user_provider"),
    )
