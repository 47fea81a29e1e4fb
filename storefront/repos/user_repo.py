from typing import Optional

from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> Optional[UserModel]:
        return self.db.get(UserModel, user_id)

    def get_user_by_email(self, email: str) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.email == email).first()

    def get_user_by_provider(self, provider: str, provider_id: str) -> Optional[UserModel]:
        return (
            self.db.query(UserModel)
            .filter(UserModel.provider == provider, UserModel.provider_id == provider_id)
            .first()
        )

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_password(self, user: UserModel, password_hash: str) -> UserModel:
        user.password_hash = password_hash
        self.db.commit()
        self.db.refresh(user)
        return user

    def set_email_verified(self, user: UserModel) -> UserModel:
        user.email_verified = True
        self.db.commit()
        self.db.refresh(user)
        return user
