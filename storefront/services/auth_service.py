# storefront/services/auth_service.py
import hmac
import secrets
import string
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from storefront.data.models.session import (
    EmailVerificationRequestModel,
    PasswordResetSessionModel,
    SessionModel,
)
from storefront.data.models.user import UserModel
from storefront.data.types import new_id, utcnow
from storefront.domain.errors import AuthError, EmailConflictError, FieldError, OAuthError
from storefront.domain.schemas import RegisterIn
from storefront.domain.validation import normalize_email
from storefront.repos.session_repo import SessionRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.services.oauth_client import OAuthProfile
from storefront.services.password_service import (
    PwnedPasswordsClient,
    check_password_strength,
    hash_password,
    verify_password_hash,
)
from storefront.services.session_service import SessionService, generate_token, hash_token
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
CODE_TTL = timedelta(minutes=10)

# (user, surowy token sesji, sesja)
LoginResult = Tuple[UserModel, str, SessionModel]


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class AuthService:
    """
    Rejestracja, logowanie (haslo i oauth), weryfikacja emaila, reset i zmiana hasla.
    Kazde udane logowanie konczy sie nowa sesja i polaczeniem koszyka goscia.
    """

    def __init__(
        self,
        db: Session,
        pwned_client: Optional[PwnedPasswordsClient] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        self.users = UserRepo(db)
        self.sessions_repo = SessionRepo(db)
        self.sessions = SessionService(db)
        self.carts = CartService(db)
        self.pwned_client = pwned_client or PwnedPasswordsClient()
        self.notification_service = notification_service or NotificationService()

    # rejestracja / logowanie

    def register(self, data: RegisterIn, cart_session_id: Optional[str] = None) -> LoginResult:
        if self.users.get_user_by_email(data.email):
            raise FieldError("email", "already registered")

        if not check_password_strength(data.password, self.pwned_client):
            raise FieldError("password", "weak password")

        user_id = new_id()
        user = self.users.create_user(
            UserModel(
                id=user_id,
                email=data.email,
                password_hash=hash_password(data.password),
                provider="email",
                provider_id=user_id,
                first_name=data.first_name,
                last_name=data.last_name,
                email_verified=False,
                is_admin=False,
                status="active",
            )
        )
        logger.info(f"Registered user {user.id}")

        self.create_email_verification(user)
        return self._start_session(user, cart_session_id)

    def login(self, email: str, password: str, cart_session_id: Optional[str] = None) -> LoginResult:
        user = self.users.get_user_by_email(normalize_email(email))
        if not user:
            raise AuthError("Invalid email or password")
        if not user.password_hash:
            raise AuthError(f"This account uses {user.provider} sign-in")
        if not verify_password_hash(user.password_hash, password):
            logger.info(f"Failed login for user {user.id}")
            raise AuthError("Invalid email or password")

        self._ensure_active(user)
        return self._start_session(user, cart_session_id)

    def oauth_login(self, provider: str, profile: OAuthProfile, cart_session_id: Optional[str] = None) -> LoginResult:
        user = self.users.get_user_by_provider(provider, profile.provider_id)

        if user is None:
            if not profile.email:
                raise OAuthError(f"{provider} did not return an email address")

            email = normalize_email(profile.email)
            existing = self.users.get_user_by_email(email)
            if existing:
                # konta nie sa laczone automatycznie
                raise EmailConflictError(email, existing.provider, provider)

            user = self.users.create_user(
                UserModel(
                    email=email,
                    password_hash=None,
                    provider=provider,
                    provider_id=profile.provider_id,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    image=profile.image,
                    email_verified=profile.email_verified,
                    is_admin=False,
                    status="active",
                )
            )
            logger.info(f"Created {provider} user {user.id}")

        self._ensure_active(user)
        return self._start_session(user, cart_session_id)

    def logout(self, session_id: str) -> None:
        self.sessions.invalidate(session_id)
        logger.info("Session invalidated on logout")

    # weryfikacja emaila

    def create_email_verification(self, user: UserModel) -> EmailVerificationRequestModel:
        self.sessions_repo.delete_user_verification_requests(user.id)
        code = generate_code()
        request = self.sessions_repo.create_verification_request(
            EmailVerificationRequestModel(
                id=new_id(),
                user_id=user.id,
                email=user.email,
                code=code,
                expires_at=utcnow() + CODE_TTL,
            )
        )
        self._notify("verification code", self.notification_service.send_verification_code, user.email, code)
        return request

    def verify_email(self, user: UserModel, code: str) -> UserModel:
        request = self.sessions_repo.get_user_verification_request(user.id)
        if not request:
            raise AuthError("No pending email verification")
        if utcnow() >= request.expires_at:
            self.sessions_repo.delete_user_verification_requests(user.id)
            raise AuthError("Verification code expired, request a new one")
        if request.email != user.email or not hmac.compare_digest(request.code, code):
            raise AuthError("Incorrect code")

        self.sessions_repo.delete_user_verification_requests(user.id)
        verified = self.users.set_email_verified(user)
        logger.info(f"User {user.id} verified email")
        return verified

    # reset hasla

    def forgot_password(self, email: str) -> Tuple[str, PasswordResetSessionModel]:
        user = self.users.get_user_by_email(normalize_email(email))
        if not user:
            raise AuthError("Account not found")

        self.sessions_repo.delete_user_reset_sessions(user.id)
        token = generate_token()
        code = generate_code()
        reset = self.sessions_repo.create_reset_session(
            PasswordResetSessionModel(
                id=hash_token(token),
                user_id=user.id,
                email=user.email,
                code=code,
                expires_at=utcnow() + CODE_TTL,
                email_verified=False,
            )
        )
        logger.info(f"Password reset started for user {user.id}")
        self._notify("reset code", self.notification_service.send_password_reset_code, user.email, code)
        return token, reset

    def get_valid_reset_session(self, token: Optional[str]) -> Optional[PasswordResetSessionModel]:
        if not token:
            return None
        reset = self.sessions_repo.get_reset_session(hash_token(token))
        if reset is None:
            return None
        if utcnow() >= reset.expires_at:
            self.sessions_repo.delete_reset_session(reset.id)
            return None
        return reset

    def verify_reset_code(self, reset: PasswordResetSessionModel, code: str) -> None:
        if not hmac.compare_digest(reset.code, code):
            raise AuthError("Incorrect code")
        self.sessions_repo.mark_reset_email_verified(reset)

    def reset_password(self, reset: PasswordResetSessionModel, password: str) -> LoginResult:
        if not reset.email_verified:
            raise PermissionError("Email not verified for this reset session")
        if not check_password_strength(password, self.pwned_client):
            raise FieldError("password", "weak password")

        user = self.users.get_user(reset.user_id)
        if not user:
            raise AuthError("Account not found")

        self.sessions_repo.delete_user_reset_sessions(user.id)
        self.sessions.invalidate_all_for_user(user.id)
        self.users.update_password(user, hash_password(password))
        if not user.email_verified:
            self.users.set_email_verified(user)
        logger.info(f"Password reset completed for user {user.id}")
        return self._start_session(user, None)

    def change_password(self, user: UserModel, current_password: str, new_password: str) -> LoginResult:
        if not user.password_hash or not verify_password_hash(user.password_hash, current_password):
            raise FieldError("current_password", "incorrect password")
        if not check_password_strength(new_password, self.pwned_client):
            raise FieldError("new_password", "weak password")

        self.sessions.invalidate_all_for_user(user.id)
        self.users.update_password(user, hash_password(new_password))
        logger.info(f"Password changed for user {user.id}")
        return self._start_session(user, None)

    # helpers

    def _ensure_active(self, user: UserModel) -> None:
        if user.status != "active":
            logger.info(f"Rejected login for {user.status} user {user.id}")
            raise AuthError("Account is not active")

    def _start_session(self, user: UserModel, cart_session_id: Optional[str]) -> LoginResult:
        token = generate_token()
        session = self.sessions.create_session(token, user.id)
        self.carts.handle_user_login_merge(cart_session_id, user.id)
        return user, token, session

    def _notify(self, what: str, send, email: str, code: str) -> None:
        try:
            send(email, code)
        except Exception as e:
            logger.error(f"Failed to enqueue {what} email: {e}")
