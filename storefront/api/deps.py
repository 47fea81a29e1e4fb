# storefront/api/deps.py
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.services.notification_service import NotificationService
from storefront.services.oauth_client import OAuthClient, build_oauth_clients
from storefront.services.password_service import PwnedPasswordsClient
from storefront.services.rate_limit_service import RateLimiter
from storefront.repos.user_repo import UserRepo
from storefront.utils.settings import CART_SESSION_MAX_AGE, IS_PRODUCTION, OAUTH_COOKIE_MAX_AGE

SESSION_COOKIE = "auth-session"
CART_SESSION_COOKIE = "cart-session"
RESET_SESSION_COOKIE = "password_reset_session"
OAUTH_REDIRECT_COOKIE = "oauth_redirect"
PRESERVED_CART_COOKIE = "preserved_cart_session"
GOOGLE_VERIFIER_COOKIE = "google_code_verifier"


# providery - podmieniane w testach przez app.dependency_overrides

@lru_cache
def get_rate_limiter() -> RateLimiter:
    return RateLimiter()


def get_pwned_client() -> PwnedPasswordsClient:
    return PwnedPasswordsClient()


def get_notification_service() -> NotificationService:
    return NotificationService()


@lru_cache
def get_oauth_clients() -> Dict[str, OAuthClient]:
    return build_oauth_clients()


# uzytkownik z sesji (ustawiony przez middleware)

def get_current_user_id(request: Request) -> Optional[str]:
    return getattr(request.state, "user_id", None)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[UserModel]:
    user_id = get_current_user_id(request)
    if not user_id:
        return None
    return UserRepo(db).get_user(user_id)


def require_user(user: Optional[UserModel] = Depends(get_current_user)) -> UserModel:
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: UserModel = Depends(require_user)) -> UserModel:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def safe_redirect(target: Optional[str]) -> str:
    """Tylko relatywne sciezki w obrebie strony, reszta -> /"""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return "/"
    return target


# cookies

def new_cart_session_id() -> str:
    return f"session_{uuid.uuid4()}"


def set_session_cookie(response: Response, token: str, expires_at: datetime) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        expires=expires_at.astimezone(timezone.utc),
        path="/",
        httponly=True,
        samesite="lax",
        secure=IS_PRODUCTION,
    )


def delete_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax", secure=IS_PRODUCTION)


def set_cart_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        CART_SESSION_COOKIE,
        session_id,
        max_age=CART_SESSION_MAX_AGE,
        path="/",
        httponly=True,
        samesite="strict",
        secure=IS_PRODUCTION,
    )


def delete_cart_session_cookie(response: Response) -> None:
    response.delete_cookie(CART_SESSION_COOKIE, path="/", httponly=True, samesite="strict", secure=IS_PRODUCTION)


def set_short_cookie(response: Response, name: str, value: str) -> None:
    # cookies flow oauth / resetu hasla - 10 minut
    response.set_cookie(
        name,
        value,
        max_age=OAUTH_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=IS_PRODUCTION,
    )


def delete_short_cookie(response: Response, name: str) -> None:
    response.delete_cookie(name, path="/", httponly=True, samesite="lax", secure=IS_PRODUCTION)


def response_sets_cookie(response: Response, name: str) -> bool:
    prefix = f"{name}="
    return any(value.startswith(prefix) for value in response.headers.getlist("set-cookie"))
