# storefront/api/routers/auth.py
from typing import Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from storefront.api.deps import (
    CART_SESSION_COOKIE,
    GOOGLE_VERIFIER_COOKIE,
    OAUTH_REDIRECT_COOKIE,
    PRESERVED_CART_COOKIE,
    RESET_SESSION_COOKIE,
    client_ip,
    delete_cart_session_cookie,
    delete_session_cookie,
    delete_short_cookie,
    get_notification_service,
    get_oauth_clients,
    get_pwned_client,
    get_rate_limiter,
    new_cart_session_id,
    require_user,
    safe_redirect,
    set_cart_session_cookie,
    set_session_cookie,
    set_short_cookie,
)
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import AuthError, EmailConflictError, FieldError, OAuthError
from storefront.domain.schemas import (
    ChangePasswordIn,
    CodeIn,
    EmailIn,
    LoginIn,
    PasswordIn,
    RegisterIn,
    UserOut,
)
from storefront.services.auth_service import AuthService
from storefront.services.notification_service import NotificationService
from storefront.services.oauth_client import OAuthClient, generate_code_verifier, generate_state
from storefront.services.password_service import PwnedPasswordsClient
from storefront.services.rate_limit_service import RateLimiter
from storefront.utils.settings import LOGIN_RATE_LIMIT, LOGIN_RATE_WINDOW_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_service(db: Session, pwned: PwnedPasswordsClient, notifications: NotificationService):
    return AuthService(db, pwned_client=pwned, notification_service=notifications)


def field_error(e: FieldError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"errors": {e.field: e.message}})


def enforce_rate_limit(limiter: RateLimiter, key: str) -> None:
    ok, retry_after = limiter.check(key, LOGIN_RATE_LIMIT, LOGIN_RATE_WINDOW_SECONDS)
    if not ok:
        raise HTTPException(
            status_code=429,
            detail="Too many attempts, try again later",
            headers={"Retry-After": str(retry_after)},
        )


def login_response(user: UserModel, token: str, session, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=UserOut.model_validate(user).model_dump(mode="json"))
    set_session_cookie(resp, token, session.expires_at)
    return resp


@router.post("/register", response_model=UserOut, status_code=201)
def register(
    payload: RegisterIn,
    request: Request,
    db: Session = Depends(get_db),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    svc = get_service(db, pwned, notifications)
    try:
        user, token, session = svc.register(payload, request.cookies.get(CART_SESSION_COOKIE))
    except FieldError as e:
        return field_error(e)
    return login_response(user, token, session, status_code=201)


@router.post("/login", response_model=UserOut)
def login(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    enforce_rate_limit(limiter, f"login:{client_ip(request)}:{payload.email}")

    svc = get_service(db, pwned, notifications)
    try:
        user, token, session = svc.login(payload.email, payload.password, request.cookies.get(CART_SESSION_COOKIE))
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return login_response(user, token, session)


@router.post("/logout")
def logout(
    request: Request,
    db: Session = Depends(get_db),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    session_id = getattr(request.state, "session_id", None)
    if session_id:
        get_service(db, pwned, notifications).logout(session_id)

    resp = JSONResponse(content={"success": True})
    delete_session_cookie(resp)
    delete_cart_session_cookie(resp)
    return resp


@router.get("/me", response_model=UserOut)
def me(user: UserModel = Depends(require_user)):
    return user


@router.post("/verify-email", response_model=UserOut)
def verify_email(
    payload: CodeIn,
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    svc = get_service(db, pwned, notifications)
    try:
        return svc.verify_email(user, payload.code)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.post("/forgot-password")
def forgot_password(
    payload: EmailIn,
    request: Request,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    enforce_rate_limit(limiter, f"forgot:{client_ip(request)}:{payload.email}")

    svc = get_service(db, pwned, notifications)
    try:
        token, _ = svc.forgot_password(payload.email)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)

    resp = JSONResponse(content={"success": True})
    set_short_cookie(resp, RESET_SESSION_COOKIE, token)
    return resp


@router.post("/reset-password/verify-email")
def verify_reset_email(
    payload: CodeIn,
    request: Request,
    db: Session = Depends(get_db),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    svc = get_service(db, pwned, notifications)
    reset = svc.get_valid_reset_session(request.cookies.get(RESET_SESSION_COOKIE))
    if reset is None:
        raise HTTPException(status_code=400, detail="Reset session expired, start again")
    try:
        svc.verify_reset_code(reset, payload.code)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"success": True}


@router.post("/reset-password", response_model=UserOut)
def reset_password(
    payload: PasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    svc = get_service(db, pwned, notifications)
    reset = svc.get_valid_reset_session(request.cookies.get(RESET_SESSION_COOKIE))
    if reset is None:
        raise HTTPException(status_code=401, detail="No valid reset session")
    try:
        user, token, session = svc.reset_password(reset, payload.password)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except FieldError as e:
        return field_error(e)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)

    resp = login_response(user, token, session)
    delete_short_cookie(resp, RESET_SESSION_COOKIE)
    return resp


@router.put("/password", response_model=UserOut)
def change_password(
    payload: ChangePasswordIn,
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    svc = get_service(db, pwned, notifications)
    try:
        user, token, session = svc.change_password(user, payload.current_password, payload.new_password)
    except FieldError as e:
        return field_error(e)
    return login_response(user, token, session)


# oauth

def get_client(provider: str, clients: Dict[str, OAuthClient]) -> OAuthClient:
    client = clients.get(provider)
    if client is None:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
    return client


def clear_oauth_cookies(resp: Response, provider: str) -> None:
    for name in (f"{provider}_oauth_state", GOOGLE_VERIFIER_COOKIE, OAUTH_REDIRECT_COOKIE, PRESERVED_CART_COOKIE):
        delete_short_cookie(resp, name)


@router.get("/login/{provider}")
def oauth_login(
    provider: str,
    request: Request,
    redirect: Optional[str] = None,
    clients: Dict[str, OAuthClient] = Depends(get_oauth_clients),
):
    client = get_client(provider, clients)

    state = generate_state()
    verifier = generate_code_verifier() if client.uses_pkce else None
    resp = RedirectResponse(client.authorization_url(state, verifier), status_code=302)

    set_short_cookie(resp, f"{provider}_oauth_state", state)
    if verifier:
        set_short_cookie(resp, GOOGLE_VERIFIER_COOKIE, verifier)
    set_short_cookie(resp, OAUTH_REDIRECT_COOKIE, safe_redirect(redirect))

    # cart-session ma SameSite=Strict i nie wroci z przekierowania od providera
    cart_session = request.cookies.get(CART_SESSION_COOKIE)
    if cart_session:
        set_short_cookie(resp, PRESERVED_CART_COOKIE, cart_session)
    return resp


@router.get("/callback/{provider}")
def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    clients: Dict[str, OAuthClient] = Depends(get_oauth_clients),
    pwned: PwnedPasswordsClient = Depends(get_pwned_client),
    notifications: NotificationService = Depends(get_notification_service),
):
    client = get_client(provider, clients)

    stored_state = request.cookies.get(f"{provider}_oauth_state")
    verifier = request.cookies.get(GOOGLE_VERIFIER_COOKIE) if client.uses_pkce else None
    if not code or not state or not stored_state or (client.uses_pkce and not verifier):
        raise HTTPException(status_code=400, detail="Missing OAuth parameters")
    if state != stored_state:
        logger.warning(f"OAuth state mismatch for {provider}")
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    try:
        access_token = client.exchange_code(code, verifier)
        profile = client.fetch_profile(access_token)
    except OAuthError as e:
        raise HTTPException(status_code=400, detail=e.message)

    cart_session_id = (
        request.cookies.get(CART_SESSION_COOKIE)
        or request.cookies.get(PRESERVED_CART_COOKIE)
        or new_cart_session_id()
    )

    svc = get_service(db, pwned, notifications)
    try:
        user, token, session = svc.oauth_login(provider, profile, cart_session_id)
    except EmailConflictError as e:
        query = urlencode(
            {
                "error": "email_exists",
                "email": e.email,
                "provider": e.provider,
                "attempted_provider": e.attempted_provider,
            }
        )
        resp = RedirectResponse(f"/auth/error?{query}", status_code=302)
        clear_oauth_cookies(resp, provider)
        return resp
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)

    resp = RedirectResponse(safe_redirect(request.cookies.get(OAUTH_REDIRECT_COOKIE)), status_code=303)
    clear_oauth_cookies(resp, provider)
    set_session_cookie(resp, token, session.expires_at)
    set_cart_session_cookie(resp, cart_session_id)
    logger.info(f"User {user.id} signed in with {provider}")
    return resp
