# storefront/api/middleware.py
from typing import Optional

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from storefront.api.deps import (
    SESSION_COOKIE,
    delete_session_cookie,
    response_sets_cookie,
    set_session_cookie,
)
from storefront.data.database import SessionLocal
from storefront.services.session_service import SessionService
from storefront.utils.settings import BASE_LOCALE, IS_PRODUCTION, LOCALE_COOKIE_MAX_AGE, LOCALES
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

LOCALE_COOKIE = "PARAGLIDE_LOCALE"


def _validate_session(token: str):
    # osobna sesja db, zamknieta przed wywolaniem routa - do request.state trafiaja tylko id
    db = SessionLocal()
    try:
        session, user = SessionService(db).validate_token(token)
        if session is None:
            return None
        if user.status != "active":
            SessionService(db).invalidate(session.id)
            return None
        return session.id, user.id, session.expires_at
    finally:
        db.close()


async def auth_session_middleware(request: Request, call_next):
    request.state.session_id = None
    request.state.user_id = None

    token = request.cookies.get(SESSION_COOKIE)
    validated = None
    if token:
        validated = await run_in_threadpool(_validate_session, token)
        if validated:
            request.state.session_id, request.state.user_id, _ = validated

    response = await call_next(request)

    # route sam ustawil / usunal cookie (login, logout) - nie nadpisujemy
    if token and not response_sets_cookie(response, SESSION_COOKIE):
        if validated:
            set_session_cookie(response, token, validated[2])
        else:
            delete_session_cookie(response)
    return response


def parse_accept_language(header: Optional[str]):
    """Jezyki z Accept-Language posortowane po q."""
    langs = []
    for i, part in enumerate((header or "").split(",")):
        piece = part.strip()
        if not piece:
            continue
        tag, _, params = piece.partition(";")
        q = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                q = float(params[2:])
            except ValueError:
                q = 0.0
        langs.append((-q, i, tag.strip().lower()))
    return [tag for _, _, tag in sorted(langs)]


def resolve_locale(query_locale: Optional[str], cookie_locale: Optional[str], accept_language: Optional[str]) -> str:
    for candidate in (query_locale, cookie_locale):
        if candidate in LOCALES:
            return candidate
    for tag in parse_accept_language(accept_language):
        if tag in LOCALES:
            return tag
        base = tag.split("-")[0]
        if base in LOCALES:
            return base
    return BASE_LOCALE


async def locale_middleware(request: Request, call_next):
    cookie_locale = request.cookies.get(LOCALE_COOKIE)
    locale = resolve_locale(
        request.query_params.get("locale"),
        cookie_locale,
        request.headers.get("accept-language"),
    )
    request.state.locale = locale

    response = await call_next(request)

    if cookie_locale != locale:
        response.set_cookie(
            LOCALE_COOKIE,
            locale,
            max_age=LOCALE_COOKIE_MAX_AGE,
            path="/",
            httponly=False,
            samesite="lax",
            secure=IS_PRODUCTION,
        )
    return response
