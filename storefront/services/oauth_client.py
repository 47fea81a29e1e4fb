# storefront/services/oauth_client.py
import base64
import hashlib
import secrets
from abc import ABC, abstractmethod
from typing import Dict, Optional
from urllib.parse import urlencode

import requests
from pydantic import BaseModel

from storefront.domain.errors import OAuthError
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OAuthProfile(BaseModel):
    provider_id: str
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    image: Optional[str] = None
    email_verified: bool = False


def generate_state() -> str:
    return secrets.token_urlsafe(24)


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(48)


def code_challenge_s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def _split_name(full_name: Optional[str]):
    parts = (full_name or "").strip().split(" ", 1)
    first = parts[0] if parts else ""
    last = parts[1] if len(parts) > 1 else ""
    return first, last


class OAuthClient(ABC):
    """
    Wspolna czesc klientow oauth. Bez retry - blad od razu jako OAuthError,
    uzytkownik po prostu klika jeszcze raz.
    """

    provider = ""
    authorize_url = ""
    token_url = ""
    scopes: tuple = ()
    uses_pkce = False

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, timeout: float = settings.HTTP_TIMEOUT_SECONDS):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def authorization_url(self, state: str, code_verifier: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "state": state,
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        if self.uses_pkce:
            if not code_verifier:
                raise OAuthError(f"{self.provider} requires a code verifier")
            params["code_challenge"] = code_challenge_s256(code_verifier)
            params["code_challenge_method"] = "S256"
        return f"{self.authorize_url}?{urlencode(params)}"

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> str:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        if self.uses_pkce:
            data["code_verifier"] = code_verifier or ""

        payload = self._request("POST", self.token_url, data=data, headers={"Accept": "application/json"})
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise OAuthError(f"{self.provider} token response without access_token")
        return token

    @abstractmethod
    def fetch_profile(self, access_token: str) -> OAuthProfile:
        """Profil z api dostawcy, kazda podklasa ma swoj format."""

    def _request(self, method: str, url: str, **kwargs):
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            logger.warning(f"{self.provider} oauth request to {url} failed: {e}")
            raise OAuthError(f"{self.provider} request failed") from e
        except ValueError as e:
            logger.warning(f"{self.provider} oauth response from {url} is not json")
            raise OAuthError(f"{self.provider} returned a malformed response") from e

    def _bearer(self, access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}


class GitHubClient(OAuthClient):
    provider = "github"
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"
    scopes = ("user:email",)

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        user = self._request("GET", "https://api.github.com/user", headers=self._bearer(access_token))
        emails = self._request("GET", "https://api.github.com/user/emails", headers=self._bearer(access_token))
        if not isinstance(user, dict) or "id" not in user or not isinstance(emails, list):
            raise OAuthError("github returned a malformed profile")

        primary = next((e for e in emails if isinstance(e, dict) and e.get("primary")), None)
        first, last = _split_name(user.get("name") or user.get("login"))
        return OAuthProfile(
            provider_id=str(user["id"]),
            email=primary.get("email") if primary else None,
            first_name=first,
            last_name=last,
            image=user.get("avatar_url"),
            email_verified=bool(primary and primary.get("verified")),
        )


class GoogleClient(OAuthClient):
    provider = "google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    scopes = ("openid", "profile", "email")
    uses_pkce = True

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        user = self._request(
            "GET", "https://www.googleapis.com/oauth2/v2/userinfo", headers=self._bearer(access_token)
        )
        if not isinstance(user, dict) or "id" not in user:
            raise OAuthError("google returned a malformed profile")
        return OAuthProfile(
            provider_id=str(user["id"]),
            email=user.get("email"),
            first_name=user.get("given_name") or "",
            last_name=user.get("family_name") or "",
            image=user.get("picture"),
            email_verified=bool(user.get("verified_email")),
        )


class FacebookClient(OAuthClient):
    provider = "facebook"
    authorize_url = "https://www.facebook.com/v18.0/dialog/oauth"
    token_url = "https://graph.facebook.com/v18.0/oauth/access_token"
    scopes = ("email", "public_profile")

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        user = self._request(
            "GET",
            "https://graph.facebook.com/me",
            params={"fields": "id,email,first_name,last_name,picture.type(large)", "access_token": access_token},
        )
        if not isinstance(user, dict) or "id" not in user:
            raise OAuthError("facebook returned a malformed profile")
        picture = ((user.get("picture") or {}).get("data") or {}).get("url")
        # facebook zwraca tylko potwierdzone adresy
        return OAuthProfile(
            provider_id=str(user["id"]),
            email=user.get("email"),
            first_name=user.get("first_name") or "",
            last_name=user.get("last_name") or "",
            image=picture,
            email_verified=True,
        )


class MicrosoftClient(OAuthClient):
    provider = "microsoft"
    scopes = ("openid", "profile", "email", "User.Read")

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, tenant: str = "common", **kwargs):
        super().__init__(client_id, client_secret, redirect_uri, **kwargs)
        base = f"https://login.microsoftonline.com/{tenant}/oauth2/v2.0"
        self.authorize_url = f"{base}/authorize"
        self.token_url = f"{base}/token"

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        user = self._request("GET", "https://graph.microsoft.com/v1.0/me", headers=self._bearer(access_token))
        if not isinstance(user, dict) or "id" not in user:
            raise OAuthError("microsoft returned a malformed profile")
        return OAuthProfile(
            provider_id=str(user["id"]),
            email=user.get("mail") or user.get("userPrincipalName"),
            first_name=user.get("givenName") or "",
            last_name=user.get("surname") or "",
            image=None,
            email_verified=False,
        )


def build_oauth_clients() -> Dict[str, OAuthClient]:
    return {
        "github": GitHubClient(
            settings.GITHUB_CLIENT_ID, settings.GITHUB_CLIENT_SECRET, settings.GITHUB_REDIRECT_URI
        ),
        "google": GoogleClient(
            settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CLIENT_SECRET, settings.GOOGLE_REDIRECT_URI
        ),
        "facebook": FacebookClient(
            settings.FACEBOOK_CLIENT_ID, settings.FACEBOOK_CLIENT_SECRET, settings.FACEBOOK_REDIRECT_URI
        ),
        "microsoft": MicrosoftClient(
            settings.MICROSOFT_CLIENT_ID,
            settings.MICROSOFT_CLIENT_SECRET,
            settings.MICROSOFT_REDIRECT_URI,
            tenant=settings.MICROSOFT_TENANT,
        ),
    }
