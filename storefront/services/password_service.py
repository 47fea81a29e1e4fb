# storefront/services/password_service.py
import base64
import binascii
import hashlib
import hmac
import os

import requests

from storefront.domain import validation
from storefront.utils.settings import HTTP_TIMEOUT_SECONDS, PWNED_PASSWORDS_API_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ITERATIONS = 100_000
SALT_BYTES = 16
KEY_BYTES = 32


def hash_password(password: str) -> str:
    """base64(salt || pbkdf2_sha256(password, salt))"""
    salt = os.urandom(SALT_BYTES)
    key = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, ITERATIONS, dklen=KEY_BYTES)
    return base64.b64encode(salt + key).decode("ascii")


def verify_password_hash(stored: str, password: str) -> bool:
    if not stored:
        return False
    try:
        raw = base64.b64decode(stored.encode("ascii"), validate=True)
    except (binascii.Error, ValueError):
        return False

    if len(raw) != SALT_BYTES + KEY_BYTES:
        return False

    salt, expected = raw[:SALT_BYTES], raw[SALT_BYTES:]
    key = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, ITERATIONS, dklen=KEY_BYTES)
    return hmac.compare_digest(key, expected)


class PwnedPasswordsClient:
    """
    k-anonymity range API - wysylamy tylko 5 znakow sha1,
    porownanie sufiksow lokalnie.
    """

    def __init__(self, base_url: str = PWNED_PASSWORDS_API_URL, timeout: float = HTTP_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def is_breached(self, password: str) -> bool:
        digest = hashlib.sha1(password.encode("utf-8")).hexdigest().upper()
        prefix, suffix = digest[:5], digest[5:]

        try:
            resp = requests.get(f"{self.base_url}/{prefix}", timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            # fail-open: awaria api nie blokuje rejestracji
            logger.warning(f"Pwned passwords check unavailable, skipping: {e}")
            return False

        for line in resp.text.splitlines():
            candidate, _, _count = line.strip().partition(":")
            if candidate.upper() == suffix:
                return True
        return False


def check_password_strength(password: str, client: PwnedPasswordsClient) -> bool:
    try:
        validation.validate_password_length(password)
    except ValueError:
        return False
    return not client.is_breached(password)
