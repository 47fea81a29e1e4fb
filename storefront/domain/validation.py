# storefront/domain/validation.py
# jedno zrodlo regul walidacji dla email / hasla / imion
import re

EMAIL_RE = re.compile(r"^.+@.+\..+$")
EMAIL_MAX_LENGTH = 255

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 255

NAME_MAX_LENGTH = 100

VERIFICATION_CODE_RE = re.compile(r"^[A-Z0-9]{8}$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email(email: str) -> str:
    email = normalize_email(email)
    if len(email) > EMAIL_MAX_LENGTH or not EMAIL_RE.match(email):
        raise ValueError("invalid email")
    return email


def validate_password_length(password: str) -> str:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValueError(f"must be at most {PASSWORD_MAX_LENGTH} characters")
    return password


def validate_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValueError("is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValueError(f"must be at most {NAME_MAX_LENGTH} characters")
    return name


def validate_verification_code(code: str) -> str:
    code = code.strip().upper()
    if not VERIFICATION_CODE_RE.match(code):
        raise ValueError("invalid code")
    return code
