from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import hashlib
import hmac
import jwt
from passlib.context import CryptContext

from ticketswapper.core.config import settings

# Prefer argon2, keep bcrypt as fallback for compatibility
pwd_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")

EMAIL_CONFIRM_PURPOSE = "email_confirm"

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(subject: str | Any, roles: list[str], expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(tz=timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode: dict[str, Any] = {"sub": str(subject), "exp": expire, "roles": roles}
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode an access token without role verification.
    Raises jwt.PyJWTError if invalid and returns the payload as a dict.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    if payload.get("purpose"):
        # confirmation tokens must not be usable as bearer tokens
        raise jwt.InvalidTokenError("Not an access token")
    return payload


def create_email_confirmation_token(email: str) -> str:
    expire = datetime.now(tz=timezone.utc) + timedelta(hours=settings.email_token_expire_hours)
    to_encode = {"sub": email.lower(), "exp": expire, "purpose": EMAIL_CONFIRM_PURPOSE}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_email_confirmation_token(token: str) -> str:
    """Return the email the token was issued for.
    Raises jwt.PyJWTError if the token is invalid, expired or of another purpose.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    if payload.get("purpose") != EMAIL_CONFIRM_PURPOSE or not payload.get("sub"):
        raise jwt.InvalidTokenError("Not an email confirmation token")
    return payload["sub"]


def hmac_sha256_hex(secret: str, message: str | bytes) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, received: str | None) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.strip().encode("utf-8"))
