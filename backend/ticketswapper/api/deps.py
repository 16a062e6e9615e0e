from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
import jwt

from ticketswapper.core.errors import AuthenticationError, ForbiddenError
from ticketswapper.core.security import decode_access_token
from ticketswapper.db.session import get_db
from ticketswapper.models.user import User

# auto_error disabled so a missing header renders through our own error body
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

def get_current_user(token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """Resolve the bearer token to an active user (401 otherwise)."""
    if not token:
        raise AuthenticationError("No authorization header provided")
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid or expired token")
    email = (payload.get("sub") or "").lower()
    user = db.query(User).filter(User.email == email).first() if email else None
    if not user or not user.is_active:
        raise AuthenticationError("Invalid or expired token")
    return user

def get_confirmed_user(user: User = Depends(get_current_user)) -> User:
    if not user.email_confirmed:
        raise ForbiddenError(
            "Email verification required",
            message="Please verify your email before purchasing tickets",
        )
    return user

def require_roles(*allowed: str):
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise ForbiddenError("Forbidden")
        return user
    return checker
