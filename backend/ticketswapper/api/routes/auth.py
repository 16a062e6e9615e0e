import logging
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
import jwt

from ticketswapper.api.deps import get_current_user
from ticketswapper.core.config import settings
from ticketswapper.core.errors import AuthenticationError, BadRequestError, ConflictError, ForbiddenError
from ticketswapper.core.security import (
    create_access_token,
    create_email_confirmation_token,
    decode_email_confirmation_token,
    get_password_hash,
    verify_password,
)
from ticketswapper.schemas.auth import EmailConfirm, Token, UserRegister, UserOut, UserLogin
from ticketswapper.db.session import get_db
from ticketswapper.models.base import utcnow
from ticketswapper.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)

def _authenticate(db: Session, email: str, password: str) -> dict:
    """401 if the user is unknown or the password is wrong, 403 if blocked."""
    email = email.lower().strip()
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise ForbiddenError("User is blocked")
    if not verify_password(password, user.hashed_password):
        raise AuthenticationError("Incorrect credentials")
    access_token = create_access_token(subject=email, roles=[user.role])
    return {"access_token": access_token, "token_type": "bearer"}

@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    return _authenticate(db, form_data.username, form_data.password)

@router.post("/login-json", response_model=Token)
def login_json(payload: UserLogin, db: Session = Depends(get_db)):
    return _authenticate(db, payload.email, payload.password)

@router.post("/register", status_code=201)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    email = payload.email.lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("Email already registered")
    role = "admin" if email in [e.lower() for e in settings.admin_emails] else "user"
    user = User(email=email, full_name=payload.full_name.strip(), hashed_password=get_password_hash(payload.password), role=role, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    token = create_email_confirmation_token(email)
    logger.info("Registered user %s, confirmation token issued", user.id)
    result = UserOut.model_validate(user).model_dump(mode="json")
    # No mail delivery in dev: hand the token back directly
    if settings.env.lower() in {"dev", "development", "test"}:
        result["confirmation_token"] = token
    return result

@router.post("/confirm-email", response_model=UserOut)
def confirm_email(payload: EmailConfirm, db: Session = Depends(get_db)):
    try:
        email = decode_email_confirmation_token(payload.token)
    except jwt.PyJWTError:
        raise BadRequestError("Invalid or expired confirmation token")
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise BadRequestError("Invalid or expired confirmation token")
    if user.email_confirmed_at is None:
        user.email_confirmed_at = utcnow()
        db.commit()
        db.refresh(user)
    return user

@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
