import logging
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_db
from core.errors import ForbiddenError, InvalidRequestError, NotAuthenticatedError
from models.user import User
from schemas.auth import LoginRequest, RefreshTokenRequest, RegisterRequest, TokenPair
from schemas.users import UserOut
from security import jwt as jwt_utils
from security.password import hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def _user_from_token(db: Session, token: str) -> User:
    try:
        payload = jwt_utils.decode_access(token)
    except jwt.PyJWTError:
        raise NotAuthenticatedError("Invalid token")
    user = db.get(User, int(payload.get("sub", 0)))
    if not user:
        raise NotAuthenticatedError("User not found")
    return user


def get_current_user(
    db: Session = Depends(get_db), authorization: Optional[str] = Header(default=None, alias="Authorization")
) -> User:
    token = _bearer_token(authorization)
    if not token:
        raise NotAuthenticatedError()
    return _user_from_token(db, token)


def get_optional_user(
    db: Session = Depends(get_db), authorization: Optional[str] = Header(default=None, alias="Authorization")
) -> Optional[User]:
    """Viewer identity for public endpoints; anonymous when no valid token is sent."""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        return _user_from_token(db, token)
    except NotAuthenticatedError:
        return None


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_superadmin:
        raise ForbiddenError("Administrator access required")
    return user


def _issue_tokens(user: User) -> TokenPair:
    return TokenPair(
        access_token=jwt_utils.create_access_token(user.id, is_admin=user.is_superadmin),
        refresh_token=jwt_utils.create_refresh_token(user.id),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=UserOut, status_code=201)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    email = data.email.lower()
    if db.query(User).filter(User.email == email).one_or_none():
        raise InvalidRequestError("Email already registered")
    user = User(
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        email=email,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=TokenPair)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email.lower()).one_or_none()
    if not user or not verify_password(data.password, user.password_hash):
        raise InvalidRequestError("Invalid credentials")
    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(data.password)
        db.commit()
    return _issue_tokens(user)


@router.post("/refresh-token", response_model=TokenPair)
def refresh_token(data: RefreshTokenRequest, db: Session = Depends(get_db)):
    try:
        payload = jwt_utils.decode_refresh(data.refresh_token)
    except jwt.PyJWTError:
        raise NotAuthenticatedError("Invalid refresh token")
    user = db.get(User, int(payload.get("sub", 0)))
    if not user:
        raise NotAuthenticatedError("User not found")
    return _issue_tokens(user)


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
