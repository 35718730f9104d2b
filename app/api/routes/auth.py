"""Register/login/refresh/logout endpoints and auth dependencies (get_current_user, require_user_type)."""

import logging
import re
from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_token_codec, get_token_service
from app.core.database import get_db
from app.core.errors import ConflictError, ForbiddenError, UnauthorizedError, ValidationError
from app.core.security import (
    EMAIL_MAX_LEN,
    NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    TokenCodec,
    TokenError,
    TokenKind,
    TokenPayload,
    hash_password,
    verify_password,
)
from app.models.user import USER_TYPES, User
from app.schemas.auth import (
    AuthResponse,
    CurrentUser,
    LoginRequest,
    LogoutRequest,
    ProfileOut,
    RefreshTokenRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UserOut,
)
from app.schemas.common import MessageResponse
from app.services.token_service import TokenService, UserNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_email(email: str) -> str:
    value = email.strip().lower()
    if not value or len(value) > EMAIL_MAX_LEN or not _EMAIL_RE.match(value):
        raise ValidationError("Invalid email address.")
    return value


def _validate_name(name: str) -> str:
    value = name.strip()
    if not value or len(value) > NAME_MAX_LEN:
        raise ValidationError("Invalid name length.")
    return value


def _validate_password(password: str) -> None:
    if not (PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN):
        raise ValidationError(
            f"Password must be between {PASSWORD_MIN_LEN} and {PASSWORD_MAX_LEN} characters."
        )


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, name=user.name, email=user.email, user_type=user.role)


def _profile_out(user: User) -> ProfileOut:
    return ProfileOut(
        id=user.id,
        name=user.name,
        email=user.email,
        user_type=user.role,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _issue_tokens(user: User, codec: TokenCodec, tokens: TokenService) -> AuthResponse:
    """Access token signed from the user's current claims, plus a new persisted refresh token."""
    user_out = _user_out(user)
    access = codec.issue(
        TokenKind.ACCESS,
        TokenPayload(user_id=user.id, email=user.email, role=user.role),
    )
    try:
        refresh = tokens.create_refresh_token(user.id)
    except UserNotFoundError as e:
        raise UnauthorizedError("User not found") from e
    return AuthResponse(token=access, refresh_token=refresh, user=user_out)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> CurrentUser:
    """Dependency: require a valid Bearer access token and return the current user. Raises 401 otherwise."""
    if credentials is None:
        raise UnauthorizedError("Access token required", code="MISSING_TOKEN")
    try:
        payload = codec.verify(TokenKind.ACCESS, credentials.credentials)
    except TokenError as e:
        raise UnauthorizedError("Invalid or expired token", code="INVALID_TOKEN") from e
    user = db.get(User, payload.user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return CurrentUser(id=user.id, name=user.name, email=user.email, role=user.role)


def require_user_type(*allowed: str) -> Callable[..., CurrentUser]:
    """Dependency factory: require the current user's role to be one of ``allowed``. Raises 403 otherwise."""
    unknown = set(allowed) - set(USER_TYPES)
    if unknown:
        raise ValueError(f"Unknown user types: {sorted(unknown)}")

    def dependency(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if current_user.role not in allowed:
            raise ForbiddenError(
                f"User type not allowed. Required: {', '.join(allowed)}",
                code="UNAUTHORIZED_USER_TYPE",
            )
        return current_user

    return dependency


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AuthResponse:
    """
    Create an account and sign in.

    userType must be PRODUTOR, COOPERATIVA or COMPRADOR. Returns an access token,
    a refresh token and the new user.
    """
    name = _validate_name(body.name)
    email = _normalize_email(body.email)
    _validate_password(body.password)
    if body.user_type not in USER_TYPES:
        raise ValidationError(f"Invalid user type. Allowed: {', '.join(USER_TYPES)}")

    if db.query(User).filter(User.email == email).first() is not None:
        raise ConflictError("Email is already in use.")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(body.password),
        role=body.user_type,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Email is already in use.") from e
    db.refresh(user)
    logger.info("User registered", extra={"user_id": user.id, "role": user.role})
    return _issue_tokens(user, codec, tokens)


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns an access token and a refresh token.
    Include the access token in the Authorization header as: Bearer <token>
    """
    email = body.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(body.password, user.password_hash):
        raise UnauthorizedError("Invalid email or password.")
    return _issue_tokens(user, codec, tokens)


@router.post("/refresh-token", response_model=AuthResponse)
def refresh_token(
    body: RefreshTokenRequest,
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AuthResponse:
    """Exchange a valid refresh token for a new access token; the refresh token is rotated."""
    payload = tokens.validate_refresh_token(body.refresh_token)
    if payload is None:
        raise UnauthorizedError("Invalid or expired refresh token.")
    user = db.get(User, payload.user_id)
    if user is None:
        raise UnauthorizedError("User not found")

    user_out = _user_out(user)
    access = codec.issue(
        TokenKind.ACCESS,
        TokenPayload(user_id=user.id, email=user.email, role=user.role),
    )
    try:
        new_refresh = tokens.rotate_refresh_token(body.refresh_token, user_out.id)
    except UserNotFoundError as e:
        raise UnauthorizedError("User not found") from e
    return AuthResponse(token=access, refresh_token=new_refresh, user=user_out)


@router.post("/logout", response_model=MessageResponse)
def logout(
    tokens: Annotated[TokenService, Depends(get_token_service)],
    body: LogoutRequest | None = None,
) -> MessageResponse:
    """Revoke the given refresh token, if any. Always succeeds."""
    if body is not None and body.refresh_token:
        tokens.revoke_refresh_token(body.refresh_token)
    return MessageResponse(message="Logged out.")


@router.post("/logout-all", response_model=MessageResponse)
def logout_all(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> MessageResponse:
    """Revoke every refresh token of the current user (log out on all devices)."""
    tokens.revoke_all_user_tokens(current_user.id)
    return MessageResponse(message="Logged out from all devices.")


@router.get("/profile", response_model=ProfileOut)
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileOut:
    user = db.get(User, current_user.id)
    if user is None:
        raise UnauthorizedError("User not found")
    return _profile_out(user)


@router.put("/profile", response_model=ProfileOut)
def update_profile(
    body: UpdateProfileRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileOut:
    """Update name and/or email. Email must not belong to another user."""
    user = db.get(User, current_user.id)
    if user is None:
        raise UnauthorizedError("User not found")

    if body.name is not None:
        user.name = _validate_name(body.name)
    if body.email is not None:
        email = _normalize_email(body.email)
        taken = (
            db.query(User)
            .filter(User.email == email, User.id != user.id)
            .first()
        )
        if taken is not None:
            raise ConflictError("Email is already in use.")
        user.email = email
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Email is already in use.") from e
    db.refresh(user)
    return _profile_out(user)
