# app/core/auth.py
import logging
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session, select

from app.core.config import get_settings
from app.database import get_session
from app.models.user import User

logger = logging.getLogger(__name__)

settings = get_settings()

# Tracking is public, so a missing header must reach the route as None
bearer_scheme = HTTPBearer(auto_error=False)

NAME_MAX_LENGTH = 50


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify a shopper's Supabase session token and return its claims.

    Signature and expiry are checked; 'aud' is not.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def _default_name_from_email(email: str) -> str:
    """Local part of the email, used until the shopper sets a name."""
    if "@" in email:
        return email.split("@", 1)[0]
    return email


def _customer_identity(claims: dict[str, Any]) -> tuple[uuid.UUID, str]:
    """
    Pull (user id, email) out of the claims.

    Orders are keyed by the Supabase auth id and snapshot the email,
    so a token missing either cannot check out.
    """
    sub = claims.get("sub")
    email = claims.get("email")
    if not sub or not email:
        raise _unauthorized("Token missing sub/email")
    try:
        return uuid.UUID(sub), email
    except ValueError:
        raise _unauthorized("Invalid sub in token")


def _provision_customer(
    session: Session,
    user_id: uuid.UUID,
    email: str,
    metadata: dict[str, Any],
) -> User:
    # Sign-up form stores name/phone in user_metadata; they prefill checkout
    name = metadata.get("name") or _default_name_from_email(email)
    user = User(
        id=user_id,
        email=email,
        name=name[:NAME_MAX_LENGTH],
        phone=metadata.get("phone"),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Provisioned customer profile %s", user_id)
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    The signed-in customer, or None for an anonymous request.

    The first request from a new Supabase account creates its row in
    public.users so orders have a user to point at.
    """
    if credentials is None:
        return None

    claims = decode_access_token(credentials.credentials)
    user_id, email = _customer_identity(claims)

    user = session.exec(select(User).where(User.id == user_id)).first()
    if user is None:
        user = _provision_customer(session, user_id, email, claims.get("user_metadata") or {})
    return user


def require_user(user: User | None = Depends(get_current_user)) -> User:
    """Checkout, order history, cancellation and payment reports need a customer."""
    if user is None:
        raise _unauthorized("Authentication required")
    return user
