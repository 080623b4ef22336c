# shopflow/core/auth.py
import logging
import uuid
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from shopflow.core.config import get_settings
from shopflow.core.policies import Identity
from shopflow.core.supabase_client import supabase_public
from shopflow.database import get_session
from shopflow.models.profile import Profile

logger = logging.getLogger(__name__)

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can fall back to the session cookie, then to guest mode.
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT) locally.

    Verification:
      - signature (SUPABASE_JWT_SECRET / SUPABASE_JWT_ALG)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
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


def fetch_identity_claims(token: str) -> dict[str, Any]:
    """
    Ask the Supabase auth service who owns `token`.

    Used when no JWT secret is configured. Returns a claims-like dict
    with 'sub' and 'user_metadata' so both paths look the same.
    """
    try:
        response = supabase_public().auth.get_user(token)
    except Exception as exc:
        logger.warning("Supabase auth lookup failed: %s", exc)
        raise _unauthorized("Invalid or expired token")

    user = response.user if response is not None else None
    if user is None:
        raise _unauthorized("Invalid or expired token")

    return {
        "sub": str(user.id),
        "email": user.email,
        "user_metadata": user.user_metadata or {},
    }


def resolve_claims(token: str) -> dict[str, Any]:
    if settings.SUPABASE_JWT_SECRET:
        return decode_access_token(token)
    return fetch_identity_claims(token)


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Bearer header wins; otherwise fall back to the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def _full_name_from_claims(claims: dict[str, Any]) -> str:
    metadata = claims.get("user_metadata") or {}
    name = metadata.get("full_name") if isinstance(metadata, dict) else None
    return (name or "").strip()


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Profile | None:
    """
    Resolve the current caller's profile from a Supabase access token.

    Flow:
      1. No token in header or cookie => guest => return None.
      2. Resolve claims => extract 'sub'.
      3. Convert 'sub' to UUID to match Profile.id.
      4. Load the profile; auto-provision it on first sight
         (role 'user', name from signup metadata).

    Raises:
        HTTPException(401): if token is invalid or missing 'sub'.
    """
    token = extract_token(request, credentials)
    if token is None:
        return None  # guest mode

    claims = resolve_claims(token)
    sub = claims.get("sub")
    if not sub:
        raise _unauthorized("Token missing sub")

    try:
        sub_uuid = uuid.UUID(str(sub))
    except ValueError:
        raise _unauthorized("Invalid sub in token")

    profile = session.get(Profile, sub_uuid)

    # Default role = "user" (admin must be promoted in the database).
    if profile is None:
        profile = Profile(
            id=sub_uuid,
            full_name=_full_name_from_claims(claims),
            role="user",
        )
        session.add(profile)
        session.commit()
        session.refresh(profile)
        logger.info("Provisioned profile for identity %s", sub_uuid)

    return profile


def to_identity(profile: Profile | None) -> Identity | None:
    if profile is None:
        return None
    return Identity(user_id=profile.id, role=profile.role)  # type: ignore[arg-type]


def get_identity(
    profile: Profile | None = Depends(get_current_user),
) -> Identity | None:
    """Optional identity for routes that also serve anonymous callers."""
    return to_identity(profile)


def require_auth(profile: Profile | None = Depends(get_current_user)) -> Profile:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if the caller is a guest.
    """
    if profile is None:
        raise _unauthorized("Authentication required")
    return profile


def require_identity(profile: Profile = Depends(require_auth)) -> Identity:
    return to_identity(profile)  # type: ignore[return-value]


def require_admin(profile: Profile = Depends(require_auth)) -> Profile:
    """
    Enforce admin role.

    Raises:
        HTTPException(403): if role is not admin.
    """
    if profile.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return profile
