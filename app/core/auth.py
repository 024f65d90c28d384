"""
Access gate - role-based authorization in front of every crime report route.

Callers send a Firebase ID token as `Authorization: Bearer <token>`.
The user's role is read from a custom claim (settings.AUTH_ROLE_CLAIM).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth

from app.config.firebase import initialize_firebase_app
from app.core.errors import AuthError, ForbiddenError
from app.core.settings import settings

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    uid: str
    role: Optional[str]
    email: Optional[str] = None


def decode_token(token: str) -> Dict:
    """Verify a Firebase ID token and return its claims."""
    try:
        app = initialize_firebase_app()
        return firebase_auth.verify_id_token(token, app=app)
    except (firebase_auth.InvalidIdTokenError,
            firebase_auth.ExpiredIdTokenError,
            firebase_auth.RevokedIdTokenError,
            firebase_auth.CertificateFetchError,
            ValueError) as e:
        logger.info(f"Rejected bearer token: {e}")
        raise AuthError("Unauthorized")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise AuthError("Unauthorized")

    claims = decode_token(credentials.credentials)
    return AuthenticatedUser(
        uid=claims.get("uid") or claims.get("sub", ""),
        role=claims.get(settings.AUTH_ROLE_CLAIM),
        email=claims.get("email"),
    )


def require_role(*allowed_roles: str):
    """
    Build a dependency that lets the request through only for the given roles.

    Usage:
        @router.delete("/{id}", dependencies=[Depends(require_role(ROLE_ADMIN))])
    """

    def _check(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if user.role not in allowed_roles:
            logger.info(f"User {user.uid} with role {user.role!r} denied; needs one of {allowed_roles}")
            raise ForbiddenError("Forbidden")
        return user

    return _check
