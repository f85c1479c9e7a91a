"""
Reusable FastAPI dependencies for authentication and authorization.

Dependencies:
  - get_current_user  — extracts the caller from the JWT (401 if invalid)
  - require_admin     — also requires the ``admin`` role (403)
"""

import uuid
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from app.core.security import ROLE_ADMIN, ROLES, verify_token


@dataclass(frozen=True)
class CurrentUser:
    id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


# ---------------------------------------------------------------------------
# Core: extract caller from JWT
# ---------------------------------------------------------------------------


async def get_current_user(
    authorization: str = Header(..., description="Bearer <access_token>"),
) -> CurrentUser:
    """
    Parse the ``Authorization: Bearer <token>`` header, verify the JWT,
    and return the caller's id and role.

    Raises 401 if the token is missing, malformed, expired, or carries an
    unknown subject or role.
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )

    token = authorization[len("Bearer "):]
    payload = verify_token(token, expected_type="access")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
        )

    role = payload.get("role")
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token role",
        )

    return CurrentUser(id=user_id, role=role)


# ---------------------------------------------------------------------------
# Role guard
# ---------------------------------------------------------------------------


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
