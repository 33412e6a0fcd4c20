"""JWT issuing and decoding (python-jose, HS256 by default)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import jwt

from leaveflow.config import settings
from leaveflow.users.models import Employee


def create_access_token(
    employee: Employee,
    *,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign an access token carrying the employee id and role."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.JWT_EXPIRY_HOURS)
    )
    payload = {
        "sub": str(employee.id),
        "role": employee.role.value,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify signature + expiry. Raises ``jose.JWTError``."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
