from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from quoteflow.config import settings

ROLES = ("buyer", "supplier")


# ---------- token generation ----------

def create_access_token(
    user_id: str,
    role: str,
    supplier_id: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "type": "access",
    }
    if supplier_id:
        claims["supplier_id"] = str(supplier_id)
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# ---------- token verification ----------

def verify_access_token(token: str) -> dict:
    """Decode and validate an access token. Raises JWTError on failure."""
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Not an access token")
    if payload.get("role") not in ROLES:
        raise JWTError("Unknown role")
    return payload
