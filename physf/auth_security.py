from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALG, JWT_SECRET

# bcrypt only; hashes of other schemes would be flagged for re-hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(username: str, expires_in: timedelta | None = None) -> str:
    """
    Bearer token for a clinician: ``sub`` carries the username, which is the
    identity every service receives.
    """
    issued = datetime.now(timezone.utc)
    expires = issued + (expires_in or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    claims: dict[str, Any] = {
        "sub": username,
        "typ": TOKEN_TYPE,
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALG)


def clinician_from_token(token: str) -> str | None:
    """Username in a valid, unexpired access token; None otherwise."""
    # clients sometimes paste the token with quotes or blanks around it
    token = token.strip().strip('"').strip("'")
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:  # includes ExpiredSignatureError
        return None

    if claims.get("typ") != TOKEN_TYPE:
        return None
    return claims.get("sub") or None
