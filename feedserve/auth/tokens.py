"""Bearer tokens for the admin API."""

import argparse
import time
from typing import Annotated

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from feedserve.config import get_settings

ADMIN_SCOPE = "feeds:admin"
DEFAULT_TTL_SECONDS = 86400 * 30  # 30 days

bearer_scheme = HTTPBearer(auto_error=False)


def create_admin_token(subject: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    """Create a signed JWT granting admin access."""
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": subject,
        "scope": ADMIN_SCOPE,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, settings.app_secret_key, algorithm="HS256")


def verify_admin_token(token: str) -> str | None:
    """Verify an admin token and return its subject, or None if invalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.app_secret_key, algorithms=["HS256"])
    except JWTError:
        return None
    if payload.get("scope") != ADMIN_SCOPE:
        return None
    return payload.get("sub")


async def require_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """
    FastAPI dependency that requires a valid admin bearer token.

    Returns:
        The token subject

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    subject = verify_admin_token(credentials.credentials)
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token")
    return subject


def main():
    """Print an admin token for the given subject."""
    parser = argparse.ArgumentParser(description="Mint a FeedServe admin API token")
    parser.add_argument("subject", help="Who the token is issued to")
    parser.add_argument("--days", type=int, default=30, help="Validity in days")
    args = parser.parse_args()
    print(create_admin_token(args.subject, ttl_seconds=args.days * 86400))


if __name__ == "__main__":
    main()
