import os
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

ADMIN_TOKEN_ENV = "DUCK_RACE_ADMIN_TOKEN"


def configured_admin_token() -> Optional[str]:
    token = os.getenv(ADMIN_TOKEN_ENV, "").strip()
    return token or None


def controller_guard(expected_token: Optional[str]):
    """
    Builds a dependency that admits only the race controller.

    Token issuance lives outside this service; we only compare the bearer
    token against the configured one. No token configured means open control.
    """

    async def require_controller(authorization: Optional[str] = Header(default=None)) -> None:
        if not expected_token:
            return
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected_token):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"accepted": False, "message": "Controller credentials required."},
            )

    return require_controller
