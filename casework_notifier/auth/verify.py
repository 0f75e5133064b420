"""
verify.py
---------
Purpose:
    Shared-secret check for the admin routes.

Notes:
    - The token is read from the X-Admin-Token header.
    - Routes are disabled (503) while ADMIN_API_TOKEN is unset.
"""

import hmac

from fastapi import Header, HTTPException, status

from casework_notifier.config import settings


def verify_admin_token(token: str | None) -> None:
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API disabled: ADMIN_API_TOKEN not configured",
        )
    if not token or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token"
        )


def admin_dependency(x_admin_token: str | None = Header(default=None)) -> None:
    verify_admin_token(x_admin_token)
