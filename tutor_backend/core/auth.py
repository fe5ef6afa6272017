"""
Current-user resolution.

Session issuance lives in the web frontend; it sets an `x_user_id` cookie
after login. The X-User-Id header is accepted for service-to-service calls
and tests.
"""
from typing import Optional

from fastapi import Cookie, Header

from tutor_backend.core.errors import UnauthorizedError


async def get_current_user_id(
    x_user_id_cookie: Optional[str] = Cookie(None, alias="x_user_id"),
    x_user_id: Optional[str] = Header(None, description="Service-to-service / test user ID"),
) -> str:
    """
    Resolve the acting user's ID.

    Priority:
    1. x_user_id session cookie
    2. X-User-Id header

    Raises:
        UnauthorizedError: neither is present
    """
    user_id = (x_user_id_cookie or x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedError("Not authenticated")
    return user_id
