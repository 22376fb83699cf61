"""Authentication dependency for FastAPI.

When AUTH_REQUIRED=false, requests run as a local dev user (an X-User-Id
header, if present, overrides the dev user id).
When AUTH_REQUIRED=true, a Bearer token must map to a user id in API_TOKENS.
"""

from dataclasses import dataclass

from fastapi import Request

from insight_studio.core.config import get_settings
from insight_studio.core.errors import AuthenticationError
from insight_studio.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class UserInfo:
    """Authenticated user information."""

    id: str
    email: str
    name: str


_DEV_USER = UserInfo(id="dev-user", email="dev@localhost", name="Dev User")


async def get_current_user(request: Request) -> UserInfo:
    """Resolve the caller's identity.

    Raises:
        AuthenticationError: Missing or unknown Bearer token while auth is required.
    """
    settings = get_settings()

    if not settings.auth_required:
        user_id = request.headers.get("X-User-Id")
        if user_id:
            return UserInfo(id=user_id, email=f"{user_id}@localhost", name=user_id)
        return _DEV_USER

    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Not authenticated")

    token = auth_header[7:]
    user_id = settings.api_tokens.get(token)
    if user_id is None:
        logger.warning("Unknown session token: %s...", token[:8])
        raise AuthenticationError("Session not found")

    return UserInfo(id=user_id, email=f"{user_id}@localhost", name=user_id)
