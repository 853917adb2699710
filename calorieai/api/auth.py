"""Bearer-token authentication for the HTTP API."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from calorieai.domain.errors import UnauthorizedError
from calorieai.domain.tracking.entities import UserContext


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization`` header value.

    Examples:
        >>> extract_bearer_token("Bearer eyJ...")
        'eyJ...'
        >>> extract_bearer_token("eyJ...")  # missing scheme
    """
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) != 2:
        return None
    scheme, token = parts
    if scheme.lower() != "bearer":
        return None
    return token


async def current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> UserContext:
    """FastAPI dependency resolving the caller.

    Raises:
        UnauthorizedError: Missing, malformed or unknown token
    """
    token = extract_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Missing authorization token")
    user = await request.app.state.stores.users.resolve(token)
    if user is None:
        raise UnauthorizedError("Invalid or expired token")
    request.state.language = user.language
    return user
