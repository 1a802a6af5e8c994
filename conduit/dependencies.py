from dataclasses import dataclass

from fastapi import Depends, Header, Query

from conduit.config import settings
from conduit.exceptions import AuthenticationError
from conduit.security import TokenService, get_token_service

TOKEN_SCHEME = "Token"


class PaginationParams:
    """
    Reusable FastAPI dependency that parses ``limit`` / ``offset``.

    Attributes
    ----------
    limit:
        Maximum number of articles returned, clamped to
        ``settings.MAX_PAGE_SIZE`` regardless of the value supplied.
    offset:
        Number of matching articles to skip.
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=0,
            description="Number of articles to return.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles to skip.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    token: str


def _parse_authorization(value: str) -> str:
    """Extract the JWT from an ``Authorization: Token <jwt>`` header."""
    parts = value.split()
    if len(parts) != 2 or parts[0] != TOKEN_SCHEME:
        raise AuthenticationError("invalid authorization header")
    return parts[1]


async def optional_auth(
    authorization: str | None = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> AuthContext | None:
    """
    Viewer identity for endpoints that also serve anonymous requests.
    No header means anonymous; a header with a bad token is still an error.
    """
    if authorization is None:
        return None
    token = _parse_authorization(authorization)
    return AuthContext(user_id=tokens.verify(token), token=token)


async def required_auth(
    auth: AuthContext | None = Depends(optional_auth),
) -> AuthContext:
    if auth is None:
        raise AuthenticationError("missing authorization token")
    return auth


def viewer_id(auth: AuthContext | None) -> int | None:
    return auth.user_id if auth is not None else None
