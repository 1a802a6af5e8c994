"""
Credential handling: password digests and signed identity tokens.

Password digests are Argon2id strings produced by ``argon2-cffi``; the
salt and cost parameters are embedded in the digest itself.  Identity
tokens are JWTs (``PyJWT``) carrying the user id and an absolute expiry.

The token keys are the trust root of the service.  ``get_token_service``
builds the ``TokenService`` once per process and every request shares
that read-only instance.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from conduit.config import settings
from conduit.exceptions import AuthenticationError, InternalError

logger = logging.getLogger(__name__)

_hasher = PasswordHasher(
    time_cost=settings.PASSWORD_HASH_TIME_COST,
    memory_cost=settings.PASSWORD_HASH_MEMORY_COST,
    parallelism=settings.PASSWORD_HASH_PARALLELISM,
)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Return an encoded Argon2id digest of *password* with a fresh salt."""
    try:
        return _hasher.hash(password)
    except Exception as exc:
        logger.error("Password hashing failed: %s", exc)
        raise InternalError() from exc


def verify_password(digest: str, password: str) -> bool:
    """
    Return True when *password* matches *digest*, False on a mismatch.

    A digest that cannot be parsed is a server-side fault; it is logged
    and reported to the caller as a plain authentication failure.
    """
    try:
        return _hasher.verify(digest, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError) as exc:
        logger.error("Stored password digest could not be verified: %s", exc)
        raise AuthenticationError() from exc


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class TokenService:
    """Issues and verifies signed tokens for a fixed key pair."""

    def __init__(
        self,
        signing_key: str,
        verification_key: str,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(days=30),
    ) -> None:
        self._signing_key = signing_key
        self._verification_key = verification_key
        self._algorithm = algorithm
        self._ttl = ttl

    def issue(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {"user_id": user_id, "iat": now, "exp": now + self._ttl}
        return jwt.encode(claims, self._signing_key, algorithm=self._algorithm)

    def verify(self, token: str) -> int:
        """Return the user id carried by *token*, or raise AuthenticationError."""
        try:
            claims = jwt.decode(
                token,
                self._verification_key,
                algorithms=[self._algorithm],
                options={"require": ["exp", "user_id"]},
            )
        except jwt.ExpiredSignatureError as exc:
            logger.info("Rejected expired token")
            raise AuthenticationError("invalid or expired token") from exc
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected invalid token: %s", exc)
            raise AuthenticationError("invalid or expired token") from exc

        user_id = claims["user_id"]
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            logger.info("Rejected token with malformed user_id claim")
            raise AuthenticationError("invalid or expired token")
        return user_id


@lru_cache
def get_token_service() -> TokenService:
    """Build the process-wide TokenService from settings (once)."""
    ttl = timedelta(days=settings.TOKEN_TTL_DAYS)
    if settings.JWT_ALGORITHM.startswith(("RS", "ES", "PS")):
        if not settings.JWT_PRIVATE_KEY or not settings.JWT_PUBLIC_KEY:
            raise RuntimeError(
                f"{settings.JWT_ALGORITHM} requires JWT_PRIVATE_KEY and JWT_PUBLIC_KEY"
            )
        return TokenService(
            settings.JWT_PRIVATE_KEY,
            settings.JWT_PUBLIC_KEY,
            algorithm=settings.JWT_ALGORITHM,
            ttl=ttl,
        )
    return TokenService(
        settings.SECRET_KEY,
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        ttl=ttl,
    )
