"""
User service: registration, login and the signed-in user's own record.

Passwords are hashed in the threadpool (Argon2 is deliberately slow and
would otherwise block the event loop).  Login failures never reveal
whether the email exists: an unknown email and a wrong password raise
the same ForbiddenError.
"""
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import AuthenticationError, ForbiddenError, ValidationError
from conduit.repositories import user_repository
from conduit.schemas import LoginCredentials, UserAuth, UserRegistration, UserUpdate
from conduit.security import TokenService, hash_password, verify_password
from conduit.services.serializers import to_user_auth

logger = logging.getLogger(__name__)

TAKEN = "has already been taken"


def _invalid_login() -> ForbiddenError:
    return ForbiddenError({"email or password": ["is invalid"]})


async def _check_unique(
    db: AsyncSession,
    username: str | None,
    email: str | None,
    exclude_id: int | None = None,
) -> None:
    errors: dict[str, list[str]] = {}
    if username is not None and await user_repository.username_taken(db, username, exclude_id):
        errors["username"] = [TAKEN]
    if email is not None and await user_repository.email_taken(db, email, exclude_id):
        errors["email"] = [TAKEN]
    if errors:
        raise ValidationError(errors)


async def register(db: AsyncSession, tokens: TokenService, data: UserRegistration) -> UserAuth:
    """Create the user and return it together with a fresh token."""
    await _check_unique(db, data.username, data.email)
    digest = await run_in_threadpool(hash_password, data.password)
    try:
        user = await user_repository.insert_user(db, data.username, data.email, digest)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration.
        raise ValidationError({"username or email": [TAKEN]}) from exc
    logger.info("Registered user id=%d", user.id)
    return to_user_auth(user, tokens.issue(user.id))


async def login(db: AsyncSession, tokens: TokenService, data: LoginCredentials) -> UserAuth:
    user = await user_repository.get_by_email(db, data.email)
    if user is None:
        raise _invalid_login()
    if not await run_in_threadpool(verify_password, user.password_hash, data.password):
        raise _invalid_login()
    return to_user_auth(user, tokens.issue(user.id))


async def get_current_user(db: AsyncSession, user_id: int, token: str) -> UserAuth:
    """Return the caller's record; the token they sent is echoed back unchanged."""
    user = await user_repository.get_by_id(db, user_id)
    if user is None:
        # Valid signature for a user that no longer exists.
        raise AuthenticationError()
    return to_user_auth(user, token)


async def update_user(db: AsyncSession, user_id: int, token: str, data: UserUpdate) -> UserAuth:
    """
    Partially update the caller's record.

    Fields that are absent or null keep their stored value.  A new
    password is re-hashed; the existing token stays valid and is returned
    as-is rather than reissued.
    """
    user = await user_repository.get_by_id(db, user_id)
    if user is None:
        raise AuthenticationError()

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    await _check_unique(db, changes.get("username"), changes.get("email"), exclude_id=user.id)

    password = changes.pop("password", None)
    if password is not None:
        changes["password_hash"] = await run_in_threadpool(hash_password, password)

    if changes:
        try:
            user = await user_repository.update_user(db, user, changes)
        except IntegrityError as exc:
            raise ValidationError({"username or email": [TAKEN]}) from exc
    return to_user_auth(user, token)
