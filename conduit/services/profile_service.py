"""Profile service: public profiles and the follow graph."""
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import ForbiddenError, NotFoundError
from conduit.repositories import user_repository
from conduit.schemas import Profile
from conduit.services.serializers import to_profile


async def get_profile(db: AsyncSession, username: str, viewer_id: int | None) -> Profile:
    view = await user_repository.get_profile_view(db, username, viewer_id)
    if view is None:
        raise NotFoundError("profile", username)
    return to_profile(view.user, view.following)


async def follow(db: AsyncSession, username: str, follower_id: int) -> Profile:
    """
    Make the caller follow *username*.  Following someone twice is a
    no-op; following yourself is rejected.
    """
    followee = await user_repository.get_by_username(db, username)
    if followee is None:
        raise NotFoundError("profile", username)
    if followee.id == follower_id:
        raise ForbiddenError("you cannot follow yourself")
    await user_repository.add_follow(db, follower_id, followee.id)
    return to_profile(followee, True)


async def unfollow(db: AsyncSession, username: str, follower_id: int) -> Profile:
    followee = await user_repository.get_by_username(db, username)
    if followee is None:
        raise NotFoundError("profile", username)
    await user_repository.remove_follow(db, follower_id, followee.id)
    return to_profile(followee, False)
