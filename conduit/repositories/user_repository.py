from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import User, follows
from conduit.repositories.views import following_expr, insert_ignore, viewer_param


@dataclass
class ProfileView:
    user: User
    following: bool


async def get_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def username_taken(db: AsyncSession, username: str, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(User.username == username)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return bool((await db.execute(select(q.exists()))).scalar())


async def email_taken(db: AsyncSession, email: str, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(User.email == email)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return bool((await db.execute(select(q.exists()))).scalar())


async def insert_user(db: AsyncSession, username: str, email: str, password_hash: str) -> User:
    user = User(username=username, email=email, password_hash=password_hash)
    db.add(user)
    await db.flush()
    return user


async def update_user(db: AsyncSession, user: User, changes: dict) -> User:
    """Apply *changes* (only the provided columns) to *user* and flush."""
    for field, value in changes.items():
        setattr(user, field, value)
    await db.flush()
    return user


async def get_profile_view(
    db: AsyncSession, username: str, viewer_id: int | None
) -> ProfileView | None:
    """Return the user named *username* with ``following`` relative to the viewer."""
    viewer = viewer_param(viewer_id)
    q = select(User, following_expr(viewer, User.id).label("following")).where(
        User.username == username
    )
    row = (await db.execute(q)).one_or_none()
    if row is None:
        return None
    return ProfileView(user=row.User, following=bool(row.following))


async def add_follow(db: AsyncSession, follower_id: int, followee_id: int) -> None:
    await insert_ignore(
        db, follows, [{"follower_id": follower_id, "followee_id": followee_id}]
    )


async def remove_follow(db: AsyncSession, follower_id: int, followee_id: int) -> None:
    await db.execute(
        delete(follows).where(
            follows.c.follower_id == follower_id,
            follows.c.followee_id == followee_id,
        )
    )
