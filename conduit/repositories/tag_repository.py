from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Tag, article_tags
from conduit.repositories.views import insert_ignore


async def upsert_tags(db: AsyncSession, names: list[str]) -> list[int]:
    """
    Make sure a Tag row exists for every name (case-sensitive) and return
    their ids.  Existing tags are reused; tags are never deleted.
    """
    if not names:
        return []
    await insert_ignore(db, Tag.__table__, [{"name": name} for name in names])
    result = await db.execute(select(Tag.id).where(Tag.name.in_(names)))
    return list(result.scalars().all())


async def popular_tag_names(db: AsyncSession, limit: int = 10) -> list[str]:
    """Names of the *limit* most used tags, most used first (ties by name)."""
    q = (
        select(Tag.name)
        .join(article_tags, article_tags.c.tag_id == Tag.id)
        .group_by(Tag.id, Tag.name)
        .order_by(func.count(article_tags.c.article_id).desc(), Tag.name.asc())
        .limit(limit)
    )
    result = await db.execute(q)
    return list(result.scalars().all())
