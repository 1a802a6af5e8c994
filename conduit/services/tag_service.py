from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import cache
from conduit.config import settings
from conduit.repositories import tag_repository


async def popular_tags(db: AsyncSession) -> list[str]:
    """
    Most used tag names, most used first, read through the Redis cache.
    Creating or deleting an article drops the cached list.
    """
    cached = await cache.get_popular_tags()
    if cached is not None:
        return cached

    tags = await tag_repository.popular_tag_names(db, limit=settings.POPULAR_TAGS_LIMIT)
    await cache.set_popular_tags(tags)
    return tags
