"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Reads are composed in ``article_repository`` from one shared
  viewer-relative fragment, so ``favorited``, ``favoritesCount`` and the
  author's ``following`` flag are computed fresh on every read path.
- Ownership is checked explicitly before any write: a missing article
  raises NotFoundError, somebody else's article raises ForbiddenError.
  Nothing relies on an UPDATE/DELETE silently matching zero rows.
- Service functions flush but do not commit; the request-scoped
  ``get_db`` dependency commits once, so an article and its tags become
  visible together or not at all.
- The slug is derived from the title once, at creation.  Editing the
  title later never changes it.
- The popular tag list is dropped from the cache only after the request
  has committed, so a concurrent reader cannot re-cache the old list.
"""
import logging
import re
import secrets

from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import cache
from conduit.database import after_commit
from conduit.exceptions import ForbiddenError, InternalError, NotFoundError
from conduit.models import Article as ArticleRow
from conduit.repositories import article_repository
from conduit.schemas import Article, ArticleCreate, ArticleListResponse, ArticleUpdate
from conduit.services.serializers import to_article

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_SEPARATOR_RE = re.compile(r"[\W_]+")
SLUG_ATTEMPTS = 5


def slugify(text: str) -> str:
    """Lowercase *text* and fold every run of whitespace/punctuation into one hyphen."""
    return _SLUG_SEPARATOR_RE.sub("-", text.lower()).strip("-")


def _slug_candidates(title: str):
    """
    Slugs to try for a new article, in order.  The first article with a
    given title gets the bare slug; later ones get a short random suffix.
    """
    base = slugify(title) or "article"
    yield base
    for _ in range(SLUG_ATTEMPTS - 1):
        yield f"{base}-{secrets.token_hex(3)}"


async def _insert_article(db: AsyncSession, author_id: int, data: ArticleCreate) -> tuple[int, str]:
    for slug in _slug_candidates(data.title):
        article_id = await article_repository.insert_article(
            db,
            author_id=author_id,
            slug=slug,
            title=data.title,
            description=data.description,
            body=data.body,
        )
        if article_id is not None:
            return article_id, slug
        logger.debug("Slug %s already taken", slug)
    raise InternalError("could not allocate a unique slug", context={"title": data.title})


async def _load_view(db: AsyncSession, slug: str, viewer_id: int | None) -> Article:
    view = await article_repository.get_article_view(db, slug, viewer_id)
    if view is None:
        raise NotFoundError("article", slug)
    return to_article(view)


async def _require_article(db: AsyncSession, slug: str) -> ArticleRow:
    article = await article_repository.get_by_slug(db, slug)
    if article is None:
        raise NotFoundError("article", slug)
    return article


async def _require_own_article(db: AsyncSession, slug: str, user_id: int) -> ArticleRow:
    article = await _require_article(db, slug)
    if article.author_id != user_id:
        raise ForbiddenError("only the author can modify this article")
    return article


def _page_response(page: article_repository.ArticlePage) -> ArticleListResponse:
    return ArticleListResponse(
        articles=[to_article(view) for view in page.items],
        articles_count=page.total,
    )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    viewer_id: int | None,
    *,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> ArticleListResponse:
    page = await article_repository.list_articles(
        db,
        viewer_id,
        author=author,
        favorited_by=favorited,
        tag=tag,
        limit=limit,
        offset=offset,
    )
    return _page_response(page)


async def feed_articles(
    db: AsyncSession, viewer_id: int, *, limit: int = 20, offset: int = 0
) -> ArticleListResponse:
    page = await article_repository.feed_articles(db, viewer_id, limit=limit, offset=offset)
    return _page_response(page)


async def get_article(db: AsyncSession, slug: str, viewer_id: int | None) -> Article:
    return await _load_view(db, slug, viewer_id)


async def create_article(db: AsyncSession, author_id: int, data: ArticleCreate) -> Article:
    """
    Create an article, insert any tags that do not exist yet (names are
    case-sensitive) and link them.  A new article is never favorited.
    """
    article_id, slug = await _insert_article(db, author_id, data)
    # Duplicate names in the request collapse to one link.
    tag_names = list(dict.fromkeys(data.tag_list))
    await article_repository.attach_tags(db, article_id, tag_names)

    after_commit(db, cache.invalidate_tags)
    logger.info("Created article slug=%s author_id=%d tags=%d", slug, author_id, len(tag_names))
    return await _load_view(db, slug, author_id)


async def update_article(
    db: AsyncSession, slug: str, user_id: int, data: ArticleUpdate
) -> Article:
    """
    Change title/description/body of the caller's own article.  Only the
    fields that were sent (and are not null) change; slug and tags never do.
    """
    article = await _require_own_article(db, slug, user_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        await article_repository.update_article(db, article, changes)
    return await _load_view(db, slug, user_id)


async def delete_article(db: AsyncSession, slug: str, user_id: int) -> None:
    article = await _require_own_article(db, slug, user_id)
    await article_repository.delete_article(db, article.id)
    after_commit(db, cache.invalidate_tags)
    logger.info("Deleted article slug=%s", slug)


async def favorite_article(db: AsyncSession, slug: str, user_id: int) -> Article:
    """Favorite the article; favoriting it again changes nothing."""
    article = await _require_article(db, slug)
    await article_repository.add_favorite(db, article.id, user_id)
    return await _load_view(db, slug, user_id)


async def unfavorite_article(db: AsyncSession, slug: str, user_id: int) -> Article:
    article = await _require_article(db, slug)
    await article_repository.remove_favorite(db, article.id, user_id)
    return await _load_view(db, slug, user_id)
