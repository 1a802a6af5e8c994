"""
Article queries.

All article reads go through ``article_view_query``: the article row, its
author, the viewer-relative ``favorited`` / ``following`` flags and the
fresh ``favoritesCount``.  Tags are eager-loaded with ``selectinload`` and
come back sorted by name (``Article.tags`` is ordered on ``Tag.name``).

Paged reads add ``COUNT(*) OVER ()`` so the total number of matching rows
arrives with the page in a single statement.  Only when the window is
empty although rows may exist (offset past the end, or ``limit=0``) is a
separate COUNT issued.
"""
from dataclasses import dataclass

from sqlalchemy import BindParameter, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from conduit.models import Article, Comment, Tag, User, article_favs, article_tags, follows
from conduit.repositories import tag_repository
from conduit.repositories.views import (
    dialect_insert,
    favorited_expr,
    favorites_count_expr,
    following_expr,
    insert_ignore,
    viewer_param,
)


@dataclass
class ArticleView:
    article: Article
    author: User
    favorited: bool
    favorites_count: int
    following: bool

    @property
    def tag_list(self) -> list[str]:
        return [tag.name for tag in self.article.tags]


@dataclass
class ArticlePage:
    items: list[ArticleView]
    total: int


# ---------------------------------------------------------------------------
# Shared read fragment
# ---------------------------------------------------------------------------

def article_view_query(viewer: BindParameter):
    return (
        select(
            Article,
            User,
            favorited_expr(viewer, Article.id).label("favorited"),
            favorites_count_expr(Article.id).label("favorites_count"),
            following_expr(viewer, User.id).label("following"),
        )
        .select_from(Article)
        .join(User, User.id == Article.author_id)
        .options(selectinload(Article.tags))
        # Rows already in the identity map (just created or updated in this
        # session) must pick up fresh tags and timestamps.
        .execution_options(populate_existing=True)
    )


def _to_view(row) -> ArticleView:
    return ArticleView(
        article=row.Article,
        author=row.User,
        favorited=bool(row.favorited),
        favorites_count=int(row.favorites_count),
        following=bool(row.following),
    )


async def _fetch_page(
    db: AsyncSession,
    viewer: BindParameter,
    conditions: list,
    limit: int,
    offset: int,
) -> ArticlePage:
    q = article_view_query(viewer).add_columns(func.count().over().label("total"))
    if conditions:
        q = q.where(*conditions)
    q = q.order_by(Article.created_at.desc(), Article.id.desc()).limit(limit).offset(offset)

    rows = (await db.execute(q)).all()
    if rows:
        total = int(rows[0].total)
    elif offset > 0 or limit == 0:
        count_q = (
            select(func.count())
            .select_from(Article)
            .join(User, User.id == Article.author_id)
        )
        if conditions:
            count_q = count_q.where(*conditions)
        total = (await db.execute(count_q)).scalar_one()
    else:
        total = 0
    return ArticlePage(items=[_to_view(row) for row in rows], total=total)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    viewer_id: int | None,
    *,
    author: str | None = None,
    favorited_by: str | None = None,
    tag: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> ArticlePage:
    """
    Newest-first page of articles matching every filter that is given:
    author username, username of a user who favorited it, tag name.
    """
    conditions = []
    if author is not None:
        conditions.append(User.username == author)
    if favorited_by is not None:
        fan = aliased(User)
        conditions.append(
            select(article_favs.c.article_id)
            .join(fan, fan.id == article_favs.c.user_id)
            .where(article_favs.c.article_id == Article.id, fan.username == favorited_by)
            .exists()
        )
    if tag is not None:
        conditions.append(
            select(article_tags.c.article_id)
            .join(Tag, Tag.id == article_tags.c.tag_id)
            .where(article_tags.c.article_id == Article.id, Tag.name == tag)
            .exists()
        )
    return await _fetch_page(db, viewer_param(viewer_id), conditions, limit, offset)


async def feed_articles(
    db: AsyncSession, viewer_id: int, *, limit: int = 20, offset: int = 0
) -> ArticlePage:
    """Newest-first page of articles written by users the viewer follows."""
    viewer = viewer_param(viewer_id)
    followed_author = (
        select(follows.c.followee_id)
        .where(follows.c.follower_id == viewer, follows.c.followee_id == Article.author_id)
        .exists()
    )
    return await _fetch_page(db, viewer, [followed_author], limit, offset)


async def get_article_view(
    db: AsyncSession, slug: str, viewer_id: int | None
) -> ArticleView | None:
    q = article_view_query(viewer_param(viewer_id)).where(Article.slug == slug)
    row = (await db.execute(q)).one_or_none()
    return _to_view(row) if row is not None else None


async def get_by_slug(db: AsyncSession, slug: str) -> Article | None:
    result = await db.execute(select(Article).where(Article.slug == slug))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def insert_article(
    db: AsyncSession,
    *,
    author_id: int,
    slug: str,
    title: str,
    description: str,
    body: str,
) -> int | None:
    """
    Insert the article and return its id, or None when *slug* is already
    taken.  The unique index decides (``ON CONFLICT (slug) DO NOTHING``),
    so two requests racing for the same slug cannot both get it.
    """
    table = Article.__table__
    stmt = (
        dialect_insert(db, table)
        .values(
            author_id=author_id,
            slug=slug,
            title=title,
            description=description,
            body=body,
        )
        .on_conflict_do_nothing(index_elements=[table.c.slug])
        .returning(table.c.id)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def attach_tags(db: AsyncSession, article_id: int, names: list[str]) -> None:
    """Create any missing tags and link all of them to the article."""
    tag_ids = await tag_repository.upsert_tags(db, names)
    await insert_ignore(
        db, article_tags, [{"article_id": article_id, "tag_id": tag_id} for tag_id in tag_ids]
    )


async def update_article(db: AsyncSession, article: Article, changes: dict) -> Article:
    for field, value in changes.items():
        setattr(article, field, value)
    await db.flush()
    return article


async def delete_article(db: AsyncSession, article_id: int) -> None:
    """
    Delete the article together with its tag links, favorites and
    comments.  Done explicitly so the result does not depend on the
    backend enforcing ON DELETE CASCADE (SQLite does not by default).
    """
    await db.execute(delete(article_tags).where(article_tags.c.article_id == article_id))
    await db.execute(delete(article_favs).where(article_favs.c.article_id == article_id))
    await db.execute(delete(Comment).where(Comment.article_id == article_id))
    await db.execute(delete(Article).where(Article.id == article_id))


async def add_favorite(db: AsyncSession, article_id: int, user_id: int) -> None:
    await insert_ignore(db, article_favs, [{"article_id": article_id, "user_id": user_id}])


async def remove_favorite(db: AsyncSession, article_id: int, user_id: int) -> None:
    await db.execute(
        delete(article_favs).where(
            article_favs.c.article_id == article_id,
            article_favs.c.user_id == user_id,
        )
    )
