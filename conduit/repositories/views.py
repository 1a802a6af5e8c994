"""
Viewer-relative column expressions.

Every read path (profile, article detail, article list, feed, comments)
composes the same fragments instead of repeating its own SQL.  The viewer
id is bound once per statement with ``viewer_param``; a NULL viewer makes
each flag evaluate to false through ``:viewer_id IS NOT NULL AND EXISTS``,
so the statement text is identical for anonymous and signed-in requests.
"""
from sqlalchemy import BindParameter, Integer, and_, bindparam, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite

from conduit.models import article_favs, follows


def viewer_param(viewer_id: int | None) -> BindParameter:
    return bindparam("viewer_id", viewer_id, type_=Integer)


def following_expr(viewer: BindParameter, user_id_col):
    """True when the viewer follows the user identified by *user_id_col*."""
    edge = (
        select(follows.c.follower_id)
        .where(follows.c.follower_id == viewer, follows.c.followee_id == user_id_col)
        .exists()
    )
    return and_(viewer.is_not(None), edge)


def favorited_expr(viewer: BindParameter, article_id_col):
    """True when the viewer has favorited the article *article_id_col*."""
    edge = (
        select(article_favs.c.user_id)
        .where(article_favs.c.article_id == article_id_col, article_favs.c.user_id == viewer)
        .exists()
    )
    return and_(viewer.is_not(None), edge)


def favorites_count_expr(article_id_col):
    return (
        select(func.count())
        .select_from(article_favs)
        .where(article_favs.c.article_id == article_id_col)
        .scalar_subquery()
    )


# ---------------------------------------------------------------------------
# Insert-if-absent for edge tables and tags
# ---------------------------------------------------------------------------

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(db: AsyncSession, table):
    """INSERT construct of the session's dialect, which has ``on_conflict_do_nothing``."""
    dialect = db.get_bind().dialect.name
    try:
        insert = _DIALECT_INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"insert-if-absent is not supported on {dialect!r}")
    return insert(table)


async def insert_ignore(db: AsyncSession, table, rows: list[dict]) -> None:
    """
    Insert *rows* into *table*, skipping any that violate a unique key
    (``ON CONFLICT DO NOTHING``).  Makes favorite/follow idempotent and
    lets concurrent requests create the same tag without failing.
    """
    if not rows:
        return
    await db.execute(dialect_insert(db, table).values(rows).on_conflict_do_nothing())
