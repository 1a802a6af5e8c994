from dataclasses import dataclass

from sqlalchemy import BindParameter, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Comment, User
from conduit.repositories.views import following_expr, viewer_param


@dataclass
class CommentView:
    comment: Comment
    author: User
    following: bool


def comment_view_query(viewer: BindParameter):
    return (
        select(Comment, User, following_expr(viewer, User.id).label("following"))
        .select_from(Comment)
        .join(User, User.id == Comment.author_id)
    )


def _to_view(row) -> CommentView:
    return CommentView(comment=row.Comment, author=row.User, following=bool(row.following))


async def insert_comment(db: AsyncSession, *, article_id: int, author_id: int, body: str) -> Comment:
    comment = Comment(article_id=article_id, author_id=author_id, body=body)
    db.add(comment)
    await db.flush()
    return comment


async def get_by_id(db: AsyncSession, comment_id: int) -> Comment | None:
    result = await db.execute(select(Comment).where(Comment.id == comment_id))
    return result.scalar_one_or_none()


async def get_comment_view(
    db: AsyncSession, comment_id: int, viewer_id: int | None
) -> CommentView | None:
    q = comment_view_query(viewer_param(viewer_id)).where(Comment.id == comment_id)
    row = (await db.execute(q)).one_or_none()
    return _to_view(row) if row is not None else None


async def list_comment_views(
    db: AsyncSession, article_id: int, viewer_id: int | None
) -> list[CommentView]:
    """Comments on the article, newest first."""
    q = (
        comment_view_query(viewer_param(viewer_id))
        .where(Comment.article_id == article_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return [_to_view(row) for row in (await db.execute(q)).all()]


async def delete_comment(db: AsyncSession, comment: Comment) -> None:
    await db.delete(comment)
    await db.flush()
