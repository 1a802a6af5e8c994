"""
Comment service: comments on articles.

Any signed-in user may comment on any article.  Only the comment's author
may delete it, and only through the article it belongs to.
"""
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import ForbiddenError, NotFoundError
from conduit.repositories import article_repository, comment_repository
from conduit.schemas import Comment, CommentCreate
from conduit.services.serializers import to_comment


async def _article_id(db: AsyncSession, slug: str) -> int:
    article = await article_repository.get_by_slug(db, slug)
    if article is None:
        raise NotFoundError("article", slug)
    return article.id


async def add_comment(db: AsyncSession, slug: str, author_id: int, data: CommentCreate) -> Comment:
    article_id = await _article_id(db, slug)
    comment = await comment_repository.insert_comment(
        db, article_id=article_id, author_id=author_id, body=data.body
    )
    view = await comment_repository.get_comment_view(db, comment.id, author_id)
    return to_comment(view)


async def get_comments(db: AsyncSession, slug: str, viewer_id: int | None) -> list[Comment]:
    article_id = await _article_id(db, slug)
    views = await comment_repository.list_comment_views(db, article_id, viewer_id)
    return [to_comment(view) for view in views]


async def delete_comment(db: AsyncSession, slug: str, comment_id: int, user_id: int) -> None:
    """
    A comment id that exists but belongs to a different article is
    reported as not found, the same as an unknown id.
    """
    article_id = await _article_id(db, slug)
    comment = await comment_repository.get_by_id(db, comment_id)
    if comment is None or comment.article_id != article_id:
        raise NotFoundError("comment", comment_id)
    if comment.author_id != user_id:
        raise ForbiddenError("only the author can delete this comment")
    await comment_repository.delete_comment(db, comment)
