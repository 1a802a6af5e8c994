"""Build wire schemas from ORM rows and repository views."""
from datetime import datetime, timezone

from conduit import schemas
from conduit.models import User
from conduit.repositories.article_repository import ArticleView
from conduit.repositories.comment_repository import CommentView


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_user_auth(user: User, token: str) -> schemas.UserAuth:
    return schemas.UserAuth(
        email=user.email,
        token=token,
        username=user.username,
        bio=user.bio,
        image=user.image,
    )


def to_profile(user: User, following: bool) -> schemas.Profile:
    return schemas.Profile(
        username=user.username,
        bio=user.bio,
        image=user.image,
        following=following,
    )


def to_article(view: ArticleView) -> schemas.Article:
    article = view.article
    return schemas.Article(
        slug=article.slug,
        title=article.title,
        description=article.description,
        body=article.body,
        tag_list=view.tag_list,
        created_at=as_utc(article.created_at),
        updated_at=as_utc(article.updated_at),
        favorited=view.favorited,
        favorites_count=view.favorites_count,
        author=to_profile(view.author, view.following),
    )


def to_comment(view: CommentView) -> schemas.Comment:
    comment = view.comment
    return schemas.Comment(
        id=comment.id,
        created_at=as_utc(comment.created_at),
        updated_at=as_utc(comment.updated_at),
        body=comment.body,
        author=to_profile(view.author, view.following),
    )
