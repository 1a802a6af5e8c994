from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import (
    AuthContext,
    PaginationParams,
    optional_auth,
    required_auth,
    viewer_id,
)
from conduit.schemas import (
    ArticleCreateRequest,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdateRequest,
    CommentCreateRequest,
    CommentListResponse,
    CommentResponse,
)
from conduit.services import article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.get("", response_model=ArticleListResponse)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None),
    favorited: str | None = Query(None),
    pagination: PaginationParams = Depends(),
    auth: AuthContext | None = Depends(optional_auth),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db,
        viewer_id(auth),
        tag=tag,
        author=author,
        favorited=favorited,
        limit=pagination.limit,
        offset=pagination.offset,
    )


# Declared before "/{slug}" so "feed" is not taken for a slug.
@router.get("/feed", response_model=ArticleListResponse)
async def feed_articles(
    pagination: PaginationParams = Depends(),
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.feed_articles(
        db, auth.user_id, limit=pagination.limit, offset=pagination.offset
    )


@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    auth: AuthContext | None = Depends(optional_auth),
    db: AsyncSession = Depends(get_db),
):
    return ArticleResponse(article=await article_service.get_article(db, slug, viewer_id(auth)))


@router.post("", response_model=ArticleResponse)
async def create_article(
    payload: ArticleCreateRequest,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.create_article(db, auth.user_id, payload.article)
    return ArticleResponse(article=article)


@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    payload: ArticleUpdateRequest,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.update_article(db, slug, auth.user_id, payload.article)
    return ArticleResponse(article=article)


@router.delete("/{slug}")
async def delete_article(
    slug: str,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, slug, auth.user_id)
    return {}


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.post("/{slug}/comments", response_model=CommentResponse)
async def add_comment(
    slug: str,
    payload: CommentCreateRequest,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.add_comment(db, slug, auth.user_id, payload.comment)
    return CommentResponse(comment=comment)


@router.get("/{slug}/comments", response_model=CommentListResponse)
async def get_comments(
    slug: str,
    auth: AuthContext | None = Depends(optional_auth),
    db: AsyncSession = Depends(get_db),
):
    comments = await comment_service.get_comments(db, slug, viewer_id(auth))
    return CommentListResponse(comments=comments)


@router.delete("/{slug}/comments/{comment_id}")
async def delete_comment(
    slug: str,
    comment_id: int,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, auth.user_id)
    return {}


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    return ArticleResponse(article=await article_service.favorite_article(db, slug, auth.user_id))


@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    return ArticleResponse(article=await article_service.unfavorite_article(db, slug, auth.user_id))
