"""
Direct service and repository tests, without the HTTP layer.

These call the service functions with a live session, which makes it
easy to inspect rows the API never exposes (tag links, favorite edges)
and to exercise the anonymous-viewer paths of the shared read fragments.
"""
import pytest
from sqlalchemy import event, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conduit.database import after_commit, session_dependency
from conduit.exceptions import (
    AuthenticationError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from conduit.models import Comment, Tag, article_favs, article_tags, follows
from conduit.repositories import article_repository, user_repository
from conduit.schemas import (
    ArticleCreate,
    ArticleUpdate,
    CommentCreate,
    LoginCredentials,
    UserRegistration,
    UserUpdate,
)
from conduit.security import TokenService
from conduit.services import (
    article_service,
    comment_service,
    profile_service,
    tag_service,
    user_service,
)
from conduit.services.article_service import slugify

KEY = "service-test-signing-key-long-enough"
tokens = TokenService(KEY, KEY)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _user(db: AsyncSession, username: str) -> int:
    auth = await user_service.register(
        db,
        tokens,
        UserRegistration(username=username, email=f"{username}@example.com", password="password1"),
    )
    return tokens.verify(auth.token)


async def _article(db: AsyncSession, author_id: int, title: str, tags=None):
    return await article_service.create_article(
        db,
        author_id,
        ArticleCreate(title=title, description="d", body="b", tag_list=tags or []),
    )


async def _count(db: AsyncSession, table) -> int:
    return (await db.execute(select(func.count()).select_from(table))).scalar_one()


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "title, expected",
    [
        ("Hello World", "hello-world"),
        ("  Leading and trailing  ", "leading-and-trailing"),
        ("What's new in 3.12?", "what-s-new-in-3-12"),
        ("snake_case_title", "snake-case-title"),
        ("Crème brûlée", "crème-brûlée"),
        ("!!!", ""),
    ],
)
def test_slugify(title, expected):
    assert slugify(title) == expected


@pytest.mark.asyncio
async def test_punctuation_only_title_gets_fallback_slug(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    article = await _article(db_session, alice, "???")
    assert article.slug == "article"


# ---------------------------------------------------------------------------
# user_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_stores_digest_not_password(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    user = await user_repository.get_by_id(db_session, alice)
    assert user.password_hash != "password1"
    assert user.password_hash.startswith("$argon2id$")


@pytest.mark.asyncio
async def test_register_duplicate_reports_both_fields(db_session: AsyncSession):
    await _user(db_session, "alice")
    with pytest.raises(ValidationError) as exc:
        await user_service.register(
            db_session,
            tokens,
            UserRegistration(username="alice", email="alice@example.com", password="password1"),
        )
    assert exc.value.errors == {
        "username": ["has already been taken"],
        "email": ["has already been taken"],
    }


@pytest.mark.asyncio
async def test_login_unknown_email(db_session: AsyncSession):
    with pytest.raises(ForbiddenError):
        await user_service.login(
            db_session, tokens, LoginCredentials(email="nobody@example.com", password="password1")
        )


@pytest.mark.asyncio
async def test_update_user_ignores_unset_fields(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    updated = await user_service.update_user(db_session, alice, "tok", UserUpdate(bio="hi"))
    assert updated.bio == "hi"
    assert updated.username == "alice"
    assert updated.token == "tok"


@pytest.mark.asyncio
async def test_current_user_deleted_after_token_issued(db_session: AsyncSession):
    with pytest.raises(AuthenticationError):
        await user_service.get_current_user(db_session, 12345, "tok")


# ---------------------------------------------------------------------------
# profile_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_follow_inserts_single_edge(db_session: AsyncSession):
    await _user(db_session, "alice")
    bob = await _user(db_session, "bob")
    await profile_service.follow(db_session, "alice", bob)
    await profile_service.follow(db_session, "alice", bob)
    assert await _count(db_session, follows) == 1

    profile = await profile_service.get_profile(db_session, "alice", bob)
    assert profile.following is True
    anonymous = await profile_service.get_profile(db_session, "alice", None)
    assert anonymous.following is False


@pytest.mark.asyncio
async def test_unfollow_unknown_user(db_session: AsyncSession):
    bob = await _user(db_session, "bob")
    with pytest.raises(NotFoundError):
        await profile_service.unfollow(db_session, "nobody", bob)


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_anonymous_viewer_flags_are_false(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    bob = await _user(db_session, "bob")
    article = await _article(db_session, alice, "Flags")
    await article_service.favorite_article(db_session, article.slug, bob)
    await profile_service.follow(db_session, "alice", bob)

    seen = await article_service.get_article(db_session, article.slug, None)
    assert seen.favorited is False
    assert seen.favorites_count == 1
    assert seen.author.following is False

    as_bob = await article_service.get_article(db_session, article.slug, bob)
    assert as_bob.favorited is True
    assert as_bob.author.following is True


@pytest.mark.asyncio
async def test_update_article_with_nothing_to_change(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    article = await _article(db_session, alice, "Same")
    updated = await article_service.update_article(db_session, article.slug, alice, ArticleUpdate())
    assert updated.title == "Same"
    assert updated.slug == article.slug


@pytest.mark.asyncio
async def test_delete_article_removes_dependent_rows(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    bob = await _user(db_session, "bob")
    article = await _article(db_session, alice, "Cascade", tags=["x", "y"])
    await article_service.favorite_article(db_session, article.slug, bob)
    await comment_service.add_comment(db_session, article.slug, bob, CommentCreate(body="hi"))

    await article_service.delete_article(db_session, article.slug, alice)

    assert await _count(db_session, article_tags) == 0
    assert await _count(db_session, article_favs) == 0
    assert await _count(db_session, Comment.__table__) == 0
    assert await article_repository.get_by_slug(db_session, article.slug) is None
    # Tags themselves are kept for reuse.
    assert await _count(db_session, Tag.__table__) == 2


@pytest.mark.asyncio
async def test_delete_article_by_other_user(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    bob = await _user(db_session, "bob")
    article = await _article(db_session, alice, "Protected")
    with pytest.raises(ForbiddenError):
        await article_service.delete_article(db_session, article.slug, bob)


@pytest.mark.asyncio
async def test_taken_suffixed_slug_is_retried(db_session: AsyncSession, monkeypatch):
    """A suffix that collides with an existing slug moves on to a fresh one."""
    suffixes = iter(["aaaaaa", "aaaaaa", "bbbbbb"])
    monkeypatch.setattr(article_service.secrets, "token_hex", lambda nbytes: next(suffixes))
    alice = await _user(db_session, "alice")

    slugs = [(await _article(db_session, alice, "Hello World")).slug for _ in range(3)]

    assert slugs == ["hello-world", "hello-world-aaaaaa", "hello-world-bbbbbb"]
    assert await _count(db_session, article_tags) == 0


@pytest.mark.asyncio
async def test_slug_allocation_gives_up(db_session: AsyncSession, monkeypatch):
    monkeypatch.setattr(article_service.secrets, "token_hex", lambda nbytes: "aaaaaa")
    alice = await _user(db_session, "alice")
    await _article(db_session, alice, "Hello World")
    await _article(db_session, alice, "Hello World")

    with pytest.raises(InternalError):
        await _article(db_session, alice, "Hello World")
    page = await article_service.list_articles(db_session, None, limit=20, offset=0)
    assert page.articles_count == 2


# ---------------------------------------------------------------------------
# Request transaction
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_after_commit_callbacks_run_after_commit(db_session: AsyncSession):
    factory = async_sessionmaker(db_session.bind, class_=AsyncSession, expire_on_commit=False)
    events = []

    async def _callback():
        events.append("callback")

    request_scope = session_dependency(factory)()
    session = await request_scope.__anext__()
    event.listen(session.sync_session, "after_commit", lambda _: events.append("commit"))
    await session.execute(text("SELECT 1"))
    after_commit(session, _callback)
    assert events == []

    with pytest.raises(StopAsyncIteration):
        await request_scope.__anext__()
    assert events == ["commit", "callback"]


@pytest.mark.asyncio
async def test_after_commit_callbacks_skipped_on_rollback(db_session: AsyncSession):
    factory = async_sessionmaker(db_session.bind, class_=AsyncSession, expire_on_commit=False)
    events = []

    async def _callback():
        events.append("callback")

    request_scope = session_dependency(factory)()
    session = await request_scope.__anext__()
    after_commit(session, _callback)

    with pytest.raises(RuntimeError):
        await request_scope.athrow(RuntimeError("handler failed"))
    assert events == []


@pytest.mark.asyncio
async def test_list_articles_total_ignores_paging(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    for i in range(4):
        await _article(db_session, alice, f"n{i}")
    page = await article_service.list_articles(db_session, None, limit=1, offset=2)
    assert page.articles_count == 4
    assert [a.slug for a in page.articles] == ["n1"]


@pytest.mark.asyncio
async def test_feed_page_past_end_keeps_total(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    bob = await _user(db_session, "bob")
    await _article(db_session, alice, "followed")
    await profile_service.follow(db_session, "alice", bob)
    page = await article_service.feed_articles(db_session, bob, limit=5, offset=5)
    assert page.articles == []
    assert page.articles_count == 1


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_comment_by_other_user(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    bob = await _user(db_session, "bob")
    article = await _article(db_session, alice, "Talk")
    comment = await comment_service.add_comment(db_session, article.slug, bob, CommentCreate(body="b"))
    with pytest.raises(ForbiddenError):
        await comment_service.delete_comment(db_session, article.slug, comment.id, alice)


@pytest.mark.asyncio
async def test_get_comments_unknown_article(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await comment_service.get_comments(db_session, "missing", None)


# ---------------------------------------------------------------------------
# tag_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_popular_tags_without_cache(db_session: AsyncSession):
    alice = await _user(db_session, "alice")
    await _article(db_session, alice, "one", tags=["b", "a"])
    await _article(db_session, alice, "two", tags=["b"])
    assert await tag_service.popular_tags(db_session) == ["b", "a"]
