import unicodedata
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError


class CamelModel(BaseModel):
    """Wire models use camelCase keys (``tagList``, ``createdAt``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Field rules shared by registration and profile update
# ---------------------------------------------------------------------------

MAX_USERNAME_LENGTH = 64
MAX_EMAIL_LENGTH = 64
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 64
MAX_TITLE_LENGTH = 300
MAX_TAG_LENGTH = 100


def _has_control_characters(value: str) -> bool:
    return any(unicodedata.category(ch) == "Cc" for ch in value)


def _check_username(value: str) -> str:
    if not value:
        raise ValueError("user name can't be blank")
    if len(value) > MAX_USERNAME_LENGTH:
        raise ValueError("too long user name")
    if _has_control_characters(value):
        raise ValueError("user name can't contain control characters")
    return value


def _check_email(value: str) -> str:
    if len(value) > MAX_EMAIL_LENGTH:
        raise ValueError("too long email address")
    return value


def _check_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(value) > MAX_PASSWORD_LENGTH:
        raise ValueError("too long password")
    if _has_control_characters(value):
        raise ValueError("password can't contain control characters")
    return value


def _check_not_blank(value: str, name: str) -> str:
    if not value.strip():
        raise ValueError(f"{name} can't be blank")
    return value


def _normalize_email(value: str) -> str:
    """
    Apply the same normalization as ``EmailStr`` (lowercased domain), so a
    login matches the stored address.  Anything that is not an email
    address is returned unchanged and simply finds no user.
    """
    try:
        return validate_email(value)[1]
    except PydanticCustomError:
        return value


# --- User ---

class UserRegistration(BaseModel):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def _username(cls, value: str) -> str:
        return _check_username(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return _check_password(value)

    @field_validator("email", mode="before")
    @classmethod
    def _email_length(cls, value):
        if isinstance(value, str):
            if not value:
                raise ValueError("email can't be blank")
            _check_email(value)
        return value


class RegistrationRequest(BaseModel):
    user: UserRegistration


class LoginCredentials(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _normalize_email(_check_not_blank(value, "email"))

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return _check_not_blank(value, "password")


class LoginRequest(BaseModel):
    user: LoginCredentials


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    username: str | None = None
    password: str | None = None
    bio: str | None = None
    image: str | None = None

    @field_validator("username")
    @classmethod
    def _username(cls, value: str | None) -> str | None:
        return None if value is None else _check_username(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str | None) -> str | None:
        return None if value is None else _check_password(value)

    @field_validator("email", mode="before")
    @classmethod
    def _email_length(cls, value):
        if isinstance(value, str):
            _check_email(value)
        return value


class UserUpdateRequest(BaseModel):
    user: UserUpdate


class UserAuth(BaseModel):
    email: str
    token: str
    username: str
    bio: str | None = None
    image: str | None = None


class UserResponse(BaseModel):
    user: UserAuth


# --- Profile ---

class Profile(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileResponse(BaseModel):
    profile: Profile


# --- Article ---

class ArticleCreate(CamelModel):
    title: str = Field(max_length=MAX_TITLE_LENGTH)
    description: str
    body: str
    tag_list: list[str] = Field(default_factory=list)

    @field_validator("title", "description", "body")
    @classmethod
    def _not_blank(cls, value: str, info) -> str:
        return _check_not_blank(value, info.field_name)

    @field_validator("tag_list")
    @classmethod
    def _tags_not_blank(cls, value: list[str]) -> list[str]:
        for name in value:
            _check_not_blank(name, "tag")
            if len(name) > MAX_TAG_LENGTH:
                raise ValueError("too long tag")
        return value


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdate(CamelModel):
    title: str | None = Field(None, max_length=MAX_TITLE_LENGTH)
    description: str | None = None
    body: str | None = None

    @field_validator("title", "description", "body")
    @classmethod
    def _not_blank(cls, value: str | None, info) -> str | None:
        return None if value is None else _check_not_blank(value, info.field_name)


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class Article(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str]
    created_at: datetime
    updated_at: datetime
    favorited: bool
    favorites_count: int
    author: Profile


class ArticleResponse(BaseModel):
    article: Article


class ArticleListResponse(CamelModel):
    articles: list[Article]
    articles_count: int


# --- Comment ---

class CommentCreate(BaseModel):
    body: str

    @field_validator("body")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _check_not_blank(value, "body")


class CommentCreateRequest(BaseModel):
    comment: CommentCreate


class Comment(CamelModel):
    id: int
    created_at: datetime
    updated_at: datetime
    body: str
    author: Profile


class CommentResponse(BaseModel):
    comment: Comment


class CommentListResponse(BaseModel):
    comments: list[Comment]


# --- Tag ---

class TagListResponse(BaseModel):
    tags: list[str]
