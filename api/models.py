"""
API request and response models for Conduit REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
content/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: every body is wrapped in a single named envelope
({"user": {...}}, {"article": {...}}) and uses camelCase keys where the
existing frontend expects them (tagList, favoritesCount, createdAt, ...).
Python attributes stay snake_case; aliases carry the wire names.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User
from content.models import Article

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[a-z0-9]+$"
EMAIL_PATTERN = r"^\S+@\S+\.\S+$"
DEFAULT_PROFILE_IMAGE = "https://static.productionready.io/images/smiley-cyrus.jpg"


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Users -- requests
# ---------------------------------------------------------------------------


class RegisterFields(BaseModel):
    username: str = Field(min_length=1, max_length=255, pattern=USERNAME_PATTERN)
    email: str = Field(min_length=1, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("username", "email", mode="before")
    @classmethod
    def normalize_case(cls, value):
        """Lowercase before the pattern check so "Ana" registers as "ana"."""
        return _lower(value)


class RegisterRequest(BaseModel):
    """Request body for POST /api/users."""

    user: RegisterFields


class LoginFields(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_case(cls, value):
        return _lower(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/users/login."""

    user: LoginFields


class UserUpdateFields(BaseModel):
    """Every field optional; only the ones sent are applied."""

    username: Optional[str] = Field(default=None, min_length=1, max_length=255, pattern=USERNAME_PATTERN)
    email: Optional[str] = Field(default=None, min_length=1, max_length=255, pattern=EMAIL_PATTERN)
    bio: Optional[str] = Field(default=None, max_length=2000)
    image: Optional[str] = Field(default=None, max_length=2000)
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @field_validator("username", "email", mode="before")
    @classmethod
    def normalize_case(cls, value):
        return _lower(value)


class UserUpdateRequest(BaseModel):
    """Request body for PUT /api/user."""

    user: UserUpdateFields


# ---------------------------------------------------------------------------
# Users -- responses
# ---------------------------------------------------------------------------


class UserBody(BaseModel):
    """The authenticated user's own view, including a freshly issued token."""

    username: str
    email: str
    token: str
    bio: Optional[str] = None
    image: Optional[str] = None

    @classmethod
    def from_user(cls, user: User, token: str) -> "UserBody":
        return cls(username=user.username, email=user.email, token=token, bio=user.bio, image=user.image)


class UserResponse(BaseModel):
    user: UserBody


class ProfileBody(BaseModel):
    """Public view of a user. `following` is always false; there is no follow graph."""

    username: str
    bio: Optional[str] = None
    image: str = DEFAULT_PROFILE_IMAGE
    following: bool = False

    @classmethod
    def from_user(cls, user: User) -> "ProfileBody":
        return cls(username=user.username, bio=user.bio, image=user.image or DEFAULT_PROFILE_IMAGE)


class ProfileResponse(BaseModel):
    profile: ProfileBody


# ---------------------------------------------------------------------------
# Articles -- requests
# ---------------------------------------------------------------------------


class ArticleCreateFields(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(min_length=1, max_length=500)
    description: str = Field(default="", max_length=2000)
    body: str = Field(default="", max_length=100_000)
    tag_list: list[str] = Field(default_factory=list, alias="tagList", max_length=20)


class ArticleCreateRequest(BaseModel):
    """Request body for POST /api/articles."""

    article: ArticleCreateFields


class ArticleUpdateFields(BaseModel):
    """Every field optional; only the ones sent are applied. There is no slug field."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=2000)
    body: Optional[str] = Field(default=None, max_length=100_000)
    tag_list: Optional[list[str]] = Field(default=None, alias="tagList", max_length=20)


class ArticleUpdateRequest(BaseModel):
    """Request body for PUT /api/articles/{slug}."""

    article: ArticleUpdateFields


# ---------------------------------------------------------------------------
# Articles -- responses
# ---------------------------------------------------------------------------


class ArticleBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = Field(alias="tagList")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    favorited: bool
    favorites_count: int = Field(alias="favoritesCount")
    author: ProfileBody

    @classmethod
    def from_article(cls, article: Article, author: User, viewer: Optional[User] = None) -> "ArticleBody":
        """Build the wire view of an article as seen by `viewer` (None = anonymous).

        Factory Method: the mapping lives here, colocated with the output
        model, rather than scattered across route handlers.
        """
        return cls(
            slug=article.slug,
            title=article.title,
            description=article.description,
            body=article.body,
            tag_list=article.tag_list,
            created_at=article.created_at,
            updated_at=article.updated_at,
            favorited=viewer.is_favorite(article.id) if viewer is not None else False,
            favorites_count=article.favorites_count,
            author=ProfileBody.from_user(author),
        )


class ArticleResponse(BaseModel):
    article: ArticleBody


class ArticleListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    articles: list[ArticleBody]
    articles_count: int = Field(alias="articlesCount")


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 401/403/404/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class FieldErrorResponse(BaseModel):
    """Field-scoped 422 envelope: {"errors": {"email": ["can't be blank"]}}."""

    model_config = ConfigDict(frozen=True)

    errors: dict[str, list[str]]


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
