from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from conduit.config import settings

# Ids are assigned from 1 upwards, so this never matches a stored row.
ANONYMOUS_USER_ID = -1

# Filter values accepted by the listing query.
FILTER_PATTERN = r"^[A-Za-z0-9]+$"
FILTER_MAX_LENGTH = 50


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty or whitespace only")
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]
TitleStr = Annotated[str, Field(max_length=300), AfterValidator(_not_blank)]


class CamelModel(BaseModel):
    """Base for API payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Viewer / User ---

class CurrentUser(BaseModel):
    """The authenticated caller as resolved by the auth collaborator."""

    id: int
    username: str
    bio: str | None = None
    image: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.id == ANONYMOUS_USER_ID


ANONYMOUS = CurrentUser(id=ANONYMOUS_USER_ID, username="")


class UserCreate(BaseModel):
    username: str = Field(max_length=100)
    email: str = Field(max_length=255)
    bio: str | None = None
    image: str | None = None


class Profile(CamelModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


# --- Article ---

class ArticleCreate(CamelModel):
    title: TitleStr
    description: NonBlankStr
    body: NonBlankStr
    tag_list: list[str] = []

    @field_validator("tag_list")
    @classmethod
    def check_unique_tags(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("must not contain duplicate tags")
        return value


class ArticleUpdate(CamelModel):
    title: TitleStr | None = None
    description: NonBlankStr | None = None
    body: NonBlankStr | None = None
    tag_list: list[str] | None = None

    @field_validator("tag_list")
    @classmethod
    def check_unique_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and len(set(value)) != len(value):
            raise ValueError("must not contain duplicate tags")
        return value


class ArticleFilters(BaseModel):
    """Listing filters and pagination, validated before reaching the store."""

    tag: str | None = Field(None, max_length=FILTER_MAX_LENGTH, pattern=FILTER_PATTERN)
    author: str | None = Field(None, max_length=FILTER_MAX_LENGTH, pattern=FILTER_PATTERN)
    favorited: str | None = Field(None, max_length=FILTER_MAX_LENGTH, pattern=FILTER_PATTERN)
    limit: int = Field(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
    offset: int = Field(0, ge=0)


class ArticleSummary(CamelModel):
    """List projection of an article; omits the body."""

    id: int = Field(exclude=True)
    author_id: int = Field(exclude=True)
    version: int = Field(exclude=True)
    slug: str
    title: str
    description: str
    tag_list: list[str] = []
    created_at: datetime
    updated_at: datetime
    favorited: bool = False
    favorites_count: int = 0
    author: Profile


class ArticleView(ArticleSummary):
    """Single-article projection, body included."""

    body: str


class ArticleList(CamelModel):
    articles: list[ArticleSummary]
    articles_count: int


# --- Comment ---

class CommentCreate(CamelModel):
    body: NonBlankStr


class CommentView(CamelModel):
    id: int
    created_at: datetime
    updated_at: datetime
    body: str
    author: Profile


# --- Request envelopes ---

class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class CommentCreateRequest(BaseModel):
    comment: CommentCreate
