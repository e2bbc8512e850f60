from fastapi import Depends, HTTPException, Query, Request, status

from conduit.config import settings
from conduit.database import async_session
from conduit.schemas import (
    ANONYMOUS,
    FILTER_MAX_LENGTH,
    FILTER_PATTERN,
    ArticleFilters,
    CurrentUser,
)
from conduit.services.article_store import ArticleStore

# One store per process; it holds no state beyond the session factory.
_store = ArticleStore(async_session)


def get_store() -> ArticleStore:
    return _store


def get_current_user(request: Request) -> CurrentUser:
    """
    Return the caller resolved by the authentication middleware, which
    stores it on ``request.state.user``.  Unauthenticated requests get the
    anonymous sentinel.
    """
    return getattr(request.state, "user", None) or ANONYMOUS


def require_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authentication required",
        )
    return user


class PaginationParams:
    """
    Reusable FastAPI dependency for ``limit`` / ``offset`` query parameters.

    ``limit`` is clamped to ``settings.MAX_PAGE_SIZE`` even if the
    declared bound is later relaxed.
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of articles returned.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles skipped.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


class ArticleListParams(PaginationParams):
    """
    Query parameters for ``GET /api/articles``.

    Attributes
    ----------
    tag:
        Only articles carrying this tag.
    author:
        Only articles written by this username.
    favorited:
        Only articles favorited by this username.
    """

    def __init__(
        self,
        tag: str | None = Query(None, max_length=FILTER_MAX_LENGTH, pattern=FILTER_PATTERN),
        author: str | None = Query(None, max_length=FILTER_MAX_LENGTH, pattern=FILTER_PATTERN),
        favorited: str | None = Query(None, max_length=FILTER_MAX_LENGTH, pattern=FILTER_PATTERN),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
        offset: int = Query(0, ge=0),
    ) -> None:
        super().__init__(limit=limit, offset=offset)
        self.tag = tag
        self.author = author
        self.favorited = favorited

    def to_filters(self) -> ArticleFilters:
        return ArticleFilters(
            tag=self.tag,
            author=self.author,
            favorited=self.favorited,
            limit=self.limit,
            offset=self.offset,
        )
