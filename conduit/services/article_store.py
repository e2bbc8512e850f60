"""
ArticleStore: the single entry point the HTTP layer uses for articles.

Each public method owns exactly one transaction (one ``AsyncSession`` plus
``session.begin()``), bounded by ``asyncio.timeout(self.timeout)``.  Leaving
the transaction block through any exception, including the timeout's or a
caller's cancellation, rolls the transaction back.  There is no in-process
locking or caching; the database transaction is the unit of concurrency
control.

The store does not log.  Failures surface as ``conduit.errors`` types, and
driver errors / ``TimeoutError`` propagate unchanged.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conduit.config import settings
from conduit.errors import DuplicateError, NotFoundError, StoreValidationError
from conduit.models import Article
from conduit.schemas import (
    ANONYMOUS,
    ArticleCreate,
    ArticleFilters,
    ArticleList,
    ArticleSummary,
    ArticleUpdate,
    ArticleView,
    CurrentUser,
)
from conduit.services import favorites, tags
from conduit.services.article_query import ArticleQuery, fetch_one, fetch_page
from conduit.services.slug import generate_slug
from conduit.services.updater import apply_update


def _is_slug_conflict(exc: IntegrityError) -> bool:
    return "slug" in str(exc.orig).lower()


def _check_tags(tag_list: list[str]) -> None:
    if len(set(tag_list)) != len(tag_list):
        raise StoreValidationError("tag list must not contain duplicates")


def _check_page(limit: int, offset: int) -> None:
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise StoreValidationError(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
    if offset < 0:
        raise StoreValidationError("offset must not be negative")


class ArticleStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.timeout = settings.DB_TIMEOUT_SECONDS if timeout is None else timeout

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with asyncio.timeout(self.timeout):
            async with self._session_factory() as db:
                async with db.begin():
                    yield db

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, data: ArticleCreate, author: CurrentUser) -> ArticleView:
        """
        Create an article owned by *author* and return it as *author* sees it.

        The slug suffix is random and not pre-checked.  If it collides, the
        insert is retried with a new suffix, up to ``SLUG_MAX_ATTEMPTS``
        attempts in separate transactions, then ``DuplicateError``.
        """
        _check_tags(data.tag_list)

        for _ in range(settings.SLUG_MAX_ATTEMPTS):
            slug = generate_slug(data.title)
            try:
                async with self._transaction() as db:
                    article = Article(
                        slug=slug,
                        title=data.title,
                        description=data.description,
                        body=data.body,
                        tag_list=list(data.tag_list),
                        author_id=author.id,
                    )
                    db.add(article)
                    await db.flush()
                    await tags.link_tags(db, article.id, data.tag_list)
                    return await fetch_one(db, ArticleQuery.for_viewer(author).with_slug(slug))
            except IntegrityError as exc:
                if not _is_slug_conflict(exc):
                    raise

        raise DuplicateError(
            f"could not assign a unique slug after {settings.SLUG_MAX_ATTEMPTS} attempts"
        )

    async def update(self, article: ArticleSummary, changes: ArticleUpdate) -> ArticleSummary:
        """
        Apply *changes* to *article*, which must carry the version the
        caller read.  Raises ``EditConflictError`` on a stale version and
        ``DuplicateError`` if the regenerated slug collides.

        New tag names go into the registry first, in their own transaction,
        whether or not the versioned update then succeeds.
        """
        if changes.tag_list is not None:
            _check_tags(changes.tag_list)
            async with self._transaction() as db:
                await tags.upsert_tags(db, changes.tag_list)

        try:
            async with self._transaction() as db:
                return await apply_update(db, article, changes)
        except IntegrityError as exc:
            if _is_slug_conflict(exc):
                raise DuplicateError(f"slug for {changes.title!r} is already taken") from exc
            raise

    async def delete_by_slug(self, slug: str, author_id: int) -> None:
        """
        Hard-delete the article if *author_id* wrote it.  Anybody else gets
        ``NotFoundError`` so existence is not leaked to non-owners.
        """
        async with self._transaction() as db:
            result = await db.execute(
                delete(Article).where(Article.slug == slug, Article.author_id == author_id)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"article {slug!r} not found")

    async def favorite_by_slug(self, slug: str, user_id: int) -> ArticleView:
        async with self._transaction() as db:
            await favorites.favorite(db, slug, user_id)
            return await self._reload(db, slug, user_id)

    async def unfavorite_by_slug(self, slug: str, user_id: int) -> ArticleView:
        async with self._transaction() as db:
            await favorites.unfavorite(db, slug, user_id)
            return await self._reload(db, slug, user_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_slug(self, slug: str, viewer: CurrentUser = ANONYMOUS) -> ArticleView:
        async with self._transaction() as db:
            article = await fetch_one(db, ArticleQuery.for_viewer(viewer).with_slug(slug))
        if article is None:
            raise NotFoundError(f"article {slug!r} not found")
        return article

    async def get_id_by_slug(self, slug: str) -> int:
        async with self._transaction() as db:
            return await favorites.resolve_article_id(db, slug)

    async def list_articles(
        self, filters: ArticleFilters, viewer: CurrentUser = ANONYMOUS
    ) -> ArticleList:
        """Filtered page of articles, newest first, plus the total match count."""
        _check_page(filters.limit, filters.offset)
        query = ArticleQuery.from_filters(filters, viewer)
        async with self._transaction() as db:
            return await fetch_page(db, query, filters.limit, filters.offset)

    async def feed(
        self,
        viewer: CurrentUser,
        limit: int = settings.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> ArticleList:
        """Articles written by the authors *viewer* follows, newest first."""
        _check_page(limit, offset)
        query = ArticleQuery.for_viewer(viewer).followed_by(viewer.id)
        async with self._transaction() as db:
            return await fetch_page(db, query, limit, offset)

    async def list_tags(self) -> list[str]:
        async with self._transaction() as db:
            return await tags.list_tags(db)

    async def _reload(self, db: AsyncSession, slug: str, viewer_id: int) -> ArticleView:
        article = await fetch_one(db, ArticleQuery(viewer_id).with_slug(slug))
        if article is None:
            raise NotFoundError(f"article {slug!r} not found")
        return article
