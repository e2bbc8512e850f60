"""
Article read queries.

``ArticleQuery`` accumulates filter predicates for one viewer and compiles
them into exactly two statements:

1. The page SELECT: articles joined to their author, LEFT JOINed to the
   viewer's favorite row and the viewer's follow row.  The two outer joins
   turn into the per-row ``favorited`` / ``following`` flags, so a page is
   read in a single round trip whatever its size.
2. The COUNT, sharing the same WHERE clause but none of the joins.

Filters are ``EXISTS`` / scalar subqueries against aliased tables so they
never interfere with the author join of the page SELECT.  Anonymous
viewers carry ``ANONYMOUS_USER_ID``, which matches no row, so both flags
come out false without a special case.
"""
from __future__ import annotations

from sqlalchemy import Select, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from conduit.models import Article, Tag, User, article_tags, favorites, follows
from conduit.schemas import (
    ANONYMOUS_USER_ID,
    ArticleFilters,
    ArticleList,
    ArticleSummary,
    ArticleView,
    CurrentUser,
    Profile,
)

_author = aliased(User, name="author")
_author_lookup = aliased(User, name="author_lookup")
_favoriter = aliased(User, name="favoriter")
_viewer_favorite = favorites.alias("viewer_favorite")
_viewer_follow = follows.alias("viewer_follow")

_SUMMARY_COLUMNS = (
    Article.id,
    Article.slug,
    Article.title,
    Article.description,
    Article.tag_list,
    Article.created_at,
    Article.updated_at,
    Article.favorites_count,
    Article.version,
    Article.author_id,
    _author.username.label("author_username"),
    _author.bio.label("author_bio"),
    _author.image.label("author_image"),
)


class ArticleQuery:
    """Builder for filtered, viewer-aware article reads."""

    def __init__(self, viewer_id: int = ANONYMOUS_USER_ID) -> None:
        self.viewer_id = viewer_id
        self._predicates: list = []

    @classmethod
    def for_viewer(cls, viewer: CurrentUser) -> ArticleQuery:
        return cls(viewer.id)

    @classmethod
    def from_filters(cls, filters: ArticleFilters, viewer: CurrentUser) -> ArticleQuery:
        """Build a query with one predicate per filter actually supplied."""
        query = cls.for_viewer(viewer)
        if filters.tag:
            query.tagged(filters.tag)
        if filters.author:
            query.authored_by(filters.author)
        if filters.favorited:
            query.favorited_by(filters.favorited)
        return query

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def with_slug(self, slug: str) -> ArticleQuery:
        self._predicates.append(Article.slug == slug)
        return self

    def tagged(self, tag: str) -> ArticleQuery:
        self._predicates.append(
            select(article_tags.c.article_id)
            .join(Tag, Tag.id == article_tags.c.tag_id)
            .where(article_tags.c.article_id == Article.id, Tag.name == tag)
            .exists()
        )
        return self

    def authored_by(self, username: str) -> ArticleQuery:
        self._predicates.append(
            Article.author_id
            == select(_author_lookup.id).where(_author_lookup.username == username).scalar_subquery()
        )
        return self

    def favorited_by(self, username: str) -> ArticleQuery:
        self._predicates.append(
            select(favorites.c.article_id)
            .join(_favoriter, _favoriter.id == favorites.c.user_id)
            .where(favorites.c.article_id == Article.id, _favoriter.username == username)
            .exists()
        )
        return self

    def followed_by(self, user_id: int) -> ArticleQuery:
        """Restrict to articles whose author *user_id* follows (the feed)."""
        self._predicates.append(
            select(follows.c.followed_id)
            .where(follows.c.follower_id == user_id, follows.c.followed_id == Article.author_id)
            .exists()
        )
        return self

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def select_page(
        self, limit: int | None = None, offset: int = 0, include_body: bool = False
    ) -> Select:
        favorited = _viewer_favorite.c.user_id.is_not(None).label("favorited")
        # A user is never shown as following themselves.
        following = and_(
            _viewer_follow.c.follower_id.is_not(None),
            Article.author_id != self.viewer_id,
        ).label("following")

        columns = [*_SUMMARY_COLUMNS, favorited, following]
        if include_body:
            columns.append(Article.body)

        stmt = (
            select(*columns)
            .join(_author, _author.id == Article.author_id)
            .outerjoin(
                _viewer_favorite,
                and_(
                    _viewer_favorite.c.article_id == Article.id,
                    _viewer_favorite.c.user_id == self.viewer_id,
                ),
            )
            .outerjoin(
                _viewer_follow,
                and_(
                    _viewer_follow.c.followed_id == Article.author_id,
                    _viewer_follow.c.follower_id == self.viewer_id,
                ),
            )
            .where(*self._predicates)
            .order_by(Article.created_at.desc(), Article.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        return stmt

    def select_count(self) -> Select:
        return select(func.count()).select_from(Article).where(*self._predicates)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def _row_to_article(row, include_body: bool) -> ArticleSummary:
    author = Profile(
        username=row.author_username,
        bio=row.author_bio,
        image=row.author_image,
        following=bool(row.following),
    )
    fields = {
        "id": row.id,
        "author_id": row.author_id,
        "version": row.version,
        "slug": row.slug,
        "title": row.title,
        "description": row.description,
        "tag_list": list(row.tag_list or []),
        "created_at": row.created_at,
        "updated_at": row.updated_at,
        "favorited": bool(row.favorited),
        "favorites_count": row.favorites_count,
        "author": author,
    }
    if include_body:
        return ArticleView(body=row.body, **fields)
    return ArticleSummary(**fields)


async def fetch_page(
    db: AsyncSession, query: ArticleQuery, limit: int, offset: int
) -> ArticleList:
    """Run the page SELECT and its COUNT; an empty page is a valid result."""
    rows = (await db.execute(query.select_page(limit, offset))).all()
    total: int = (await db.execute(query.select_count())).scalar_one()
    return ArticleList(
        articles=[_row_to_article(row, include_body=False) for row in rows],
        articles_count=total,
    )


async def fetch_one(db: AsyncSession, query: ArticleQuery) -> ArticleView | None:
    """Return the first matching article with its body, or None."""
    row = (await db.execute(query.select_page(limit=1, include_body=True))).first()
    if row is None:
        return None
    return _row_to_article(row, include_body=True)
