"""
Favorite toggling.

``articles.favorites_count`` mirrors the number of ``favorites`` rows for
the article.  The counter is never read-modify-written: it only moves when
the membership statement in the same transaction actually changed a row,

- favorite:   INSERT ... ON CONFLICT DO NOTHING, then +1 iff rowcount == 1
- unfavorite: DELETE, then -1 iff rowcount == 1 (guarded at zero)

so concurrent toggles from many users never lose or double an update, and
repeating the same toggle is a no-op.  Both functions expect to run inside
the caller's transaction.
"""
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import insert_ignoring_conflicts
from conduit.errors import NotFoundError
from conduit.models import Article, favorites


async def resolve_article_id(db: AsyncSession, slug: str) -> int:
    """Return the id of the article with *slug*, or raise NotFoundError."""
    article_id = (
        await db.execute(select(Article.id).where(Article.slug == slug))
    ).scalar_one_or_none()
    if article_id is None:
        raise NotFoundError(f"article {slug!r} not found")
    return article_id


async def favorite(db: AsyncSession, slug: str, user_id: int) -> int:
    """Record that *user_id* favorited *slug*; return the article id."""
    article_id = await resolve_article_id(db, slug)

    stmt = insert_ignoring_conflicts(db, favorites).values(user_id=user_id, article_id=article_id)
    result = await db.execute(stmt)

    if result.rowcount == 1:
        await db.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(favorites_count=Article.favorites_count + 1)
            .execution_options(synchronize_session=False)
        )
    return article_id


async def unfavorite(db: AsyncSession, slug: str, user_id: int) -> int:
    """Remove *user_id*'s favorite on *slug* if present; return the article id."""
    article_id = await resolve_article_id(db, slug)

    result = await db.execute(
        delete(favorites).where(
            favorites.c.user_id == user_id,
            favorites.c.article_id == article_id,
        )
    )

    if result.rowcount == 1:
        await db.execute(
            update(Article)
            .where(Article.id == article_id, Article.favorites_count > 0)
            .values(favorites_count=Article.favorites_count - 1)
            .execution_options(synchronize_session=False)
        )
    return article_id
