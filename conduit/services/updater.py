"""
Optimistic-concurrency article updates.

The UPDATE is a compare-and-swap on ``(id, version)``: it only matches the
row the caller read, bumps ``version`` by one and stamps ``updated_at``.
No row matched means somebody else got there first (or the row is gone),
which is reported as ``EditConflictError``.  Retrying is the caller's call.
"""
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import EditConflictError
from conduit.models import Article, utcnow
from conduit.schemas import ArticleSummary, ArticleUpdate
from conduit.services.slug import regenerate_slug
from conduit.services.tags import link_tags


def pending_values(article: ArticleSummary, changes: ArticleUpdate) -> dict:
    """Column values *changes* would write, including a fresh slug on retitle."""
    values = changes.model_dump(exclude_unset=True, exclude_none=True)
    if "title" in values and values["title"] != article.title:
        values["slug"] = regenerate_slug(values["title"], article.slug)
    return values


async def apply_update(
    db: AsyncSession, article: ArticleSummary, changes: ArticleUpdate
) -> ArticleSummary:
    """
    Write *changes* over *article* if its version is still current.

    Returns a copy of *article* carrying the new field values, version and
    ``updated_at``.  Tag links are replaced in the same transaction, after
    the version check has passed.
    """
    values = pending_values(article, changes)

    stmt = (
        update(Article)
        .where(Article.id == article.id, Article.version == article.version)
        .values(**values, updated_at=utcnow(), version=Article.version + 1)
        .returning(Article.version, Article.updated_at)
        .execution_options(synchronize_session=False)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        raise EditConflictError(
            f"article {article.slug!r} was modified since version {article.version}"
        )

    if "tag_list" in values:
        await link_tags(db, article.id, values["tag_list"])

    return article.model_copy(
        update={**values, "version": row.version, "updated_at": row.updated_at}
    )
