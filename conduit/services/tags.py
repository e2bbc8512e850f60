"""
Tag registry: the shared tag vocabulary and the article <-> tag links that
back the ``tag`` listing filter.
"""
from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import insert_ignoring_conflicts
from conduit.models import Tag, article_tags


async def upsert_tags(db: AsyncSession, names: list[str]) -> dict[str, int]:
    """
    Make sure every name in *names* exists in the registry and return a
    ``name -> id`` mapping.  Safe to repeat and to run concurrently.
    """
    if not names:
        return {}
    await db.execute(
        insert_ignoring_conflicts(db, Tag.__table__).values([{"name": name} for name in names])
    )
    rows = await db.execute(select(Tag.id, Tag.name).where(Tag.name.in_(names)))
    return {name: tag_id for tag_id, name in rows}


async def link_tags(db: AsyncSession, article_id: int, names: list[str]) -> None:
    """Replace the tag links of *article_id* with *names*."""
    await db.execute(delete(article_tags).where(article_tags.c.article_id == article_id))
    if not names:
        return
    tag_ids = await upsert_tags(db, names)
    await db.execute(
        insert(article_tags),
        [{"article_id": article_id, "tag_id": tag_ids[name]} for name in names],
    )


async def list_tags(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Tag.name).order_by(Tag.name))
    return list(result.scalars().all())
