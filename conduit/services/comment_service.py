"""
Comment service: append-only comments on an article.

The caller resolves the article slug through ``ArticleStore.get_id_by_slug``
first, so a missing article is reported before anything is written.
"""
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from conduit.models import Comment, User, follows
from conduit.schemas import CommentCreate, CommentView, CurrentUser, Profile

_viewer_follow = follows.alias("viewer_follow")


async def add_comment(
    db: AsyncSession,
    article_id: int,
    author: CurrentUser,
    data: CommentCreate,
) -> CommentView:
    comment = Comment(body=data.body, article_id=article_id, author_id=author.id)
    db.add(comment)
    await db.flush()

    return CommentView(
        id=comment.id,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        body=comment.body,
        author=Profile(username=author.username, bio=author.bio, image=author.image),
    )


async def list_comments(
    db: AsyncSession, article_id: int, viewer: CurrentUser
) -> list[CommentView]:
    """
    Return the article's comments, oldest first, each with its author's
    profile as *viewer* sees it.  One query, like the article listing.
    """
    author = aliased(User, name="author")
    q = (
        select(
            Comment,
            author.username,
            author.bio,
            author.image,
            and_(
                _viewer_follow.c.follower_id.is_not(None),
                Comment.author_id != viewer.id,
            ).label("following"),
        )
        .join(author, author.id == Comment.author_id)
        .outerjoin(
            _viewer_follow,
            and_(
                _viewer_follow.c.followed_id == Comment.author_id,
                _viewer_follow.c.follower_id == viewer.id,
            ),
        )
        .where(Comment.article_id == article_id)
        .order_by(Comment.created_at, Comment.id)
    )
    result = await db.execute(q)
    return [
        CommentView(
            id=comment.id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            body=comment.body,
            author=Profile(username=username, bio=bio, image=image, following=bool(following)),
        )
        for comment, username, bio, image, following in result.all()
    ]
