"""
User service: the small slice of the user/profile store that the
article engine needs. It creates users, resolves profiles and manages the
follow relationship behind the ``following`` flag.

Uniqueness of username and email is enforced by the schema; callers
translate integrity errors into 409 responses.
"""
from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import insert_ignoring_conflicts
from conduit.errors import NotFoundError, StoreValidationError
from conduit.models import User, follows
from conduit.schemas import CurrentUser, Profile, UserCreate


def _user_to_current(user: User) -> CurrentUser:
    return CurrentUser(id=user.id, username=user.username, bio=user.bio, image=user.image)


def _profile(user: User, following: bool) -> Profile:
    return Profile(username=user.username, bio=user.bio, image=user.image, following=following)


async def create_user(db: AsyncSession, data: UserCreate) -> CurrentUser:
    user = User(username=data.username, email=data.email, bio=data.bio, image=data.image)
    db.add(user)
    await db.flush()
    return _user_to_current(user)


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def _require_user(db: AsyncSession, username: str) -> User:
    user = await get_user_by_username(db, username)
    if user is None:
        raise NotFoundError(f"profile {username!r} not found")
    return user


async def is_following(db: AsyncSession, follower_id: int, followed_id: int) -> bool:
    if follower_id == followed_id:
        return False
    q = select(
        exists().where(follows.c.follower_id == follower_id, follows.c.followed_id == followed_id)
    )
    return bool((await db.execute(q)).scalar())


async def get_profile(db: AsyncSession, username: str, viewer: CurrentUser) -> Profile:
    user = await _require_user(db, username)
    return _profile(user, await is_following(db, viewer.id, user.id))


async def follow(db: AsyncSession, follower: CurrentUser, username: str) -> Profile:
    """Follow *username*.  Following twice is a no-op."""
    user = await _require_user(db, username)
    if user.id == follower.id:
        raise StoreValidationError("users cannot follow themselves")
    await db.execute(
        insert_ignoring_conflicts(db, follows).values(follower_id=follower.id, followed_id=user.id)
    )
    return _profile(user, True)


async def unfollow(db: AsyncSession, follower: CurrentUser, username: str) -> Profile:
    user = await _require_user(db, username)
    await db.execute(
        delete(follows).where(follows.c.follower_id == follower.id, follows.c.followed_id == user.id)
    )
    return _profile(user, False)
