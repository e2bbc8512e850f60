from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import (
    ArticleListParams,
    PaginationParams,
    get_current_user,
    get_store,
    require_user,
)
from conduit.errors import NotFoundError
from conduit.schemas import ArticleCreateRequest, ArticleUpdateRequest, CommentCreateRequest, CurrentUser
from conduit.services import comment_service
from conduit.services.article_store import ArticleStore

router = APIRouter(prefix="/api/articles", tags=["articles"])
tags_router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("")
async def list_articles(
    params: ArticleListParams = Depends(),
    viewer: CurrentUser = Depends(get_current_user),
    store: ArticleStore = Depends(get_store),
):
    return await store.list_articles(params.to_filters(), viewer)


@router.get("/feed")
async def feed_articles(
    pagination: PaginationParams = Depends(),
    user: CurrentUser = Depends(require_user),
    store: ArticleStore = Depends(get_store),
):
    return await store.feed(user, pagination.limit, pagination.offset)


@router.get("/{slug}")
async def get_article(
    slug: str,
    viewer: CurrentUser = Depends(get_current_user),
    store: ArticleStore = Depends(get_store),
):
    return {"article": await store.get_by_slug(slug, viewer)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_article(
    data: ArticleCreateRequest,
    response: Response,
    user: CurrentUser = Depends(require_user),
    store: ArticleStore = Depends(get_store),
):
    article = await store.insert(data.article, user)
    response.headers["Location"] = f"/api/articles/{article.slug}"
    return {"article": article}


@router.put("/{slug}")
async def update_article(
    slug: str,
    data: ArticleUpdateRequest,
    user: CurrentUser = Depends(require_user),
    store: ArticleStore = Depends(get_store),
):
    article = await store.get_by_slug(slug, user)
    if article.author_id != user.id:
        raise NotFoundError(f"article {slug!r} not found")
    return {"article": await store.update(article, data.article)}


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_article(
    slug: str,
    user: CurrentUser = Depends(require_user),
    store: ArticleStore = Depends(get_store),
):
    await store.delete_by_slug(slug, user.id)


@router.post("/{slug}/favorite")
async def favorite_article(
    slug: str,
    user: CurrentUser = Depends(require_user),
    store: ArticleStore = Depends(get_store),
):
    return {"article": await store.favorite_by_slug(slug, user.id)}


@router.delete("/{slug}/favorite")
async def unfavorite_article(
    slug: str,
    user: CurrentUser = Depends(require_user),
    store: ArticleStore = Depends(get_store),
):
    return {"article": await store.unfavorite_by_slug(slug, user.id)}


@router.get("/{slug}/comments")
async def list_comments(
    slug: str,
    viewer: CurrentUser = Depends(get_current_user),
    store: ArticleStore = Depends(get_store),
    db: AsyncSession = Depends(get_db),
):
    article_id = await store.get_id_by_slug(slug)
    return {"comments": await comment_service.list_comments(db, article_id, viewer)}


@router.post("/{slug}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    slug: str,
    data: CommentCreateRequest,
    user: CurrentUser = Depends(require_user),
    store: ArticleStore = Depends(get_store),
    db: AsyncSession = Depends(get_db),
):
    article_id = await store.get_id_by_slug(slug)
    return {"comment": await comment_service.add_comment(db, article_id, user, data.comment)}


@tags_router.get("")
async def list_tags(store: ArticleStore = Depends(get_store)):
    return {"tags": await store.list_tags()}
