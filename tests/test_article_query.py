"""
Listing: filter composition, viewer flags, ordering, pagination/count
agreement and the two statements each page costs.
"""
import pytest
import pytest_asyncio
from sqlalchemy import event, update

from conduit.errors import StoreValidationError
from conduit.models import Article
from conduit.schemas import ANONYMOUS, ArticleFilters
from conduit.services.article_query import ArticleQuery


@pytest_asyncio.fixture
async def corpus(store, make_user, make_article, make_follow):
    """
    alice: "Go Basics" [golang], "Go Channels" [golang, concurrency]
    bob:   "Rust Intro" [rust]
    carol follows alice and favorited "Go Channels" and "Rust Intro".
    """
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    basics = await make_article(alice, "Go Basics", tags=["golang"])
    channels = await make_article(alice, "Go Channels", tags=["golang", "concurrency"])
    rust = await make_article(bob, "Rust Intro", tags=["rust"])
    await make_follow(carol, alice)
    await store.favorite_by_slug(channels.slug, carol.id)
    await store.favorite_by_slug(rust.slug, carol.id)
    return {
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "basics": basics,
        "channels": channels,
        "rust": rust,
    }


def _titles(page):
    return [a.title for a in page.articles]


@pytest.mark.asyncio
async def test_list_all_newest_first(store, corpus):
    page = await store.list_articles(ArticleFilters())
    assert _titles(page) == ["Rust Intro", "Go Channels", "Go Basics"]
    assert page.articles_count == 3


@pytest.mark.asyncio
async def test_list_by_tag_with_viewer_flags(store, corpus):
    carol = corpus["carol"]
    page = await store.list_articles(ArticleFilters(tag="golang"), carol)

    assert _titles(page) == ["Go Channels", "Go Basics"]
    by_title = {a.title: a for a in page.articles}
    assert by_title["Go Channels"].favorited is True
    assert by_title["Go Basics"].favorited is False
    assert all(a.author.following for a in page.articles)
    assert by_title["Go Channels"].favorites_count == 1


@pytest.mark.asyncio
async def test_list_by_author(store, corpus):
    page = await store.list_articles(ArticleFilters(author="bob"))
    assert _titles(page) == ["Rust Intro"]
    assert page.articles_count == 1


@pytest.mark.asyncio
async def test_list_by_unknown_author_is_empty(store, corpus):
    page = await store.list_articles(ArticleFilters(author="nobody"))
    assert page.articles == []
    assert page.articles_count == 0


@pytest.mark.asyncio
async def test_list_favorited_by(store, corpus):
    page = await store.list_articles(ArticleFilters(favorited="carol"))
    assert _titles(page) == ["Rust Intro", "Go Channels"]


@pytest.mark.asyncio
async def test_filters_combine_conjunctively(store, corpus):
    page = await store.list_articles(
        ArticleFilters(tag="golang", author="alice", favorited="carol"), corpus["bob"]
    )
    assert _titles(page) == ["Go Channels"]
    assert page.articles[0].favorited is False
    assert page.articles[0].author.following is False


@pytest.mark.asyncio
async def test_anonymous_viewer_sees_no_flags(store, corpus):
    page = await store.list_articles(ArticleFilters(), ANONYMOUS)
    assert not any(a.favorited for a in page.articles)
    assert not any(a.author.following for a in page.articles)


@pytest.mark.asyncio
async def test_author_never_shown_following_themselves(store, corpus, make_follow):
    alice = corpus["alice"]
    await make_follow(alice, alice)

    page = await store.list_articles(ArticleFilters(author="alice"), alice)
    assert page.articles_count == 2
    assert not any(a.author.following for a in page.articles)


@pytest.mark.asyncio
async def test_list_projection_omits_body(store, corpus):
    page = await store.list_articles(ArticleFilters())
    payload = page.model_dump(by_alias=True)
    article = payload["articles"][0]
    assert "body" not in article
    assert {"slug", "tagList", "favoritesCount", "createdAt", "author"} <= set(article)
    assert "id" not in article and "version" not in article
    assert "articlesCount" in payload


@pytest.mark.asyncio
async def test_pagination_count_ignores_limit_and_offset(store, make_user, make_article):
    alice = await make_user("alice")
    for i in range(7):
        await make_article(alice, f"Post {i}", tags=["paged"])

    first = await store.list_articles(ArticleFilters(tag="paged", limit=3))
    second = await store.list_articles(ArticleFilters(tag="paged", limit=3, offset=3))
    last = await store.list_articles(ArticleFilters(tag="paged", limit=3, offset=6))
    past_end = await store.list_articles(ArticleFilters(tag="paged", limit=3, offset=30))

    assert [p.articles_count for p in (first, second, last, past_end)] == [7, 7, 7, 7]
    assert _titles(first) == ["Post 6", "Post 5", "Post 4"]
    assert _titles(second) == ["Post 3", "Post 2", "Post 1"]
    assert _titles(last) == ["Post 0"]
    assert past_end.articles == []


@pytest.mark.asyncio
async def test_identical_created_at_breaks_ties_by_id(store, make_user, make_article, session_factory):
    alice = await make_user("alice")
    first = await make_article(alice, "First")
    second = await make_article(alice, "Second")
    async with session_factory() as session, session.begin():
        await session.execute(
            update(Article)
            .where(Article.id == second.id)
            .values(created_at=first.created_at)
            .execution_options(synchronize_session=False)
        )

    page = await store.list_articles(ArticleFilters())
    assert [a.id for a in page.articles] == [second.id, first.id]


@pytest.mark.asyncio
async def test_page_is_read_with_two_selects(store, corpus, engine):
    statements: list[str] = []

    def _capture(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            statements.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", _capture)
    try:
        await store.list_articles(ArticleFilters(tag="golang"), corpus["carol"])
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", _capture)

    assert len(statements) == 2


@pytest.mark.asyncio
async def test_feed_lists_followed_authors_only(store, corpus):
    page = await store.feed(corpus["carol"])
    assert _titles(page) == ["Go Channels", "Go Basics"]
    assert page.articles_count == 2

    assert (await store.feed(corpus["bob"])).articles_count == 0


@pytest.mark.asyncio
async def test_store_rejects_out_of_range_page(store):
    with pytest.raises(StoreValidationError):
        await store.feed(ANONYMOUS, limit=0)
    with pytest.raises(StoreValidationError):
        await store.list_articles(ArticleFilters.model_construct(limit=10, offset=-1))


def test_count_statement_has_no_joins():
    query = ArticleQuery(viewer_id=5).tagged("golang").authored_by("alice")
    sql = str(query.select_count())
    assert "JOIN viewer_favorite" not in sql.replace("\n", " ")
    assert "viewer_follow" not in sql
    assert sql.count("JOIN") == 1  # only inside the tag EXISTS subquery
