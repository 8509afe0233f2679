"""Tests for FeedService: feeds, post CRUD and cache coherence."""

from datetime import UTC, datetime, timedelta

import pytest

from postcomment.core.exceptions import NotFoundError
from postcomment.core.pagination import SENTINEL_ID
from postcomment.posts.schemas import PostQuery


BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def _ids(page) -> list[int]:
    return [post.id for post in page]


class TestFeedPages:
    """Keyset feed over all posts."""

    @pytest.mark.asyncio
    async def test_three_posts_newest_first(self, feed_service, make_post):
        make_post(1, minutes=1)
        make_post(2, minutes=2)
        make_post(3, minutes=3)

        assert _ids(await feed_service.get_feed_page(SENTINEL_ID)) == [3, 2, 1]
        assert _ids(await feed_service.get_feed_page(2)) == [1]
        assert await feed_service.get_feed_page(1) == []

    @pytest.mark.asyncio
    async def test_unknown_reference_not_found(self, feed_service, make_post):
        make_post(1)
        with pytest.raises(NotFoundError):
            await feed_service.get_feed_page(404)

    @pytest.mark.asyncio
    async def test_same_timestamp_pages_do_not_overlap(self, feed_service, make_post):
        for post_id in range(1, 13):
            make_post(post_id)

        first = _ids(await feed_service.get_feed_page(SENTINEL_ID))
        second = _ids(await feed_service.get_feed_page(first[-1]))

        assert first == list(range(12, 2, -1))
        assert second == [2, 1]

    @pytest.mark.asyncio
    async def test_latest_page_served_from_cache(
        self, feed_service, make_post, cache_store
    ):
        make_post(1)
        await feed_service.get_feed_page(SENTINEL_ID)
        make_post(2, minutes=5)

        assert _ids(await feed_service.get_feed_page(SENTINEL_ID)) == [1]
        assert cache_store.ttls["post:latest"] == 300

    @pytest.mark.asyncio
    async def test_older_pages_not_cached(self, feed_service, make_post, cache_store):
        make_post(1)
        make_post(2, minutes=1)
        await feed_service.get_feed_page(2)
        assert cache_store.data == {}

    @pytest.mark.asyncio
    async def test_create_post_invalidates_latest(self, feed_service, make_post):
        make_post(1)
        await feed_service.get_feed_page(SENTINEL_ID)

        created = await feed_service.create_post("New", "Fresh", author_id=9)

        latest = await feed_service.get_feed_page(SENTINEL_ID)
        assert _ids(latest) == [created.id, 1]

    @pytest.mark.asyncio
    async def test_cache_outage_does_not_fail_reads(
        self, feed_service, make_post, cache_store
    ):
        make_post(1)
        cache_store.failing = True
        assert _ids(await feed_service.get_feed_page(SENTINEL_ID)) == [1]


class TestAuthorFeed:
    @pytest.mark.asyncio
    async def test_only_author_posts(self, feed_service, make_post):
        make_post(1, minutes=1, author_id=10)
        make_post(2, minutes=2, author_id=20)
        make_post(3, minutes=3, author_id=10)

        page = await feed_service.get_author_feed_page(10, SENTINEL_ID)
        assert _ids(page) == [3, 1]
        assert _ids(await feed_service.get_author_feed_page(10, 3)) == [1]

    @pytest.mark.asyncio
    async def test_reference_from_other_author_not_found(
        self, feed_service, make_post
    ):
        make_post(1, author_id=10)
        make_post(2, author_id=20)
        with pytest.raises(NotFoundError):
            await feed_service.get_author_feed_page(10, 2)


class TestFilterPosts:
    @pytest.fixture(autouse=True)
    def posts(self, make_post):
        make_post(1, minutes=1, title="Banana bread", content="baking")
        make_post(2, minutes=2, title="apple pie", content="dessert")
        make_post(3, minutes=3, title="Cherry", content="Apple orchard notes")

    @pytest.mark.asyncio
    async def test_keyword_matches_title_or_content_case_insensitively(
        self, feed_service
    ):
        page = await feed_service.filter_posts(PostQuery(keyword="APPLE"))
        assert _ids(page) == [3, 2]

    @pytest.mark.asyncio
    async def test_sort_by_title(self, feed_service):
        page = await feed_service.filter_posts(PostQuery(sort="title"))
        assert [post.title for post in page] == ["Banana bread", "Cherry", "apple pie"]

    @pytest.mark.asyncio
    async def test_oldest_first_with_offset_and_limit(self, feed_service):
        query = PostQuery(sort="createdAt", offset=1, limit=1)
        assert _ids(await feed_service.filter_posts(query)) == [2]

    @pytest.mark.asyncio
    async def test_date_window_is_inclusive(self, feed_service):
        query = PostQuery(
            from_date=BASE_TIME + timedelta(minutes=2),
            to_date=BASE_TIME + timedelta(minutes=3),
        )
        assert _ids(await feed_service.filter_posts(query)) == [3, 2]


class TestFilterPostsLargeWindow:
    """Search covers every post in the window, however many there are."""

    @pytest.fixture(autouse=True)
    def posts(self, make_post):
        for post_id in range(1, 1206):
            make_post(
                post_id,
                minutes=post_id,
                content="needle in here" if post_id == 1 else "hay",
            )

    @pytest.mark.asyncio
    async def test_oldest_first_starts_at_oldest_post(self, feed_service):
        page = await feed_service.filter_posts(PostQuery(sort="createdAt", limit=2))
        assert _ids(page) == [1, 2]

    @pytest.mark.asyncio
    async def test_keyword_found_in_oldest_post(self, feed_service):
        page = await feed_service.filter_posts(PostQuery(keyword="needle"))
        assert _ids(page) == [1]

    @pytest.mark.asyncio
    async def test_deep_offset(self, feed_service):
        query = PostQuery(offset=1200, limit=10)
        assert _ids(await feed_service.filter_posts(query)) == [5, 4, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_creation_sort_stops_after_page(self, feed_service, post_repo):
        await feed_service.filter_posts(PostQuery(offset=3, limit=2))
        assert post_repo.rows_streamed == 5

    @pytest.mark.asyncio
    async def test_title_sort_reads_whole_window(self, feed_service, post_repo):
        page = await feed_service.filter_posts(PostQuery(sort="-title", limit=1))
        assert _ids(page) == [999]
        assert post_repo.rows_streamed == 1205


class TestPostCrud:
    """Single post reads, ownership rules and invalidation."""

    @pytest.mark.asyncio
    async def test_get_post_cached(self, feed_service, make_post, cache_store):
        make_post(1)
        post = await feed_service.get_post(1)
        assert post.id == 1
        assert cache_store.ttls["post:1"] == 600

    @pytest.mark.asyncio
    async def test_get_missing_post(self, feed_service, cache_store):
        with pytest.raises(NotFoundError):
            await feed_service.get_post(1)
        assert "post:1" not in cache_store.data

    @pytest.mark.asyncio
    async def test_create_post(self, feed_service, post_repo):
        created = await feed_service.create_post("Title", "Body", author_id=5)
        stored = await post_repo.get(created.id)
        assert stored.author_id == 5
        assert stored.created_at == created.created_at
        assert created.created_at.microsecond % 1000 == 0

    @pytest.mark.asyncio
    async def test_update_then_read_sees_new_content(
        self, feed_service, make_post, cache_store
    ):
        make_post(1, author_id=5)
        await feed_service.get_post(1)
        await feed_service.get_feed_page(SENTINEL_ID)

        await feed_service.update_post(1, "Edited", "New body", caller_id=5)

        assert "post:1" not in cache_store.data
        assert "post:latest" not in cache_store.data
        assert (await feed_service.get_post(1)).title == "Edited"

    @pytest.mark.asyncio
    async def test_update_by_stranger_reports_not_found(
        self, feed_service, make_post, post_repo
    ):
        make_post(1, author_id=5, title="Original")
        with pytest.raises(NotFoundError) as exc:
            await feed_service.update_post(1, "Hijack", "x", caller_id=6)
        assert exc.value.code == "not_found"
        assert (await post_repo.get(1)).title == "Original"

    @pytest.mark.asyncio
    async def test_admin_may_update_any_post(self, feed_service, make_post):
        make_post(1, author_id=5)
        updated = await feed_service.update_post(
            1, "Moderated", "x", caller_id=99, is_admin=True
        )
        assert updated.title == "Moderated"
        assert updated.author_id == 5

    @pytest.mark.asyncio
    async def test_delete_by_stranger_reports_not_found(
        self, feed_service, make_post, post_repo
    ):
        make_post(1, author_id=5)
        with pytest.raises(NotFoundError):
            await feed_service.delete_post(1, caller_id=6)
        assert await post_repo.get(1) is not None

    @pytest.mark.asyncio
    async def test_delete_cascades_to_comments(
        self,
        feed_service,
        comment_service,
        make_post,
        make_comment,
        comment_repo,
        cache_store,
    ):
        make_post(1, author_id=5)
        make_post(2, author_id=5)
        make_comment(10, post_id=1)
        make_comment(11, post_id=1, parent_id=10)
        make_comment(20, post_id=2)
        await comment_service.get_comment_tree(1)

        await feed_service.delete_post(1, caller_id=5)

        with pytest.raises(NotFoundError):
            await comment_service.get_comments_flat(1)
        assert set(comment_repo.rows) == {20}
        assert "comments:tree:1" not in cache_store.data

    @pytest.mark.asyncio
    async def test_delete_drops_cached_count_and_top_comments(
        self, feed_service, comment_service, make_post, make_comment, cache_store
    ):
        make_post(1, author_id=5)
        make_comment(10, post_id=1)
        assert await comment_service.get_comment_count(1) == 1
        assert len(await comment_service.get_previous_comments(1)) == 1

        await feed_service.delete_post(1, caller_id=5)

        assert "comments:count:1" not in cache_store.data
        assert "comments:top:1" not in cache_store.data
        with pytest.raises(NotFoundError):
            await comment_service.get_comment_count(1)
        with pytest.raises(NotFoundError):
            await comment_service.get_previous_comments(1)
