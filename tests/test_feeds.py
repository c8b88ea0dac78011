"""Feature feeds: comments, group chat, photos and the like toggle."""
from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from gratitude.client import (
    BackendUnavailable,
    CommentsFeed,
    CorrelationIds,
    FeedbackLevel,
    GroupChatFeed,
    PhotoFeed,
    PhotoLikeToggle,
    WriteRejected,
    is_pending,
    parse_hashtags,
)


def test_parse_hashtags_keeps_first_occurrence():
    assert parse_hashtags("Sunny day #grateful #family, #grateful again") == ["#grateful", "#family"]
    assert parse_hashtags("") == []


@pytest.mark.asyncio
async def test_comment_shows_author_name_while_pending(backend, row, client_settings, flush):
    feed = CommentsFeed(
        "P123",
        backend,
        author_id="u1",
        author_name="Layla",
        settings=client_settings,
        correlation_ids=CorrelationIds("c"),
    )
    received = []
    feed.feedback.subscribe(received.append)
    await feed.mount()

    task = asyncio.create_task(feed.add_comment("  thank you  "))
    await flush()
    pending = feed.items[0]
    assert is_pending(pending)
    assert pending.content == "thank you"
    assert pending.extra["user_display_name"] == "Layla"

    call = backend.creates[0]
    call.future.set_result(row("c-1", "thank you", client_token=call.client_token, user_display_name="Layla"))
    await task

    assert [item.id for item in feed.items] == ["c-1"]
    assert [(item.level, item.message) for item in received] == [(FeedbackLevel.SUCCESS, "Comment posted")]


@pytest.mark.asyncio
async def test_failed_comment_uses_comment_wording(backend, client_settings, flush):
    feed = CommentsFeed("P123", backend, author_id="u1", settings=client_settings)
    received = []
    feed.feedback.subscribe(received.append)
    await feed.mount()

    task = asyncio.create_task(feed.add_comment("hi"))
    await flush()
    backend.creates[0].future.set_exception(BackendUnavailable("offline"))
    await task

    assert feed.items == ()
    assert received[0].message == "Failed to add comment"


@pytest.mark.asyncio
async def test_group_chat_sends_quietly_and_tracks_reactions(backend, row, client_settings, flush):
    feed = GroupChatFeed("G1", backend, author_id="u1", author_name="Omar", settings=client_settings)
    received = []
    feed.feedback.subscribe(received.append)
    await feed.mount()

    task = asyncio.create_task(feed.send_message("hello"))
    await flush()
    assert feed.sending
    pending = feed.items[0]
    assert not feed.toggle_reaction(pending.id, "❤️")

    call = backend.creates[0]
    call.future.set_result(row("m-1", "hello", parent_id="G1", client_token=call.client_token))
    await task

    assert not feed.sending
    assert received == []
    assert feed.toggle_reaction("m-1", "❤️") is True
    assert feed.reactions_for("m-1") == {"❤️": 1}
    assert feed.toggle_reaction("m-1", "❤️") is False
    assert feed.reactions_for("m-1") == {}


@pytest.mark.asyncio
async def test_photo_requires_image_and_orders_feed(backend, row, client_settings, base_time, flush):
    backend.rows = [
        row("p-1", "old", parent_id="G1", created_at=base_time),
        row("p-0", "pinned", parent_id="G1", order=0, created_at=base_time - timedelta(days=1)),
    ]
    feed = PhotoFeed("G1", backend, author_id="u1", settings=client_settings)
    await feed.mount()
    assert [item.id for item in feed.items] == ["p-0", "p-1"]

    assert await feed.add_photo("", "no image") is None
    assert backend.creates == []

    task = asyncio.create_task(feed.add_photo("https://cdn.example/p.jpg", "Morning tea #calm"))
    await flush()
    pending = feed.items[1]
    assert is_pending(pending)
    assert pending.extra["hashtags"] == ["#calm"]
    assert pending.extra["image_url"] == "https://cdn.example/p.jpg"
    assert backend.creates[0].content == "Morning tea #calm"

    backend.creates[0].future.set_exception(WriteRejected(422, "image_url is required"))
    await task
    assert [item.id for item in feed.items] == ["p-0", "p-1"]


@pytest.mark.asyncio
async def test_photo_engagement_updates_confirmed_rows(backend, row, client_settings):
    backend.rows = [row("p-1", "tea", parent_id="G1", like_count=0, comment_count=0)]
    feed = PhotoFeed("G1", backend, author_id="u1", settings=client_settings)
    await feed.mount()

    feed.apply_engagement("p-1", like_count=3)

    assert feed.items[0].extra["like_count"] == 3
    assert feed.items[0].extra["comment_count"] == 0


@pytest.mark.asyncio
async def test_like_toggle_is_optimistic_and_settles_on_server_answer(likes_backend, flush):
    toggle = PhotoLikeToggle("p-1", likes_backend, liked=False, like_count=4)
    states = []
    toggle.add_listener(lambda liked, count: states.append((liked, count)))
    await toggle.mount()

    task = asyncio.create_task(toggle.toggle())
    await flush()
    assert (toggle.liked, toggle.like_count) == (True, 5)

    likes_backend.on_count(9)
    assert toggle.like_count == 5

    likes_backend.futures[0].set_result((True, 7))
    assert await task is True
    assert states == [(True, 5), (True, 7)]

    likes_backend.on_count(8)
    assert toggle.like_count == 8


@pytest.mark.asyncio
async def test_like_toggle_reverts_on_failure(likes_backend, flush):
    toggle = PhotoLikeToggle("p-1", likes_backend, liked=True, like_count=1)
    received = []
    toggle.feedback.subscribe(received.append)
    await toggle.mount()

    task = asyncio.create_task(toggle.toggle())
    await flush()
    assert (toggle.liked, toggle.like_count) == (False, 0)
    assert await toggle.toggle() is False
    assert len(likes_backend.calls) == 1

    likes_backend.futures[0].set_exception(BackendUnavailable("offline"))
    await task

    assert (toggle.liked, toggle.like_count) == (True, 1)
    assert received[0].level is FeedbackLevel.ERROR

    await toggle.close()
    await toggle.close()
    assert likes_backend.subscriptions[0].close_calls == 1


@pytest.mark.asyncio
async def test_reactions_survive_failed_delete_and_follow_remote_deletes(backend, row, client_settings, flush):
    backend.rows = [row("m-1", "hello", parent_id="G1"), row("m-2", "salam", parent_id="G1")]
    feed = GroupChatFeed("G1", backend, author_id="u1", settings=client_settings)
    await feed.mount()
    feed.toggle_reaction("m-1", "❤️")
    feed.toggle_reaction("m-2", "🙏")

    task = asyncio.create_task(feed.delete_message("m-1"))
    await flush()
    backend.deletes[0].future.set_exception(BackendUnavailable("offline"))
    assert await task is False
    assert feed.reactions_for("m-1") == {"❤️": 1}

    backend.on_delete("m-2")
    assert feed.reactions_for("m-2") == {}

    task = asyncio.create_task(feed.delete_message("m-1"))
    await flush()
    backend.deletes[1].future.set_result(None)
    assert await task is True
    assert feed.reactions_for("m-1") == {}


@pytest.mark.asyncio
async def test_like_toggle_from_feed_updates_photo_counts(backend, likes_backend, row, client_settings, flush):
    backend.rows = [row("p-1", "tea", parent_id="G1", like_count=2, comment_count=1, viewer_has_liked=False)]
    feed = PhotoFeed("G1", backend, author_id="u1", settings=client_settings)
    await feed.mount()

    toggle = feed.like_toggle("p-1", likes_backend)
    assert (toggle.liked, toggle.like_count) == (False, 2)
    await toggle.mount()

    task = asyncio.create_task(toggle.toggle())
    await flush()
    assert feed.items[0].extra["like_count"] == 3
    assert feed.items[0].extra["viewer_has_liked"] is True

    likes_backend.futures[0].set_result((True, 4))
    await task
    assert feed.items[0].extra["like_count"] == 4

    likes_backend.on_count(6)
    assert feed.items[0].extra["like_count"] == 6
    assert feed.items[0].extra["comment_count"] == 1

    with pytest.raises(KeyError):
        feed.like_toggle("missing", likes_backend)
    await toggle.close()
