"""Feature-level feeds built on :class:`OptimisticReconciler`."""
from __future__ import annotations

import logging
import re
from datetime import timedelta
from types import TracebackType
from typing import Any, Callable, Iterable, Mapping

from ..config import ClientSettings, get_client_settings
from .backend import CollectionBackend, LikesBackend, Subscription
from .collection import CHRONOLOGICAL, PHOTO_FEED, SortOrder
from .entities import Confirmed, CorrelationIds, is_pending
from .errors import BackendError
from .feedback import FeedbackBus
from .reconciler import FeedbackCopy, OptimisticReconciler, Validator, require_text

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r"#(\w+)")


def parse_hashtags(caption: str) -> list[str]:
    """Return the unique ``#words`` of ``caption`` in order of appearance."""

    tags: list[str] = []
    for match in HASHTAG_PATTERN.finditer(caption or ""):
        tag = f"#{match.group(1)}"
        if tag not in tags:
            tags.append(tag)
    return tags


def _requires_image(content: str, fields: Mapping[str, Any]) -> bool:
    return bool(str(fields.get("image_url") or "").strip())


class _SettingsFeed(OptimisticReconciler):
    """Reconciler whose tuning comes from :class:`ClientSettings`."""

    order: SortOrder = CHRONOLOGICAL
    validator: Validator = staticmethod(require_text)
    copy = FeedbackCopy()

    def __init__(
        self,
        parent_id: str,
        backend: CollectionBackend,
        *,
        author_id: str,
        feedback: FeedbackBus | None = None,
        settings: ClientSettings | None = None,
        correlation_ids: CorrelationIds | None = None,
    ) -> None:
        settings = settings or get_client_settings()
        super().__init__(
            parent_id,
            backend,
            author_id=author_id,
            feedback=feedback,
            order=self.order,
            dedup_window=timedelta(seconds=settings.dedup_window_seconds),
            undo_depth=settings.undo_depth,
            correlation_ids=correlation_ids,
            validator=type(self).validator,
            copy=self.copy,
            reconnect_delay=settings.reconnect_delay_seconds,
            reconnect_max_delay=settings.reconnect_max_delay_seconds,
        )


class CommentsFeed(_SettingsFeed):
    """Comments under one photo, oldest first."""

    copy = FeedbackCopy(
        created="Comment posted",
        create_failed="Failed to add comment",
        deleted="Comment deleted",
        delete_failed="Failed to delete comment",
        load_failed="Failed to load comments",
    )

    def __init__(self, photo_id: str, backend: CollectionBackend, *, author_id: str, author_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(photo_id, backend, author_id=author_id, **kwargs)
        self.author_name = author_name

    async def add_comment(self, content: str) -> Confirmed | None:
        return await self.submit_create(content, user_display_name=self.author_name)

    async def delete_comment(self, comment_id: str) -> bool:
        return await self.submit_delete(comment_id)


class GroupChatFeed(_SettingsFeed):
    """Messages of one group chat.

    Reactions are kept on this device only and are never sent to the server.
    """

    copy = FeedbackCopy(
        create_failed="Failed to send message",
        delete_failed="Failed to delete message",
        load_failed="Failed to load messages",
        announce_success=False,
    )

    def __init__(
        self,
        group_id: str,
        backend: CollectionBackend,
        *,
        author_id: str,
        author_name: str | None = None,
        author_avatar: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(group_id, backend, author_id=author_id, **kwargs)
        self.author_name = author_name
        self.author_avatar = author_avatar
        self._reactions: dict[str, dict[str, set[str]]] = {}

    async def send_message(self, content: str) -> Confirmed | None:
        return await self.submit_create(content, user_name=self.author_name, user_avatar=self.author_avatar)

    async def delete_message(self, message_id: str) -> bool:
        deleted = await self.submit_delete(message_id)
        if deleted:
            self._reactions.pop(message_id, None)
        return deleted

    def on_remote_delete(self, item_id: str) -> None:
        super().on_remote_delete(item_id)
        self._reactions.pop(item_id, None)

    def toggle_reaction(self, message_id: str, emoji: str) -> bool:
        """Flip the current user's ``emoji`` on a message; return whether it is now set."""

        entity = self.collection.get(message_id)
        if entity is None or is_pending(entity):
            return False
        users = self._reactions.setdefault(message_id, {}).setdefault(emoji, set())
        if self.author_id in users:
            users.discard(self.author_id)
            if not users:
                del self._reactions[message_id][emoji]
            active = False
        else:
            users.add(self.author_id)
            active = True
        self._notify()
        return active

    def reactions_for(self, message_id: str) -> dict[str, int]:
        return {emoji: len(users) for emoji, users in self._reactions.get(message_id, {}).items() if users}


class PhotoFeed(_SettingsFeed):
    """Photos of a group, or the viewer's personal journal when ``parent_id`` is ``"personal"``.

    Photos with an explicit ``order`` come first in ascending order, the rest newest first.
    """

    order = PHOTO_FEED
    validator = staticmethod(_requires_image)
    copy = FeedbackCopy(
        created="Photo added",
        create_failed="Failed to add photo",
        deleted="Photo deleted",
        delete_failed="Failed to delete photo",
        load_failed="Failed to load photos",
    )

    async def add_photo(
        self,
        image_url: str,
        caption: str = "",
        *,
        hashtags: Iterable[str] | None = None,
        order: int | None = None,
    ) -> Confirmed | None:
        tags = list(hashtags) if hashtags is not None else parse_hashtags(caption)
        return await self.submit_create(
            caption,
            image_url=image_url,
            hashtags=tags,
            order=order,
            like_count=0,
            comment_count=0,
        )

    async def delete_photo(self, photo_id: str) -> bool:
        return await self.submit_delete(photo_id)

    def apply_engagement(
        self,
        photo_id: str,
        *,
        like_count: int | None = None,
        comment_count: int | None = None,
        viewer_has_liked: bool | None = None,
    ) -> None:
        entity = self.collection.get(photo_id)
        if not isinstance(entity, Confirmed):
            return
        values: dict[str, Any] = {}
        if viewer_has_liked is not None:
            values["viewer_has_liked"] = viewer_has_liked
        if like_count is not None:
            values["like_count"] = like_count
        if comment_count is not None:
            values["comment_count"] = comment_count
        if values:
            self.collection.replace(photo_id, entity.with_extra(**values))
            self._notify()

    def like_toggle(self, photo_id: str, backend: LikesBackend) -> "PhotoLikeToggle":
        """Like button for a confirmed photo whose counts flow back into this feed."""

        entity = self.collection.get(photo_id)
        if not isinstance(entity, Confirmed):
            raise KeyError(photo_id)
        toggle = PhotoLikeToggle(
            photo_id,
            backend,
            liked=bool(entity.extra.get("viewer_has_liked")),
            like_count=int(entity.extra.get("like_count") or 0),
            feedback=self.feedback,
        )
        toggle.add_listener(lambda liked, count: self.apply_engagement(photo_id, like_count=count, viewer_has_liked=liked))
        return toggle


LikeListener = Callable[[bool, int], None]


class PhotoLikeToggle:
    """Optimistic like button for one photo.

    While a toggle is in flight, counts pushed by other clients are ignored;
    the server's answer settles both the flag and the count.
    """

    def __init__(
        self,
        photo_id: str,
        backend: LikesBackend,
        *,
        liked: bool = False,
        like_count: int = 0,
        feedback: FeedbackBus | None = None,
    ) -> None:
        self.photo_id = photo_id
        self.liked = liked
        self.like_count = like_count
        self.feedback = feedback or FeedbackBus()
        self._backend = backend
        self._in_flight = False
        self._subscription: Subscription | None = None
        self._listeners: list[LikeListener] = []
        self._active = False
        self._closed = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def add_listener(self, listener: LikeListener) -> None:
        self._listeners.append(listener)

    async def mount(self) -> None:
        if self._closed:
            raise RuntimeError("A closed like toggle cannot be mounted again")
        if self._active:
            return
        self._active = True
        try:
            subscription = await self._backend.subscribe(self.photo_id, self.on_remote_count)
        except BackendError:
            logger.warning("Like updates for %s unavailable", self.photo_id, exc_info=True)
            return
        if not self._active:
            await subscription.close()
            return
        self._subscription = subscription

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._active = False
        self._listeners.clear()
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

    async def __aenter__(self) -> "PhotoLikeToggle":
        await self.mount()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def toggle(self) -> bool:
        """Flip the like immediately, then settle on the server's answer."""

        if self._in_flight or not self._active:
            return self.liked
        previous = (self.liked, self.like_count)
        self.liked = not self.liked
        self.like_count = max(0, self.like_count + (1 if self.liked else -1))
        self._in_flight = True
        self._notify()
        try:
            liked, like_count = await self._backend.set_liked(self.photo_id, self.liked)
        except BackendError:
            self._in_flight = False
            if self._active:
                logger.warning("Like toggle on %s failed", self.photo_id, exc_info=True)
                self.liked, self.like_count = previous
                self._notify()
                self.feedback.error("Error", "Failed to update like", operation="like", item_id=self.photo_id)
            return self.liked
        self._in_flight = False
        if self._active:
            self.liked, self.like_count = liked, like_count
            self._notify()
        return self.liked

    def on_remote_count(self, like_count: int) -> None:
        if not self._active or self._in_flight:
            return
        if like_count != self.like_count:
            self.like_count = like_count
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.liked, self.like_count)
            except Exception:
                logger.exception("Like listener failed for %s", self.photo_id)


__all__ = [
    "CommentsFeed",
    "GroupChatFeed",
    "HASHTAG_PATTERN",
    "LikeListener",
    "PhotoFeed",
    "PhotoLikeToggle",
    "parse_hashtags",
]
