"""Client core: optimistic feeds reconciled against the Gratitude API."""
from .backend import CollectionBackend, LikesBackend, Subscription
from .collection import CHRONOLOGICAL, PHOTO_FEED, Collection, SortOrder
from .entities import (
    Confirmed,
    CorrelationIds,
    Entity,
    ItemStatus,
    OperationKind,
    Pending,
    PendingOperation,
    is_correlation_id,
    is_pending,
)
from .errors import BackendError, BackendUnavailable, NotFound, WriteRejected
from .feedback import Feedback, FeedbackBus, FeedbackLevel
from .feeds import CommentsFeed, GroupChatFeed, PhotoFeed, PhotoLikeToggle, parse_hashtags
from .http_backend import (
    COMMENTS,
    GROUP_MESSAGES,
    PERSONAL_PHOTOS,
    PHOTOS,
    GratitudeClient,
    HttpCollectionBackend,
    HttpLikesBackend,
)
from .reconciler import FeedbackCopy, OptimisticReconciler

__all__ = [
    "CollectionBackend",
    "LikesBackend",
    "Subscription",
    "CHRONOLOGICAL",
    "PHOTO_FEED",
    "Collection",
    "SortOrder",
    "Confirmed",
    "CorrelationIds",
    "Entity",
    "ItemStatus",
    "OperationKind",
    "Pending",
    "PendingOperation",
    "is_correlation_id",
    "is_pending",
    "BackendError",
    "BackendUnavailable",
    "NotFound",
    "WriteRejected",
    "Feedback",
    "FeedbackBus",
    "FeedbackLevel",
    "CommentsFeed",
    "GroupChatFeed",
    "PhotoFeed",
    "PhotoLikeToggle",
    "parse_hashtags",
    "COMMENTS",
    "GROUP_MESSAGES",
    "PERSONAL_PHOTOS",
    "PHOTOS",
    "GratitudeClient",
    "HttpCollectionBackend",
    "HttpLikesBackend",
    "FeedbackCopy",
    "OptimisticReconciler",
]
