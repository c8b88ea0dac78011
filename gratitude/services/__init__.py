"""Convenience exports for service layer."""
from .auth_service import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    get_current_user,
    register_user,
)
from .change_stream import change_stream_manager, safe_publish
from .comment_service import create_comment, delete_comment, list_comments
from .group_service import (
    add_group_members,
    create_group,
    create_group_invite,
    delete_group,
    delete_group_message,
    get_group,
    join_group_by_token,
    list_group_messages,
    list_groups,
    send_group_message,
    update_group,
)
from .notification_service import (
    NotificationType,
    add_notification,
    count_unread_notifications,
    list_notifications,
    mark_all_read,
)
from .photo_service import (
    create_photo,
    delete_photo,
    ensure_photo_access,
    get_photo_or_404,
    list_photos,
    photo_engagement_snapshot,
    set_photo_like_state,
    update_photo,
)

__all__ = [
    "authenticate_user",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "register_user",
    "change_stream_manager",
    "safe_publish",
    "create_comment",
    "delete_comment",
    "list_comments",
    "add_group_members",
    "create_group",
    "create_group_invite",
    "delete_group",
    "delete_group_message",
    "get_group",
    "join_group_by_token",
    "list_group_messages",
    "list_groups",
    "send_group_message",
    "update_group",
    "NotificationType",
    "add_notification",
    "count_unread_notifications",
    "list_notifications",
    "mark_all_read",
    "create_photo",
    "delete_photo",
    "ensure_photo_access",
    "get_photo_or_404",
    "list_photos",
    "photo_engagement_snapshot",
    "set_photo_like_state",
    "update_photo",
]
