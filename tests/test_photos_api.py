"""Integration tests for photos, likes, comments and notifications."""
from __future__ import annotations


def _group(client, *members: str) -> str:
    return client.post("/groups", json={"name": "Family", "members": list(members)}).json()["id"]


def test_personal_photos_are_listed_for_their_owner_only(authed_client, user_factory):
    owner = user_factory("noor")
    other = user_factory("sami")

    created = authed_client(owner).post(
        "/photos",
        json={
            "image_url": "https://cdn.example/tea.jpg",
            "caption": "Morning tea",
            "hashtags": ["calm", "#calm", "not a tag"],
            "client_token": "temp-p-1",
        },
    )
    assert created.status_code == 201
    photo = created.json()
    assert photo["group_id"] is None
    assert photo["hashtags"] == ["#calm"]
    assert photo["client_token"] == "temp-p-1"

    assert [item["id"] for item in authed_client(owner).get("/photos").json()["items"]] == [photo["id"]]
    assert authed_client(other).get("/photos").json()["items"] == []


def test_group_feed_orders_pinned_photos_first(authed_client, user_factory):
    owner = user_factory("noor")
    client = authed_client(owner)
    group_id = _group(client)

    first = client.post("/photos", json={"image_url": "a.jpg", "group_id": group_id}).json()
    second = client.post("/photos", json={"image_url": "b.jpg", "group_id": group_id}).json()
    pinned = client.post("/photos", json={"image_url": "c.jpg", "group_id": group_id, "order": 1}).json()

    feed = client.get("/photos", params={"group_id": group_id}).json()["items"]

    assert [item["id"] for item in feed] == [pinned["id"], second["id"], first["id"]]


def test_photo_update_and_delete_are_owner_only(authed_client, user_factory):
    owner = user_factory("noor")
    friend = user_factory("sami")
    group_id = _group(authed_client(owner), "sami")
    photo_id = authed_client(owner).post("/photos", json={"image_url": "a.jpg", "group_id": group_id}).json()["id"]

    assert authed_client(friend).patch(f"/photos/{photo_id}", json={"caption": "mine"}).status_code == 403
    updated = authed_client(owner).patch(f"/photos/{photo_id}", json={"caption": " Sunset ", "order": 2})
    assert updated.json()["caption"] == "Sunset"
    assert updated.json()["order"] == 2
    assert authed_client(owner).patch(f"/photos/{photo_id}", json={}).status_code == 400

    assert authed_client(friend).delete(f"/photos/{photo_id}").status_code == 403
    assert authed_client(owner).delete(f"/photos/{photo_id}").status_code == 204
    assert authed_client(owner).get(f"/photos/{photo_id}/comments").status_code == 404


def test_likes_are_idempotent_and_notify_owner_once(authed_client, user_factory):
    owner = user_factory("noor")
    fan = user_factory("sami", "Sami")
    group_id = _group(authed_client(owner), "sami")
    photo_id = authed_client(owner).post("/photos", json={"image_url": "a.jpg", "group_id": group_id}).json()["id"]

    client = authed_client(fan)
    first = client.post(f"/photos/{photo_id}/likes").json()
    again = client.post(f"/photos/{photo_id}/likes").json()
    assert (first["like_count"], first["viewer_has_liked"]) == (1, True)
    assert again["like_count"] == 1

    removed = client.delete(f"/photos/{photo_id}/likes").json()
    assert (removed["like_count"], removed["viewer_has_liked"]) == (0, False)

    notifications = authed_client(owner).get("/notifications").json()
    like_notes = [item for item in notifications["items"] if item["type"] == "like"]
    assert [item["content"] for item in like_notes] == ["Sami liked your photo."]


def test_comments_flow_with_permissions(authed_client, user_factory):
    owner = user_factory("noor")
    friend = user_factory("sami", "Sami")
    outsider = user_factory("eve")
    group_id = _group(authed_client(owner), "sami")
    photo_id = authed_client(owner).post("/photos", json={"image_url": "a.jpg", "group_id": group_id}).json()["id"]

    created = authed_client(friend).post(
        f"/photos/{photo_id}/comments",
        json={"content": "شكرا", "client_token": "temp-c-1"},
    )
    assert created.status_code == 201
    comment = created.json()
    assert comment["user_display_name"] == "Sami"
    assert comment["client_token"] == "temp-c-1"

    assert authed_client(outsider).get(f"/photos/{photo_id}/comments").status_code == 404
    listing = authed_client(owner).get(f"/photos/{photo_id}/comments").json()["items"]
    assert [item["content"] for item in listing] == ["شكرا"]

    photo = authed_client(owner).get("/photos", params={"group_id": group_id}).json()["items"][0]
    assert photo["comment_count"] == 1

    assert authed_client(outsider).delete(f"/comments/{comment['id']}").status_code == 403
    # The photo owner may remove comments left on their photo.
    assert authed_client(owner).delete(f"/comments/{comment['id']}").status_code == 204
    assert authed_client(owner).delete(f"/comments/{comment['id']}").status_code == 404


def test_new_group_photo_notifies_other_members(authed_client, user_factory):
    owner = user_factory("noor", "Noor")
    friend = user_factory("sami")
    group_id = _group(authed_client(owner), "sami")
    authed_client(owner).post("/photos", json={"image_url": "a.jpg", "group_id": group_id})

    client = authed_client(friend)
    inbox = client.get("/notifications").json()
    assert inbox["unread_count"] == 1
    assert inbox["items"][0]["type"] == "new_photo"
    assert inbox["items"][0]["content"] == "Noor shared a new photo in Family."

    assert client.post("/notifications/read").status_code == 204
    assert client.get("/notifications").json()["unread_count"] == 0
    assert authed_client(owner).get("/notifications").json()["unread_count"] == 0
