"""Ordering rules of the client-side collection."""
from __future__ import annotations

from datetime import timedelta

from gratitude.client import CHRONOLOGICAL, PHOTO_FEED, Collection, CorrelationIds, Pending, is_correlation_id


def test_chronological_insert_keeps_arrival_order_for_ties(row, base_time):
    collection = Collection("P123", CHRONOLOGICAL)
    collection.insert(row("c-2", "second", created_at=base_time + timedelta(seconds=5)))
    collection.insert(row("c-1", "first", created_at=base_time))
    collection.insert(row("c-3", "tie", created_at=base_time + timedelta(seconds=5)))

    assert collection.ids() == ["c-1", "c-2", "c-3"]


def test_naive_server_timestamps_sort_with_aware_ones(row, base_time):
    collection = Collection("P123")
    collection.insert(row("c-1", "aware", created_at=base_time + timedelta(seconds=1)))
    collection.insert(row("c-0", "naive", created_at=base_time.replace(tzinfo=None)))

    assert collection.ids() == ["c-0", "c-1"]


def test_photo_feed_puts_explicit_order_first(row, base_time):
    collection = Collection("G1", PHOTO_FEED)
    collection.insert(row("p-old", "", parent_id="G1", created_at=base_time))
    collection.insert(row("p-new", "", parent_id="G1", created_at=base_time + timedelta(hours=1)))
    collection.insert(row("p-2", "", parent_id="G1", order=2, created_at=base_time))
    collection.insert(row("p-1", "", parent_id="G1", order=1, created_at=base_time + timedelta(hours=2)))

    assert collection.ids() == ["p-1", "p-2", "p-new", "p-old"]


def test_replace_keeps_position_when_still_sorted(row, base_time):
    collection = Collection("P123")
    pending = Pending(id="temp-x-1", parent_id="P123", author_id="u1", content="hi", created_at=base_time)
    collection.insert(row("c-0", "before", created_at=base_time - timedelta(seconds=1)))
    collection.insert(pending)
    collection.insert(row("c-2", "after", created_at=base_time + timedelta(seconds=30)))

    assert collection.replace("temp-x-1", row("c-1", "hi", created_at=base_time + timedelta(seconds=1)))
    assert collection.ids() == ["c-0", "c-1", "c-2"]
    assert not collection.replace("missing", row("c-9", "x"))


def test_replace_moves_row_whose_timestamp_changed(row, base_time):
    collection = Collection("P123")
    collection.insert(Pending(id="temp-x-1", parent_id="P123", author_id="u1", content="hi", created_at=base_time))
    collection.insert(row("c-2", "other", created_at=base_time + timedelta(seconds=5)))

    collection.replace("temp-x-1", row("c-1", "hi", created_at=base_time + timedelta(seconds=10)))

    assert collection.ids() == ["c-2", "c-1"]


def test_remove_and_restore_round_trip_position(row, base_time):
    collection = Collection("P123")
    for offset, item_id in enumerate(["c-1", "c-2", "c-3"]):
        collection.insert(row(item_id, item_id, created_at=base_time + timedelta(seconds=offset)))

    index, entity = collection.remove("c-2")
    assert collection.ids() == ["c-1", "c-3"]
    assert collection.remove("c-2") is None

    collection.restore(index, entity)
    assert collection.ids() == ["c-1", "c-2", "c-3"]


def test_restore_falls_back_to_sorted_insert(row, base_time):
    collection = Collection("P123")
    collection.insert(row("c-1", "one", created_at=base_time))

    collection.restore(0, row("c-2", "two", created_at=base_time + timedelta(seconds=1)))

    assert collection.ids() == ["c-1", "c-2"]


def test_correlation_ids_are_unique_and_recognisable():
    ids = CorrelationIds("abc")
    first, second = ids.next(), ids.next()

    assert first == "temp-abc-1"
    assert second == "temp-abc-2"
    assert is_correlation_id(first)
    assert not is_correlation_id("c-999")
    assert CorrelationIds().next() != CorrelationIds().next()
