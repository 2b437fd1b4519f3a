from __future__ import annotations

import pytest

from nanobanana_mcp.history import (
    ImageHistoryEntry,
    ImageHistoryStore,
    new_image_id,
    parse_history_index,
)


def _entry(tag: str) -> ImageHistoryEntry:
    return ImageHistoryEntry.from_bytes(
        tag.encode(), file_path=f"/tmp/{tag}.png", prompt=tag, type="generated"
    )


def test_empty_store_yields_nothing() -> None:
    store = ImageHistoryStore()
    assert store.get_by_reference("last") is None
    assert store.get_by_reference("history:0") is None
    assert store.list() == []


def test_last_after_single_append() -> None:
    store = ImageHistoryStore()
    entry = _entry("e0")
    store.append(entry)
    assert store.get_by_reference("last") is entry


def test_eviction_keeps_last_capacity_entries_in_order() -> None:
    store = ImageHistoryStore(capacity=10)
    entries = [_entry(f"e{i}") for i in range(11)]
    for entry in entries:
        store.append(entry)
        assert len(store) <= 10

    assert [e.prompt for _, e in store.list()] == [f"e{i}" for i in range(1, 11)]
    assert [i for i, _ in store.list()] == list(range(10))
    assert store.get_by_reference("history:0").prompt == "e1"
    assert store.get_by_reference("history:9").prompt == "e10"
    assert store.get_by_reference("last").prompt == "e10"


@pytest.mark.parametrize("capacity,count", [(1, 5), (3, 3), (3, 7), (5, 20)])
def test_length_never_exceeds_capacity(capacity: int, count: int) -> None:
    store = ImageHistoryStore(capacity=capacity)
    entries = [_entry(f"e{i}") for i in range(count)]
    for entry in entries:
        store.append(entry)
    assert len(store) == min(capacity, count)
    assert list(store) == entries[-capacity:]


@pytest.mark.parametrize(
    "reference",
    ["history:", "history:-1", "history:x", "history:1.0", "HISTORY:0", "Last", " last", "history:0 ", "photo.png"],
)
def test_non_matching_references_are_not_found(reference: str) -> None:
    store = ImageHistoryStore()
    store.append(_entry("e0"))
    assert store.get_by_reference(reference) is None


def test_out_of_range_index_is_not_found() -> None:
    store = ImageHistoryStore()
    store.append(_entry("e0"))
    assert store.get_by_reference("history:1") is None


def test_leading_zeros_accepted() -> None:
    store = ImageHistoryStore()
    store.append(_entry("e0"))
    store.append(_entry("e1"))
    assert store.get_by_reference("history:01").prompt == "e1"
    assert parse_history_index("history:007") == 7
    assert parse_history_index("history:-3") is None


def test_recent_returns_newest_oldest_first() -> None:
    store = ImageHistoryStore()
    for i in range(5):
        store.append(_entry(f"e{i}"))
    assert [e.prompt for e in store.recent(3)] == ["e2", "e3", "e4"]
    assert store.recent(0) == []
    assert len(store.recent(50)) == 5


def test_clear_empties_store() -> None:
    store = ImageHistoryStore()
    store.append(_entry("e0"))
    store.clear()
    assert len(store) == 0
    assert store.get_by_reference("last") is None


def test_entry_payload_round_trips_bytes() -> None:
    entry = ImageHistoryEntry.from_bytes(
        b"\x89PNG data", file_path="/tmp/a.png", prompt="p", type="edited", mime_type="image/webp"
    )
    assert entry.payload.data == b"\x89PNG data"
    assert entry.payload.mime_type == "image/webp"
    assert entry.id.startswith("img_")


def test_image_ids_are_unique() -> None:
    assert len({new_image_id() for _ in range(100)}) == 100


def test_invalid_capacity_rejected() -> None:
    with pytest.raises(ValueError):
        ImageHistoryStore(capacity=0)
