from __future__ import annotations

import pytest

from nanobanana_mcp.errors import InvalidAspectRatio, MissingAspectRatio
from nanobanana_mcp.history import ImageHistoryEntry
from nanobanana_mcp.sessions import (
    DEFAULT_SESSION,
    VALID_ASPECT_RATIOS,
    ConversationRegistry,
    validate_aspect_ratio,
)


def test_get_or_create_is_lazy_and_stable() -> None:
    registry = ConversationRegistry()
    assert "s1" not in registry
    context = registry.get_or_create("s1")
    assert "s1" in registry
    assert registry.get_or_create("s1") is context
    assert context.transcript == []
    assert len(context.images) == 0
    assert context.aspect_ratio is None


def test_default_session_key() -> None:
    registry = ConversationRegistry()
    assert registry.get_or_create().session_key == DEFAULT_SESSION == "default"


def test_get_does_not_create() -> None:
    registry = ConversationRegistry()
    assert registry.get("nope") is None
    assert len(registry) == 0


def test_sessions_are_isolated() -> None:
    registry = ConversationRegistry()
    registry.set_aspect_ratio("a", "16:9")
    assert registry.get_or_create("b").aspect_ratio is None
    assert registry.get_or_create("a").images is not registry.get_or_create("b").images


@pytest.mark.parametrize("ratio", VALID_ASPECT_RATIOS)
def test_every_valid_ratio_accepted(ratio: str) -> None:
    registry = ConversationRegistry()
    assert registry.set_aspect_ratio("s", ratio).aspect_ratio == ratio


@pytest.mark.parametrize("ratio", ["16:10", "", "1:1 ", "1x1", "21:09", None])
def test_invalid_ratio_rejected(ratio) -> None:
    registry = ConversationRegistry()
    with pytest.raises(InvalidAspectRatio):
        registry.set_aspect_ratio("s", ratio)
    assert "s" not in registry


def test_ten_supported_ratios() -> None:
    assert len(VALID_ASPECT_RATIOS) == 10
    assert validate_aspect_ratio("21:9") == "21:9"


def test_missing_aspect_ratio_on_fresh_session() -> None:
    context = ConversationRegistry().get_or_create("fresh")
    with pytest.raises(MissingAspectRatio):
        context.effective_aspect_ratio()


def test_override_does_not_persist() -> None:
    registry = ConversationRegistry()
    context = registry.set_aspect_ratio("s", "1:1")
    assert context.effective_aspect_ratio("9:16") == "9:16"
    assert context.aspect_ratio == "1:1"
    assert context.effective_aspect_ratio() == "1:1"


def test_override_without_session_default() -> None:
    context = ConversationRegistry().get_or_create("s")
    assert context.effective_aspect_ratio("4:5") == "4:5"
    assert context.aspect_ratio is None


def test_invalid_override_rejected_even_with_default() -> None:
    context = ConversationRegistry().set_aspect_ratio("s", "1:1")
    with pytest.raises(InvalidAspectRatio):
        context.effective_aspect_ratio("16:10")


def test_clear_discards_everything() -> None:
    registry = ConversationRegistry()
    context = registry.set_aspect_ratio("s", "3:2")
    for i in range(10):
        context.images.append(
            ImageHistoryEntry.from_bytes(b"x", file_path=f"/tmp/{i}.png", prompt=str(i), type="generated")
        )
    context.record_exchange(["hi"], "hello")

    assert registry.clear("s") is True
    fresh = registry.get_or_create("s")
    assert fresh is not context
    assert len(fresh.images) == 0
    assert fresh.transcript == []
    assert fresh.aspect_ratio is None


def test_clear_unknown_session() -> None:
    assert ConversationRegistry().clear("ghost") is False


def test_registry_history_capacity() -> None:
    registry = ConversationRegistry(history_capacity=2)
    assert registry.get_or_create("s").images.capacity == 2


def test_record_exchange_appends_both_turns() -> None:
    context = ConversationRegistry().get_or_create()
    context.record_exchange(["question"], "answer")
    assert [(m.role, m.parts) for m in context.transcript] == [
        ("user", ["question"]),
        ("model", ["answer"]),
    ]
