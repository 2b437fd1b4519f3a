"""Gemini chat, image generation and editing over MCP, with per-session image history."""
from .history import ImageHistoryEntry, ImageHistoryStore, ImagePayload
from .references import resolve_reference, resolve_references
from .sessions import VALID_ASPECT_RATIOS, ConversationContext, ConversationRegistry

__all__ = [
    "ImageHistoryEntry",
    "ImageHistoryStore",
    "ImagePayload",
    "resolve_reference",
    "resolve_references",
    "VALID_ASPECT_RATIOS",
    "ConversationContext",
    "ConversationRegistry",
]
