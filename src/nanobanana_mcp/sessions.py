"""
Conversation sessions: chat transcript, image history and aspect ratio per session key.
"""
import logging
from dataclasses import dataclass, field
from typing import Literal, Union

from .errors import InvalidAspectRatio, MissingAspectRatio
from .history import MAX_IMAGE_HISTORY, ImageHistoryStore, ImagePayload

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"

VALID_ASPECT_RATIOS = (
    "1:1", "9:16", "16:9", "3:4", "4:3",
    "3:2", "2:3", "5:4", "4:5", "21:9",
)

MessagePart = Union[str, ImagePayload]


def validate_aspect_ratio(ratio) -> str:
    """Return ratio unchanged if it is one of VALID_ASPECT_RATIOS (exact match)."""
    if ratio not in VALID_ASPECT_RATIOS:
        raise InvalidAspectRatio(ratio, VALID_ASPECT_RATIOS)
    return ratio


@dataclass
class ChatMessage:
    role: Literal["user", "model"]
    parts: list[MessagePart]


@dataclass
class ConversationContext:
    session_key: str
    transcript: list[ChatMessage] = field(default_factory=list)
    images: ImageHistoryStore = field(default_factory=ImageHistoryStore)
    aspect_ratio: str | None = None

    def effective_aspect_ratio(self, override: str | None = None) -> str:
        """
        Pick the ratio for a single image call.

        A per-call override wins but is never stored; otherwise the session
        default applies.

        Raises:
            InvalidAspectRatio: if the override is not a supported ratio.
            MissingAspectRatio: if there is neither an override nor a session default.
        """
        if override is not None:
            return validate_aspect_ratio(override)
        if self.aspect_ratio is None:
            raise MissingAspectRatio(VALID_ASPECT_RATIOS)
        return self.aspect_ratio

    def record_exchange(self, user_parts: list[MessagePart], reply: str) -> None:
        self.transcript.append(ChatMessage("user", list(user_parts)))
        self.transcript.append(ChatMessage("model", [reply]))


class ConversationRegistry:
    """Owns every ConversationContext in the process, keyed by session id."""

    def __init__(self, history_capacity: int = MAX_IMAGE_HISTORY):
        self.history_capacity = history_capacity
        self._contexts: dict[str, ConversationContext] = {}

    def __contains__(self, session_key: str) -> bool:
        return session_key in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)

    def get(self, session_key: str) -> ConversationContext | None:
        return self._contexts.get(session_key)

    def get_or_create(self, session_key: str = DEFAULT_SESSION) -> ConversationContext:
        context = self._contexts.get(session_key)
        if context is None:
            context = ConversationContext(
                session_key=session_key,
                images=ImageHistoryStore(self.history_capacity),
            )
            self._contexts[session_key] = context
            logger.debug("Created session %s", session_key)
        return context

    def clear(self, session_key: str) -> bool:
        """Discard the session entirely. Returns False if it did not exist."""
        existed = self._contexts.pop(session_key, None) is not None
        if existed:
            logger.info("Cleared session %s", session_key)
        return existed

    def set_aspect_ratio(self, session_key: str, ratio: str) -> ConversationContext:
        validate_aspect_ratio(ratio)
        context = self.get_or_create(session_key)
        context.aspect_ratio = ratio
        logger.info("Session %s aspect ratio set to %s", session_key, ratio)
        return context
