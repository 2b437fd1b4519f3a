"""
Per-session image history: a bounded, insertion-ordered log of generated and edited images.
"""
import base64
import logging
import re
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Literal

logger = logging.getLogger(__name__)

# Maximum number of images kept per session
MAX_IMAGE_HISTORY = 10

LAST_REFERENCE = "last"
_HISTORY_REFERENCE = re.compile(r"history:([0-9]+)")

Provenance = Literal["generated", "edited"]


@dataclass(frozen=True)
class ImagePayload:
    """Raw image bytes plus their MIME type."""

    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class ImageHistoryEntry:
    id: str
    file_path: str
    base64_data: str
    prompt: str
    type: Provenance
    mime_type: str = "image/png"
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        *,
        file_path: str,
        prompt: str,
        type: Provenance,
        mime_type: str = "image/png",
    ) -> "ImageHistoryEntry":
        return cls(
            id=new_image_id(),
            file_path=file_path,
            base64_data=base64.b64encode(data).decode("ascii"),
            prompt=prompt,
            type=type,
            mime_type=mime_type,
        )

    @property
    def payload(self) -> ImagePayload:
        return ImagePayload(base64.b64decode(self.base64_data), self.mime_type)


def new_image_id() -> str:
    """Return an id of the form img_<epoch-ms>_<random suffix>."""
    return f"img_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def parse_history_index(reference: str) -> int | None:
    """Return N for a 'history:N' reference, or None if the string is not one."""
    match = _HISTORY_REFERENCE.fullmatch(reference)
    if match is None:
        return None
    return int(match.group(1))


class ImageHistoryStore:
    """FIFO-bounded image log.

    Index N in 'history:N' addresses the N-th entry currently retained, so
    indices shift down by one each time the oldest entry is evicted.
    """

    def __init__(self, capacity: int = MAX_IMAGE_HISTORY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: deque[ImageHistoryEntry] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ImageHistoryEntry]:
        return iter(self._entries)

    def append(self, entry: ImageHistoryEntry) -> None:
        if len(self._entries) == self.capacity:
            logger.debug("Evicting oldest history image %s", self._entries[0].id)
        self._entries.append(entry)

    def get_by_reference(self, reference: str) -> ImageHistoryEntry | None:
        """Look up 'last' or 'history:N'. Anything else, or an out-of-range index, yields None."""
        if not self._entries:
            return None

        if reference == LAST_REFERENCE:
            return self._entries[-1]

        index = parse_history_index(reference)
        if index is None or index >= len(self._entries):
            return None
        return self._entries[index]

    def recent(self, count: int) -> list[ImageHistoryEntry]:
        """Return up to `count` newest entries, oldest first."""
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def clear(self) -> None:
        self._entries.clear()

    def list(self) -> list[tuple[int, ImageHistoryEntry]]:
        return list(enumerate(self._entries))
