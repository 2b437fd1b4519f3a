"""
Resolve image references ('last', 'history:N', or a file path) into image payloads.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .errors import InvalidReference
from .history import ImageHistoryEntry, ImageHistoryStore, ImagePayload
from .storage import DEFAULT_OUTPUT_DIR, absolute_path, guess_mime_type

logger = logging.getLogger(__name__)

# expanduser raises RuntimeError for an unknown ~user; a NUL byte in a path raises ValueError
_UNREADABLE = (OSError, ValueError, RuntimeError)


@dataclass(frozen=True)
class ResolvedImage:
    reference: str
    payload: ImagePayload
    path: str
    entry: ImageHistoryEntry | None = None

    @property
    def from_history(self) -> bool:
        return self.entry is not None


@dataclass(frozen=True)
class FailedReference:
    reference: str
    reason: str


def _read_payload(path: Path) -> ImagePayload:
    return ImagePayload(path.read_bytes(), guess_mime_type(path))


def resolve_reference(
    store: ImageHistoryStore,
    reference: str,
    *,
    output_dir: Path | str | None = None,
) -> ResolvedImage:
    """
    Resolve a single reference, first match wins:

    1. 'last' / 'history:N' in the session history (no disk I/O)
    2. the path itself, relative to the current working directory
    3. the path's base filename inside the output directory

    Raises:
        InvalidReference: if none of the above yields a readable image.
    """
    entry = store.get_by_reference(reference)
    if entry is not None:
        return ResolvedImage(reference, entry.payload, entry.file_path, entry)

    try:
        path = absolute_path(reference)
        return ResolvedImage(reference, _read_payload(path), str(path))
    except _UNREADABLE as e:
        first_error = e

    fallback = Path(output_dir or DEFAULT_OUTPUT_DIR) / Path(reference).name
    try:
        payload = _read_payload(fallback)
    except _UNREADABLE as e:
        logger.debug("Could not read %s (%s) or %s (%s)", reference, first_error, fallback, e)
        raise InvalidReference(reference) from e

    logger.info("Resolved %s from output directory: %s", reference, fallback)
    return ResolvedImage(reference, payload, str(fallback))


def resolve_references(
    store: ImageHistoryStore,
    references: Iterable[str],
    *,
    output_dir: Path | str | None = None,
    limit: int | None = None,
) -> tuple[list[ResolvedImage], list[FailedReference]]:
    """Resolve a batch of references, collecting failures instead of raising."""
    references = list(references or [])
    if limit is not None:
        references = references[:limit]

    resolved = []
    failed = []
    for reference in references:
        try:
            resolved.append(resolve_reference(store, reference, output_dir=output_dir))
        except InvalidReference as e:
            failed.append(FailedReference(reference, str(e)))
    return resolved, failed


def format_failures(failed: list[FailedReference], noun: str = "image") -> str:
    """Render the warning block appended to a tool result, or '' if nothing failed."""
    if not failed:
        return ""
    lines = [f"Warning: {len(failed)} {noun}(s) could not be loaded:"]
    lines.extend(f"  - {f.reference}: {f.reason}" for f in failed)
    return "\n\n" + "\n".join(lines)
