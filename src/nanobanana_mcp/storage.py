"""
Filesystem helpers for reading reference images and saving generated ones.
"""
import os
import time
from pathlib import Path

DEFAULT_OUTPUT_DIR = Path.home() / "Documents" / "nanobanana_generated"

MIME_TYPE_MAP = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def guess_mime_type(path: str | Path) -> str:
    """Determine MIME type from file extension."""
    ext = os.path.splitext(str(path))[1].lower()
    return MIME_TYPE_MAP.get(ext, "image/png")


def absolute_path(path: str | Path) -> Path:
    """Expand ~ and anchor relative paths at the current working directory."""
    path = Path(path).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def build_output_path(
    output_path: str | None,
    *,
    stem: str,
    output_dir: Path | str = DEFAULT_OUTPUT_DIR,
) -> Path:
    """Pick where a generated image is written. The result always ends in .png.

    Args:
        output_path: Caller-supplied path. If None, a timestamped file in output_dir is used.
        stem: Filename prefix for the auto-generated name.
        output_dir: Directory for auto-generated names.
    """
    if not output_path:
        base = f"{stem}_{int(time.time() * 1000)}"
        path = Path(output_dir) / f"{base}.png"
        counter = 1
        while path.exists():
            path = Path(output_dir) / f"{base}_{counter}.png"
            counter += 1
        return path

    path = absolute_path(output_path)
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    return path


def save_image(data: bytes, path: Path | str) -> Path:
    """Write image bytes, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
