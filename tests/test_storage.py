from __future__ import annotations

from pathlib import Path

from nanobanana_mcp.storage import build_output_path, guess_mime_type, save_image


def test_guess_mime_type() -> None:
    assert guess_mime_type("a.PNG") == "image/png"
    assert guess_mime_type("a.jpeg") == "image/jpeg"
    assert guess_mime_type("a.gif") == "image/gif"
    assert guess_mime_type("no_extension") == "image/png"


def test_auto_output_path(tmp_path: Path) -> None:
    path = build_output_path(None, stem="generated", output_dir=tmp_path)
    assert path.parent == tmp_path
    assert path.name.startswith("generated_")
    assert path.suffix == ".png"


def test_auto_output_path_avoids_existing_file(tmp_path: Path) -> None:
    first = build_output_path(None, stem="generated", output_dir=tmp_path)
    save_image(b"one", first)
    second = build_output_path(None, stem="generated", output_dir=tmp_path)
    assert second != first
    assert not second.exists()


def test_explicit_output_path_is_absolute_png(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert build_output_path("pics/cat.jpg", stem="x") == Path.cwd() / "pics" / "cat.png"
    assert build_output_path("pics/cat", stem="x") == Path.cwd() / "pics" / "cat.png"
    assert build_output_path(str(tmp_path / "dog.PNG"), stem="x") == tmp_path / "dog.PNG"


def test_save_image_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "c.png"
    save_image(b"bytes", target)
    assert target.read_bytes() == b"bytes"
