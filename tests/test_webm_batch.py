import asyncio
from pathlib import Path

import pytest

from stickerpipe.core.errors import VideoCodecError
from stickerpipe.services.offload import OffloadExecutor
from stickerpipe.services.webm_batch import collect_webm_sources, convert_directory_to_webm


class FakeWebmEncoder:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.calls: list[tuple[str, str, int, int, int]] = []

    def to_webm(self, path: Path, out_path: Path, size: int, crf: int, fps: int) -> None:
        if path.name in self.fail_for:
            raise VideoCodecError(f"ffmpeg failed on {path.name}")
        self.calls.append((path.name, out_path.name, size, crf, fps))
        out_path.write_bytes(b"webm")


def _convert(encoder: FakeWebmEncoder, in_dir: Path, out_dir: Path, **kwargs) -> list[Path]:
    async def _run() -> list[Path]:
        async with OffloadExecutor(max_workers=1) as executor:
            return await convert_directory_to_webm(executor, encoder, in_dir, out_dir, **kwargs)

    return asyncio.run(_run())


def _make_sources(in_dir: Path) -> None:
    in_dir.mkdir()
    (in_dir / "b.gif").write_bytes(b"GIF89a")
    (in_dir / "a.PNG").write_bytes(b"png")
    (in_dir / "notes.txt").write_text("skip me")
    (in_dir / "nested.gif").mkdir()


def test_collect_sources_filters_by_suffix(tmp_path) -> None:
    _make_sources(tmp_path / "in")
    assert [p.name for p in collect_webm_sources(tmp_path / "in")] == ["a.PNG", "b.gif"]


def test_converts_each_source_into_out_dir(tmp_path) -> None:
    _make_sources(tmp_path / "in")
    encoder = FakeWebmEncoder()

    outputs = _convert(encoder, tmp_path / "in", tmp_path / "out", crf=28, fps=24)

    assert outputs == [tmp_path / "out" / "a.webm", tmp_path / "out" / "b.webm"]
    assert all(path.read_bytes() == b"webm" for path in outputs)
    assert encoder.calls == [
        ("a.PNG", "a.webm", 512, 28, 24),
        ("b.gif", "b.webm", 512, 28, 24),
    ]


def test_stops_at_first_failure(tmp_path) -> None:
    _make_sources(tmp_path / "in")
    encoder = FakeWebmEncoder(fail_for={"a.PNG"})

    with pytest.raises(VideoCodecError):
        _convert(encoder, tmp_path / "in", tmp_path / "out")
    assert encoder.calls == []


def test_missing_input_dir_raises(tmp_path) -> None:
    with pytest.raises(NotADirectoryError):
        _convert(FakeWebmEncoder(), tmp_path / "missing", tmp_path / "out")
    assert not (tmp_path / "out").exists()
