import pytest

from stickerpipe.core.errors import NoMimeTypeError
from stickerpipe.core.models import Mxc, Rgb, StickerFormat, StickerMedia


class TestStickerFormat:
    def test_known_suffixes(self) -> None:
        assert StickerFormat.from_file_name("a.tgs") is StickerFormat.TGS
        assert StickerFormat.from_file_name("a.lottie") is StickerFormat.LOTTIE
        assert StickerFormat.from_file_name("a.webm") is StickerFormat.WEBM
        assert StickerFormat.from_file_name("a.webp") is StickerFormat.WEBP
        assert StickerFormat.from_file_name("a.gif") is StickerFormat.GIF

    def test_case_insensitive_and_jpg_alias(self) -> None:
        assert StickerFormat.from_file_name("A.TGS") is StickerFormat.TGS
        assert StickerFormat.from_file_name("photo.jpg") is StickerFormat.JPEG

    def test_unknown_or_missing_suffix(self) -> None:
        assert StickerFormat.from_file_name("a.bin") is None
        assert StickerFormat.from_file_name("noext") is None


class TestMimeType:
    def test_webm_is_video(self) -> None:
        assert StickerMedia("s.webm", b"").mime_type() == "video/webm"

    def test_upper_case_suffix_is_lowered(self) -> None:
        assert StickerMedia("A.WEBM", b"").mime_type() == "video/webm"
        assert StickerMedia("B.PNG", b"").mime_type() == "image/png"

    def test_others_are_image(self) -> None:
        assert StickerMedia("s.webp", b"").mime_type() == "image/webp"
        assert StickerMedia("s.gif", b"").mime_type() == "image/gif"

    def test_missing_suffix_raises(self) -> None:
        with pytest.raises(NoMimeTypeError) as exc_info:
            StickerMedia("sticker", b"data").mime_type()
        assert exc_info.value.kind == "no_mime_type"


def test_with_content_replaces_suffix_and_data_together() -> None:
    media = StickerMedia("pack.v2.tgs", b"old")
    converted = media.with_content(StickerFormat.LOTTIE, b"new", 512, 512)

    assert converted.file_name == "pack.v2.lottie"
    assert converted.data == b"new"
    assert (converted.width, converted.height) == (512, 512)
    assert media.file_name == "pack.v2.tgs"
    assert media.data == b"old"


def test_with_content_keeps_directory() -> None:
    media = StickerMedia("dir/a.tgs", b"old")
    converted = media.with_content(StickerFormat.LOTTIE, b"new", 0, 0)
    assert converted.file_name == "dir/a.lottie"


def test_mxc_parts() -> None:
    mxc = Mxc("mxc://example.org/abcDEF")
    assert mxc.server_name == "example.org"
    assert mxc.media_id == "abcDEF"
    assert str(mxc) == "mxc://example.org/abcDEF"


def test_mxc_rejects_other_schemes() -> None:
    with pytest.raises(ValueError):
        Mxc("https://example.org/abc").server_name


def test_rgb_from_hex() -> None:
    assert Rgb.from_hex("#ff8000") == Rgb(255, 128, 0)
    with pytest.raises(ValueError):
        Rgb.from_hex("#fff")
