from dataclasses import dataclass, replace
from enum import Enum
from pathlib import PurePath
from typing import NamedTuple

from stickerpipe.core.errors import NoMimeTypeError


class StickerFormat(str, Enum):
    TGS = "tgs"
    LOTTIE = "lottie"
    WEBM = "webm"
    WEBP = "webp"
    GIF = "gif"
    PNG = "png"
    JPEG = "jpeg"

    @classmethod
    def from_file_name(cls, file_name: str) -> "StickerFormat | None":
        extension = PurePath(file_name).suffix.lstrip(".").lower()
        if extension == "jpg":
            return cls.JPEG
        try:
            return cls(extension)
        except ValueError:
            return None


class Rgb(NamedTuple):
    r: int
    g: int
    b: int

    @classmethod
    def from_hex(cls, value: str) -> "Rgb":
        text = value.strip().lstrip("#")
        if len(text) != 6:
            raise ValueError(f"颜色格式应为 #rrggbb: {value!r}")
        return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))


@dataclass(frozen=True, slots=True)
class WebpAnimation:
    pass


@dataclass(frozen=True, slots=True)
class GifAnimation:
    # GIF 只有 1 bit 透明度，透明像素统一替换为该颜色并作为调色板透明键
    transparent_color: Rgb


AnimationFormat = WebpAnimation | GifAnimation


@dataclass(frozen=True, slots=True)
class StickerMedia:
    """在各转换阶段之间传递的贴纸数据，扩展名即格式标记。"""

    file_name: str
    data: bytes
    width: int = 0
    height: int = 0

    @property
    def format(self) -> StickerFormat | None:
        return StickerFormat.from_file_name(self.file_name)

    def mime_type(self) -> str:
        extension = PurePath(self.file_name).suffix.lstrip(".").lower()
        if not extension:
            raise NoMimeTypeError(f"文件名缺少扩展名: {self.file_name!r}")
        if extension == "webm":
            return f"video/{extension}"
        return f"image/{extension}"

    def with_content(
        self,
        fmt: StickerFormat,
        data: bytes,
        width: int,
        height: int,
    ) -> "StickerMedia":
        """整体替换数据与扩展名，保证文件名与内容编码始终一致。"""
        file_name = str(PurePath(self.file_name).with_suffix(f".{fmt.value}"))
        return replace(
            self,
            file_name=file_name,
            data=data,
            width=width,
            height=height,
        )


@dataclass(frozen=True, slots=True)
class Mxc:
    url: str

    @property
    def server_name(self) -> str:
        return self._parts()[0]

    @property
    def media_id(self) -> str:
        return self._parts()[1]

    def _parts(self) -> tuple[str, str]:
        if not self.url.startswith("mxc://"):
            raise ValueError(f"不是合法的 mxc 地址: {self.url!r}")
        server_name, _, media_id = self.url[len("mxc://") :].partition("/")
        return server_name, media_id

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True, slots=True)
class MatrixConfig:
    homeserver_url: str
    access_token: str
