from pathlib import Path
from typing import Any, Protocol

from stickerpipe.core.models import MatrixConfig, Mxc, Rgb


class UploadCache(Protocol):
    async def get(self, fingerprint: bytes) -> str | None:
        """按内容指纹查询已上传的 mxc 地址，未命中返回 None。"""

    async def add(self, fingerprint: bytes, url: str) -> None:
        """记录内容指纹与 mxc 地址的对应关系。"""


class MediaUploadClient(Protocol):
    async def upload(
        self,
        config: MatrixConfig,
        file_name: str,
        data: bytes,
        mime_type: str,
    ) -> Mxc:
        """上传媒体文件，返回服务端分配的 mxc 地址。"""


class LoadedAnimation(Protocol):
    width: int
    height: int


class AnimationRenderer(Protocol):
    def load(self, path: Path) -> LoadedAnimation:
        """从文件加载 Lottie 动画，读取原始尺寸。"""

    def render_gif(
        self,
        animation: LoadedAnimation,
        width: int,
        height: int,
        transparent_color: Rgb,
    ) -> bytes:
        """按指定尺寸渲染为 GIF。"""

    def render_webp(self, animation: LoadedAnimation, width: int, height: int) -> bytes:
        """按指定尺寸渲染为动态 WebP。"""


class VideoCodec(Protocol):
    def webm_to_webp(
        self,
        path: Path,
        max_width: int | None,
        max_height: int | None,
    ) -> tuple[bytes, int, int]:
        """将 webm 视频贴纸转为动态 WebP，返回 (数据, 宽, 高)。"""


class StillImageCodec(Protocol):
    def decode(self, data: bytes) -> Any:
        """解码静态图片。"""

    def size(self, image: Any) -> tuple[int, int]:
        """返回图片的 (宽, 高)。"""

    def resample(self, image: Any, width: int, height: int) -> Any:
        """使用高质量滤镜缩放图片。"""

    def encode_webp(self, image: Any) -> bytes:
        """编码为 WebP。"""


class WebmEncoder(Protocol):
    def to_webm(self, path: Path, out_path: Path, size: int, crf: int, fps: int) -> None:
        """将 GIF/PNG 转为最长边不超过 size 的 VP9 webm 贴纸。"""
