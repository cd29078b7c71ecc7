import gzip
import logging
import os
import tempfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from stickerpipe.core.errors import (
    AnimationLoadError,
    DecompressionError,
    ImageDecodeError,
    TemporaryStorageError,
)
from stickerpipe.core.models import (
    AnimationFormat,
    GifAnimation,
    StickerFormat,
    StickerMedia,
    WebpAnimation,
)
from stickerpipe.core.ports import AnimationRenderer, StillImageCodec, VideoCodec
from stickerpipe.services.geometry import resize_preserving_aspect_ratio
from stickerpipe.services.offload import OffloadExecutor

logger = logging.getLogger(__name__)


class MediaConverter:
    """
    贴纸格式转换的各个阶段。

    每个阶段只处理自己对应的输入格式，其它格式原样返回，因此可以任意串联。
    CPU 密集的部分统一交给 OffloadExecutor 执行。
    """

    def __init__(
        self,
        executor: OffloadExecutor,
        animation_renderer: AnimationRenderer,
        video_codec: VideoCodec,
        image_codec: StillImageCodec,
    ) -> None:
        self._executor = executor
        self._animation_renderer = animation_renderer
        self._video_codec = video_codec
        self._image_codec = image_codec

    async def unpack_tgs(self, media: StickerMedia) -> StickerMedia:
        if media.format is not StickerFormat.TGS:
            return media
        logger.debug("解压 TGS: file=%s size=%s", media.file_name, len(media.data))
        return await self._executor.run(_unpack_tgs, media)

    async def convert_lottie(
        self,
        media: StickerMedia,
        animation_format: AnimationFormat = WebpAnimation(),
        max_width: int | None = None,
        max_height: int | None = None,
    ) -> StickerMedia:
        media = await self.unpack_tgs(media)
        if media.format is not StickerFormat.LOTTIE:
            return media
        logger.debug(
            "转换 Lottie: file=%s format=%s max=%sx%s",
            media.file_name,
            type(animation_format).__name__,
            max_width,
            max_height,
        )
        return await self._executor.run(
            self._convert_lottie_blocking,
            media,
            animation_format,
            max_width,
            max_height,
        )

    async def convert_webm(
        self,
        media: StickerMedia,
        max_width: int | None = None,
        max_height: int | None = None,
    ) -> StickerMedia:
        if media.format is not StickerFormat.WEBM:
            return media
        logger.debug(
            "转换 WebM: file=%s max=%sx%s",
            media.file_name,
            max_width,
            max_height,
        )
        return await self._executor.run(
            self._convert_webm_blocking,
            media,
            max_width,
            max_height,
        )

    async def resize(
        self,
        media: StickerMedia,
        max_width: int | None,
        max_height: int | None,
    ) -> StickerMedia:
        logger.debug("缩放静态图片: file=%s max=%sx%s", media.file_name, max_width, max_height)
        return await self._executor.run(self._resize_blocking, media, max_width, max_height)

    def _convert_lottie_blocking(
        self,
        media: StickerMedia,
        animation_format: AnimationFormat,
        max_width: int | None,
        max_height: int | None,
    ) -> StickerMedia:
        renderer = self._animation_renderer
        with _scoped_temp_file(media.data, suffix=".json") as path:
            animation = renderer.load(path)
            try:
                width, height = resize_preserving_aspect_ratio(
                    animation.width, animation.height, max_width, max_height
                )
            except ValueError as exc:
                raise AnimationLoadError(f"Lottie 尺寸无效: {media.file_name}") from exc
            if isinstance(animation_format, GifAnimation):
                data = renderer.render_gif(
                    animation, width, height, animation_format.transparent_color
                )
                fmt = StickerFormat.GIF
            else:
                data = renderer.render_webp(animation, width, height)
                fmt = StickerFormat.WEBP

        logger.info(
            "Lottie 转换完成: file=%s -> %s %sx%s",
            media.file_name,
            fmt.value,
            width,
            height,
        )
        return media.with_content(fmt, data, width, height)

    def _convert_webm_blocking(
        self,
        media: StickerMedia,
        max_width: int | None,
        max_height: int | None,
    ) -> StickerMedia:
        with _scoped_temp_file(media.data, suffix=".webm") as path:
            data, width, height = self._video_codec.webm_to_webp(path, max_width, max_height)

        logger.info("WebM 转换完成: file=%s -> webp %sx%s", media.file_name, width, height)
        return media.with_content(StickerFormat.WEBP, data, width, height)

    def _resize_blocking(
        self,
        media: StickerMedia,
        max_width: int | None,
        max_height: int | None,
    ) -> StickerMedia:
        codec = self._image_codec
        image = codec.decode(media.data)
        source_width, source_height = codec.size(image)
        try:
            width, height = resize_preserving_aspect_ratio(
                source_width, source_height, max_width, max_height
            )
        except ValueError as exc:
            raise ImageDecodeError(f"图片尺寸无效: {media.file_name}") from exc
        image = codec.resample(image, width, height)
        data = codec.encode_webp(image)
        return media.with_content(StickerFormat.WEBP, data, width, height)


def _unpack_tgs(media: StickerMedia) -> StickerMedia:
    try:
        data = gzip.decompress(media.data)
    except (OSError, EOFError, zlib.error) as exc:
        raise DecompressionError(f"TGS 解压失败: {media.file_name}: {exc}") from exc
    return media.with_content(StickerFormat.LOTTIE, data, media.width, media.height)


@contextmanager
def _scoped_temp_file(data: bytes, suffix: str) -> Iterator[Path]:
    """将数据写入临时文件并返回路径，退出时无论成功与否都删除该文件。"""
    try:
        tmp = tempfile.NamedTemporaryFile(delete=False, suffix=suffix)
    except OSError as exc:
        raise TemporaryStorageError(f"创建临时文件失败: {exc}") from exc

    path = Path(tmp.name)
    try:
        try:
            with tmp:
                tmp.write(data)
        except OSError as exc:
            raise TemporaryStorageError(f"写入临时文件失败: {path}: {exc}") from exc
        yield path
    finally:
        _safe_unlink(path)


def _safe_unlink(path: Path) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        return
