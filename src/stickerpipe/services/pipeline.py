import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from stickerpipe.core.errors import StickerPipeError
from stickerpipe.core.models import (
    AnimationFormat,
    MatrixConfig,
    Mxc,
    StickerFormat,
    StickerMedia,
    WebpAnimation,
)
from stickerpipe.core.ports import MediaUploadClient, UploadCache
from stickerpipe.services.media_converter import MediaConverter
from stickerpipe.services.uploader import upload

logger = logging.getLogger(__name__)

# 尚未确定尺寸时需要单独缩放的静态格式
_STILL_FORMATS = {StickerFormat.WEBP, StickerFormat.PNG, StickerFormat.JPEG}


@dataclass(slots=True)
class UploadedSticker:
    media: StickerMedia
    mxc: Mxc
    is_new: bool


class StickerPipeline:
    """编排 解压 -> 格式转换 -> 缩放 -> 去重上传。"""

    def __init__(
        self,
        converter: MediaConverter,
        upload_client: MediaUploadClient,
        matrix_config: MatrixConfig,
        cache: UploadCache | None = None,
        animation_format: AnimationFormat = WebpAnimation(),
        max_width: int | None = None,
        max_height: int | None = None,
    ) -> None:
        self._converter = converter
        self._upload_client = upload_client
        self._matrix_config = matrix_config
        self._cache = cache
        self._animation_format = animation_format
        self._max_width = max_width
        self._max_height = max_height

    async def convert(self, media: StickerMedia) -> StickerMedia:
        converter = self._converter
        media = await converter.convert_lottie(
            media,
            self._animation_format,
            self._max_width,
            self._max_height,
        )
        media = await converter.convert_webm(media, self._max_width, self._max_height)

        has_bounds = self._max_width is not None or self._max_height is not None
        if has_bounds and media.width == 0 and media.format in _STILL_FORMATS:
            media = await converter.resize(media, self._max_width, self._max_height)
        return media

    async def process(self, media: StickerMedia) -> UploadedSticker:
        logger.debug("开始处理贴纸: file=%s size=%s", media.file_name, len(media.data))
        converted = await self.convert(media)
        mxc, is_new = await upload(
            converted,
            self._matrix_config,
            self._upload_client,
            self._cache,
        )
        logger.info(
            "贴纸处理完成: file=%s -> %s mxc=%s new=%s",
            media.file_name,
            converted.file_name,
            mxc.url,
            is_new,
        )
        return UploadedSticker(media=converted, mxc=mxc, is_new=is_new)

    async def process_many(
        self,
        medias: Iterable[StickerMedia],
    ) -> list[UploadedSticker | StickerPipeError]:
        """并发处理多个贴纸，单个贴纸失败不影响其它贴纸。"""
        results = await asyncio.gather(
            *(self.process(media) for media in medias),
            return_exceptions=True,
        )
        outcomes: list[UploadedSticker | StickerPipeError] = []
        for result in results:
            if isinstance(result, StickerPipeError):
                logger.warning("贴纸处理失败: kind=%s error=%s", result.kind, result)
                outcomes.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(result)
        return outcomes
