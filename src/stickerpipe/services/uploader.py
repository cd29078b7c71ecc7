import hashlib
import logging

from stickerpipe.core.models import MatrixConfig, Mxc, StickerMedia
from stickerpipe.core.ports import MediaUploadClient, UploadCache

logger = logging.getLogger(__name__)


def content_fingerprint(data: bytes) -> bytes:
    return hashlib.sha512(data).digest()


class _LazyFingerprint:
    """单次上传调用内的指纹，首次使用时计算并缓存。"""

    __slots__ = ("_data", "_value")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._value: bytes | None = None

    def get(self) -> bytes:
        if self._value is None:
            self._value = content_fingerprint(self._data)
        return self._value


async def upload(
    media: StickerMedia,
    config: MatrixConfig,
    client: MediaUploadClient,
    cache: UploadCache | None = None,
) -> tuple[Mxc, bool]:
    """
    上传贴纸，已上传过的相同内容直接复用缓存中的 mxc 地址。

    返回 (mxc, 是否本次新上传)。并发上传同一内容时可能各自上传一次，
    缓存写入以后到者为准。
    """
    fingerprint = _LazyFingerprint(media.data)

    if cache is not None:
        cached_url = await cache.get(fingerprint.get())
        if cached_url is not None:
            logger.debug("命中上传缓存: file=%s mxc=%s", media.file_name, cached_url)
            return Mxc(cached_url), False

    mime_type = media.mime_type()
    mxc = await client.upload(config, media.file_name, media.data, mime_type)

    if cache is not None:
        await cache.add(fingerprint.get(), mxc.url)

    logger.info(
        "上传成功: file=%s mime=%s size=%s mxc=%s",
        media.file_name,
        mime_type,
        len(media.data),
        mxc.url,
    )
    return mxc, True
