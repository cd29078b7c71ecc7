class StickerPipeError(Exception):
    """贴纸转换/上传流程中的统一错误基类，`kind` 标明失败的阶段。"""

    kind = "unknown"


class NoMimeTypeError(StickerPipeError):
    """文件名缺少扩展名，无法推断 MIME 类型。"""

    kind = "no_mime_type"


class DecompressionError(StickerPipeError):
    """TGS 解压失败（数据损坏或被截断）。"""

    kind = "decompression"


class AnimationLoadError(StickerPipeError):
    """Lottie 动画无法加载。"""

    kind = "animation_load"


class RenderEncodeError(StickerPipeError):
    """动画渲染或编码失败。"""

    kind = "render_encode"


class VideoCodecError(StickerPipeError):
    """视频贴纸转码失败。"""

    kind = "video_codec"


class ImageDecodeError(StickerPipeError):
    """数据不是可解码的静态图片。"""

    kind = "image_decode"


class TemporaryStorageError(StickerPipeError):
    """临时文件读写失败。"""

    kind = "temporary_storage"


class DatabaseError(StickerPipeError):
    """上传缓存读写失败。"""

    kind = "database"


class TransportError(StickerPipeError):
    """上传到媒体服务器失败。"""

    kind = "transport"


class WorkerCrashedError(StickerPipeError):
    """后台工作线程中的任务出现未预期的异常。"""

    kind = "worker_crashed"
