import io
from dataclasses import dataclass

from PIL import Image, ImageSequence, UnidentifiedImageError

from stickerpipe.core.errors import ImageDecodeError, RenderEncodeError

_DEFAULT_FRAME_DURATION_MS = 40


@dataclass(slots=True)
class AnimatedFrames:
    """逐帧缩放后的动图，编码时保持帧数、帧时长与循环次数。"""

    frames: list[Image.Image]
    durations: list[int]
    loop: int = 0

    @property
    def size(self) -> tuple[int, int]:
        return self.frames[0].size


class PillowImageCodec:
    """基于 Pillow 的图片解码、缩放与 WebP 编码，动态 WebP 会逐帧缩放。"""

    def __init__(self, quality: int = 90) -> None:
        self.quality = quality

    def decode(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ImageDecodeError(f"无法解码图片: {exc}") from exc
        # convert() 只保留当前帧，动图的模式转换推迟到逐帧缩放时
        if not _is_animated(img) and img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        return img

    def size(self, image: Image.Image) -> tuple[int, int]:
        return image.size

    def resample(
        self, image: Image.Image, width: int, height: int
    ) -> Image.Image | AnimatedFrames:
        try:
            if not _is_animated(image):
                return image.resize((width, height), Image.Resampling.LANCZOS)

            frames: list[Image.Image] = []
            durations: list[int] = []
            for frame in ImageSequence.Iterator(image):
                rgba = frame.convert("RGBA")
                frames.append(rgba.resize((width, height), Image.Resampling.LANCZOS))
                durations.append(int(frame.info.get("duration") or _DEFAULT_FRAME_DURATION_MS))
        except (OSError, ValueError) as exc:
            raise ImageDecodeError(f"图片缩放失败: {exc}") from exc
        return AnimatedFrames(
            frames=frames,
            durations=durations,
            loop=int(image.info.get("loop", 0)),
        )

    def encode_webp(self, image: Image.Image | AnimatedFrames) -> bytes:
        output = io.BytesIO()
        try:
            if isinstance(image, AnimatedFrames):
                image.frames[0].save(
                    output,
                    format="WEBP",
                    save_all=True,
                    append_images=image.frames[1:],
                    duration=image.durations,
                    loop=image.loop,
                    quality=self.quality,
                )
            else:
                image.save(output, format="WEBP", quality=self.quality)
        except (OSError, ValueError) as exc:
            raise RenderEncodeError(f"WebP 编码失败: {exc}") from exc
        return output.getvalue()


def _is_animated(image: Image.Image) -> bool:
    return bool(getattr(image, "is_animated", False))
