import io
import json
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageSequence, UnidentifiedImageError

from stickerpipe.core.errors import AnimationLoadError, RenderEncodeError, TemporaryStorageError
from stickerpipe.core.models import Rgb

logger = logging.getLogger(__name__)

# GIF 调色板中预留给透明色的索引
_TRANSPARENT_INDEX = 255
_ALPHA_THRESHOLD = 128
_DEFAULT_FRAME_DURATION_MS = 40


@dataclass(slots=True)
class LottieAnimation:
    path: Path
    width: int
    height: int
    frame_rate: float


class LottieCliRenderer:
    """
    使用 python-lottie 的 lottie_convert.py 渲染原始尺寸 GIF，
    再用 Pillow 逐帧缩放并编码为目标格式。
    """

    def __init__(self, lottie_convert_bin: str = "lottie_convert.py", webp_quality: int = 80) -> None:
        self._lottie_convert_bin = lottie_convert_bin
        self._webp_quality = webp_quality

    def load(self, path: Path) -> LottieAnimation:
        try:
            document = json.loads(Path(path).read_bytes())
        except OSError as exc:
            raise TemporaryStorageError(f"读取 Lottie 临时文件失败: {exc}") from exc
        except ValueError as exc:
            raise AnimationLoadError(f"Lottie 不是合法的 JSON: {exc}") from exc

        if not isinstance(document, dict):
            raise AnimationLoadError("Lottie 根节点必须是对象")
        try:
            width = int(document["w"])
            height = int(document["h"])
            frame_rate = float(document.get("fr") or 0)
        except (KeyError, TypeError, ValueError) as exc:
            raise AnimationLoadError(f"Lottie 缺少尺寸信息: {exc}") from exc
        if width <= 0 or height <= 0:
            raise AnimationLoadError(f"Lottie 尺寸无效: {width}x{height}")

        return LottieAnimation(path=Path(path), width=width, height=height, frame_rate=frame_rate)

    def render_gif(
        self,
        animation: LottieAnimation,
        width: int,
        height: int,
        transparent_color: Rgb,
    ) -> bytes:
        frames, durations = self._render_frames(animation, width, height)
        paletted = [_to_keyed_palette(frame, transparent_color) for frame in frames]

        output = io.BytesIO()
        try:
            paletted[0].save(
                output,
                format="GIF",
                save_all=True,
                append_images=paletted[1:],
                duration=durations,
                loop=0,
                transparency=_TRANSPARENT_INDEX,
                disposal=2,
                optimize=False,
            )
        except (OSError, ValueError) as exc:
            raise RenderEncodeError(f"GIF 编码失败: {exc}") from exc
        return output.getvalue()

    def render_webp(self, animation: LottieAnimation, width: int, height: int) -> bytes:
        frames, durations = self._render_frames(animation, width, height)

        output = io.BytesIO()
        try:
            frames[0].save(
                output,
                format="WEBP",
                save_all=True,
                append_images=frames[1:],
                duration=durations,
                loop=0,
                quality=self._webp_quality,
            )
        except (OSError, ValueError) as exc:
            raise RenderEncodeError(f"WebP 编码失败: {exc}") from exc
        return output.getvalue()

    def _render_frames(
        self,
        animation: LottieAnimation,
        width: int,
        height: int,
    ) -> tuple[list[Image.Image], list[int]]:
        raw_gif = self._render_native_gif(animation)
        try:
            source = Image.open(io.BytesIO(raw_gif))
            frames: list[Image.Image] = []
            durations: list[int] = []
            for frame in ImageSequence.Iterator(source):
                rgba = frame.convert("RGBA")
                if rgba.size != (width, height):
                    rgba = rgba.resize((width, height), Image.Resampling.LANCZOS)
                frames.append(rgba)
                durations.append(int(frame.info.get("duration") or _DEFAULT_FRAME_DURATION_MS))
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise RenderEncodeError(f"无法读取渲染结果: {exc}") from exc

        if not frames:
            raise RenderEncodeError("渲染结果没有任何帧")
        logger.debug(
            "Lottie 渲染帧数: frames=%s size=%sx%s fps=%s",
            len(frames),
            width,
            height,
            animation.frame_rate,
        )
        return frames, durations

    def _render_native_gif(self, animation: LottieAnimation) -> bytes:
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=".gif") as out_file:
                out_path = Path(out_file.name)
        except OSError as exc:
            raise TemporaryStorageError(f"创建临时文件失败: {exc}") from exc

        try:
            try:
                process = subprocess.run(
                    [self._lottie_convert_bin, str(animation.path), str(out_path)],
                    capture_output=True,
                    check=False,
                )
            except FileNotFoundError as exc:
                raise RenderEncodeError(
                    f"Lottie 渲染失败: 缺少命令 {self._lottie_convert_bin}"
                ) from exc

            if process.returncode != 0:
                error_text = process.stderr.decode("utf-8", errors="ignore").strip()
                raise RenderEncodeError(f"Lottie 渲染失败: {error_text}")

            try:
                return out_path.read_bytes()
            except OSError as exc:
                raise TemporaryStorageError(f"读取渲染结果失败: {exc}") from exc
        finally:
            try:
                os.unlink(out_path)
            except FileNotFoundError:
                pass


def _to_keyed_palette(frame: Image.Image, transparent_color: Rgb) -> Image.Image:
    """将 RGBA 帧量化为 255 色调色板，半透明以下的像素映射到预留的透明色索引。"""
    alpha = frame.getchannel("A")
    transparent_mask = alpha.point(lambda value: 255 if value < _ALPHA_THRESHOLD else 0)

    background = Image.new("RGB", frame.size, tuple(transparent_color))
    background.paste(frame.convert("RGB"), mask=alpha)
    paletted = background.quantize(colors=_TRANSPARENT_INDEX)

    palette = (paletted.getpalette() or [])[: _TRANSPARENT_INDEX * 3]
    palette += [0] * (_TRANSPARENT_INDEX * 3 - len(palette))
    palette += list(transparent_color)
    paletted.putpalette(palette)
    paletted.paste(_TRANSPARENT_INDEX, mask=transparent_mask)
    return paletted
