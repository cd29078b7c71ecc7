import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path

from stickerpipe.core.errors import TemporaryStorageError, VideoCodecError
from stickerpipe.services.geometry import resize_preserving_aspect_ratio

logger = logging.getLogger(__name__)

WEBM_MAX_SIDE = 512
WEBM_DEFAULT_CRF = 32
WEBM_DEFAULT_FPS = 30


class FfmpegVideoCodec:
    """调用 ffmpeg/ffprobe：webm 视频贴纸转动态 WebP，GIF/PNG 转 VP9 webm 贴纸。"""

    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        quality: int = 75,
    ) -> None:
        self._ffmpeg_bin = ffmpeg_bin
        self._ffprobe_bin = ffprobe_bin
        self._quality = quality

    def webm_to_webp(
        self,
        path: Path,
        max_width: int | None,
        max_height: int | None,
    ) -> tuple[bytes, int, int]:
        source_width, source_height = self.read_video_size(path)
        try:
            width, height = resize_preserving_aspect_ratio(
                source_width, source_height, max_width, max_height
            )
        except ValueError as exc:
            raise VideoCodecError(f"视频尺寸无效: {source_width}x{source_height}") from exc

        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=".webp") as out_file:
                out_path = Path(out_file.name)
        except OSError as exc:
            raise TemporaryStorageError(f"创建临时文件失败: {exc}") from exc

        try:
            # VP9+alpha 需要显式指定 libvpx-vp9 解码器，否则 alpha 通道会丢失
            _run_command(
                [
                    self._ffmpeg_bin,
                    "-y",
                    "-loglevel",
                    "error",
                    "-c:v",
                    "libvpx-vp9",
                    "-i",
                    str(path),
                    "-vf",
                    f"scale={width}:{height}:flags=lanczos",
                    "-c:v",
                    "libwebp",
                    "-lossless",
                    "0",
                    "-quality",
                    str(self._quality),
                    "-loop",
                    "0",
                    "-an",
                    str(out_path),
                ],
                "ffmpeg WebM 转 WebP",
            )
            try:
                content = out_path.read_bytes()
            except OSError as exc:
                raise TemporaryStorageError(f"读取转码结果失败: {exc}") from exc
        finally:
            _safe_unlink(out_path)

        if not content:
            raise VideoCodecError("ffmpeg 输出为空")
        return content, width, height

    def to_webm(
        self,
        path: Path,
        out_path: Path,
        size: int = WEBM_MAX_SIDE,
        crf: int = WEBM_DEFAULT_CRF,
        fps: int = WEBM_DEFAULT_FPS,
    ) -> None:
        """
        将 GIF/PNG 转为 VP9 webm 贴纸，最长边限制为 size，保持宽高比。

        GIF 按 fps 重新采样帧率；PNG 输出只有 1 帧的 webm。
        """
        extension = Path(path).suffix.lstrip(".").lower()
        scale_filter = _longest_side_scale_filter(size)
        if extension == "gif":
            filter_args = ["-vf", f"{scale_filter},fps={fps}"]
            frame_args: list[str] = []
        elif extension == "png":
            filter_args = ["-vf", scale_filter]
            frame_args = ["-frames:v", "1"]
        else:
            raise VideoCodecError(f"仅支持 GIF/PNG 转 webm: {path}")

        _run_command(
            [
                self._ffmpeg_bin,
                "-y",
                "-loglevel",
                "error",
                "-i",
                str(path),
                *filter_args,
                "-c:v",
                "libvpx-vp9",
                "-b:v",
                "0",
                "-crf",
                str(crf),
                "-an",
                *frame_args,
                str(out_path),
            ],
            f"ffmpeg {extension.upper()} 转 webm",
        )
        logger.info("已转换为 webm: %s -> %s", path, out_path)

    def read_video_size(self, path: Path) -> tuple[int, int]:
        stdout = _run_command(
            [
                self._ffprobe_bin,
                "-v",
                "error",
                "-select_streams",
                "v:0",
                "-show_entries",
                "stream=width,height",
                "-of",
                "json",
                str(path),
            ],
            "ffprobe 读取视频尺寸",
        )
        try:
            streams = json.loads(stdout)["streams"]
            return int(streams[0]["width"]), int(streams[0]["height"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise VideoCodecError(f"无法解析视频尺寸: {stdout[:200]!r}") from exc


def _run_command(args: list[str], action_name: str) -> str:
    try:
        process = subprocess.run(args, capture_output=True, check=False)
    except FileNotFoundError as exc:
        raise VideoCodecError(f"{action_name}失败: 缺少命令 {args[0]}") from exc

    if process.returncode != 0:
        error_text = process.stderr.decode("utf-8", errors="ignore").strip()
        raise VideoCodecError(f"{action_name}失败: {error_text}")
    return process.stdout.decode("utf-8", errors="ignore")


def _safe_unlink(path: Path) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        return


def _longest_side_scale_filter(size: int) -> str:
    # 横图限制宽度、竖图限制高度，另一边按比例取偶数
    return (
        f"scale=if(gt(a\\,1)\\,{size}\\,-2):if(gt(a\\,1)\\,-2\\,{size}):flags=lanczos"
    )
