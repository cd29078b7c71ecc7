import asyncio
import logging
import sys
from pathlib import Path

from stickerpipe.adapters.ffmpeg_video import (
    WEBM_DEFAULT_CRF,
    WEBM_DEFAULT_FPS,
    WEBM_MAX_SIDE,
    FfmpegVideoCodec,
)
from stickerpipe.adapters.lottie_renderer import LottieCliRenderer
from stickerpipe.adapters.matrix_uploader import MatrixMediaUploader
from stickerpipe.adapters.pillow_image import PillowImageCodec
from stickerpipe.config import Settings
from stickerpipe.core.errors import StickerPipeError
from stickerpipe.core.models import StickerMedia
from stickerpipe.services.media_converter import MediaConverter
from stickerpipe.services.offload import OffloadExecutor
from stickerpipe.services.pipeline import StickerPipeline
from stickerpipe.services.upload_cache import SqliteUploadCache
from stickerpipe.services.webm_batch import convert_directory_to_webm
from stickerpipe.utils.logging import setup_logging
from stickerpipe.utils.url_masking import mask_token, mask_url


async def async_main(paths: list[Path]) -> int:
    settings = Settings()
    setup_logging(settings.log_level)

    logger = logging.getLogger(__name__)

    cache: SqliteUploadCache | None = None
    if settings.upload_cache_db_path:
        cache = SqliteUploadCache(settings.upload_cache_db_path)
        await cache.ensure_initialized()
    else:
        logger.info("未配置上传缓存，每次都会重新上传")

    logger.info(
        "StickerPipe 启动: server=%s token=%s workers=%s",
        mask_url(settings.matrix_homeserver_url),
        mask_token(settings.matrix_access_token),
        settings.worker_threads,
    )

    loaded, read_errors = read_sticker_files(paths)
    for path, error in read_errors.items():
        print(f"{path} -> 失败 [read] {error}")
    medias = [media for _, media in loaded]

    async with OffloadExecutor(max_workers=settings.worker_threads) as executor:
        pipeline = StickerPipeline(
            converter=MediaConverter(
                executor=executor,
                animation_renderer=LottieCliRenderer(),
                video_codec=FfmpegVideoCodec(),
                image_codec=PillowImageCodec(),
            ),
            upload_client=MatrixMediaUploader(timeout=settings.http_timeout_seconds),
            matrix_config=settings.build_matrix_config(),
            cache=cache,
            animation_format=settings.build_animation_format(),
            max_width=settings.sticker_max_width,
            max_height=settings.sticker_max_height,
        )
        outcomes = await pipeline.process_many(medias)

    failed = len(read_errors)
    for (path, _), outcome in zip(loaded, outcomes):
        if isinstance(outcome, StickerPipeError):
            failed += 1
            print(f"{path} -> 失败 [{outcome.kind}] {outcome}")
            continue
        state = "new" if outcome.is_new else "cached"
        print(f"{path} -> {outcome.mxc.url} ({state})")
    return 1 if failed else 0


def read_sticker_files(
    paths: list[Path],
) -> tuple[list[tuple[Path, StickerMedia]], dict[Path, str]]:
    """读取输入文件，读取失败的文件单独报告而不中断其它文件。"""
    loaded: list[tuple[Path, StickerMedia]] = []
    errors: dict[Path, str] = {}
    for path in paths:
        try:
            data = path.read_bytes()
        except OSError as exc:
            errors[path] = exc.strerror or str(exc)
            continue
        loaded.append((path, StickerMedia(file_name=path.name, data=data)))
    return loaded, errors


def main() -> None:
    paths = [Path(arg) for arg in sys.argv[1:]]
    if not paths:
        print("用法: stickerpipe <贴纸文件>...", file=sys.stderr)
        sys.exit(2)

    try:
        sys.exit(asyncio.run(async_main(paths)))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("收到中断信号，StickerPipe 正在退出")


async def async_webm_main(in_dir: Path, out_dir: Path, crf: int, fps: int) -> int:
    settings = Settings()
    setup_logging(settings.log_level)

    try:
        async with OffloadExecutor(max_workers=settings.worker_threads) as executor:
            outputs = await convert_directory_to_webm(
                executor,
                FfmpegVideoCodec(),
                in_dir,
                out_dir,
                size=WEBM_MAX_SIDE,
                crf=crf,
                fps=fps,
            )
    except NotADirectoryError as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 1
    except StickerPipeError as exc:
        print(f"转换失败 [{exc.kind}] {exc}", file=sys.stderr)
        return 1

    for out_path in outputs:
        print(f"完成：{out_path}")
    print("全部转换完成")
    return 0


def webm_main() -> None:
    args = sys.argv[1:]
    if len(args) < 2 or len(args) > 4:
        print("用法: stickerpipe-webm <输入目录> <输出目录> [CRF=32] [FPS=30]", file=sys.stderr)
        sys.exit(1)

    try:
        crf = int(args[2]) if len(args) > 2 else WEBM_DEFAULT_CRF
        fps = int(args[3]) if len(args) > 3 else WEBM_DEFAULT_FPS
    except ValueError:
        print("错误：CRF 与 FPS 必须是整数", file=sys.stderr)
        sys.exit(1)

    try:
        sys.exit(asyncio.run(async_webm_main(Path(args[0]), Path(args[1]), crf, fps)))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("收到中断信号，StickerPipe 正在退出")


if __name__ == "__main__":
    main()
