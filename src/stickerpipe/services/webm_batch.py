import logging
from pathlib import Path

from stickerpipe.core.ports import WebmEncoder
from stickerpipe.services.offload import OffloadExecutor

logger = logging.getLogger(__name__)

WEBM_SOURCE_SUFFIXES = {".gif", ".png"}


def collect_webm_sources(in_dir: Path) -> list[Path]:
    """列出目录下可转为 webm 的 GIF/PNG 文件（扩展名不区分大小写）。"""
    return sorted(
        path
        for path in in_dir.iterdir()
        if path.is_file() and path.suffix.lower() in WEBM_SOURCE_SUFFIXES
    )


async def convert_directory_to_webm(
    executor: OffloadExecutor,
    encoder: WebmEncoder,
    in_dir: Path,
    out_dir: Path,
    size: int = 512,
    crf: int = 32,
    fps: int = 30,
) -> list[Path]:
    """
    批量将 in_dir 下的 GIF/PNG 转为 out_dir 下同名的 .webm。

    任意一个文件转换失败即中止，已生成的文件保留。
    """
    if not in_dir.is_dir():
        raise NotADirectoryError(f"输入目录不存在: {in_dir}")
    out_dir.mkdir(parents=True, exist_ok=True)

    sources = collect_webm_sources(in_dir)
    logger.info(
        "开始批量转换 webm: in=%s out=%s files=%s crf=%s fps=%s",
        in_dir,
        out_dir,
        len(sources),
        crf,
        fps,
    )

    outputs: list[Path] = []
    for source in sources:
        out_path = out_dir / f"{source.stem}.webm"
        await executor.run(encoder.to_webm, source, out_path, size, crf, fps)
        outputs.append(out_path)

    logger.info("批量转换完成: %s 个文件", len(outputs))
    return outputs
