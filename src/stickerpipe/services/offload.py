import asyncio
import functools
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from stickerpipe.core.errors import StickerPipeError, WorkerCrashedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OffloadExecutor:
    """
    在有界线程池中执行 CPU 密集的同步任务，调用方协程挂起等待而不阻塞事件循环。

    - 任务尚未开始时取消调用方协程，任务不会再执行
    - 任务已开始后取消，任务会继续跑完，结果被丢弃
    """

    def __init__(self, max_workers: int = 4) -> None:
        if max_workers < 1:
            raise ValueError("max_workers 至少为 1")
        self._max_workers = max_workers
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="stickerpipe-worker",
        )

    @property
    def max_workers(self) -> int:
        return self._max_workers

    async def run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        call = functools.partial(func, *args)
        try:
            return await loop.run_in_executor(self._pool, call)
        except StickerPipeError:
            raise
        except Exception as exc:
            logger.exception("后台任务异常: %s", getattr(func, "__name__", func))
            raise WorkerCrashedError(f"后台任务异常: {exc!r}") from exc

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=True)

    async def __aenter__(self) -> "OffloadExecutor":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await asyncio.to_thread(self.shutdown)
