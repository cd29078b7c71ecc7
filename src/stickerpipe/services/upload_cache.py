import asyncio
import logging
import sqlite3
import time
from pathlib import Path

from stickerpipe.core.errors import DatabaseError

logger = logging.getLogger(__name__)


class SqliteUploadCache:
    """基于 sqlite 的上传缓存：内容指纹 -> mxc 地址。"""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        self._lock = asyncio.Lock()

    async def ensure_initialized(self) -> None:
        async with self._lock:
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                with self._connect() as conn:
                    conn.executescript(
                        """
                        CREATE TABLE IF NOT EXISTS uploaded_media (
                            fingerprint BLOB PRIMARY KEY,
                            mxc_url TEXT NOT NULL,
                            created_at INTEGER NOT NULL
                        );
                        """
                    )
                    conn.commit()
            except (sqlite3.Error, OSError) as exc:
                raise DatabaseError(f"初始化上传缓存失败: {exc}") from exc

        logger.info("上传缓存数据库已初始化: %s", self._db_path)

    async def get(self, fingerprint: bytes) -> str | None:
        async with self._lock:
            try:
                with self._connect() as conn:
                    row = conn.execute(
                        """
                        SELECT mxc_url
                        FROM uploaded_media
                        WHERE fingerprint = ?
                        """,
                        (fingerprint,),
                    ).fetchone()
            except sqlite3.Error as exc:
                raise DatabaseError(f"查询上传缓存失败: {exc}") from exc

        return str(row["mxc_url"]) if row else None

    async def add(self, fingerprint: bytes, url: str) -> None:
        now = int(time.time())
        async with self._lock:
            try:
                with self._connect() as conn:
                    conn.execute(
                        """
                        INSERT INTO uploaded_media(fingerprint, mxc_url, created_at)
                        VALUES (?, ?, ?)
                        ON CONFLICT(fingerprint)
                        DO UPDATE SET mxc_url = excluded.mxc_url
                        """,
                        (fingerprint, url, now),
                    )
                    conn.commit()
            except sqlite3.Error as exc:
                raise DatabaseError(f"写入上传缓存失败: {exc}") from exc

        logger.debug("上传缓存已记录: mxc=%s", url)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn


class MemoryUploadCache:
    """进程内上传缓存，进程退出即丢失。"""

    def __init__(self) -> None:
        self._entries: dict[bytes, str] = {}

    async def get(self, fingerprint: bytes) -> str | None:
        return self._entries.get(fingerprint)

    async def add(self, fingerprint: bytes, url: str) -> None:
        self._entries[fingerprint] = url

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries
