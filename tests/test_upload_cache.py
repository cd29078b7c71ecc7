import asyncio

import pytest

from stickerpipe.core.errors import DatabaseError
from stickerpipe.services.upload_cache import SqliteUploadCache


async def _roundtrip(db_path: str) -> None:
    cache = SqliteUploadCache(db_path)
    await cache.ensure_initialized()

    assert await cache.get(b"\x01" * 64) is None
    await cache.add(b"\x01" * 64, "mxc://example.org/one")
    assert await cache.get(b"\x01" * 64) == "mxc://example.org/one"

    # 重复写入同一指纹时以最后一次为准
    await cache.add(b"\x01" * 64, "mxc://example.org/two")
    assert await cache.get(b"\x01" * 64) == "mxc://example.org/two"


async def _persists_across_instances(db_path: str) -> None:
    first = SqliteUploadCache(db_path)
    await first.ensure_initialized()
    await first.add(b"fp", "mxc://example.org/persisted")

    second = SqliteUploadCache(db_path)
    await second.ensure_initialized()
    assert await second.get(b"fp") == "mxc://example.org/persisted"


def test_sqlite_cache_roundtrip(tmp_path) -> None:
    asyncio.run(_roundtrip(str(tmp_path / "nested" / "cache.db")))


def test_sqlite_cache_persists(tmp_path) -> None:
    asyncio.run(_persists_across_instances(str(tmp_path / "cache.db")))


def test_sqlite_cache_get_before_init_raises(tmp_path) -> None:
    cache = SqliteUploadCache(str(tmp_path / "empty.db"))
    with pytest.raises(DatabaseError):
        asyncio.run(cache.get(b"fp"))
