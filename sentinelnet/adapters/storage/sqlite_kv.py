"""
SQLite-based key-value store for SentinelNet.

This module implements the KVStorePort on a device-local SQLite file,
used for the SOS snapshot, contacts and path history.
"""

import aiosqlite
import time
from typing import Optional
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.kv")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    k TEXT PRIMARY KEY,
    v TEXT NOT NULL,
    updated_at INTEGER NOT NULL
);
"""

class SQLiteKVStore:
    """SQLite 기반 키-값 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        self._initialized = False
        log.info(f"SQLiteKVStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        self._initialized = True
        log.info("SQLiteKVStore 스키마 초기화 완료")

    async def _ensure(self) -> None:
        if not self._initialized:
            await self.init()

    async def get(self, key: str) -> Optional[str]:
        """
        키로 값을 조회합니다.

        Args:
            key: 조회할 키

        Returns:
            값 또는 None
        """
        await self._ensure()
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT v FROM kv WHERE k = ?", (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def put(self, key: str, value: str) -> None:
        """
        키-값을 저장합니다 (마지막 쓰기 우선).

        Args:
            key: 저장할 키
            value: 저장할 값
        """
        await self._ensure()
        now = int(time.time())
        async with aiosqlite.connect(self.path) as db:
            await db.execute(
                "INSERT INTO kv (k, v, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(k) DO UPDATE SET v = excluded.v, updated_at = excluded.updated_at",
                (key, value, now)
            )
            await db.commit()

    async def delete(self, key: str) -> None:
        """
        키를 삭제합니다.

        Args:
            key: 삭제할 키
        """
        await self._ensure()
        async with aiosqlite.connect(self.path) as db:
            await db.execute("DELETE FROM kv WHERE k = ?", (key,))
            await db.commit()
