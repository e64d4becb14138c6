"""SQLite-backed key-value store for resume records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import delete, select, text
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .kv_store import KeyValueStore
from .tables import metadata, resume_records

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqliteKeyValueStore(KeyValueStore):
    """KeyValueStore persisted in a local SQLite database."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the SQLite engine.

        Call :meth:`init_async_store` before first use.
        """
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path

        self._engine: AsyncEngine = create_async_engine(
            f"sqlite+aiosqlite:///{db_path}",
            future=True,
        )

    @property
    def db_path(self) -> Path:
        """Location of the database file."""
        return self._db_path

    async def init_async_store(self) -> None:
        """Apply pragmas and ensure schema."""
        await self._apply_pragmas()
        await self._ensure_schema()

    async def _apply_pragmas(self) -> None:
        """Use WAL journaling so each committed write is durable on return."""
        async with self._engine.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.execute(text("PRAGMA synchronous=NORMAL;"))

    async def _ensure_schema(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None.

        Args:
            key: Namespaced record key.
        """
        async with self._engine.begin() as conn:
            row = (
                await conn.execute(
                    select(resume_records.c.value).where(resume_records.c.key == key)
                )
            ).first()
        return None if row is None else row[0]

    async def set(self, key: str, value: str) -> None:
        """Insert or replace the value stored under ``key``.

        Args:
            key: Namespaced record key.
            value: Serialized record.
        """
        now = _utc_now()
        stmt = insert(resume_records).values(key=key, value=value, last_updated=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[resume_records.c.key],
            set_={"value": value, "last_updated": now},
        )
        async with self._engine.begin() as conn:
            await conn.execute(stmt)

    async def delete(self, key: str) -> None:
        """Delete ``key`` if present.

        Args:
            key: Namespaced record key.
        """
        async with self._engine.begin() as conn:
            await conn.execute(delete(resume_records).where(resume_records.c.key == key))

    async def keys(self) -> list[str]:
        """Return every stored key."""
        async with self._engine.begin() as conn:
            rows = (
                await conn.execute(
                    select(resume_records.c.key).order_by(resume_records.c.key)
                )
            ).all()
        return [row[0] for row in rows]

    async def close(self) -> None:
        """Dispose of the engine and its connections."""
        await self._engine.dispose()
        logger.debug("Closed resume store at %s", self._db_path)
