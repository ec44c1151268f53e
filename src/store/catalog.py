"""SQLite catalog of imported branches and locations."""
import logging
from pathlib import Path
from typing import Any, Iterable

import aiosqlite
import orjson

from src.config import STATE_DB
from src.parse.models import Branch, EntityKind, Location

logger = logging.getLogger(__name__)

TABLES = {
    EntityKind.LOCATION: ("locations", "unlocode", Location),
    EntityKind.BRANCH: ("branches", "branch_code", Branch),
}


class CatalogStore:
    """Branches keyed by branch code, locations keyed by UN/LOCODE."""

    def __init__(self, db_path: Path = STATE_DB):
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            for table, key_column, _ in TABLES.values():
                await db.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        {key_column} TEXT PRIMARY KEY,
                        data TEXT NOT NULL,
                        updated_at TIMESTAMP
                    )
                    """
                )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS subscription (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    subscribed_count INTEGER NOT NULL
                )
                """
            )
            await db.commit()
            logger.info(f"Catalog database initialized at {self.db_path}")

    async def get_existing(self, kind: EntityKind, keys: Iterable[str]) -> dict[str, Any]:
        """Known records for the given keys."""
        table, key_column, model = TABLES[kind]
        keys = list(keys)
        if not keys:
            return {}

        found = {}
        async with aiosqlite.connect(self.db_path) as db:
            # Stay under SQLite's bound-parameter limit
            for start in range(0, len(keys), 500):
                chunk = keys[start:start + 500]
                placeholders = ",".join("?" * len(chunk))
                cursor = await db.execute(
                    f"SELECT {key_column}, data FROM {table} WHERE {key_column} IN ({placeholders})",
                    chunk,
                )
                for key, data in await cursor.fetchall():
                    found[key] = model.model_validate(orjson.loads(data))
        return found

    async def upsert(self, kind: EntityKind, records: list[Any]) -> int:
        """Insert or replace records by key."""
        if not records:
            return 0
        table, key_column, _ = TABLES[kind]
        rows = [(r.key, orjson.dumps(r.model_dump(mode="json")).decode()) for r in records]
        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany(
                f"""
                INSERT OR REPLACE INTO {table} ({key_column}, data, updated_at)
                VALUES (?, ?, datetime('now'))
                """,
                rows,
            )
            await db.commit()
        logger.debug(f"Upserted {len(rows)} rows into {table}")
        return len(rows)

    async def list_records(self, kind: EntityKind) -> list[Any]:
        table, key_column, model = TABLES[kind]
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(f"SELECT data FROM {table} ORDER BY {key_column}")
            return [model.model_validate(orjson.loads(row[0])) for row in await cursor.fetchall()]

    async def count(self, kind: EntityKind) -> int:
        table, _, _ = TABLES[kind]
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
            row = await cursor.fetchone()
            return row[0]

    async def get_subscribed_count(self) -> int | None:
        """Subscribed branch capacity, or None when no limit is recorded."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT subscribed_count FROM subscription WHERE id = 1")
            row = await cursor.fetchone()
            return row[0] if row else None

    async def set_subscribed_count(self, count: int) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO subscription (id, subscribed_count) VALUES (1, ?)",
                (count,),
            )
            await db.commit()
        logger.info(f"Subscribed branch capacity set to {count}")
